from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool

from ..core.models import (
    BulkDeleteResult,
    DeleteResponse,
    ImagePage,
    StoredImage,
    SuccessResponse,
    UploadRequest,
    UsageSnapshot,
)
from ..services.images import ImageService

router = APIRouter(prefix="/images", tags=["images"])


def get_image_service(request: Request) -> ImageService:
    return request.app.state.image_service


# Multipart upload. The file goes in the `image` field; options are plain
# form fields next to it.
@router.post(
    "/upload",
    response_model=SuccessResponse[StoredImage],
    status_code=201,
    summary="Upload an image",
    description=(
        "Upload a JPG/PNG/GIF/WEBP/SVG file using multipart form-data.\n\n"
        "Fields:\n"
        "- `image` (required): the image file.\n"
        "- `folder` (optional): destination folder, up to 100 characters.\n"
        "- `publicId` (optional): explicit identifier, up to 100 characters.\n"
        "- `tags` (optional): repeated field or comma-separated list (e.g. 'summer,beach').\n"
        "- `optimize` (optional, default true): resize to 4096px and recompress before storing.\n\n"
        "SVG files are stored as-is."
    ),
)
async def upload_image(
    image: Optional[UploadFile] = File(None),
    folder: Optional[str] = Form(None),
    public_id: Optional[str] = Form(None, alias="publicId"),
    tags: Optional[List[str]] = Form(None, description="Comma-separated tags (e.g. 'summer,beach')"),
    optimize: Optional[str] = Form(None),
    service: ImageService = Depends(get_image_service),
):
    request = UploadRequest(folder=folder, public_id=public_id, tags=tags, optimize=optimize)
    if image is not None:
        request.filename = image.filename
        request.content_type = image.content_type
        request.size = image.size if image.size is not None else 0
        # Reject oversized files before reading them into memory
        if request.size <= service.settings.max_file_size:
            request.data = await image.read()
            request.size = len(request.data)
    return await run_in_threadpool(service.upload, request)


@router.post(
    "/bulk-delete",
    response_model=SuccessResponse[BulkDeleteResult],
    summary="Delete many images",
    description=(
        "Body: `{\"publicIds\": [...]}` with 1 to 100 unique identifiers.\n\n"
        "Deletion is not atomic: inspect `deleted` and `partial` to learn which items failed."
    ),
)
def bulk_delete(
    payload: Optional[Dict[str, Any]] = Body(None),
    service: ImageService = Depends(get_image_service),
):
    return service.bulk_delete((payload or {}).get("publicIds"))


@router.get(
    "/search/query",
    response_model=SuccessResponse[ImagePage],
    summary="Search images",
)
def search_images(
    expression: Optional[str] = Query(None, description="Provider search expression, e.g. tags=beach"),
    max_results: Optional[int] = Query(None, alias="maxResults"),
    next_cursor: Optional[str] = Query(None, alias="nextCursor"),
    service: ImageService = Depends(get_image_service),
):
    return service.search(expression, max_results=max_results, next_cursor=next_cursor)


@router.get(
    "/stats/usage",
    response_model=SuccessResponse[UsageSnapshot],
    summary="Storage, bandwidth, transformation and credit usage",
)
def usage_stats(service: ImageService = Depends(get_image_service)):
    return service.usage()


@router.get(
    "",
    response_model=SuccessResponse[ImagePage],
    summary="List images",
    description=(
        "Paginated listing.\n\n"
        "Query params:\n"
        "- `maxResults`: 1 to 500, default 30.\n"
        "- `nextCursor`: continuation cursor from a previous page.\n"
        "- `prefix`: only identifiers starting with this value.\n"
        "- `tags`: include each image's tags."
    ),
)
def list_images(
    max_results: Optional[int] = Query(None, alias="maxResults"),
    next_cursor: Optional[str] = Query(None, alias="nextCursor"),
    prefix: Optional[str] = Query(None),
    tags: Optional[bool] = Query(None),
    service: ImageService = Depends(get_image_service),
):
    return service.list(max_results=max_results, next_cursor=next_cursor, prefix=prefix, tags=tags)


# Identifiers may contain slashes (folder/name), so these two routes take the
# rest of the path and must stay below the fixed paths above.
@router.get(
    "/{public_id:path}",
    response_model=SuccessResponse[StoredImage],
    summary="Get image details",
)
def get_image(
    public_id: str,
    width: Optional[int] = Query(None, ge=1),
    height: Optional[int] = Query(None, ge=1),
    crop: Optional[str] = Query(None),
    service: ImageService = Depends(get_image_service),
):
    return service.get(public_id, width=width, height=height, crop=crop)


@router.delete(
    "/{public_id:path}",
    response_model=DeleteResponse,
    summary="Delete an image",
    description="Succeeds whether or not the image existed; `message` tells which.",
)
def delete_image(public_id: str, service: ImageService = Depends(get_image_service)):
    return service.delete(public_id)
