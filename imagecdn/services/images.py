"""Request orchestration for the image endpoints.

Each method runs one operation end to end: validate, (optimize), call the
storage gateway, and shape the result into a response model. Methods are
blocking and meant to be run in the threadpool.
"""

import logging
from typing import Any, Dict, List, Optional

from ..cloud.gateway import StorageGateway
from ..core.config import Settings
from ..core.models import (
    BulkDeleteResult,
    DeleteResponse,
    ImagePage,
    StoredImage,
    SuccessResponse,
    UploadRequest,
    UsageSnapshot,
)
from ..core.validation import (
    validate_bulk_delete,
    validate_image_file,
    validate_list_query,
    validate_public_id,
    validate_search_query,
    validate_upload_options,
)
from ..processing.optimize import optimize_image

logger = logging.getLogger(__name__)


class ImageService:
    def __init__(self, gateway: StorageGateway, settings: Settings):
        self.gateway = gateway
        self.settings = settings

    def upload(self, request: UploadRequest) -> SuccessResponse[StoredImage]:
        validate_image_file(request.filename, request.content_type, request.size, self.settings)
        options = validate_upload_options(
            folder=request.folder,
            public_id=request.public_id,
            tags=request.tags,
            optimize=request.optimize,
        )

        asset = optimize_image(request.data, request.content_type, enabled=options.optimize)
        if asset.optimized:
            logger.info(
                "optimized %s: %d -> %d bytes", request.filename, asset.original_bytes, len(asset.data)
            )

        stored = self.gateway.upload(
            asset.data,
            folder=options.folder or self.settings.upload_folder,
            public_id=options.public_id,
            tags=options.tags,
        )
        return SuccessResponse[StoredImage](data=stored)

    def get(
        self,
        public_id: str,
        width: Optional[int] = None,
        height: Optional[int] = None,
        crop: Optional[str] = None,
    ) -> SuccessResponse[StoredImage]:
        public_id = validate_public_id(public_id)
        transformation: Dict[str, Any] = {
            k: v for k, v in (("width", width), ("height", height), ("crop", crop)) if v
        }
        image = self.gateway.fetch(public_id, transformation=transformation or None)
        if image.transformed_url is None:
            image.transformed_url = image.url
        return SuccessResponse[StoredImage](data=image)

    def delete(self, public_id: str) -> DeleteResponse:
        public_id = validate_public_id(public_id)
        outcome = self.gateway.delete(public_id)
        message = "Image deleted successfully" if outcome == "ok" else "Image not found"
        return DeleteResponse(message=message, public_id=public_id)

    def list(
        self,
        max_results: Optional[int] = None,
        next_cursor: Optional[str] = None,
        prefix: Optional[str] = None,
        tags: Optional[bool] = None,
    ) -> SuccessResponse[ImagePage]:
        query = validate_list_query(
            max_results=max_results, next_cursor=next_cursor, prefix=prefix, tags=tags
        )
        page = self.gateway.list(
            max_results=query.max_results,
            next_cursor=query.next_cursor,
            prefix=query.prefix,
            include_tags=query.tags,
        )
        return SuccessResponse[ImagePage](data=page)

    def search(
        self,
        expression: Optional[str],
        max_results: Optional[int] = None,
        next_cursor: Optional[str] = None,
    ) -> SuccessResponse[ImagePage]:
        query = validate_search_query(expression, max_results=max_results, next_cursor=next_cursor)
        page = self.gateway.search(
            query.expression, max_results=query.max_results, next_cursor=query.next_cursor
        )
        return SuccessResponse[ImagePage](data=page)

    def bulk_delete(self, public_ids: List[str]) -> SuccessResponse[BulkDeleteResult]:
        ids = validate_bulk_delete(public_ids)
        result = self.gateway.bulk_delete(ids)
        if result.partial:
            logger.warning(
                "bulk delete was partial: %d of %d requested deleted", result.deleted_count, len(ids)
            )
        return SuccessResponse[BulkDeleteResult](data=result)

    def usage(self) -> SuccessResponse[UsageSnapshot]:
        return SuccessResponse[UsageSnapshot](data=self.gateway.usage())
