"""Input validation that runs before any optimization or provider call."""

from pathlib import PurePath
from typing import Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .config import Settings
from .errors import ValidationError
from .models import BulkDeleteRequest, ListQuery, SearchQuery, UploadOptions

ALLOWED_IMAGE_CONTENT_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
}


def _first_error(exc: PydanticValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(part) for part in err.get("loc", ()))
    msg = err.get("msg", "is invalid")
    return f'"{field}" {msg}' if field else msg


def _format_megabytes(size: int) -> str:
    return f"{size / 1024 / 1024:g}MB"


def validate_image_file(
    filename: Optional[str],
    content_type: Optional[str],
    size: int,
    settings: Settings,
) -> None:
    if not filename:
        raise ValidationError(
            'No image file provided. Please upload a file with the field name "image"'
        )
    if size > settings.max_file_size:
        raise ValidationError(
            f"File size exceeds limit. Maximum size: {_format_megabytes(settings.max_file_size)}"
        )
    extension = PurePath(filename).suffix.lstrip(".").lower()
    if extension not in settings.allowed_formats:
        raise ValidationError(
            "Invalid file format. Allowed formats: " + ", ".join(settings.allowed_formats)
        )
    if (content_type or "").lower() not in ALLOWED_IMAGE_CONTENT_TYPES:
        raise ValidationError("Invalid file type. Please upload an image file.")


def parse_tags(raw: Optional[Iterable[str]]) -> List[str]:
    """Accept repeated form fields and comma-separated values alike."""
    if not raw:
        return []
    tags: List[str] = []
    for value in raw:
        tags.extend(t.strip() for t in value.split(",") if t.strip())
    return tags


def validate_upload_options(
    folder: Optional[str] = None,
    public_id: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    optimize: Optional[str] = None,
) -> UploadOptions:
    fields = {"folder": folder, "public_id": public_id, "tags": parse_tags(tags)}
    # An empty or absent flag means "optimize"
    if optimize is not None and optimize.strip() != "":
        fields["optimize"] = optimize.strip()
    try:
        return UploadOptions(**fields)
    except PydanticValidationError as e:
        raise ValidationError(_first_error(e)) from e


def validate_public_id(public_id: Optional[str]) -> str:
    if public_id is None or not public_id.strip():
        raise ValidationError("Invalid public ID")
    return public_id


def validate_list_query(**params) -> ListQuery:
    try:
        return ListQuery(**{k: v for k, v in params.items() if v is not None})
    except PydanticValidationError as e:
        raise ValidationError(_first_error(e)) from e


def validate_search_query(expression: Optional[str], **params) -> SearchQuery:
    if expression is None or not expression.strip():
        raise ValidationError("Search expression is required")
    try:
        return SearchQuery(
            expression=expression, **{k: v for k, v in params.items() if v is not None}
        )
    except PydanticValidationError as e:
        raise ValidationError(_first_error(e)) from e


def validate_bulk_delete(public_ids) -> List[str]:
    try:
        request = BulkDeleteRequest(public_ids=public_ids)
    except PydanticValidationError as e:
        raise ValidationError(_first_error(e)) from e
    ids = request.public_ids
    if any(not pid.strip() for pid in ids):
        raise ValidationError('"publicIds" must not contain empty identifiers')
    if len(set(ids)) != len(ids):
        raise ValidationError('"publicIds" must contain unique identifiers')
    return ids
