from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadRequest(BaseModel):
    filename: Optional[str] = None
    content_type: Optional[str] = None
    size: int = 0
    data: bytes = b""
    folder: Optional[str] = None
    public_id: Optional[str] = None
    tags: Optional[List[str]] = None
    optimize: Optional[str] = None


class UploadOptions(BaseModel):
    folder: Optional[str] = Field(None, max_length=100)
    public_id: Optional[str] = Field(None, max_length=100)
    tags: List[str] = []
    optimize: bool = True


class ListQuery(BaseModel):
    max_results: int = Field(30, ge=1, le=500)
    next_cursor: Optional[str] = None
    prefix: Optional[str] = None
    tags: bool = False


class SearchQuery(BaseModel):
    expression: str = Field(..., min_length=1)
    max_results: int = Field(30, ge=1, le=500)
    next_cursor: Optional[str] = None


class BulkDeleteRequest(CamelModel):
    public_ids: List[str] = Field(..., min_length=1, max_length=100)


class StoredImage(CamelModel):
    """Provider metadata for one asset. Read through on every call, never cached."""

    public_id: str
    url: Optional[str] = None
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    bytes: Optional[int] = None
    created_at: Optional[str] = None
    resource_type: Optional[str] = None
    type: Optional[str] = None
    tags: Optional[List[str]] = None
    thumbnail: Optional[str] = None
    transformed_url: Optional[str] = None


class ImagePage(CamelModel):
    images: List[StoredImage]
    total_count: Optional[int] = None
    next_cursor: Optional[str] = None


class BulkDeleteResult(CamelModel):
    # Keys cover every identifier the provider processed, which is not
    # necessarily every identifier requested.
    deleted: Dict[str, str]
    deleted_count: int
    partial: bool


class ResourceTotals(CamelModel):
    storage: float = 0
    bandwidth: float = 0
    transformations: float = 0
    credits: float = 0


class UsageSnapshot(CamelModel):
    used: ResourceTotals
    limit: ResourceTotals
    percentage: ResourceTotals


class SuccessResponse(CamelModel, Generic[T]):
    success: bool = True
    data: T


class DeleteResponse(CamelModel):
    success: bool = True
    message: str
    public_id: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    stack: Optional[str] = None


class ServiceStatus(BaseModel):
    api: str
    cloudinary: str


class HealthResponse(BaseModel):
    success: bool
    status: str
    timestamp: str
    uptime: float
    services: ServiceStatus
    error: Optional[str] = None
