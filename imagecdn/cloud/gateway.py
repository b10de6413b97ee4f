"""Storage gateway: the only code that talks to the image provider.

`StorageGateway` is the narrow interface the orchestration layer depends on;
`CloudinaryGateway` is its single concrete adapter. Every provider or
transport failure leaves this module as a `NotFoundError` or an
`UpstreamError` carrying a readable message.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from io import BytesIO
from typing import Any, Dict, Iterator, List, Optional, Protocol

import cloudinary.api
import cloudinary.exceptions
import cloudinary.uploader
import cloudinary.utils
from cloudinary.search import Search

from ..core.config import Settings
from ..core.errors import NotFoundError, ServiceError, UpstreamError
from ..core.models import (
    BulkDeleteResult,
    ImagePage,
    ResourceTotals,
    StoredImage,
    UsageSnapshot,
)
from .clients import cloudinary_options

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500

THUMBNAIL_TRANSFORMATION = [
    {"width": 200, "height": 200, "crop": "fill"},
    {"quality": "auto", "fetch_format": "auto"},
]

# Status codes the SDK maps to its exception classes
PROVIDER_STATUS = {
    cloudinary.exceptions.BadRequest: 400,
    cloudinary.exceptions.AuthorizationRequired: 401,
    cloudinary.exceptions.NotAllowed: 403,
    cloudinary.exceptions.NotFound: 404,
    cloudinary.exceptions.AlreadyExists: 409,
    cloudinary.exceptions.RateLimited: 420,
}


class StorageGateway(Protocol):
    def upload(
        self,
        data: bytes,
        *,
        folder: Optional[str] = None,
        public_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
        transformation: Optional[Any] = None,
        context: Optional[Dict[str, str]] = None,
    ) -> StoredImage: ...

    def fetch(self, public_id: str, transformation: Optional[Dict[str, Any]] = None) -> StoredImage: ...

    def delete(self, public_id: str) -> str: ...

    def list(
        self,
        *,
        max_results: int = 30,
        next_cursor: Optional[str] = None,
        prefix: Optional[str] = None,
        include_tags: bool = False,
    ) -> ImagePage: ...

    def search(
        self, expression: str, *, max_results: int = 30, next_cursor: Optional[str] = None
    ) -> ImagePage: ...

    def bulk_delete(self, public_ids: List[str]) -> BulkDeleteResult: ...

    def usage(self) -> UsageSnapshot: ...

    def ping(self) -> bool: ...

    def thumbnail_url(self, public_id: str, format: Optional[str] = None) -> str: ...


@contextmanager
def provider_call(action: str, not_found: Optional[str] = None) -> Iterator[None]:
    """Translate SDK and transport errors raised inside the block.

    `action` prefixes the message ("Image upload failed: ..."). When
    `not_found` is given, a provider 404 becomes a `NotFoundError` with that
    message instead.
    """
    try:
        yield
    except ServiceError:
        raise
    except cloudinary.exceptions.NotFound as e:
        if not_found is not None:
            raise NotFoundError(not_found) from e
        raise UpstreamError(f"{action}: {e}", status_code=404) from e
    except cloudinary.exceptions.Error as e:
        status = PROVIDER_STATUS.get(type(e), 500)
        logger.warning("%s (provider status %s): %s", action, status, e)
        raise UpstreamError(f"{action}: {e}", status_code=status) from e
    except Exception as e:
        logger.exception("%s: transport error", action)
        raise UpstreamError(f"{action}: {e}") from e


def _totals(usage: Dict[str, Any], key: str) -> ResourceTotals:
    def pick(resource: str) -> float:
        return (usage.get(resource) or {}).get(key) or 0

    return ResourceTotals(
        storage=pick("storage"),
        bandwidth=pick("bandwidth"),
        transformations=pick("transformations"),
        credits=pick("credits"),
    )


class CloudinaryGateway:
    def __init__(self, settings: Settings):
        self._options = cloudinary_options(settings)
        self._default_folder = settings.upload_folder

    def thumbnail_url(self, public_id: str, format: Optional[str] = None) -> str:
        """200x200 fill-crop with automatic quality and format."""
        url, _ = cloudinary.utils.cloudinary_url(
            public_id,
            transformation=THUMBNAIL_TRANSFORMATION,
            format=format,
            **self._options,
        )
        return url

    def transformed_url(self, public_id: str, transformation: Dict[str, Any]) -> str:
        url, _ = cloudinary.utils.cloudinary_url(
            public_id, transformation=[transformation], **self._options
        )
        return url

    def _to_image(self, resource: Dict[str, Any]) -> StoredImage:
        public_id = resource["public_id"]
        return StoredImage(
            public_id=public_id,
            url=resource.get("secure_url"),
            format=resource.get("format"),
            width=resource.get("width"),
            height=resource.get("height"),
            bytes=resource.get("bytes"),
            created_at=resource.get("created_at"),
            resource_type=resource.get("resource_type"),
            type=resource.get("type"),
            tags=resource.get("tags"),
            thumbnail=self.thumbnail_url(public_id, resource.get("format")),
        )

    def _to_page(self, result: Dict[str, Any]) -> ImagePage:
        return ImagePage(
            images=[self._to_image(r) for r in result.get("resources", [])],
            total_count=result.get("total_count"),
            next_cursor=result.get("next_cursor"),
        )

    def upload(
        self,
        data: bytes,
        *,
        folder: Optional[str] = None,
        public_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
        transformation: Optional[Any] = None,
        context: Optional[Dict[str, str]] = None,
    ) -> StoredImage:
        params: Dict[str, Any] = {
            "folder": folder or self._default_folder,
            "resource_type": "auto",
            "tags": tags or [],
        }
        if public_id:
            params["public_id"] = public_id
        if transformation:
            params["transformation"] = transformation
        if context:
            params["context"] = context

        with provider_call("Image upload failed"):
            result = cloudinary.uploader.upload(BytesIO(data), **params, **self._options)
            logger.info("uploaded %s (%s bytes)", result.get("public_id"), result.get("bytes"))
            return self._to_image(result)

    def fetch(self, public_id: str, transformation: Optional[Dict[str, Any]] = None) -> StoredImage:
        with provider_call("Failed to retrieve image", not_found="Image not found"):
            resource = cloudinary.api.resource(public_id, resource_type="image", **self._options)
            image = self._to_image(resource)
        if transformation:
            image.transformed_url = self.transformed_url(public_id, transformation)
        return image

    def delete(self, public_id: str) -> str:
        with provider_call("Image deletion failed"):
            result = cloudinary.uploader.destroy(public_id, **self._options)
        outcome = result.get("result")
        if outcome not in ("ok", "not found"):
            raise UpstreamError(f"Image deletion failed: unexpected result {outcome!r}")
        return outcome

    def list(
        self,
        *,
        max_results: int = 30,
        next_cursor: Optional[str] = None,
        prefix: Optional[str] = None,
        include_tags: bool = False,
    ) -> ImagePage:
        params: Dict[str, Any] = {
            "type": "upload",
            "resource_type": "image",
            "max_results": min(max_results, MAX_PAGE_SIZE),
        }
        if next_cursor:
            params["next_cursor"] = next_cursor
        if prefix:
            params["prefix"] = prefix
        if include_tags:
            params["tags"] = True

        with provider_call("Failed to list images"):
            return self._to_page(cloudinary.api.resources(**params, **self._options))

    def search(
        self, expression: str, *, max_results: int = 30, next_cursor: Optional[str] = None
    ) -> ImagePage:
        query = Search().expression(expression).max_results(min(max_results, MAX_PAGE_SIZE))
        if next_cursor:
            query = query.next_cursor(next_cursor)

        with provider_call("Search failed"):
            return self._to_page(query.execute(**self._options))

    def bulk_delete(self, public_ids: List[str]) -> BulkDeleteResult:
        with provider_call("Bulk deletion failed"):
            result = cloudinary.api.delete_resources(public_ids, **self._options)
        deleted = dict(result.get("deleted") or {})
        deleted_count = sum(1 for status in deleted.values() if status == "deleted")
        # The provider's own flag only covers an unfinished run
        partial = bool(result.get("partial")) or deleted_count != len(deleted)
        return BulkDeleteResult(deleted=deleted, deleted_count=deleted_count, partial=partial)

    def usage(self) -> UsageSnapshot:
        with provider_call("Failed to get statistics"):
            usage = cloudinary.api.usage(**self._options)
        return UsageSnapshot(
            used=_totals(usage, "usage"),
            limit=_totals(usage, "limit"),
            percentage=_totals(usage, "used_percent"),
        )

    def ping(self) -> bool:
        try:
            cloudinary.api.ping(**self._options)
        except Exception as e:
            logger.error("Failed to connect to Cloudinary: %s", e)
            return False
        return True
