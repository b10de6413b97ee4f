import os, sys
import uuid
from io import BytesIO
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Ensure project root on sys.path so `import imagecdn...` works
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from imagecdn.core.config import Settings
from imagecdn.core.errors import NotFoundError
from imagecdn.core.models import (
    BulkDeleteResult,
    ImagePage,
    ResourceTotals,
    StoredImage,
    UsageSnapshot,
)
from imagecdn.main import create_app


def image_bytes(size=(3, 2), fmt="PNG", color=(0, 128, 255)) -> bytes:
    img = Image.new("RGB", size, color=color)
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


SVG_BYTES = (
    b'<svg xmlns="http://www.w3.org/2000/svg" width="50" height="50">'
    b'<rect width="50" height="50" fill="red"/></svg>'
)


class FakeGateway:
    """In-memory stand-in for the storage provider."""

    def __init__(self):
        self.images: Dict[str, StoredImage] = {}
        self.uploads: List[Dict[str, Any]] = []
        self.calls: List[str] = []
        self.reachable = True

    def thumbnail_url(self, public_id: str, format: Optional[str] = None) -> str:
        return f"https://cdn.test/image/upload/c_fill,h_200,w_200/f_auto,q_auto/{public_id}.{format}"

    def upload(self, data, *, folder=None, public_id=None, tags=None, transformation=None, context=None):
        self.calls.append("upload")
        self.uploads.append({"data": data, "folder": folder, "public_id": public_id, "tags": tags})
        try:
            with Image.open(BytesIO(data)) as img:
                fmt = (img.format or "").lower()
                width, height = img.size
        except Exception:
            fmt, width, height = "svg", 50, 50
        pid = f"{folder}/{public_id or uuid.uuid4().hex[:12]}"
        image = StoredImage(
            public_id=pid,
            url=f"https://cdn.test/image/upload/{pid}.{fmt}",
            format=fmt,
            width=width,
            height=height,
            bytes=len(data),
            created_at="2026-10-17T12:00:00Z",
            resource_type="image",
            type="upload",
            tags=list(tags or []),
            thumbnail=self.thumbnail_url(pid, fmt),
        )
        self.images[pid] = image
        return image

    def fetch(self, public_id, transformation=None):
        self.calls.append("fetch")
        if public_id not in self.images:
            raise NotFoundError("Image not found")
        image = self.images[public_id].model_copy()
        if transformation:
            parts = ",".join(f"{k[0]}_{v}" for k, v in sorted(transformation.items()))
            image.transformed_url = f"https://cdn.test/image/upload/{parts}/{public_id}"
        return image

    def delete(self, public_id):
        self.calls.append("delete")
        return "ok" if self.images.pop(public_id, None) else "not found"

    def _page(self, ids, max_results, next_cursor):
        start = int(next_cursor) if next_cursor else 0
        chunk = ids[start:start + max_results]
        cursor = str(start + max_results) if start + max_results < len(ids) else None
        return ImagePage(
            images=[self.images[i] for i in chunk], total_count=len(ids), next_cursor=cursor
        )

    def list(self, *, max_results=30, next_cursor=None, prefix=None, include_tags=False):
        self.calls.append("list")
        ids = sorted(i for i in self.images if not prefix or i.startswith(prefix))
        return self._page(ids, max_results, next_cursor)

    def search(self, expression, *, max_results=30, next_cursor=None):
        self.calls.append("search")
        if expression.startswith("tags="):
            tag = expression.split("=", 1)[1]
            ids = sorted(i for i, img in self.images.items() if tag in (img.tags or []))
        else:
            ids = sorted(i for i in self.images if expression in i)
        return self._page(ids, max_results, next_cursor)

    def bulk_delete(self, public_ids):
        self.calls.append("bulk_delete")
        deleted = {
            pid: "deleted" if self.images.pop(pid, None) else "not_found" for pid in public_ids
        }
        count = sum(1 for s in deleted.values() if s == "deleted")
        return BulkDeleteResult(deleted=deleted, deleted_count=count, partial=count != len(deleted))

    def usage(self):
        self.calls.append("usage")
        return UsageSnapshot(
            used=ResourceTotals(storage=2048, bandwidth=4096, transformations=12, credits=0.5),
            limit=ResourceTotals(storage=0, bandwidth=0, transformations=0, credits=25),
            percentage=ResourceTotals(credits=2.0),
        )

    def ping(self):
        return self.reachable


def make_settings(**overrides) -> Settings:
    values = dict(
        cloudinary_cloud_name="demo",
        cloudinary_api_key="key",
        cloudinary_api_secret="secret",
        environment="production",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def client(gateway, settings):
    return TestClient(create_app(settings, gateway=gateway))
