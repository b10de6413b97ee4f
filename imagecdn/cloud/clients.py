from typing import Any, Dict

from ..core.config import Settings


def cloudinary_options(settings: Settings) -> Dict[str, Any]:
    """Credentials passed on every SDK call.

    The SDK also supports a global `cloudinary.config(...)`; per-call options
    keep each gateway tied to the `Settings` it was built from.
    """
    settings.require_credentials()
    return {
        "cloud_name": settings.cloudinary_cloud_name,
        "api_key": settings.cloudinary_api_key,
        "api_secret": settings.cloudinary_api_secret,
        "secure": True,
    }
