"""Error taxonomy shared by every layer.

Handlers registered in `imagecdn.main.create_app` turn any `ServiceError`
into the `{"success": false, "error": ...}` envelope with its status code.
"""

from typing import Optional


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    """Malformed or missing input, detected before any side effect."""

    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class UpstreamError(ServiceError):
    """The storage provider or the transport to it failed.

    Carries the provider's HTTP status when it supplied one.
    """

    status_code = 500


class ConfigurationError(Exception):
    """Fatal at startup: the process must not run degraded."""
