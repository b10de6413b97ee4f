import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from secure import Secure

from .config import Settings

access_logger = logging.getLogger("imagecdn.access")

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


def install_access_log(app: FastAPI) -> None:
    @app.middleware("http")
    async def access_log(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        access_logger.info(
            "%s %s %s %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response


def install_rate_limit(app: FastAPI, settings: Settings, path_prefix: str = "/api/") -> None:
    """Fixed window per client address, applied to API paths only.

    Counters live in process memory, so each worker counts on its own.
    """
    limiter = FixedWindowRateLimiter(MemoryStorage())
    item = RateLimitItemPerSecond(settings.rate_limit_max, settings.rate_limit_window_seconds)

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        if request.url.path.startswith(path_prefix):
            client = request.client.host if request.client else "unknown"
            if not limiter.hit(item, client):
                access_logger.warning("rate limit exceeded for %s", client)
                return JSONResponse(
                    status_code=429,
                    content={"success": False, "error": RATE_LIMIT_MESSAGE},
                )
        return await call_next(request)


# Interactive docs load their assets from a CDN, which the default CSP blocks
DOCS_PATHS = ("/docs", "/redoc")


def install_security_headers(app: FastAPI) -> None:
    """Default hardening headers on every response.

    The resource policy stays cross-origin so other sites can embed responses.
    """
    secure_headers = Secure.with_default_headers()

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        if not request.url.path.startswith(DOCS_PATHS):
            await secure_headers.set_headers_async(response)
        response.headers["Cross-Origin-Resource-Policy"] = "cross-origin"
        return response
