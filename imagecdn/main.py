import logging
import time
import traceback
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .cloud.gateway import CloudinaryGateway, StorageGateway
from .core.config import Settings
from .core.errors import ConfigurationError, ServiceError
from .core.logging import configure_logging
from .core.middleware import install_access_log, install_rate_limit, install_security_headers
from .core.models import ErrorResponse
from .routers.health import router as health_router
from .routers.images import router as images_router
from .services.images import ImageService

logger = logging.getLogger(__name__)

tags_metadata = [
    {
        "name": "images",
        "description": (
            "Endpoints to upload, list, search, inspect and delete images.\n\n"
            "- Upload via multipart; raster images are resized to 4096px and recompressed.\n"
            "- JPEG/PNG/GIF/WEBP/SVG validation by size, extension and media type.\n"
            "- Cursor-based listing and provider search expressions.\n"
            "- Bulk delete with per-item outcomes."
        ),
    },
    {"name": "health", "description": "Liveness and storage provider reachability."},
]


def _error_response(
    settings: Settings, status_code: int, message: str, exc: Optional[BaseException] = None
) -> JSONResponse:
    body = ErrorResponse(error=message)
    if exc is not None and not settings.is_production:
        body.stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def create_app(
    settings: Optional[Settings] = None, gateway: Optional[StorageGateway] = None
) -> FastAPI:
    """Build the application.

    Without an explicit `gateway` a `CloudinaryGateway` is created, which
    raises `ConfigurationError` when credentials are missing.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    if gateway is None:
        gateway = CloudinaryGateway(settings)

    app = FastAPI(
        title="Image CDN Service",
        description=(
            "How to Use:\n\n"
            "1) Upload an image: POST /api/images/upload with an `image` file and optional "
            "`folder`, `publicId`, `tags` and `optimize` fields.\n"
            "2) List images: GET /api/images with `maxResults` and `nextCursor` to paginate.\n"
            "3) Search: GET /api/images/search/query?expression=tags=beach.\n"
            "4) Inspect or delete: GET or DELETE /api/images/{publicId}.\n"
            "5) Usage: GET /api/images/stats/usage."
        ),
        openapi_tags=tags_metadata,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.image_service = ImageService(gateway, settings)
    app.state.started_at = time.monotonic()

    # Added last runs first: CORS, security headers, rate limit, access log
    install_access_log(app)
    install_rate_limit(app, settings)
    install_security_headers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return _error_response(settings, exc.status_code, exc.message, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            loc = [str(p) for p in errors[0].get("loc", ()) if p not in ("body", "query", "path")]
            message = f'"{".".join(loc)}" {errors[0].get("msg")}' if loc else errors[0].get("msg")
        return _error_response(settings, 400, message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return _error_response(settings, exc.status_code, message)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return _error_response(settings, 500, "Internal server error", exc)

    app.include_router(health_router, prefix="/api")
    app.include_router(images_router, prefix="/api")
    return app


def run() -> None:
    """Console entry point: validate configuration, check the provider, serve."""
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    try:
        app = create_app(settings)
    except ConfigurationError as e:
        logger.critical("Configuration error: %s", e)
        raise SystemExit(1) from e

    if not app.state.image_service.gateway.ping():
        logger.warning("Could not connect to Cloudinary. Please check your credentials.")

    logger.info("Image CDN service listening on %s:%s (%s)", settings.host, settings.port, settings.environment)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
