import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..core.models import HealthResponse, ServiceStatus

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse, summary="Liveness and provider reachability")
async def health(request: Request):
    connected = await run_in_threadpool(request.app.state.image_service.gateway.ping)
    body = HealthResponse(
        success=connected,
        status="OK" if connected else "DEGRADED",
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        services=ServiceStatus(api="OK", cloudinary="OK" if connected else "ERROR"),
        error=None if connected else "Storage provider unreachable",
    )
    return JSONResponse(
        status_code=200 if connected else 503,
        content=body.model_dump(exclude_none=True),
    )
