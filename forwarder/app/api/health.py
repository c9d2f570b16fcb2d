import sys
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse, PlainTextResponse

from forwarder.app.utils.uptime import format_uptime

router = APIRouter(tags=["Monitoring"])


@router.get(
    "/health",
    summary="Liveness probe with process uptime",
)
async def health_check(request: Request) -> ORJSONResponse:
    """
    Report that the process is alive.

    NOTE:
    - Does NOT contact Discord
    - Does NOT fetch certificates
    """
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    uptime_seconds = max(0.0, time.monotonic() - started_at)

    return ORJSONResponse(
        content={
            "status": "running",
            "service": "sns-forwarder",
            "version": request.app.version,
            "uptime": format_uptime(uptime_seconds),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "runtime": f"python {sys.version.split()[0]}",
        }
    )


@router.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def root() -> str:
    return "OK"
