"""
RKHunter log report endpoint.

Accepts an uploaded RKHunter scan log, extracts its security-relevant
fields, and posts a colour-coded summary plus the full log to Discord.
"""

import logging
from typing import Annotated, List, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Header,
    HTTPException,
    UploadFile,
    status,
)
from fastapi.responses import PlainTextResponse

from forwarder.app.api.dependencies import get_app_settings, get_discord_notifier
from forwarder.app.core.config import Settings
from forwarder.app.schemas.embed import EmbedField, MAX_EMBED_FIELDS
from forwarder.app.services.discord import (
    DEFAULT_EMBED_COLOR,
    DiscordDeliveryError,
    DiscordNotifier,
)
from forwarder.app.services.log_fields import extract_fields

logger = logging.getLogger("forwarder.report")

router = APIRouter(tags=["RKHunter Reports"])

SEVERITY_ERROR_COLOR = 0xFF0000
SEVERITY_WARNING_COLOR = 0xFFAA00
SEVERITY_CLEAN_COLOR = 0x00FF00


def _count(fields: List[EmbedField], name: str) -> int:
    for f in fields:
        if f.name == name:
            try:
                return int(f.value)
            except ValueError:
                return 0
    return 0


def severity_color(fields: List[EmbedField]) -> int:
    """Red on any error, amber on any warning, green otherwise."""
    if _count(fields, "Errors") > 0:
        return SEVERITY_ERROR_COLOR
    if _count(fields, "Warnings") > 0:
        return SEVERITY_WARNING_COLOR
    return SEVERITY_CLEAN_COLOR


def _safe_filename(filename: Optional[str]) -> str:
    if not filename:
        return "rkhunter.log"
    return (
        filename.replace('"', "")
        .replace("\n", "")
        .replace("\r", "")
        .replace("/", "_")
        .replace("\\", "_")
    ) or "rkhunter.log"


# =============================================================================
# POST /report
# =============================================================================

@router.post(
    "/report",
    summary="Forward an RKHunter scan log to Discord",
    response_class=PlainTextResponse,
    responses={
        400: {"description": "No log file uploaded"},
        413: {"description": "Payload too large"},
        500: {"description": "Discord delivery failure"},
    },
)
async def receive_report(
    settings: Annotated[Settings, Depends(get_app_settings)],
    notifier: Annotated[DiscordNotifier, Depends(get_discord_notifier)],
    logfile: Annotated[
        Optional[UploadFile],
        File(description="RKHunter log file"),
    ] = None,
    x_server: Annotated[
        Optional[str],
        Header(description="Name of the scanned server"),
    ] = None,
) -> PlainTextResponse:
    if logfile is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No log file uploaded",
        )

    server_name = (x_server or "").strip() or "Unknown Server"
    max_bytes = settings.max_log_size_mb * 1024 * 1024

    try:
        # ------------------------------------------------------------------
        # Bounded read
        # ------------------------------------------------------------------
        content = await logfile.read(max_bytes + 1)

        if not content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No log file uploaded",
            )

        if len(content) > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds the {settings.max_log_size_mb}MB limit.",
            )

        file_name = _safe_filename(logfile.filename)
    finally:
        await logfile.close()

    logger.info("report_processing", extra={"server": server_name})

    log_text = content.decode("utf-8", errors="replace")
    fields = extract_fields(log_text)

    # Server goes first; re-cap since the engine may already return 25.
    fields = [
        EmbedField(name="Server", value=server_name[:1024], inline=True),
        *fields,
    ][:MAX_EMBED_FIELDS]

    logger.info(
        "report_fields_extracted",
        extra={
            "server": server_name,
            "warnings": _count(fields, "Warnings"),
            "errors": _count(fields, "Errors"),
            "field_count": len(fields),
        },
    )

    try:
        await notifier.send_embed(
            "📋 **RKHunter Scan Summary**",
            title=f"RKHunter Log - {server_name}",
            color=severity_color(fields),
            timestamp=True,
            fields=fields,
        )
        await notifier.send_file(
            "📄 Full scan log attached:",
            title=f"📘 Full Log - {server_name}",
            color=DEFAULT_EMBED_COLOR,
            timestamp=True,
            content=content,
            file_name=file_name,
        )
    except DiscordDeliveryError as exc:
        logger.error("report_delivery_failed", extra={"server": server_name})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send report",
        ) from exc

    return PlainTextResponse("Report sent to Discord")
