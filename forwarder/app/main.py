import logging
import os
import time
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from forwarder.app.api.health import router as health_router
from forwarder.app.api.report import router as report_router
from forwarder.app.api.sns import router as sns_router
from forwarder.app.core.config import get_settings
from forwarder.app.core.log import configure_logging

logger = logging.getLogger("forwarder.main")


def get_app_version() -> str:
    """
    Resolve application version deterministically.

    Falls back to the source version when the package is not installed.
    """
    try:
        return version("sns-discord-forwarder")
    except PackageNotFoundError:
        return "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Guarantees:
    - Fail-fast startup if configuration is invalid
    - One shared, bounded HTTP transport for certificates and Discord
    """
    # ------------------------------------------------------------------
    # Load and validate configuration (FAIL FAST)
    # ------------------------------------------------------------------
    try:
        settings = get_settings()
    except Exception:
        configure_logging()
        logger.exception("invalid_forwarder_configuration")
        raise

    configure_logging(settings.debug)

    logger.info(
        "forwarder_startup_begin",
        extra={"service": "sns-forwarder", "version": get_app_version()},
    )

    app.state.settings = settings
    app.state.started_at = time.monotonic()

    # ------------------------------------------------------------------
    # Persistent HTTP client
    #
    # Redirects are never followed for certificate retrieval; the
    # per-request timeouts in the services tighten these bounds.
    # ------------------------------------------------------------------
    app.state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(
            timeout=30.0,      # hard upper bound
            connect=5.0,
        ),
        limits=httpx.Limits(
            max_keepalive_connections=20,
            max_connections=50,
        ),
        headers={
            "User-Agent": f"sns-forwarder/{get_app_version()}",
        },
    )

    logger.info("forwarder_ready")

    try:
        yield
    finally:
        logger.info("forwarder_shutdown_begin")

        try:
            await app.state.http_client.aclose()
        except Exception:
            logger.warning("http_client_shutdown_failed")


def create_app() -> FastAPI:
    """
    Application factory for the SNS / RKHunter Discord forwarder.
    """
    app = FastAPI(
        title="SNS Discord Forwarder",
        description=(
            "Verifies AWS SNS notifications and RKHunter scan reports "
            "and forwards them to a Discord webhook."
        ),
        version=get_app_version(),
        docs_url="/docs",
        redoc_url=None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.include_router(sns_router)
    app.include_router(report_router)
    app.include_router(health_router)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the application with uvicorn."""
    uvicorn.run(
        "forwarder.app.main:app",
        host=os.getenv("FORWARDER_HOST", "0.0.0.0"),
        port=int(os.getenv("FORWARDER_PORT", "3000")),
        proxy_headers=True,
    )
