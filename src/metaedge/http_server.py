"""uvicorn runner for the edge app."""

from __future__ import annotations

import uvicorn

from .config.settings import get_settings
from .http_app import app
from .observability.logger import get_logger

logger = get_logger(__name__)


def build_server_config() -> uvicorn.Config:
    settings = get_settings()
    return uvicorn.Config(
        app=app,
        host=settings.http_host,
        port=settings.http_port,
        # structlog owns request logging; uvicorn only reports its own failures
        log_level="warning",
        access_log=False,
        loop="asyncio",
        # x-forwarded-host selects the environment, so trust the CDN hop
        proxy_headers=True,
        forwarded_allow_ips=settings.forwarded_allow_ips,
    )


async def run_http_server() -> None:
    config = build_server_config()
    logger.info("http_server_started", address=f"http://{config.host}:{config.port}")
    await uvicorn.Server(config).serve()
