"""Application lifespan management (startup/shutdown hooks)."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from .clients.origin import OriginClient
from .config.environment import EnvironmentTable
from .config.settings import get_settings
from .observability.logger import configure_logging, get_logger
from .services.metadata_merger import MetadataMerger
from .services.response_policy import ResponsePolicy

logger = get_logger(__name__)

# Process-wide, read-only after startup. Per-request clients are built from it.
app_state: dict[str, Any] = {}


def build_app_state() -> dict[str, Any]:
    settings = get_settings()
    return {
        "settings": settings,
        "environments": EnvironmentTable.from_settings(settings),
        "policy": ResponsePolicy.from_settings(settings),
        "merger": MetadataMerger(
            html_description_length=settings.html_description_length,
            structured_description_length=settings.structured_description_length,
        ),
        "origin": OriginClient(
            base_url=settings.origin_base_url,
            timeout_seconds=settings.origin_timeout_seconds,
        ),
    }


@asynccontextmanager
async def lifespan_manager():
    """Manage application lifespan (startup and shutdown)."""
    settings = get_settings()

    configure_logging()
    logger.info("starting_application", service_name=settings.service_name)

    app_state.update(build_app_state())
    logger.info(
        "application_started",
        origin_base_url=settings.origin_base_url,
        content_api_production=settings.content_api_base_production,
        content_api_test=settings.content_api_base_test,
    )
    try:
        yield
    finally:
        app_state.clear()
        logger.info("application_shutdown_complete")
