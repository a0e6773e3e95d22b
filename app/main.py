from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from app.stream import router as stream_router
from datastore.reading_store import build_default_store
from logging_config import configure_logging
from services.broadcast import build_default_relay
from services.errors import StoreUnavailable
from services.ingestion import build_default_coordinator
from services.registry import build_default_registry
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    store = build_default_store()
    try:
        store.check_available()
    except StoreUnavailable as exc:
        if settings.store_fail_fast:
            logger.critical(
                "Reading store unavailable, refusing to start",
                extra={"reason": str(exc), "environment": settings.environment},
            )
            raise
        logger.warning(
            "Reading store unavailable, continuing without storage",
            extra={"reason": str(exc), "environment": settings.environment},
        )
    else:
        logger.info(
            "Reading store ready",
            extra={"store_path": store.persistence_path, "environment": settings.environment},
        )

    registry = build_default_registry()
    try:
        yield
    finally:
        registry.clear()
        build_default_coordinator.cache_clear()
        build_default_relay.cache_clear()
        build_default_registry.cache_clear()
        build_default_store.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Telemetry Relay",
        description="Live sensor telemetry ingestion and broadcast over WebSockets.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(stream_router)
    return app

app = create_app()
