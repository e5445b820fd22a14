# backend/slotbook/main.py
"""
Application factory.

``create_app`` wires settings, the database, the cache and the notification
sender onto ``app.state`` inside the lifespan, so tests can build an app
against their own Settings without touching module globals.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, FastAPI

from .core.config import Settings, is_running_tests, settings as default_settings
from .core.constants import API_DESCRIPTION, API_PREFIX, API_TITLE, API_VERSION, BRAND_NAME
from .core.request_context import configure_logging
from .database import Database
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .middleware.request_id import RequestIdMiddleware
from .routes import prometheus
from .routes.v1 import (
    availability as availability_v1,
    bookings as bookings_v1,
    consultants as consultants_v1,
    health as health_v1,
    reminders as reminders_v1,
    reschedules as reschedules_v1,
    slots as slots_v1,
)
from .services.cache_service import CacheService
from .services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def _build_lifespan(app_settings: Settings):
    @asynccontextmanager
    async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Handle application startup/shutdown."""
        logger.info(f"{BRAND_NAME} API starting up...")
        logger.info(f"Environment: {app_settings.environment}")
        if is_running_tests():
            logger.info("Running under pytest (test mode active)")

        database = Database.from_settings(app_settings).connect()
        if app_settings.is_sqlite or app_settings.environment in ("local", "test"):
            database.create_all()
        cache = CacheService.from_settings(app_settings)

        app.state.settings = app_settings
        app.state.database = database
        app.state.cache = cache
        app.state.notification_service = NotificationService()
        logger.info(f"Cache backend: {cache.backend}")

        try:
            yield
        finally:
            logger.info(f"{BRAND_NAME} API shutting down...")
            cache.close()
            database.close()

    return app_lifespan


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    app_settings = app_settings or default_settings
    configure_logging(app_settings.log_level)

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=_build_lifespan(app_settings),
    )
    register_error_handlers(app)

    # Last added runs first: the request id must exist before metrics and handlers log.
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(prometheus.router)
    app.include_router(health_v1.router, prefix="/health")

    api_v1 = APIRouter(prefix=API_PREFIX)
    api_v1.include_router(consultants_v1.router, prefix="/consultants")
    api_v1.include_router(availability_v1.router, prefix="/availability")
    api_v1.include_router(slots_v1.router, prefix="/slots")
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(reschedules_v1.router, prefix="/reschedules")
    api_v1.include_router(reminders_v1.router, prefix="/reminders")
    app.include_router(api_v1)

    return app


app = create_app()
