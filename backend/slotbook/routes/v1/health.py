# backend/slotbook/routes/v1/health.py
"""
Health check endpoints for monitoring and load balancer probes.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Request, Response

from ...core.constants import API_VERSION, BRAND_NAME
from ...schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("", response_model=HealthResponse)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Health check endpoint.

    Reports ``degraded`` (still 200) when the relational store does not
    answer; the cache falling back to memory is not a degradation.
    """
    state = request.app.state
    database_ok = await asyncio.to_thread(state.database.ping)
    if not database_ok:
        logger.warning("Health check: database ping failed")
    response.headers["Cache-Control"] = "no-store"
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        service=f"{BRAND_NAME.lower()}-api",
        version=API_VERSION,
        environment=state.settings.environment,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        database=database_ok,
        cache_backend=state.cache.backend,
    )
