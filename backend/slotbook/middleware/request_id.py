# backend/slotbook/middleware/request_id.py
"""
Correlation id middleware.

Takes ``X-Request-ID`` from the caller (or generates a ULID), exposes it on
``request.state`` and in the logging context, and echoes it on the response.
"""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.constants import REQUEST_ID_HEADER
from ..core.request_context import reset_request_id, set_request_id
from ..core.ulid_helper import generate_ulid

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 1.0


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_ulid()
        request.state.request_id = request_id
        token = set_request_id(request_id)
        start_time = time.time()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            elapsed = time.time() - start_time
            if elapsed > SLOW_REQUEST_SECONDS:
                logger.warning(
                    "Slow request %s %s took %.2fs",
                    request.method,
                    request.url.path,
                    elapsed,
                )
            return response
        finally:
            reset_request_id(token)
