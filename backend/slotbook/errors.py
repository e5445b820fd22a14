# backend/slotbook/errors.py
"""
Application-level exception handlers.

Routes convert the DomainExceptions they see themselves; these handlers cover
everything raised outside a route body (identity dependencies, middleware)
and turn unexpected failures into an opaque 500 carrying the request id.
"""

import logging
from typing import NoReturn

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .core.exceptions import DomainException
from .core.request_context import get_request_id

logger = logging.getLogger(__name__)


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id("") or ""


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        http_exc = exc.to_http_exception()
        if http_exc.status_code >= 500:
            logger.error(
                f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}",
                extra={"code": exc.code},
            )
        return JSONResponse(
            {"detail": jsonable_encoder(http_exc.detail)},
            status_code=http_exc.status_code,
            headers=http_exc.headers,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = _request_id(request)
        logger.exception(
            f"Unhandled error on {request.method} {request.url.path}",
            extra={"request_id": request_id},
        )
        return JSONResponse(
            {
                "detail": {
                    "message": "Internal Server Error",
                    "code": "internal_server_error",
                    "details": {"request_id": request_id},
                }
            },
            status_code=500,
        )
