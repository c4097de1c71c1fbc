"""
FastAPI application entrypoint for the consent management backend.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cmp_backend.api.routes import router as api_router
from cmp_backend.core.config import get_settings
from cmp_backend.core.errors import BadRequest, ConsentServiceError
from cmp_backend.core.logging import configure_logging

logger = logging.getLogger(__name__)


async def _handle_service_error(
    request: Request, exc: ConsentServiceError
) -> JSONResponse:
    if exc.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.error("%s on %s %s", type(exc).__name__, request.method, request.url.path)
    else:
        logger.info("%s on %s %s", type(exc).__name__, request.method, request.url.path)
    return JSONResponse(status_code=int(exc.status_code), content=exc.to_payload())


async def _handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Field locations only; submitted values may carry key material.
    fields = sorted(
        {".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()}
    )
    error = BadRequest(f"Invalid fields: {', '.join(fields)}" if fields else None)
    return JSONResponse(status_code=int(error.status_code), content=error.to_payload())


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = ConsentServiceError()
    return JSONResponse(status_code=int(error.status_code), content=error.to_payload())


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Consent Management Backend",
        version="0.1.0",
        description="Visitor tokens and encrypted consent storage for Webflow sites.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors.allowed_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            "X-Requested-With",
            "Accept",
            "Origin",
            "X-CSRF-Token",
            "X-Request-ID",
        ],
        allow_credentials=True,
        max_age=86400,
    )
    app.add_exception_handler(ConsentServiceError, _handle_service_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
