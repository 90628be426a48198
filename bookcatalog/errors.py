"""
Error taxonomy for the catalog service.

Every failure the service reports on purpose is a ``CatalogError``
subclass. Each class carries the HTTP status it maps to and a short
``kind`` label; ``register_exception_handlers()`` installs a single
FastAPI handler that renders them as ``{"message": ..., "error": ...}``.
Nothing here retries: errors propagate to the caller unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    kind: str = "error"

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class UnauthorizedError(CatalogError):
    status_code = 403
    kind = "unauthorized"


class InvalidCredentialsError(UnauthorizedError):
    """Login failed: unknown email or wrong password."""

    status_code = 401
    kind = "invalid_credentials"


class InvalidIdError(CatalogError):
    status_code = 400
    kind = "invalid_id"


class NotFoundError(CatalogError):
    status_code = 404
    kind = "not_found"


class ValidationError(CatalogError):
    """A filter, patch or payload was rejected by the schema rules."""

    status_code = 422
    kind = "validation"


class OutOfRangeError(CatalogError):
    """The requested page starts beyond the matching records."""

    status_code = 400
    kind = "out_of_range"


class StoreUnavailableError(CatalogError):
    status_code = 503
    kind = "store_unavailable"


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s rejected (%s): %s",
            request.method,
            request.url.path,
            exc.kind,
            exc.message,
        )
    content = {"message": exc.message, "error": exc.kind}
    if exc.detail is not None:
        content["detail"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CatalogError, catalog_error_handler)
