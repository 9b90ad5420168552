"""
Domain exceptions raised by the service layer.

Each exception carries the HTTP status it maps to; ``register_handlers``
installs FastAPI exception handlers that turn them into ``{"detail": ...}``
JSON responses, so services never import ``HTTPException``.
"""
import logging
from typing import TypeVar

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConduitError(Exception):
    status_code: int = 500
    default_detail: str = "Internal error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidQuery(ConduitError):
    """Malformed or missing request parameters; rejected before storage access."""

    status_code = 400
    default_detail = "Invalid query"


class Unauthorized(ConduitError):
    status_code = 401
    default_detail = "Authentication required"


class Forbidden(ConduitError):
    status_code = 403
    default_detail = "Not allowed"


class NotFound(ConduitError):
    status_code = 404
    default_detail = "Not found"


class Conflict(ConduitError):
    status_code = 409
    default_detail = "Conflict"


class StorageFailure(ConduitError):
    """Transaction or connectivity failure in the storage engine."""

    status_code = 503
    default_detail = "Storage unavailable"


def require_resource(resource: T | None, detail: str = "Resource not found") -> T:
    """
    Raise NotFound if resource is None, otherwise return the resource.

    Usage:
        article = require_resource(await db.scalar(q), "Article not found")
    """
    if resource is None:
        raise NotFound(detail)
    return resource


async def _conduit_error_handler(request: Request, exc: ConduitError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def _storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=StorageFailure.status_code,
        content={"detail": StorageFailure.default_detail},
    )


def register_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ConduitError, _conduit_error_handler)
    app.add_exception_handler(SQLAlchemyError, _storage_error_handler)
