"""Mapping of domain exceptions to HTTP responses"""

import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from finance_gateway.api.dependencies import get_request_id
from finance_gateway.domain.exceptions import (
    ConcurrentModificationError,
    NotFoundError,
    PersistenceError,
    StateConflictError,
    UnauthorizedError,
    ValidationError,
)
from finance_gateway.infrastructure.observability.logging import log_state_conflict
from finance_gateway.infrastructure.observability.metrics import state_conflict_counter

logger = logging.getLogger(__name__)


def _field_name(loc) -> str:
    # Drop the "body"/"query" prefix FastAPI puts in front of the field path
    parts = [str(part) for part in loc[1:]] if len(loc) > 1 else [str(part) for part in loc]
    return ".".join(parts)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"field": _field_name(err["loc"]), "message": err["msg"]} for err in exc.errors()]
    logger.info(f"Validation failed for {request.method} {request.url.path}", extra={"errors": errors})
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errors": errors})


async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"errors": [{"field": exc.field, "message": exc.message}]},
    )


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)})


async def unauthorized_handler(request: Request, exc: UnauthorizedError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": str(exc)})


async def state_conflict_handler(request: Request, exc: StateConflictError) -> JSONResponse:
    state_conflict_counter.labels(reason=exc.code).inc()
    log_state_conflict(get_request_id(request), request.url.path, exc.code, str(exc))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": str(exc), "code": exc.code},
    )


async def concurrent_modification_handler(request: Request, exc: ConcurrentModificationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"error": str(exc)})


async def persistence_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error(f"Persistence error: {exc.__cause__ or exc}", extra={"request_id": get_request_id(request)})
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Internal server error"})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unexpected error: {exc}", extra={"request_id": get_request_id(request)})
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValidationError, validation_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(UnauthorizedError, unauthorized_handler)
    app.add_exception_handler(StateConflictError, state_conflict_handler)
    app.add_exception_handler(ConcurrentModificationError, concurrent_modification_handler)
    app.add_exception_handler(PersistenceError, persistence_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
