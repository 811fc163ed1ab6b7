"""Maps domain exceptions onto HTTP responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from commerce.errors import InsufficientStock, InvalidOrderTransition, LockTimeout, ReferenceDataMissing

logger = structlog.get_logger(__name__)


async def validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"errors": exc.messages})


async def request_validation_error(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0])
        errors.setdefault(field, []).append(error["msg"])
    return JSONResponse(status_code=400, content={"errors": errors})


async def invalid_transition(request: Request, exc: InvalidOrderTransition):
    return JSONResponse(status_code=409, content={"errors": exc.messages})


async def not_found(request: Request, exc: ObjectNotFoundError):
    return JSONResponse(status_code=404, content={"detail": "Order not found"})


async def insufficient_stock(request: Request, exc: InsufficientStock):
    return JSONResponse(status_code=409, content=exc.to_dict())


async def reference_data_missing(request: Request, exc: ReferenceDataMissing):
    # Internal detail stays in the log
    logger.error("reference_data_missing", kind=exc.kind, identifier=exc.identifier, path=request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


async def lock_timeout(request: Request, exc: LockTimeout):
    logger.warning("lock_timeout", key=exc.key, timeout=exc.timeout, path=request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service busy, please retry"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, validation_error)
    app.add_exception_handler(RequestValidationError, request_validation_error)
    app.add_exception_handler(InvalidOrderTransition, invalid_transition)
    app.add_exception_handler(ObjectNotFoundError, not_found)
    app.add_exception_handler(InsufficientStock, insufficient_stock)
    app.add_exception_handler(ReferenceDataMissing, reference_data_missing)
    app.add_exception_handler(LockTimeout, lock_timeout)
