import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tourbook.core import BaseError

logger = logging.getLogger(__name__)


def _error_body(message: str, field=None) -> dict:
    body = {"message": message}
    if field:
        body["field"] = field
    return body


async def base_error_handler(request: Request, exc: BaseError):
    """Map application errors to ``{"message", "field"?}`` responses"""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.details.get("field")),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report the first invalid field as a 400"""
    errors = exc.errors()
    if not errors:
        return JSONResponse(status_code=400, content=_error_body("Invalid request"))

    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(location) or None
    message = f"{field}: {first['msg']}" if field else first["msg"]
    return JSONResponse(status_code=400, content=_error_body(message, field))


async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=_error_body("Storage error"))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def ratelimit_handler(request: Request, exc: RateLimitExceeded):
    return PlainTextResponse("Too many requests", status_code=429)


def register_exception_handlers(app) -> None:
    app.add_exception_handler(BaseError, base_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, ratelimit_handler)
