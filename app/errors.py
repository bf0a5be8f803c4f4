import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    status_code = 500
    public_message: str | None = None

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class NotFound(MarketplaceError):
    """Referenced entity absent, or the caller cannot see it."""

    status_code = 404


class InvalidInput(MarketplaceError):
    status_code = 400


class InvalidState(MarketplaceError):
    """Operation not permitted in the entity's current state."""

    status_code = 409


class Unauthorized(MarketplaceError):
    """Missing, malformed or expired bearer token."""

    status_code = 401


class Forbidden(MarketplaceError):
    status_code = 403


class Conflict(MarketplaceError):
    status_code = 409


class Upstream(MarketplaceError):
    status_code = 502
    public_message = "Upstream service failure"


class Internal(MarketplaceError):
    status_code = 500
    public_message = "Internal server error"


def failure(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(MarketplaceError)
    async def marketplace_error_handler(request: Request, exc: MarketplaceError):
        if exc.public_message:
            logger.error(f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}")
            return failure(exc.status_code, exc.public_message)
        return failure(exc.status_code, exc.message)

    @app.exception_handler(SQLAlchemyError)
    async def data_store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception(f"Data store failure on {request.method} {request.url.path}")
        return failure(502, "Upstream data store failure")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return failure(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
        return failure(400, "Invalid request", errors=jsonable_errors(exc))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return failure(500, Internal.public_message)


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
