"""
Error types and the handlers that turn them into JSON responses.

Every error body has a "message" and, when there is an underlying detail,
an "error" field.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from logger import logger


class MarketplaceError(Exception):
    status_code = 500
    kind = "internal"

    def __init__(self, message: str, error: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_content(self) -> dict:
        content = {"message": self.message}
        if self.error is not None:
            content["error"] = self.error
        return content


class UnauthorizedError(MarketplaceError):
    status_code = 401
    kind = "unauthorized"


class ForbiddenError(MarketplaceError):
    status_code = 403
    kind = "forbidden"


class NotFoundError(MarketplaceError):
    status_code = 404
    kind = "not-found"


class ValidationError(MarketplaceError):
    status_code = 400
    kind = "validation"


class ConflictError(MarketplaceError):
    status_code = 400
    kind = "conflict"


class InternalError(MarketplaceError):
    status_code = 500
    kind = "internal"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MarketplaceError)
    async def marketplace_error_handler(request: Request, exc: MarketplaceError):
        if exc.status_code >= 500:
            logger.error(exc.message, extra={"path": request.url.path, "method": request.method})
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
            for e in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"message": "Invalid request", "error": errors})

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception in request",
            extra={"path": request.url.path, "method": request.method},
        )
        return JSONResponse(status_code=500, content={"message": "Internal server error", "error": str(exc)})
