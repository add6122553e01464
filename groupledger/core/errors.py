"""
Error taxonomy.

Every error is an HTTPException so services can raise them directly and
FastAPI renders them as {"detail": "..."} with the right status code.
"""

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger(__name__)


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=400, detail=detail)


class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(status_code=401, detail=detail)


class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Not authorized"):
        super().__init__(status_code=403, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


class StorageError(HTTPException):
    def __init__(self, detail: str = "Storage error"):
        super().__init__(status_code=500, detail=detail)


class InviteRedemptionError(ValidationError):
    """Expired, exhausted, inactive and unknown codes all look the same to the caller."""

    def __init__(self, reason: str):
        super().__init__("Invalid or expired invite")
        self.reason = reason


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("storage_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": StorageError().detail})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
