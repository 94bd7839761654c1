"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for business and validation errors
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from datetime import datetime

from ..utils.exceptions import (
    BusinessException,
    InvalidInputException,
    SessionNotFoundException,
    NegotiationAlreadyActiveException,
    ContractAssemblyException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.

    WHAT: Request body failed model validation
    WHY: Malformed requests/products are input errors, not 422 noise
    HOW: Return 400 with cleaned field errors
    """
    logger.warning(f"Validation error: {exc.errors()}")

    cleaned_errors = []
    for error in exc.errors():
        cleaned_error = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
        }
        if "ctx" in error:
            cleaned_error["ctx"] = {
                k: str(v) if isinstance(v, Exception) else v
                for k, v in error["ctx"].items()
            }
        cleaned_errors.append(cleaned_error)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": cleaned_errors,
            "timestamp": datetime.now().isoformat()
        }
    )


async def business_exception_handler(request: Request, exc: BusinessException):
    """
    Handle BusinessException subclasses.

    WHAT: Engine-level caller errors
    WHY: Each error code maps to one HTTP status
    HOW: 404 unknown session, 409 already active, 422 contract, else 400
    """
    status_code = status.HTTP_400_BAD_REQUEST

    if isinstance(exc, SessionNotFoundException):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, NegotiationAlreadyActiveException):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, ContractAssemblyException):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, InvalidInputException):
        status_code = status.HTTP_400_BAD_REQUEST

    logger.warning(f"Business exception: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "details": exc.details,
            "timestamp": datetime.now().isoformat()
        }
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(BusinessException, business_exception_handler)

    logger.info("Exception handlers registered")
