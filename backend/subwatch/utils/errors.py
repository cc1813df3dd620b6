"""
Error handling utilities for standardized API error responses.

Standard Error Response Format:
{
    "detail": {
        "code": "ERROR_CODE",
        "message": "Human readable message"
    }
}
"""
from enum import Enum
from typing import Optional, Dict, Any
from loguru import logger
from fastapi import HTTPException


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Not found errors (404)
    SUBSCRIPTION_NOT_FOUND = "SUBSCRIPTION_NOT_FOUND"

    # Validation errors (422)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Server errors (503)
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


def create_error_response(
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Create a standardized error response dict.

    Args:
        code: Error code enum value
        message: Human-readable error message
        details: Optional additional details

    Returns:
        Error response dict suitable for HTTPException detail
    """
    response = {
        "code": code.value,
        "message": message
    }
    if details:
        response["details"] = details
    return response


def raise_error(
    code: ErrorCode,
    message: str,
    status_code: int = 500,
    details: Optional[Dict[str, Any]] = None,
    log: bool = True
) -> None:
    """
    Raise a standardized HTTP exception.

    Args:
        code: Error code enum value
        message: Human-readable error message
        status_code: HTTP status code
        details: Optional additional details
        log: Whether to log the error (default True)
    """
    if log:
        logger.warning(f"API Error [{code.value}]: {message}")

    raise HTTPException(
        status_code=status_code,
        detail=create_error_response(code, message, details)
    )
