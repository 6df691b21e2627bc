"""
Standardized error response utilities for the Mai Sushi API.

Provides consistent error response format across all endpoints:
{
    "error": {
        "message": "User-friendly error message",
        "code": "ERROR_CODE"
    }
}

Usage:
    from maisushi.utils.errors import error_response, ErrorCode

    return error_response("Reward not found", ErrorCode.REWARD_NOT_FOUND, 404)
"""
import logging
from enum import Enum
from flask import jsonify
from typing import Optional

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses and service results."""

    # Validation Errors (400)
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"

    # Not Found (404)
    NOT_FOUND = "NOT_FOUND"
    REWARD_NOT_FOUND = "REWARD_NOT_FOUND"
    CLAIM_NOT_FOUND = "CLAIM_NOT_FOUND"

    # Business rejections (409, 422)
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    INSUFFICIENT_POINTS = "INSUFFICIENT_POINTS"
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"
    REWARD_UNAVAILABLE = "REWARD_UNAVAILABLE"
    ALREADY_ACCRUED = "ALREADY_ACCRUED"

    # Ledger integrity (500)
    LEDGER_WRITE_FAILED = "LEDGER_WRITE_FAILED"
    GRANTED_BUT_UNCLAIMED = "GRANTED_BUT_UNCLAIMED"

    # Server Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


# HTTP status for service failure codes surfaced through the API
STATUS_BY_CODE = {
    ErrorCode.REWARD_NOT_FOUND: 404,
    ErrorCode.CLAIM_NOT_FOUND: 404,
    ErrorCode.ALREADY_CLAIMED: 409,
    ErrorCode.INSUFFICIENT_POINTS: 422,
    ErrorCode.DAILY_LIMIT_REACHED: 429,
    ErrorCode.REWARD_UNAVAILABLE: 422,
    ErrorCode.ALREADY_ACCRUED: 409,
    ErrorCode.INVALID_FIELD: 400,
    ErrorCode.LEDGER_WRITE_FAILED: 500,
    ErrorCode.GRANTED_BUT_UNCLAIMED: 500,
    ErrorCode.DATABASE_ERROR: 500,
}


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    log_error: bool = True,
    details: Optional[dict] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        message: User-friendly error message
        code: Error code from ErrorCode enum
        status_code: HTTP status code
        log_error: Whether to log the error (default True for 500s)
        details: Optional additional details (only logged, not returned to user)

    Returns:
        Tuple of (response, status_code) for Flask
    """
    if log_error and status_code >= 500:
        logger.error(f"API Error [{code}]: {message}", extra={"details": details})
    elif log_error and status_code >= 400:
        logger.warning(f"API Error [{code}]: {message}", extra={"details": details})

    response = {
        "error": {
            "message": message,
            "code": code.value if isinstance(code, ErrorCode) else code
        }
    }

    return jsonify(response), status_code


def service_failure(result: dict) -> tuple:
    """Turn a failed service result dict into an error response."""
    code = result.get('code', ErrorCode.INTERNAL_ERROR)
    try:
        code = ErrorCode(code)
    except ValueError:
        pass
    status_code = STATUS_BY_CODE.get(code, 400)
    return error_response(result.get('error', 'Request failed'), code, status_code)


def bad_request(message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST) -> tuple:
    """400 Bad Request error."""
    return error_response(message, code, 400, log_error=False)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    """404 Not Found error."""
    return error_response(message, code, 404, log_error=False)


def internal_error(message: str = "An unexpected error occurred", details: Optional[dict] = None) -> tuple:
    """500 Internal Server Error."""
    return error_response(message, ErrorCode.INTERNAL_ERROR, 500, log_error=True, details=details)
