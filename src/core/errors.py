"""Error classification for accounting failures surfaced to clients."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_STORE_UNAVAILABLE = "ERR_STORE_UNAVAILABLE"
    ERR_STORE_TIMEOUT = "ERR_STORE_TIMEOUT"
    ERR_ACCOUNT_NOT_FOUND = "ERR_ACCOUNT_NOT_FOUND"
    ERR_ITEM_NOT_FOUND = "ERR_ITEM_NOT_FOUND"
    ERR_INVALID_INPUT = "ERR_INVALID_INPUT"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


_ERROR_PATTERNS: dict[Literal["timeout", "store", "not_found"], dict[str, list[str] | set[str]]] = {
    "timeout": {
        "phrases": ["timed out", "timeout", "deadline"],
        "exception_types": {"TimeoutError"},
    },
    "store": {
        "phrases": ["failed to", "database", "disk i/o", "locked", "unavailable", "connection"],
        "exception_types": {"DatabaseError", "ConnectionError", "OSError"},
    },
    "not_found": {
        "phrases": ["not found", "does not belong to"],
        "exception_types": {"RecordNotFoundError", "KeyError"},
    },
}


def _match_error_pattern(
    *,
    error_str: str,
    exception_type: str,
    pattern_type: Literal["timeout", "store", "not_found"],
) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def classify_error_message(error: str | None) -> ErrorResponse:
    """Classify an error string recorded on a failed accounting result."""
    return classify_error(RuntimeError(error or "unknown error"))


def classify_error(exception: BaseException) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during an accounting step

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="timeout"):
        return ErrorResponse(
            code=ErrorCode.ERR_STORE_TIMEOUT,
            message="The points update took too long and was not applied.",
            suggestion="Please try again in a moment.",
            severity=ErrorSeverity.MEDIUM,
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="not_found"):
        if "users" in error_str or "account" in error_str:
            return ErrorResponse(
                code=ErrorCode.ERR_ACCOUNT_NOT_FOUND,
                message="Account not found.",
                suggestion="Sign in again or register a new account.",
                severity=ErrorSeverity.MEDIUM,
            )
        return ErrorResponse(
            code=ErrorCode.ERR_ITEM_NOT_FOUND,
            message="I couldn't find that task.",
            suggestion="Refresh your task list and try again.",
            severity=ErrorSeverity.LOW,
        )

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="store"):
        return ErrorResponse(
            code=ErrorCode.ERR_STORE_UNAVAILABLE,
            message="Your points could not be saved right now.",
            suggestion="Check your connection and try again.",
            severity=ErrorSeverity.HIGH,
        )

    if exception_type in {"ValueError", "ValidationError"}:
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_INPUT,
            message="Some of the details you entered are not valid.",
            suggestion="Check the highlighted fields and try again.",
            severity=ErrorSeverity.LOW,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
