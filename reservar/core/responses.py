"""
Standardized API Response Module

Provides consistent response formatting across the booking endpoints.

RESPONSE FORMAT:
    Success:
        {
            "data": <booking snapshot>,
            "status": "success"
        }

    Error:
        {
            "error": {
                "code": "ERROR_CODE",
                "message": "Human-readable message",
                "details": {...}  # Optional extra context
            },
            "status": "error"
        }

Wizard-level problems (missing fields, unavailable professional, upstream
API failures) are NOT errors at this level: they travel inside a success
snapshot as notices. Error envelopes are reserved for problems with the
request itself (unknown booking session, step out of order, bad body).
"""

from typing import Any, Optional


# ============================================================================
# COMMON ERROR CODES
# ============================================================================

class ErrorCodes:
    """Standard error codes for API responses."""

    # Not found errors (404)
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"

    # Validation errors (422)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Conflict errors (409)
    STATE_CONFLICT = "STATE_CONFLICT"


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def success_response(data: Any) -> dict:
    """Create a standardized success response dict."""
    return {"data": data, "status": "success"}


def error_response(
    code: str,
    message: str,
    details: Optional[dict] = None,
) -> dict:
    """
    Create a standardized error response dict.

    Use this for simple error responses.
    """
    response = {
        "error": {
            "code": code,
            "message": message,
        },
        "status": "error",
    }
    if details:
        response["error"]["details"] = details
    return response
