"""
Common utilities for the lead workflow API routes.

Response formatting and the mapping from workflow error codes to HTTP status.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from lead_workflow.errors import ErrorCode, LeadWorkflowError


# HTTP status for each workflow error code
ERROR_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.ALREADY_CLAIMED: 409,
    ErrorCode.NOT_CLAIMED: 409,
    ErrorCode.PRECEDING_STEP_INCOMPLETE: 409,
    ErrorCode.CONCURRENT_MODIFICATION: 409,
    ErrorCode.MISSING_CONTACT_NOTES: 422,
    ErrorCode.INVALID_METHOD: 422,
    ErrorCode.VALIDATION_ERROR: 422,
}

# Codes only produced by the HTTP layer itself
HTTP_ERROR_CODES: Dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def status_for(exc: LeadWorkflowError) -> int:
    return ERROR_STATUS.get(exc.code, 400)


def format_error_response(
    message: str,
    code: str,
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Format a standard error response body."""
    response = {
        "error": True,
        "code": code,
        "message": message,
        "details": details or {},
        "timestamp": _timestamp(),
    }
    if request_id:
        response["request_id"] = request_id
    return response


def create_error_response(
    code: str,
    message: str,
    status_code: int = 400,
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Create a standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content=format_error_response(message, code, details, request_id),
        headers=headers,
    )


def format_success_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """Format a standard success response."""
    return {
        "success": True,
        **data,
    }
