"""Shared error response builder for the HTTP API.

Every exception handler and middleware produces the same envelope:
- code: str - machine-readable error code (e.g., "NOT_FOUND", "INVALID_ANSWERS")
- message: str - human-readable error message
- details: dict | None - optional additional context (no internals)
- request_id: str - request correlation ID (always present)
"""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

REQUEST_ID_HEADER = "X-Request-Id"


def _get_request_id(request: Request) -> str:
    """Extract or generate the request_id for an error response.

    Priority: request.state.request_id (set by RequestIdMiddleware), then the
    X-Request-Id header, then a fresh UUID.
    """
    request_id: str | None = getattr(request.state, "request_id", None)
    if request_id is not None:
        return str(request_id)

    header_id: str | None = request.headers.get(REQUEST_ID_HEADER)
    if header_id:
        return header_id

    return str(uuid.uuid4())


def _build(
    *,
    code: str,
    message: str,
    http_status: int,
    request_id: str,
    details: dict[str, Any] | None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "code": code,
        "message": message,
        "details": details,
        "request_id": request_id,
    }
    response = JSONResponse(status_code=http_status, content=body)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def make_error_response(
    request: Request,
    *,
    code: str,
    message: str,
    http_status: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build an error JSON response.

    Args:
        request: The FastAPI request object (for request_id extraction).
        code: Machine-readable error code.
        message: Human-readable error message.
        http_status: HTTP status code.
        details: Optional dict with additional context.

    Returns:
        JSONResponse with the error envelope and X-Request-Id header.
    """
    return _build(
        code=code,
        message=message,
        http_status=http_status,
        request_id=_get_request_id(request),
        details=details,
    )


def make_error_response_no_request(
    *,
    code: str,
    message: str,
    http_status: int,
    request_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build an error response where no Request object is available (ASGI middleware)."""
    return _build(
        code=code,
        message=message,
        http_status=http_status,
        request_id=request_id or str(uuid.uuid4()),
        details=details,
    )


HTTP_STATUS_TO_CODE: dict[int, str] = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    415: "UNSUPPORTED_MEDIA_TYPE",
    422: "UNPROCESSABLE_ENTITY",
    500: "INTERNAL_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def get_error_code_for_status(status_code: int) -> str:
    """Get the standard error code for an HTTP status code."""
    return HTTP_STATUS_TO_CODE.get(status_code, "ERROR")
