"""Database transaction middleware.

Provides request-scoped connections with automatic transaction management
for /v1 requests when RISKPROFILE_DATABASE_URL is configured. Without it,
requests run against the in-memory repositories.

Pure ASGI middleware (not BaseHTTPMiddleware); sync DB calls run via
asyncio.to_thread().

- Opens an app connection and begins a transaction at request start
- Stores the connection on request.state.db_conn
- Holds the response until the transaction ends; commits on responses < 500,
  rolls back on >= 500 or exceptions
- A failed commit replaces the held response with 500 TRANSACTION_COMMIT_FAILED
- Always closes the connection
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from riskprofile.api.error_model import make_error_response_no_request
from riskprofile.persistence.db import DatabaseConfigError, get_app_engine, is_database_configured

logger = logging.getLogger(__name__)


def _open_connection() -> tuple[Any, Any]:
    """Open a connection and begin a transaction (sync, runs in thread)."""
    conn = get_app_engine().connect()
    trans = conn.begin()
    return conn, trans


class DBTransactionMiddleware:
    """Pure ASGI middleware for request-scoped database transactions.

    Must run inside RequestIdMiddleware (needs request_id for error responses).
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI entry point."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        if not request.url.path.startswith("/v1") or not is_database_configured():
            await self.app(scope, receive, send)
            return

        request_id: str | None = getattr(request.state, "request_id", None)

        try:
            conn, trans = await asyncio.to_thread(_open_connection)
        except (SQLAlchemyError, DatabaseConfigError) as e:
            logger.error("Failed to open DB connection: %s", e, extra={"request_id": request_id})
            error_response = make_error_response_no_request(
                code="DATABASE_UNAVAILABLE",
                message="Database connection failed",
                http_status=503,
                request_id=request_id,
            )
            await error_response(scope, receive, send)
            return

        request.state.db_conn = conn
        logger.debug("Opened DB connection for request %s", request_id)

        response_status: int | None = None
        pending: list[Message] = []

        async def buffered_send(message: Message) -> None:
            nonlocal response_status
            if message["type"] == "http.response.start":
                response_status = message.get("status", 500)
            pending.append(message)

        try:
            await self.app(scope, receive, buffered_send)

            if response_status is not None and response_status < 500:
                try:
                    await asyncio.to_thread(trans.commit)
                    logger.debug("Committed DB transaction for request %s", request_id)
                except SQLAlchemyError as e:
                    logger.error(
                        "Failed to commit transaction: %s",
                        e,
                        extra={"request_id": request_id},
                    )
                    with contextlib.suppress(SQLAlchemyError):
                        await asyncio.to_thread(trans.rollback)
                    pending.clear()
                    error_response = make_error_response_no_request(
                        code="TRANSACTION_COMMIT_FAILED",
                        message="Changes could not be committed",
                        http_status=500,
                        request_id=request_id,
                    )
                    await error_response(scope, receive, send)
            else:
                await asyncio.to_thread(trans.rollback)
                logger.debug(
                    "Rolled back DB transaction for request %s (status=%s)",
                    request_id,
                    response_status,
                )
        except Exception:
            with contextlib.suppress(SQLAlchemyError):
                await asyncio.to_thread(trans.rollback)
            raise
        finally:
            try:
                await asyncio.to_thread(conn.close)
            except SQLAlchemyError as e:
                logger.warning(
                    "Failed to close DB connection: %s",
                    e,
                    extra={"request_id": request_id},
                )
            request.state.db_conn = None

        for message in pending:
            await send(message)
