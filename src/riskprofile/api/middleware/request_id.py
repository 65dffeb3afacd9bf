"""Request correlation middleware.

Every HTTP request gets a request id before any route, handler or
transaction middleware runs. The id lands on request.state.request_id, is
used by error envelopes and audit events, and is echoed on the response.
"""

from __future__ import annotations

import uuid

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from riskprofile.api.error_model import REQUEST_ID_HEADER


def resolve_request_id(incoming: str | None) -> str:
    """Return the caller's id when it carries any non-blank text, else a uuid4."""
    if incoming is not None and incoming.strip():
        return incoming.strip()
    return str(uuid.uuid4())


class RequestIdMiddleware:
    """Pure ASGI middleware stamping each request and response with a request id."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        await self.app(scope, receive, send_with_request_id)
