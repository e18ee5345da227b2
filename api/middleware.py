"""Request-scoped middleware for API requests.

Every request gets an ID that is returned in the X-Request-ID header and in
the response envelope's meta.request_id, so an error a user reports can be
matched to server logs. An X-Request-ID set by the reverse proxy is kept.
"""

import re
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

# Proxy-supplied IDs end up in logs; accept only plain tokens
_INBOUND_REQUEST_ID = re.compile(r"^[A-Za-z0-9-]{8,64}$")


def current_request_id() -> str | None:
    """ID of the request being handled, or None outside a request."""
    return _request_id.get()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        inbound = request.headers.get("X-Request-ID", "")
        request_id = inbound if _INBOUND_REQUEST_ID.match(inbound) else str(uuid4())
        request.state.request_id = request_id

        token = _request_id.set(request_id)
        try:
            response = await call_next(request)
        finally:
            _request_id.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response
