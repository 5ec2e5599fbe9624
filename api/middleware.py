"""Request-scoped middleware and helpers for API requests."""

import ipaddress
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


def _valid_ip(value: str | None) -> str | None:
    if not value:
        return None
    value = value.strip()
    try:
        ipaddress.ip_address(value)
        return value
    except ValueError:
        return None


def get_client_ip(request: Request) -> str | None:
    """
    Best-effort client address, or None if nothing parses as an IP.

    Prefers the first x-forwarded-for hop, then x-real-ip, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        candidate = _valid_ip(forwarded.split(",")[0])
        if candidate:
            return candidate

    candidate = _valid_ip(request.headers.get("x-real-ip"))
    if candidate:
        return candidate

    if request.client:
        return _valid_ip(request.client.host)
    return None


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
