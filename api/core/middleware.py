"""ASGI middleware: security headers and request context."""

from __future__ import annotations

import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.logger import bind_contextvars, clear_contextvars, get_logger
from core.wide_event import clear_wide_event, init_wide_event

logger = get_logger(__name__)


class SecurityHeadersMiddleware:
    """Adds security headers (CSP, HSTS, X-Frame-Options, etc.)."""

    SECURITY_HEADERS: list[tuple[bytes, bytes]] = [
        (b"x-content-type-options", b"nosniff"),
        (b"x-frame-options", b"DENY"),
        (b"referrer-policy", b"strict-origin-when-cross-origin"),
        (
            b"content-security-policy",
            b"default-src 'self';"
            b" style-src 'self' 'unsafe-inline';"
            b" img-src 'self' data:;"
            b" frame-ancestors 'none'",
        ),
        (b"strict-transport-security", b"max-age=31536000; includeSubDomains"),
        (b"permissions-policy", b"camera=(), microphone=(), geolocation=()"),
    ]

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_wrapper(message: Message) -> None:
            if message.get("type") == "http.response.start":
                headers: list[tuple[bytes, bytes]] = list(message.get("headers", []))
                headers.extend(self.SECURITY_HEADERS)
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_wrapper)


class RequestContextMiddleware:
    """Initializes the wide event and emits one canonical log line per request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        request_id = str(uuid.uuid4())
        client = scope.get("client")

        wide_event = init_wide_event()
        wide_event["request_id"] = request_id
        wide_event["http_method"] = scope.get("method", "UNKNOWN")
        wide_event["http_path"] = scope.get("path", "")
        wide_event["http_client_ip"] = client[0] if client else "unknown"

        clear_contextvars()
        bind_contextvars(request_id=request_id)

        response_status: int | None = None

        async def send_wrapper(message: Message) -> None:
            nonlocal response_status
            if message.get("type") == "http.response.start":
                response_status = int(message.get("status", 0))
                headers: list[tuple[bytes, bytes]] = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            route = scope.get("route")
            wide_event["http_route"] = getattr(route, "path", None) or wide_event[
                "http_path"
            ]
            wide_event["http_status_code"] = response_status
            wide_event["duration_ms"] = round(duration_ms, 2)

            if response_status is None or response_status >= 500:
                logger.error("request.completed", **wide_event)
            else:
                logger.info("request.completed", **wide_event)

            clear_wide_event()
            clear_contextvars()
