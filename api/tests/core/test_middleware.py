"""Unit tests for core.middleware and the wide event it manages.

- SecurityHeadersMiddleware adds security headers to HTTP responses
- RequestContextMiddleware tags responses with x-request-id and emits
  one request.completed line carrying fields set during the request
"""

from unittest.mock import patch

import pytest

from core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from core.wide_event import get_wide_event, set_wide_event_fields


async def _noop_receive():
    return {"type": "http.request", "body": b""}


def _app_responding(status: int, **fields):
    async def app(scope, receive, send):
        set_wide_event_fields(**fields)
        await send({"type": "http.response.start", "status": status, "headers": []})
        await send({"type": "http.response.body", "body": b"OK"})

    return app


async def _run(middleware, scope) -> list[dict]:
    sent = []

    async def send(message):
        sent.append(message)

    await middleware(scope, _noop_receive, send)
    return sent


def _http_scope(path: str = "/api/certificates/verify") -> dict:
    return {
        "type": "http",
        "method": "GET",
        "path": path,
        "client": ("203.0.113.9", 50000),
        "headers": [],
    }


@pytest.mark.unit
class TestSecurityHeadersMiddleware:
    async def test_adds_security_headers(self):
        sent = await _run(
            SecurityHeadersMiddleware(_app_responding(200)), _http_scope()
        )
        header_names = {name for name, _ in sent[0]["headers"]}

        assert b"x-content-type-options" in header_names
        assert b"x-frame-options" in header_names
        assert b"content-security-policy" in header_names
        assert b"strict-transport-security" in header_names

    async def test_skips_non_http_scopes(self):
        called = False

        async def inner_app(scope, receive, send):
            nonlocal called
            called = True

        await SecurityHeadersMiddleware(inner_app)({"type": "lifespan"}, None, None)
        assert called


@pytest.mark.unit
class TestRequestContextMiddleware:
    async def test_adds_request_id_header(self):
        sent = await _run(
            RequestContextMiddleware(_app_responding(200)), _http_scope()
        )
        headers = dict(sent[0]["headers"])
        assert headers[b"x-request-id"]

    async def test_emits_one_completed_line_with_request_fields(self):
        middleware = RequestContextMiddleware(
            _app_responding(200, cert_id="pe-beginner-1")
        )
        with patch("core.middleware.logger") as mock_logger:
            await _run(middleware, _http_scope())

        mock_logger.info.assert_called_once()
        mock_logger.error.assert_not_called()
        assert mock_logger.info.call_args.args == ("request.completed",)
        fields = mock_logger.info.call_args.kwargs
        assert fields["http_status_code"] == 200
        assert fields["cert_id"] == "pe-beginner-1"
        assert fields["http_client_ip"] == "203.0.113.9"

    async def test_server_errors_log_at_error_level(self):
        with patch("core.middleware.logger") as mock_logger:
            await _run(RequestContextMiddleware(_app_responding(503)), _http_scope())

        mock_logger.error.assert_called_once()
        mock_logger.info.assert_not_called()

    async def test_wide_event_is_cleared_afterwards(self):
        await _run(
            RequestContextMiddleware(_app_responding(200, cert_id="x")), _http_scope()
        )
        assert get_wide_event() == {}
