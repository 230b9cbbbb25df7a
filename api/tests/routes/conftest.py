"""Route test configuration: rate limiting off, Clerk sign-in helpers."""

from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def _disable_rate_limiter():
    """Disable slowapi rate limiting so route handlers can be called directly."""
    with patch("core.ratelimit.limiter.enabled", False):
        yield


@pytest.fixture
def bearer_headers(mock_clerk_auth, test_user_id: str) -> dict[str, str]:
    """Authorization header that the mocked Clerk client signs in."""
    return {"Authorization": f"Bearer test_token_{test_user_id}"}


@pytest.fixture
def session_cookies(mock_clerk_auth, test_user_id: str) -> dict[str, str]:
    """Clerk ``__session`` cookie that the mocked Clerk client signs in."""
    return {"__session": f"test_token_{test_user_id}"}
