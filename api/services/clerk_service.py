"""Clerk Backend API client for account profile lookups.

Used to fill in a local account row (email, name) the first time a caller
shows up, so certificates can fall back to the account name.

SCALABILITY:
- Per-user backoff prevents repeated Clerk API calls for problem accounts
- Circuit breaker fails fast when Clerk is unavailable (5 failures -> 60s recovery)
- Connection pooling via shared httpx.AsyncClient
"""

import logging
import time
from dataclasses import dataclass

import httpx
from circuitbreaker import CircuitBreakerError, circuit

from core.config import get_settings

logger = logging.getLogger(__name__)

CLERK_API_BASE_URL = "https://api.clerk.com/v1"

_http_client: httpx.AsyncClient | None = None

# Bounded dict for backoff tracking (max 10K entries to prevent memory leaks)
_CLERK_LOOKUP_BACKOFF_SECONDS = 300.0
_MAX_BACKOFF_ENTRIES = 10_000


class ClerkServerError(Exception):
    """Raised when Clerk API returns a 5xx error or 429."""


class _BoundedBackoffDict(dict):
    """Dict with max size that evicts oldest entries when full."""

    def __setitem__(self, key, value):
        if len(self) >= _MAX_BACKOFF_ENTRIES and key not in self:
            # Evict oldest ~10% of entries
            to_remove = list(self.keys())[: _MAX_BACKOFF_ENTRIES // 10]
            for k in to_remove:
                self.pop(k, None)
        super().__setitem__(key, value)


_backoff_state = _BoundedBackoffDict()


def _set_backoff(user_id: str) -> None:
    _backoff_state[user_id] = time.time() + _CLERK_LOOKUP_BACKOFF_SECONDS


def _is_in_backoff(user_id: str) -> bool:
    expiry = _backoff_state.get(user_id, 0.0)
    if expiry <= time.time():
        _backoff_state.pop(user_id, None)  # Clean up expired entry
        return False
    return True


# Exceptions that count as Clerk being unavailable
UNAVAILABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.RequestError,
    httpx.TimeoutException,
    ClerkServerError,
)


async def get_http_client() -> httpx.AsyncClient:
    """Get or create a reusable HTTP client with connection pooling."""
    global _http_client
    if _http_client is None or _http_client.is_closed:
        settings = get_settings()
        _http_client = httpx.AsyncClient(
            base_url=CLERK_API_BASE_URL,
            timeout=settings.http_timeout,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )
    return _http_client


async def close_http_client() -> None:
    """Close the reusable HTTP client (called on application shutdown)."""
    global _http_client
    if _http_client is None:
        return
    if not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None


def reset_http_client() -> None:
    """Drop the cached client without closing it (for tests)."""
    global _http_client
    _http_client = None


def reset_backoff_state() -> None:
    """Forget all per-user backoff entries (for tests)."""
    _backoff_state.clear()


@dataclass
class ClerkUserData:
    """Data fetched from Clerk API for a user."""

    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None


def extract_primary_email(data: dict, fallback: str | None = None) -> str | None:
    """Extract primary email from Clerk API data."""
    email_addresses = data.get("email_addresses", [])
    return next(
        (
            e.get("email_address")
            for e in email_addresses
            if e.get("id") == data.get("primary_email_address_id")
        ),
        email_addresses[0].get("email_address") if email_addresses else fallback,
    )


@circuit(
    failure_threshold=5,
    recovery_timeout=60,
    expected_exception=UNAVAILABLE_EXCEPTIONS,
    name="clerk_circuit",
)
async def _fetch_user_data_with_circuit_breaker(user_id: str) -> ClerkUserData | None:
    """Internal: use fetch_user_data() instead."""
    settings = get_settings()

    client = await get_http_client()
    response = await client.get(
        f"/users/{user_id}",
        headers={
            "Authorization": f"Bearer {settings.clerk_secret_key}",
            "Content-Type": "application/json",
        },
    )

    if response.status_code >= 500 or response.status_code == 429:
        raise ClerkServerError(f"Clerk API returned {response.status_code}")

    # Other 4xx errors mean the lookup itself is wrong; no backoff
    if response.status_code != 200:
        logger.warning(
            "clerk.user_lookup.rejected",
            extra={"user_id": user_id, "status_code": response.status_code},
        )
        return None

    data = response.json()

    return ClerkUserData(
        email=extract_primary_email(data),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        avatar_url=data.get("image_url"),
    )


async def fetch_user_data(user_id: str) -> ClerkUserData | None:
    """Fetch a user's profile from the Clerk API.

    Returns None when Clerk is not configured, the user is in backoff, the
    circuit is open, or the call fails. Name fallback then moves on to the
    next source, so a lookup failure never fails the request.

    BACKOFF: 300s per-user backoff after an unavailable-Clerk failure.
    """
    settings = get_settings()
    if not settings.clerk_secret_key:
        return None

    if _is_in_backoff(user_id):
        logger.debug("clerk.user_lookup.backoff", extra={"user_id": user_id})
        return None

    try:
        return await _fetch_user_data_with_circuit_breaker(user_id)
    except CircuitBreakerError:
        logger.warning("clerk.user_lookup.circuit_open", extra={"user_id": user_id})
        return None
    except UNAVAILABLE_EXCEPTIONS as e:
        _set_backoff(user_id)
        logger.warning(
            "clerk.user_lookup.failed",
            extra={"user_id": user_id, "error": str(e)},
        )
        return None
