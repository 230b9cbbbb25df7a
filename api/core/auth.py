"""Caller identity resolution backed by Clerk.

Provides:
- Clerk SDK client lifecycle management
- Session token verification with circuit breaker protection
- FastAPI dependencies producing ``Identity | None`` per request

A Clerk session token is accepted from two places, checked in order:
1. the session cookie (``settings.session_cookie_name``, Clerk's ``__session``)
2. an ``Authorization: Bearer <token>`` header

Circuit Breaker:
- Opens after 5 consecutive JWKS infrastructure failures
- Fails fast for 60 seconds when open (returns None -> 401)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Literal

import httpx
from circuitbreaker import CircuitBreakerError, circuit
from fastapi import Depends, Request

from core.config import get_settings
from core.errors import AuthenticationError, ConfigurationError
from core.logger import get_logger
from core.wide_event import set_wide_event_fields

if TYPE_CHECKING:
    from clerk_backend_api import Clerk
    from clerk_backend_api.security.types import RequestState

logger = get_logger(__name__)

IdentitySource = Literal["cookie", "bearer"]

# Module-level singleton for the Clerk SDK client
_clerk_client: Clerk | None = None

_JWKS_FAILURE_REASONS: frozenset | None = None

_CIRCUIT_NAME = "clerk_auth"
_CIRCUIT_FAILURE_THRESHOLD = 5
_CIRCUIT_RECOVERY_TIMEOUT = 60

# Tokens are verified offline against Clerk's JWKS; the URL is never fetched.
_VERIFY_URL = "https://auth.invalid/verify"


@dataclass(frozen=True)
class Identity:
    """A caller resolved from a valid session token."""

    user_id: str
    source: IdentitySource


class ClerkAuthUnavailable(Exception):
    """Raised when Clerk authentication infrastructure is unavailable.

    Triggers the circuit breaker when JWKS fetching fails, indicating Clerk
    infrastructure issues rather than user authentication errors.
    """

    def __init__(self, reason: object):
        self.reason = reason
        super().__init__(f"Clerk auth unavailable: {reason}")


def _get_jwks_failure_reasons() -> frozenset:
    """Build the set of JWKS failure reasons on first use (avoids eager import)."""
    from clerk_backend_api.security.types import TokenVerificationErrorReason

    return frozenset(
        {
            TokenVerificationErrorReason.JWK_FAILED_TO_LOAD,
            TokenVerificationErrorReason.JWK_REMOTE_INVALID,
            TokenVerificationErrorReason.JWK_FAILED_TO_RESOLVE,
            TokenVerificationErrorReason.JWK_KID_MISMATCH,
        }
    )


def init_clerk_client() -> None:
    """Initialize Clerk SDK. Token verification fails with 500 until configured."""
    global _clerk_client, _JWKS_FAILURE_REASONS

    settings = get_settings()
    if not settings.auth_configured:
        logger.warning(
            "auth.clerk.not_configured",
            hint="Set CLERK_SECRET_KEY; authenticated endpoints will return 500",
        )
        return

    from clerk_backend_api import Clerk as _Clerk

    _clerk_client = _Clerk(bearer_auth=settings.clerk_secret_key)
    _JWKS_FAILURE_REASONS = _get_jwks_failure_reasons()
    logger.info("auth.clerk.initialized")


def get_clerk_client() -> Clerk | None:
    if _clerk_client is None and get_settings().auth_configured:
        init_clerk_client()
    return _clerk_client


def close_clerk_client() -> None:
    """Clear Clerk client reference. SDK manages its own httpx lifecycle."""
    global _clerk_client
    _clerk_client = None


def _candidate_tokens(request: Request) -> list[tuple[IdentitySource, str]]:
    """Session tokens present on the request, cookie first."""
    tokens: list[tuple[IdentitySource, str]] = []

    cookie_token = request.cookies.get(get_settings().session_cookie_name)
    if cookie_token and cookie_token.strip():
        tokens.append(("cookie", cookie_token.strip()))

    scheme, _, credential = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credential.strip():
        tokens.append(("bearer", credential.strip()))

    return tokens


@circuit(
    failure_threshold=_CIRCUIT_FAILURE_THRESHOLD,
    recovery_timeout=_CIRCUIT_RECOVERY_TIMEOUT,
    expected_exception=(ClerkAuthUnavailable,),
    name=_CIRCUIT_NAME,
)
def _authenticate_token_with_circuit_breaker(
    clerk: Clerk, token: str, authorized_parties: list[str]
) -> RequestState:
    """Raises ClerkAuthUnavailable on JWKS failure (triggers circuit breaker)."""
    from clerk_backend_api.security.types import AuthenticateRequestOptions

    httpx_request = httpx.Request(
        method="GET",
        url=_VERIFY_URL,
        headers={"Authorization": f"Bearer {token}"},
    )
    request_state = clerk.authenticate_request(
        httpx_request,
        AuthenticateRequestOptions(authorized_parties=authorized_parties),
    )

    if not request_state.is_signed_in:
        reason = getattr(request_state, "reason", None)
        if _JWKS_FAILURE_REASONS and reason in _JWKS_FAILURE_REASONS:
            raise ClerkAuthUnavailable(reason)

    return request_state


def _user_id_from_token(clerk: Clerk, token: str) -> str | None:
    authorized_parties = get_settings().allowed_origins

    try:
        request_state = _authenticate_token_with_circuit_breaker(
            clerk, token, authorized_parties
        )
    except CircuitBreakerError:
        logger.warning("auth.circuit.rejected", circuit=_CIRCUIT_NAME)
        return None
    except ClerkAuthUnavailable as e:
        set_wide_event_fields(
            auth_error="clerk_infrastructure_issue",
            auth_error_reason=str(e.reason),
        )
        return None

    if request_state.is_signed_in and request_state.payload is not None:
        return request_state.payload.get("sub")

    # Invalid/expired token - expected for signed-out callers, not logged
    return None


def resolve_identity(request: Request) -> Identity | None:
    """Resolve the caller from cookie or bearer token; None when neither is valid.

    Note: Intentionally synchronous - JWT validation is CPU-bound (cached JWKS).

    Raises:
        ConfigurationError: a token was presented but Clerk is not configured.
    """
    tokens = _candidate_tokens(request)
    if not tokens:
        return None

    clerk = get_clerk_client()
    if clerk is None:
        raise ConfigurationError("CLERK_SECRET_KEY is not configured")

    for source, token in tokens:
        user_id = _user_id_from_token(clerk, token)
        if user_id:
            request.state.user_id = user_id
            set_wide_event_fields(user_id=user_id, auth_source=source)
            return Identity(user_id=user_id, source=source)

    set_wide_event_fields(auth_error="invalid_token")
    return None


def require_identity(request: Request) -> Identity:
    """Raises AuthenticationError (401) if no identity resolves."""
    identity = resolve_identity(request)
    if identity is None:
        raise AuthenticationError()
    return identity


OptionalIdentity = Annotated[Identity | None, Depends(resolve_identity)]
RequiredIdentity = Annotated[Identity, Depends(require_identity)]
