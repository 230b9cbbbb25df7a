"""Rate limiting configuration using slowapi.

SCALABILITY NOTES:
- Production MUST use Redis: set RATELIMIT_STORAGE_URI="redis://host:port/db"
- memory:// storage does NOT work with multiple workers/replicas
"""

import logging

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

if not settings.debug and settings.ratelimit_storage_uri == "memory://":
    logger.warning(
        "ratelimit.memory_storage",
        extra={"hint": "Set RATELIMIT_STORAGE_URI to a Redis URL for replicas"},
    )


def _get_request_identifier(request: Request) -> str:
    """Authenticated user ID if the identity dependency ran, else remote IP."""
    if hasattr(request.state, "user_id") and request.state.user_id:
        return f"user:{request.state.user_id}"

    return get_remote_address(request)


_using_redis = settings.ratelimit_storage_uri.startswith("redis://")

limiter = Limiter(
    key_func=_get_request_identifier,
    default_limits=["100/minute"],
    storage_uri=settings.ratelimit_storage_uri,
    # Degrade to in-memory counters while Redis is unavailable
    in_memory_fallback_enabled=_using_redis,
    key_prefix="tinpear:",
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Custom handler for rate limit exceeded errors."""
    logger.warning(
        "ratelimit.exceeded",
        extra={
            "identifier": _get_request_identifier(request),
            "limit": str(exc.detail),
        },
    )
    return JSONResponse(
        status_code=429,
        content={"error": "Rate limit exceeded. Please slow down."},
        headers={"Retry-After": str(getattr(exc, "retry_after", 60))},
    )


RENDER_LIMIT = "10/minute"

REGISTER_LIMIT = "20/minute"
