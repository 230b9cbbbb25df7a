"""Wide Event context for canonical log lines.

Provides a request-scoped dict for accumulating context throughout the request
lifecycle. RequestContextMiddleware initializes it at request start and emits
it as a single ``request.completed`` log line at the end.

Usage:
    from core.wide_event import set_wide_event_fields

    # In route handlers or services:
    set_wide_event_fields(cert_id=cert_id, auth_source="bearer")
"""

from contextvars import ContextVar
from typing import Any

_wide_event: ContextVar[dict[str, Any]] = ContextVar("wide_event")


def init_wide_event() -> dict[str, Any]:
    """Initialize a new wide event dict for the current async context."""
    event: dict[str, Any] = {}
    _wide_event.set(event)
    return event


def get_wide_event() -> dict[str, Any]:
    """Get the current wide event dict. Returns empty dict if not initialized."""
    try:
        return _wide_event.get()
    except LookupError:
        return {}


def set_wide_event_fields(**kwargs: Any) -> None:
    """Set multiple fields on the current wide event.

    No-op if called outside request context (e.g., CLI, tests).
    """
    try:
        event = _wide_event.get()
    except LookupError:
        return
    event.update(kwargs)


def clear_wide_event() -> None:
    _wide_event.set({})
