"""Page routes: server-side rendered HTML pages.

These routes serve full Jinja2 pages. They call the same services as the
JSON API routes but render HTML templates instead of returning JSON.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse

from core.config import get_settings
from core.database import DbSessionReadOnly
from core.templates import templates
from rendering.certificates import format_issue_date
from services.verification_service import (
    extract_cert_id,
    to_public_certificate,
    verify_certificate,
)

router = APIRouter(tags=["pages"], include_in_schema=False)


def _template_context(**kwargs) -> dict:
    """Build common template context."""
    return {"now": datetime.now(UTC), **kwargs}


@router.get("/verify", response_class=HTMLResponse)
async def verify_page(
    request: Request,
    db: DbSessionReadOnly,
    cid: str | None = Query(default=None, max_length=2048),
) -> HTMLResponse:
    """Certificate verification page."""
    cert_id = extract_cert_id(cid)
    certificate = None
    issued_on = None
    signed_url = None
    lookup_failed = False
    searched = bool(cert_id)

    if searched:
        result = await verify_certificate(db, cert_id)
        lookup_failed = result.lookup_failed
        if result.found and result.record is not None:
            certificate = to_public_certificate(result.record)
            issued_on = format_issue_date(certificate.issued_at)
            signed_url = result.signed_url

    return templates.TemplateResponse(
        request,
        "pages/verify.html",
        _template_context(
            cert_id=cert_id,
            searched=searched,
            certificate=certificate,
            issued_on=issued_on,
            signed_url=signed_url,
            lookup_failed=lookup_failed,
            link_minutes=get_settings().verify_signed_url_ttl_seconds // 60,
        ),
    )
