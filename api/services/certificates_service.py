"""Certificate issuance for Tinpear courses.

This module handles certificate business logic:
- Certificate id minting
- Registration (an ownership-guarded upsert keyed on cert_id)
- Artifact storage in the private certificates bucket
- PDF generation (delegating to rendering module)
- The download and save flows used by the learner dashboard

Routes should delegate all certificate business logic to this module.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core import storage
from core.auth import Identity
from core.config import get_settings
from core.errors import (
    CertificateOwnershipError,
    CertificateValidationError,
    RenderingError,
    UpstreamStoreError,
)
from core.wide_event import set_wide_event_fields
from models import utcnow
from rendering.certificates import (
    generate_certificate_svg as _render_certificate_svg,
)
from rendering.certificates import (
    load_logo_data_uri,
)
from rendering.certificates import (
    svg_to_pdf as _svg_to_pdf,
)
from rendering.certificates import (
    svg_to_png as _svg_to_png,
)
from repositories.certificate_repository import CertificateRepository
from schemas import AccountProfile, RenderCertificateRequest, StoredArtifact
from services.users_service import ensure_account

logger = logging.getLogger(__name__)

FALLBACK_FULL_NAME = "Learner"
PDF_CONTENT_TYPE = "application/pdf"


@dataclass(frozen=True)
class RenderedCertificate:
    cert_id: str
    course_key: str
    full_name: str
    pdf: bytes

    @property
    def filename(self) -> str:
        return f"{self.cert_id}.pdf"


@dataclass(frozen=True)
class SavedCertificate:
    cert_id: str
    storage_path: str
    signed_url: str | None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def generate_cert_id(prefix: str) -> str:
    """Mint a certificate id.

    Format: {prefix}-{uuid4}, e.g. pe-beginner-6f1c...
    """
    return f"{prefix}-{uuid.uuid4()}"


def resolve_full_name(full_name: str | None, account: AccountProfile | None) -> str:
    """Explicit name, then account display name, then email local part, then "Learner"."""
    name = _clean(full_name)
    if name:
        return name

    if account is not None:
        if account.display_name:
            return account.display_name
        if account.email:
            local_part = account.email.split("@", 1)[0].strip()
            if local_part:
                return local_part

    return FALLBACK_FULL_NAME


def certificate_storage_path(course_key: str, user_id: str, cert_id: str) -> str:
    return f"{course_key}/{user_id}/{cert_id}.pdf"


async def register_certificate(
    db: AsyncSession,
    identity: Identity,
    *,
    cert_id: str | None,
    full_name: str | None = None,
    course_key: str | None = None,
    storage_path: str | None = None,
) -> str:
    """Record (or refresh) certificate metadata for the caller.

    Safe to call repeatedly for the same cert_id: the first call inserts,
    later calls update the name and course, and the stored storage_path is
    only replaced when a new one is supplied.

    Args:
        db: Database session
        identity: The authenticated caller
        cert_id: Caller-minted certificate id (required)
        full_name: Printed name; falls back to the account when blank
        course_key: Course code; defaults to settings.default_course_key
        storage_path: Blob key of the uploaded PDF, when there is one

    Returns:
        The trimmed cert_id that was recorded

    Raises:
        CertificateValidationError: cert_id is missing or blank
        CertificateOwnershipError: cert_id belongs to another account
        UpstreamStoreError: the record store rejected the write
    """
    cert_id = _clean(cert_id)
    if not cert_id:
        raise CertificateValidationError("Missing certId")

    course_key = _clean(course_key) or get_settings().default_course_key
    storage_path = _clean(storage_path)
    set_wide_event_fields(cert_id=cert_id, course_key=course_key)

    try:
        account = await ensure_account(db, identity.user_id)
        cert_repo = CertificateRepository(db)
        owned = await cert_repo.upsert(
            cert_id,
            user_id=identity.user_id,
            full_name=resolve_full_name(full_name, account),
            course_key=course_key,
            storage_path=storage_path,
        )
    except SQLAlchemyError as e:
        logger.error(
            "certificate.register.failed",
            extra={"cert_id": cert_id, "user_id": identity.user_id, "error": str(e)},
        )
        raise UpstreamStoreError(str(e)) from e

    if not owned:
        logger.warning(
            "certificate.register.ownership_conflict",
            extra={"cert_id": cert_id, "user_id": identity.user_id},
        )
        raise CertificateOwnershipError(cert_id)

    logger.info(
        "certificate.registered",
        extra={
            "cert_id": cert_id,
            "user_id": identity.user_id,
            "course_key": course_key,
            "has_storage_path": storage_path is not None,
        },
    )
    return cert_id


async def store_certificate_artifact(
    identity: Identity,
    course_key: str,
    cert_id: str,
    pdf_bytes: bytes,
    *,
    create_signed_url: bool = True,
) -> StoredArtifact:
    """Upload a rendered PDF to <course_key>/<user_id>/<cert_id>.pdf.

    The signed URL is a one-off confirmation link and is never persisted.
    Failing to mint it does not fail the upload.
    """
    settings = get_settings()
    path = certificate_storage_path(course_key, identity.user_id, cert_id)

    await storage.put_object(settings.certificate_bucket, path, pdf_bytes, PDF_CONTENT_TYPE)
    logger.info(
        "certificate.artifact.uploaded",
        extra={"cert_id": cert_id, "storage_path": path, "bytes": len(pdf_bytes)},
    )

    signed_url = None
    if create_signed_url:
        try:
            signed_url = await storage.create_signed_url(
                settings.certificate_bucket,
                path,
                settings.save_signed_url_ttl_seconds,
            )
        except UpstreamStoreError as e:
            logger.warning(
                "certificate.signed_url.unavailable",
                extra={"cert_id": cert_id, "error": str(e)},
            )

    return StoredArtifact(storage_path=path, signed_url=signed_url)


async def ensure_certificate_bucket() -> bool:
    """Create the private certificates bucket if missing. True if created."""
    return await storage.ensure_bucket(get_settings().certificate_bucket)


async def generate_certificate_svg(
    *,
    full_name: str,
    cert_id: str,
    issued_at: datetime,
    course_title: str | None = None,
    course_key: str | None = None,
) -> str:
    """Generate SVG content for a certificate with the configured signer and logo.

    This is a service-layer function that delegates to the rendering module.
    """
    settings = get_settings()
    logo_data_uri = await load_logo_data_uri(
        settings.logo_url, timeout=settings.http_timeout
    )
    return _render_certificate_svg(
        full_name=full_name,
        cert_id=cert_id,
        issued_at=issued_at,
        course_title=course_title,
        course_key=course_key,
        signer_name=settings.signer_name,
        signer_title=settings.signer_title,
        verify_base_url=settings.verify_base_url,
        logo_data_uri=logo_data_uri,
    )


async def render_certificate_pdf(
    *,
    full_name: str,
    cert_id: str,
    issued_at: datetime,
    course_title: str | None = None,
    course_key: str | None = None,
) -> bytes:
    """Generate PDF content for a certificate.

    Runs in a thread pool to avoid blocking the async event loop since
    CairoSVG rendering is CPU-bound.

    Raises:
        RenderingError: the PDF could not be produced
    """
    svg_content = await generate_certificate_svg(
        full_name=full_name,
        cert_id=cert_id,
        issued_at=issued_at,
        course_title=course_title,
        course_key=course_key,
    )
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, _svg_to_pdf, svg_content)
    except (RuntimeError, ValueError) as e:
        logger.error(
            "certificate.render.failed", extra={"cert_id": cert_id, "error": str(e)}
        )
        raise RenderingError(str(e)) from e


async def render_certificate_png(
    *,
    full_name: str,
    cert_id: str,
    issued_at: datetime,
    course_title: str | None = None,
    course_key: str | None = None,
    scale: float = 2.0,
) -> bytes:
    """Generate a PNG preview of a certificate.

    Raises:
        RenderingError: the image could not be produced
    """
    svg_content = await generate_certificate_svg(
        full_name=full_name,
        cert_id=cert_id,
        issued_at=issued_at,
        course_title=course_title,
        course_key=course_key,
    )
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(
            None, lambda: _svg_to_png(svg_content, scale=scale)
        )
    except (RuntimeError, ValueError) as e:
        raise RenderingError(str(e)) from e


@dataclass(frozen=True)
class _PreparedCertificate:
    cert_id: str
    course_key: str
    full_name: str
    issued_at: datetime


async def _prepare(
    db: AsyncSession, identity: Identity, request: RenderCertificateRequest
) -> _PreparedCertificate:
    """Resolve id, course and name; reject ids held by another account up front."""
    course_key = _clean(request.course_key) or get_settings().default_course_key
    cert_id = _clean(request.cert_id) or generate_cert_id(
        _clean(request.cert_prefix) or course_key
    )

    try:
        existing = await CertificateRepository(db).get_by_cert_id(cert_id)
        account = await ensure_account(db, identity.user_id)
    except SQLAlchemyError as e:
        raise UpstreamStoreError(str(e)) from e

    if existing is not None and existing.user_id != identity.user_id:
        raise CertificateOwnershipError(cert_id)

    set_wide_event_fields(cert_id=cert_id, course_key=course_key)
    return _PreparedCertificate(
        cert_id=cert_id,
        course_key=course_key,
        full_name=resolve_full_name(request.full_name, account),
        # A re-render keeps the original issue date
        issued_at=existing.issued_at if existing is not None else utcnow(),
    )


async def download_certificate(
    db: AsyncSession,
    identity: Identity,
    request: RenderCertificateRequest,
) -> RenderedCertificate:
    """Render a certificate PDF and, when configured, record it without a path."""
    prepared = await _prepare(db, identity, request)

    pdf = await render_certificate_pdf(
        full_name=prepared.full_name,
        cert_id=prepared.cert_id,
        issued_at=prepared.issued_at,
        course_title=_clean(request.course_title),
        course_key=prepared.course_key,
    )

    if get_settings().record_on_download:
        await register_certificate(
            db,
            identity,
            cert_id=prepared.cert_id,
            full_name=prepared.full_name,
            course_key=prepared.course_key,
        )

    return RenderedCertificate(
        cert_id=prepared.cert_id,
        course_key=prepared.course_key,
        full_name=prepared.full_name,
        pdf=pdf,
    )


async def save_certificate(
    db: AsyncSession,
    identity: Identity,
    request: RenderCertificateRequest,
) -> SavedCertificate:
    """Render, upload, then register the certificate with its storage path.

    Registration only happens after the upload succeeded, so a stored
    storage_path always points at a real object.
    """
    prepared = await _prepare(db, identity, request)

    pdf = await render_certificate_pdf(
        full_name=prepared.full_name,
        cert_id=prepared.cert_id,
        issued_at=prepared.issued_at,
        course_title=_clean(request.course_title),
        course_key=prepared.course_key,
    )

    artifact = await store_certificate_artifact(
        identity, prepared.course_key, prepared.cert_id, pdf
    )

    await register_certificate(
        db,
        identity,
        cert_id=prepared.cert_id,
        full_name=prepared.full_name,
        course_key=prepared.course_key,
        storage_path=artifact.storage_path,
    )

    return SavedCertificate(
        cert_id=prepared.cert_id,
        storage_path=artifact.storage_path,
        signed_url=artifact.signed_url,
    )
