"""Public certificate verification.

Anyone holding a certificate id (or the verify link printed on the PDF)
can look it up. No authentication, no writes, and "not found" is a normal
result rather than an error.
"""

import logging
from urllib.parse import parse_qs, urlsplit

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core import storage
from core.config import get_settings
from core.errors import ConfigurationError, UpstreamStoreError
from core.wide_event import set_wide_event_fields
from rendering.certificates import COURSE_TITLES, format_issue_date
from repositories.certificate_repository import CertificateRepository
from schemas import (
    CertificateRecord,
    CertificateVerifyResponse,
    PublicCertificate,
    VerificationResult,
)

logger = logging.getLogger(__name__)

VERIFY_FAILED_MESSAGE = "Verification failed. Please try again."


def extract_cert_id(raw: str | None) -> str:
    """Trim user input; a pasted verify link yields its ``cid`` parameter."""
    value = (raw or "").strip()
    if "cid=" not in value:
        return value

    parts = urlsplit(value)
    query = parts.query or value.lstrip("?")
    cid = parse_qs(query).get("cid")
    if cid and cid[0].strip():
        return cid[0].strip()
    return value


async def _signed_url_for(storage_path: str | None, cert_id: str) -> str | None:
    """Short-lived link to the stored PDF, or None if it can't be offered."""
    if not storage_path:
        return None

    settings = get_settings()
    try:
        if not await storage.object_exists(settings.certificate_bucket, storage_path):
            logger.warning(
                "certificate.verify.blob_missing",
                extra={"cert_id": cert_id, "storage_path": storage_path},
            )
            return None
        return await storage.create_signed_url(
            settings.certificate_bucket,
            storage_path,
            settings.verify_signed_url_ttl_seconds,
        )
    except (ConfigurationError, UpstreamStoreError) as e:
        logger.warning(
            "certificate.signed_url.unavailable",
            extra={"cert_id": cert_id, "error": str(e)},
        )
        return None


async def verify_certificate(db: AsyncSession, raw_input: str | None) -> VerificationResult:
    """Look up a certificate by id (or verify link).

    Args:
        db: Database session (read-only is enough)
        raw_input: Certificate id, or a URL carrying ``?cid=``

    Returns:
        VerificationResult; found=False for blank or unknown ids, plus
        lookup_failed=True when the store could not be read
    """
    cert_id = extract_cert_id(raw_input)
    if not cert_id:
        return VerificationResult(found=False)

    set_wide_event_fields(cert_id=cert_id)
    try:
        certificate = await CertificateRepository(db).get_by_cert_id(cert_id)
    except SQLAlchemyError as e:
        logger.error(
            "certificate.verify.lookup_failed",
            extra={"cert_id": cert_id, "error": str(e)},
        )
        return VerificationResult(found=False, lookup_failed=True)

    if certificate is None:
        logger.info("certificate.verify.not_found", extra={"cert_id": cert_id})
        return VerificationResult(found=False)

    record = CertificateRecord.model_validate(certificate)
    signed_url = await _signed_url_for(record.storage_path, cert_id)
    set_wide_event_fields(certificate_found=True, has_signed_url=signed_url is not None)
    return VerificationResult(found=True, record=record, signed_url=signed_url)


def to_public_certificate(record: CertificateRecord) -> PublicCertificate:
    # Verifiers see the raw course key rather than a generic label
    course_title = (
        COURSE_TITLES.get(record.course_key.strip().lower()) or record.course_key
    )
    return PublicCertificate(
        cert_id=record.cert_id,
        full_name=record.full_name,
        course_key=record.course_key,
        course_title=course_title,
        issued_at=record.issued_at,
    )


async def verify_certificate_with_message(
    db: AsyncSession, raw_input: str | None
) -> CertificateVerifyResponse:
    """Verify a certificate and return a user-friendly result."""
    if not extract_cert_id(raw_input):
        return CertificateVerifyResponse(
            found=False, message="Enter a certificate ID to verify."
        )

    result = await verify_certificate(db, raw_input)

    if result.lookup_failed:
        return CertificateVerifyResponse(
            found=False, lookup_failed=True, message=VERIFY_FAILED_MESSAGE
        )

    if not result.found or result.record is None:
        return CertificateVerifyResponse(
            found=False,
            message="Certificate not found. Please check the certificate ID.",
        )

    certificate = to_public_certificate(result.record)
    return CertificateVerifyResponse(
        found=True,
        certificate=certificate,
        signed_url=result.signed_url,
        message=(
            f"Valid certificate for {certificate.course_title}"
            f" issued on {format_issue_date(certificate.issued_at)}"
        ),
    )
