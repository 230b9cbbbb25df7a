"""Pydantic schemas for API request/response validation.

Request and response bodies use camelCase on the wire (``certId``,
``fullName``) to match the browser client; Python code uses snake_case.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire models: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============ Certificate Records ============


class CertificateRecord(BaseModel):
    """Public projection of a certificate row (no account identifier)."""

    model_config = ConfigDict(from_attributes=True)

    cert_id: str
    full_name: str
    course_key: str
    issued_at: datetime
    storage_path: str | None = None


class VerificationResult(BaseModel):
    """Outcome of a verification lookup.

    ``found=False`` is a normal result, not an error. ``lookup_failed`` marks
    the separate case where the store could not be read. ``signed_url`` is
    only set when the stored PDF exists and a link could be minted.
    """

    found: bool
    lookup_failed: bool = False
    record: CertificateRecord | None = None
    signed_url: str | None = None


class StoredArtifact(BaseModel):
    """Where an uploaded certificate PDF lives; the signed URL is never persisted."""

    storage_path: str
    signed_url: str | None = None


class AccountProfile(BaseModel):
    """The caller's account fields used for name fallback."""

    user_id: str
    email: str | None = None
    display_name: str | None = None


# ============ Certificate API ============


class RegisterCertificateRequest(CamelModel):
    """Body for POST /api/certificates/register.

    Every field is optional at the schema level so a missing ``certId``
    surfaces as a 400 from the service rather than a 422.
    """

    cert_id: str | None = Field(default=None, max_length=255)
    full_name: str | None = Field(default=None, max_length=255)
    course_key: str | None = Field(default=None, max_length=100)
    storage_path: str | None = Field(default=None, max_length=1024)


class RenderCertificateRequest(CamelModel):
    """Body for the download and save endpoints."""

    full_name: str | None = Field(default=None, max_length=255)
    course_key: str | None = Field(default=None, max_length=100)
    course_title: str | None = Field(default=None, max_length=200)
    cert_id: str | None = Field(default=None, max_length=255)
    cert_prefix: str | None = Field(
        default=None, max_length=100, pattern=r"^[A-Za-z0-9][A-Za-z0-9_-]*$"
    )


class OkResponse(CamelModel):
    ok: bool = True


class ErrorResponse(CamelModel):
    error: str


class SaveCertificateResponse(CamelModel):
    ok: bool = True
    cert_id: str
    storage_path: str
    signed_url: str | None = None


class PublicCertificate(CamelModel):
    """Certificate fields shown to anyone holding the id."""

    cert_id: str
    full_name: str
    course_key: str
    course_title: str
    issued_at: datetime


class CertificateVerifyResponse(CamelModel):
    """Response for certificate verification."""

    found: bool
    lookup_failed: bool | None = None
    certificate: PublicCertificate | None = None
    signed_url: str | None = None
    message: str


# ============ Health ============


class HealthResponse(BaseModel):
    status: str
    service: str
