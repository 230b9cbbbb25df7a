"""Certificate issuance and verification endpoints.

Registration, download and save need a signed-in caller (session cookie or
bearer token). Verification is public.
"""

from typing import TypeVar

from fastapi import APIRouter, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

from core.auth import RequiredIdentity
from core.database import DbSession, DbSessionReadOnly
from core.ratelimit import REGISTER_LIMIT, RENDER_LIMIT, limiter
from schemas import (
    CertificateVerifyResponse,
    ErrorResponse,
    OkResponse,
    RegisterCertificateRequest,
    RenderCertificateRequest,
    SaveCertificateResponse,
)
from services.certificates_service import (
    download_certificate,
    register_certificate,
    save_certificate,
)
from services.verification_service import verify_certificate_with_message

router = APIRouter(prefix="/api/certificates", tags=["certificates"])

BodyT = TypeVar("BodyT", bound=BaseModel)

# A body that is not a JSON object is read like an absent body; register
# then reports the missing certId (400) rather than a 422.
_UNREADABLE_BODY_ERRORS = frozenset({"json_invalid", "model_type"})

_ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse, "description": "Missing certId"},
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    403: {"model": ErrorResponse, "description": "Certificate belongs to another account"},
    500: {"model": ErrorResponse, "description": "Server or store failure"},
}


async def _read_body(request: Request, model: type[BodyT]) -> BodyT:
    """Parse the JSON body after auth has run; unreadable bodies are empty."""
    raw = await request.body()
    if not raw.strip():
        return model()
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        errors = e.errors(include_url=False)
        if any(err["type"] in _UNREADABLE_BODY_ERRORS for err in errors):
            return model()
        raise RequestValidationError(errors) from e


def _body_doc(model: type[BaseModel]) -> dict:
    """OpenAPI request body for routes that read the body themselves."""
    return {
        "requestBody": {
            "required": False,
            "content": {"application/json": {"schema": model.model_json_schema()}},
        }
    }


@router.post(
    "/register",
    response_model=OkResponse,
    responses=_ERROR_RESPONSES,
    openapi_extra=_body_doc(RegisterCertificateRequest),
)
@limiter.limit(REGISTER_LIMIT)
async def register_certificate_endpoint(
    request: Request,
    identity: RequiredIdentity,
    db: DbSession,
) -> OkResponse:
    """Record certificate metadata for the signed-in caller (idempotent upsert)."""
    body = await _read_body(request, RegisterCertificateRequest)
    await register_certificate(
        db,
        identity,
        cert_id=body.cert_id,
        full_name=body.full_name,
        course_key=body.course_key,
        storage_path=body.storage_path,
    )
    return OkResponse()


@router.post(
    "/download",
    responses={
        200: {"content": {"application/pdf": {}}, "description": "PDF certificate"},
        **_ERROR_RESPONSES,
    },
    openapi_extra=_body_doc(RenderCertificateRequest),
)
@limiter.limit(RENDER_LIMIT)
async def download_certificate_endpoint(
    request: Request,
    identity: RequiredIdentity,
    db: DbSession,
) -> Response:
    """Render the caller's certificate as a PDF download."""
    body = await _read_body(request, RenderCertificateRequest)
    rendered = await download_certificate(db, identity, body)

    return Response(
        content=rendered.pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{rendered.filename}"',
            "X-Certificate-Id": rendered.cert_id,
            "Cache-Control": "no-store",
        },
    )


@router.post(
    "/save",
    response_model=SaveCertificateResponse,
    responses=_ERROR_RESPONSES,
    openapi_extra=_body_doc(RenderCertificateRequest),
)
@limiter.limit(RENDER_LIMIT)
async def save_certificate_endpoint(
    request: Request,
    identity: RequiredIdentity,
    db: DbSession,
) -> SaveCertificateResponse:
    """Render, upload to the private bucket, and register with the storage path."""
    body = await _read_body(request, RenderCertificateRequest)
    saved = await save_certificate(db, identity, body)

    return SaveCertificateResponse(
        cert_id=saved.cert_id,
        storage_path=saved.storage_path,
        signed_url=saved.signed_url,
    )


@router.get(
    "/verify",
    response_model=CertificateVerifyResponse,
    response_model_exclude_none=True,
)
async def verify_certificate_endpoint(
    db: DbSessionReadOnly,
    cid: str | None = Query(default=None, max_length=2048),
) -> CertificateVerifyResponse:
    """Verify a certificate by id or verify link (public endpoint)."""
    return await verify_certificate_with_message(db, cid)
