"""Blob storage provisioning endpoints."""

from fastapi import APIRouter, Request

from core.ratelimit import limiter
from schemas import ErrorResponse, OkResponse
from services.certificates_service import ensure_certificate_bucket

router = APIRouter(prefix="/api/storage", tags=["storage"])


@router.post(
    "/ensure-cert-bucket",
    response_model=OkResponse,
    responses={500: {"model": ErrorResponse, "description": "Storage unavailable"}},
)
@limiter.limit("5/minute")
async def ensure_cert_bucket_endpoint(request: Request) -> OkResponse:
    """Create the private certificates bucket if it does not exist yet."""
    await ensure_certificate_bucket()
    return OkResponse()
