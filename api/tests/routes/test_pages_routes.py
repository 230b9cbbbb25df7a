"""Tests for the server-rendered verification page."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest

from schemas import CertificateRecord, VerificationResult

pytestmark = pytest.mark.unit


def _patch_verify(result: VerificationResult):
    return patch(
        "routes.pages_routes.verify_certificate", new=AsyncMock(return_value=result)
    )


class TestVerifyPage:
    async def test_renders_empty_form(self, unit_client):
        with _patch_verify(VerificationResult(found=False)) as verify:
            response = await unit_client.get("/verify")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "Verify a certificate" in response.text
        assert "Certificate not found" not in response.text
        verify.assert_not_awaited()

    async def test_shows_valid_certificate_with_link(self, unit_client):
        result = VerificationResult(
            found=True,
            record=CertificateRecord(
                cert_id="pe-beginner-1",
                full_name="Ada <Lovelace>",
                course_key="pe-beginner",
                issued_at=datetime(2025, 1, 5, tzinfo=UTC),
                storage_path="pe-beginner/u/pe-beginner-1.pdf",
            ),
            signed_url="https://storage.test/pe-beginner-1.pdf?sig=1",
        )
        with _patch_verify(result):
            response = await unit_client.get(
                "/verify", params={"cid": "https://tinpear.org/verify?cid=pe-beginner-1"}
            )

        assert "Certificate is valid" in response.text
        assert "Ada &lt;Lovelace&gt;" in response.text
        assert "Prompt Engineering · Beginner" in response.text
        assert "January 5, 2025" in response.text
        assert "https://storage.test/pe-beginner-1.pdf?sig=1" in response.text
        assert "expires in 10 minutes" in response.text
        # The pasted link is reduced to the bare id
        assert 'value="pe-beginner-1"' in response.text

    async def test_shows_not_found(self, unit_client):
        with _patch_verify(VerificationResult(found=False)):
            response = await unit_client.get("/verify", params={"cid": "nope"})

        assert response.status_code == 200
        assert "Certificate not found" in response.text
        assert "Verification failed" not in response.text

    async def test_shows_lookup_failure_separately(self, unit_client):
        with _patch_verify(VerificationResult(found=False, lookup_failed=True)):
            response = await unit_client.get("/verify", params={"cid": "c1"})

        assert response.status_code == 200
        assert "Verification failed" in response.text
        assert "Certificate not found" not in response.text

    async def test_valid_certificate_without_pdf(self, unit_client):
        result = VerificationResult(
            found=True,
            record=CertificateRecord(
                cert_id="c1",
                full_name="Ada",
                course_key="ai-everyone",
                issued_at=datetime(2025, 1, 5, tzinfo=UTC),
            ),
        )
        with _patch_verify(result):
            response = await unit_client.get("/verify", params={"cid": "c1"})

        assert "Certificate is valid" in response.text
        assert "View certificate PDF" not in response.text
