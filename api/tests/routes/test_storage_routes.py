"""Route tests for /api/storage."""

import pytest
from botocore.exceptions import ClientError

from core.config import clear_settings_cache

pytestmark = pytest.mark.unit


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class TestEnsureCertBucket:
    async def test_creates_missing_bucket(self, unit_client, mock_s3):
        mock_s3.head_bucket.side_effect = _client_error("404", "HeadBucket")

        response = await unit_client.post("/api/storage/ensure-cert-bucket")

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert mock_s3.create_bucket.call_args.kwargs["Bucket"] == "certificates"

    async def test_existing_bucket_is_ok(self, unit_client, mock_s3):
        response = await unit_client.post("/api/storage/ensure-cert-bucket")

        assert response.status_code == 200
        mock_s3.create_bucket.assert_not_called()

    async def test_store_failure(self, unit_client, mock_s3):
        mock_s3.head_bucket.side_effect = _client_error("AccessDenied", "HeadBucket")

        response = await unit_client.post("/api/storage/ensure-cert-bucket")

        assert response.status_code == 500
        assert "error" in response.json()

    async def test_missing_credentials(self, unit_client, monkeypatch):
        monkeypatch.setenv("STORAGE_SECRET_ACCESS_KEY", "")
        clear_settings_cache()

        response = await unit_client.post("/api/storage/ensure-cert-bucket")

        assert response.status_code == 500
        assert response.json() == {"error": "Server configuration missing"}
