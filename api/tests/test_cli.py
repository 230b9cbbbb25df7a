"""Tests for the management CLI."""

from unittest.mock import AsyncMock, patch

import pytest

import cli
from core.errors import RenderingError, UpstreamStoreError

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _quiet_logging():
    with patch("cli.configure_logging"):
        yield


class TestRenderCertificate:
    def test_writes_pdf(self, tmp_path):
        out = tmp_path / "cert.pdf"
        with patch(
            "services.certificates_service.render_certificate_pdf",
            new=AsyncMock(return_value=b"%PDF-1.7 cli"),
        ) as render:
            code = cli.main(
                [
                    "render-certificate",
                    "--name",
                    "Ada Lovelace",
                    "--course-key",
                    "ai-everyone",
                    "--cert-id",
                    "ai-everyone-cli",
                    "--out",
                    str(out),
                ]
            )

        assert code == 0
        assert out.read_bytes() == b"%PDF-1.7 cli"
        kwargs = render.call_args.kwargs
        assert kwargs["full_name"] == "Ada Lovelace"
        assert kwargs["cert_id"] == "ai-everyone-cli"
        assert kwargs["course_key"] == "ai-everyone"

    def test_png_format_uses_png_renderer(self, tmp_path):
        out = tmp_path / "cert.png"
        with patch(
            "services.certificates_service.render_certificate_png",
            new=AsyncMock(return_value=b"\x89PNG"),
        ):
            code = cli.main(
                ["render-certificate", "--name", "Ada", "--format", "png", "--out", str(out)]
            )

        assert code == 0
        assert out.read_bytes() == b"\x89PNG"

    def test_render_failure_exits_nonzero(self, tmp_path):
        with patch(
            "services.certificates_service.render_certificate_pdf",
            new=AsyncMock(side_effect=RenderingError("no cairo")),
        ):
            code = cli.main(
                ["render-certificate", "--name", "Ada", "--out", str(tmp_path / "x.pdf")]
            )

        assert code == 1
        assert not (tmp_path / "x.pdf").exists()


class TestEnsureBucket:
    def test_success(self):
        with patch(
            "services.certificates_service.ensure_certificate_bucket",
            new=AsyncMock(return_value=True),
        ):
            assert cli.main(["ensure-bucket"]) == 0

    def test_store_failure(self):
        with patch(
            "services.certificates_service.ensure_certificate_bucket",
            new=AsyncMock(side_effect=UpstreamStoreError("AccessDenied")),
        ):
            assert cli.main(["ensure-bucket"]) == 1


def test_no_command_prints_help():
    assert cli.main([]) == 1
