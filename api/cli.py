#!/usr/bin/env python3
"""CLI for Tinpear Certificates API management tasks.

Usage:
    python -m cli <command>

Commands:
    migrate             Run database migrations (upgrade to head by default)
    ensure-bucket       Create the private certificates bucket if missing
    render-certificate  Render a certificate PDF locally (no DB writes, no auth)
"""

import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from core.logger import configure_logging

logger = logging.getLogger(__name__)

API_DIR = Path(__file__).resolve().parent


def _get_alembic_config():
    from alembic.config import Config

    cfg = Config(str(API_DIR / "alembic.ini"))
    # Make script_location absolute so it works from any working directory.
    cfg.set_main_option("script_location", str(API_DIR / "alembic"))
    return cfg


def cmd_migrate(target: str) -> int:
    """Run database migrations."""
    from alembic import command

    logger.info("migrations.start", extra={"target": target})
    command.upgrade(_get_alembic_config(), target)
    logger.info("migrations.complete")
    return 0


def cmd_ensure_bucket() -> int:
    """Create the certificates bucket as a private bucket."""
    from core.config import get_settings
    from core.errors import ServiceError
    from services.certificates_service import ensure_certificate_bucket

    bucket = get_settings().certificate_bucket
    try:
        created = asyncio.run(ensure_certificate_bucket())
    except ServiceError as e:
        logger.error("storage.bucket.ensure_failed", extra={"error": e.message})
        return 1

    logger.info("storage.bucket.ready", extra={"bucket": bucket, "created": created})
    return 0


def cmd_render_certificate(args: argparse.Namespace) -> int:
    """Render a certificate to a local file."""
    from core.errors import RenderingError
    from services.certificates_service import (
        generate_cert_id,
        render_certificate_pdf,
        render_certificate_png,
    )

    cert_id = args.cert_id or generate_cert_id(args.course_key)
    render = render_certificate_png if args.format == "png" else render_certificate_pdf
    out = Path(args.out or f"{cert_id}.{args.format}")

    try:
        content = asyncio.run(
            render(
                full_name=args.name,
                cert_id=cert_id,
                issued_at=datetime.now(UTC),
                course_title=args.course_title,
                course_key=args.course_key,
            )
        )
    except RenderingError as e:
        logger.error("certificate.render.failed", extra={"error": e.message})
        return 1

    out.write_bytes(content)
    logger.info(
        "certificate.rendered",
        extra={"cert_id": cert_id, "path": str(out), "bytes": len(content)},
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()

    parser = argparse.ArgumentParser(
        description="Tinpear Certificates API CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    migrate = subparsers.add_parser("migrate", help="Run database migrations")
    migrate.add_argument(
        "target",
        nargs="?",
        default="head",
        help="Target revision (default: head)",
    )

    subparsers.add_parser(
        "ensure-bucket",
        help="Create the private certificates bucket if missing",
    )

    render = subparsers.add_parser(
        "render-certificate",
        help="Render a certificate locally",
    )
    render.add_argument("--name", required=True, help="Recipient full name")
    render.add_argument("--course-key", default="pe-beginner")
    render.add_argument("--course-title", default=None)
    render.add_argument("--cert-id", default=None)
    render.add_argument("--format", choices=("pdf", "png"), default="pdf")
    render.add_argument("--out", default=None, help="Output file path")

    args = parser.parse_args(argv)

    if args.command == "migrate":
        return cmd_migrate(args.target)
    elif args.command == "ensure-bucket":
        return cmd_ensure_bucket()
    elif args.command == "render-certificate":
        return cmd_render_certificate(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
