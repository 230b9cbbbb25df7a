"""Certificate rendering - SVG and PDF generation.

This module handles the visual/presentation aspects of certificates:
- A4 SVG template rendering
- Course title lookup
- Best-effort logo embedding
- PDF/PNG conversion

Registration, storage and verification live in services/.
"""

import base64
import html
import textwrap
from datetime import datetime
from functools import lru_cache
from math import cos, pi, sin
from pathlib import Path
from urllib.parse import quote, urlsplit

import httpx

from core.logger import get_logger

logger = get_logger(__name__)

BRAND_MARK = "TINPEAR"
FALLBACK_COURSE_TITLE = "Course Certificate"

_ASSETS_DIR = Path(__file__).resolve().parent.parent / "assets"

# A4 portrait in PDF points; the root element maps it onto 210mm x 297mm.
PAGE_WIDTH = 595
PAGE_HEIGHT = 842

COLORS = {
    "green_dark": "#0b4a36",
    "green_deep": "#0f3d2d",
    "gold": "#CBA135",
    "text": "#0f172a",
    "text_muted": "#5b6270",
    "paper": "#ffffff",
    "paper_tint": "#f7f7f9",
    "hairline": "#eceef2",
}

# Exact course_key -> printed title. New courses need an entry here;
# anything unmapped prints FALLBACK_COURSE_TITLE and logs a warning.
COURSE_TITLES: dict[str, str] = {
    "ai-everyone": "AI for Everyone",
    "pe-beginner": "Prompt Engineering · Beginner",
    "ethical-ai-beginner": "Ethical AI (Beginner)",
    "introduction-to-ai": "Introduction to AI",
    "machine-learning-basics": "Machine Learning Basics",
    "deep-learning": "Deep Learning",
    "natural-language-processing": "Natural Language Processing (NLP)",
    "computer-vision": "Computer Vision",
    "building-ai-apps": "Building AI Apps",
    "prompt-engineering": "Prompt Engineering",
    "projects-and-challenges": "Projects & Challenges",
}

_RASTER_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def resolve_course_title(
    course_title: str | None = None, course_key: str | None = None
) -> str:
    """Explicit title, then the COURSE_TITLES table, then the generic label."""
    if course_title and course_title.strip():
        return course_title.strip()

    if course_key:
        title = COURSE_TITLES.get(course_key.strip().lower())
        if title:
            return title
        logger.warning("certificate.course_title.unmapped", course_key=course_key)

    return FALLBACK_COURSE_TITLE


def build_verify_url(verify_base_url: str, cert_id: str) -> str:
    separator = "&" if "?" in verify_base_url else "?"
    return f"{verify_base_url}{separator}cid={quote(cert_id, safe='')}"


def format_issue_date(issued_at: datetime) -> str:
    """Long date, e.g. "October 19, 2026". %B follows the process locale."""
    return f"{issued_at:%B} {issued_at.day}, {issued_at.year}"


def _raster_mime_type(location: str) -> str | None:
    suffix = Path(urlsplit(location).path).suffix.lower()
    return _RASTER_MIME_TYPES.get(suffix)


def _to_data_uri(mime_type: str, data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


@lru_cache(maxsize=8)
def _read_local_logo(path: str) -> bytes | None:
    try:
        data = (_ASSETS_DIR / path).read_bytes()
    except (OSError, ValueError):
        return None
    return data or None


async def load_logo_data_uri(logo_url: str, *, timeout: float = 10.0) -> str | None:
    """Fetch a PNG/JPEG logo and return it as a data URI, or None.

    Never raises: an unsupported format, a failed fetch or an unexpected
    content type all leave the certificate with the text brand mark.
    """
    if not logo_url:
        return None

    try:
        mime_type = _raster_mime_type(logo_url)
        scheme = urlsplit(logo_url).scheme.lower()
    except ValueError as e:
        logger.warning("certificate.logo.invalid_url", logo_url=logo_url, error=str(e))
        return None

    if mime_type is None:
        logger.info("certificate.logo.unsupported_format", logo_url=logo_url)
        return None

    if scheme not in ("http", "https"):
        data = _read_local_logo(logo_url)
        if data is None:
            logger.warning("certificate.logo.unavailable", logo_url=logo_url)
            return None
        return _to_data_uri(mime_type, data)

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(logo_url, follow_redirects=True)
            response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("certificate.logo.unavailable", logo_url=logo_url, error=str(e))
        return None

    content_type = response.headers.get("content-type", "").split(";")[0].strip()
    if content_type and content_type not in _RASTER_MIME_TYPES.values():
        logger.warning(
            "certificate.logo.unexpected_content_type",
            logo_url=logo_url,
            content_type=content_type,
        )
        return None

    if not response.content:
        return None
    return _to_data_uri(content_type or mime_type, response.content)


def _star_points(cx: float, cy: float, outer: float, inner: float) -> str:
    points = []
    for i in range(10):
        radius = outer if i % 2 == 0 else inner
        angle = -pi / 2 + i * pi / 5
        points.append(f"{cx + radius * cos(angle):.2f},{cy + radius * sin(angle):.2f}")
    return " ".join(points)


def _name_font_size(full_name: str) -> int:
    """Shrink long names so they stay inside the frame."""
    overflow = max(0, len(full_name) - 26)
    return max(24, 40 - overflow)


def _text_lines(
    lines: list[str], *, x: float, y: float, line_height: float, attrs: str
) -> str:
    return "\n".join(
        f'  <text x="{x}" y="{y + i * line_height:.1f}" {attrs}>'
        f"{html.escape(line)}</text>"
        for i, line in enumerate(lines)
    )


def generate_certificate_svg(
    *,
    full_name: str,
    cert_id: str,
    issued_at: datetime,
    signer_name: str,
    signer_title: str,
    verify_base_url: str,
    course_title: str | None = None,
    course_key: str | None = None,
    logo_data_uri: str | None = None,
) -> str:
    """Generate a single-page A4 SVG certificate.

    Args:
        full_name: Recipient name printed on the certificate
        cert_id: Certificate id printed in the footer and used in the verify link
        issued_at: Issue timestamp, printed as a long date
        signer_name: Name under the signature line
        signer_title: Title under the signer name
        verify_base_url: Verification page URL; ``?cid=<cert_id>`` is appended
        course_title: Explicit title; wins over the course_key lookup
        course_key: Course code used when no explicit title is given
        logo_data_uri: PNG/JPEG data URI; None renders the text brand mark

    Returns:
        SVG content as a string
    """
    c = COLORS
    title = resolve_course_title(course_title, course_key)
    verify_url = build_verify_url(verify_base_url, cert_id)
    awarded_line = f"Awarded on this {format_issue_date(issued_at)}"

    safe_name = html.escape(full_name, quote=True)
    safe_cert_id = html.escape(cert_id, quote=True)
    safe_verify_url = html.escape(verify_url, quote=True)
    safe_signer_name = html.escape(signer_name, quote=True)
    safe_signer_title = html.escape(signer_title, quote=True)

    description = (
        f"has successfully completed {title}, demonstrating knowledge, "
        "professionalism, and commitment throughout the program."
    )
    description_lines = textwrap.wrap(description, width=62)

    # Font stacks: Helvetica and Times are PDF base-14 fonts, so viewers
    # render them without embedding.
    sans_font = "Helvetica, Arial, sans-serif"
    serif_font = "Times, 'Times New Roman', Georgia, serif"
    script_font = "'Great Vibes', 'Brush Script MT', 'Apple Chancery', cursive"

    cx = PAGE_WIDTH / 2
    description_y = 410
    description_block = _text_lines(
        description_lines,
        x=cx,
        y=description_y,
        line_height=18,
        attrs=(
            f'font-family="{sans_font}" font-size="12" fill="{c["text_muted"]}" '
            'text-anchor="middle"'
        ),
    )
    awarded_y = description_y + len(description_lines) * 18 + 40

    if logo_data_uri:
        brand_block = (
            f'  <image x="104" y="566" width="100" height="28" '
            f'preserveAspectRatio="xMidYMid meet" href="{logo_data_uri}" '
            f'xlink:href="{logo_data_uri}"/>'
        )
    else:
        brand_block = (
            f'  <text x="154" y="585" font-family="{sans_font}" font-size="12" '
            f'font-weight="600" fill="{c["green_dark"]}" text-anchor="middle" '
            f'letter-spacing="2">{BRAND_MARK}</text>'
        )

    svg = f"""<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" viewBox="0 0 {PAGE_WIDTH} {PAGE_HEIGHT}" width="210mm" height="297mm">
  <defs>
    <clipPath id="canvasClip">
      <rect x="24" y="24" width="547" height="794" rx="10"/>
    </clipPath>
  </defs>

  <rect width="{PAGE_WIDTH}" height="{PAGE_HEIGHT}" fill="{c["paper"]}"/>

  <!-- Decorative frame -->
  <g clip-path="url(#canvasClip)">
    <rect x="24" y="24" width="547" height="794" fill="{c["paper"]}"/>
    <rect x="411" y="-36" width="220" height="220" fill="{c["green_dark"]}" transform="rotate(45 521 74)"/>
    <rect x="441" y="-26" width="180" height="180" fill="{c["green_deep"]}" stroke="{c["gold"]}" stroke-width="6" transform="rotate(45 531 64)"/>
    <rect x="-56" y="638" width="260" height="260" fill="{c["green_dark"]}" transform="rotate(45 74 768)"/>
    <rect x="-41" y="673" width="210" height="210" fill="{c["green_deep"]}" stroke="{c["gold"]}" stroke-width="6" transform="rotate(45 64 778)"/>
    <rect x="52" y="52" width="491" height="738" rx="8" fill="{c["paper_tint"]}" opacity="0.35"/>
  </g>
  <rect x="24" y="24" width="547" height="794" rx="10" fill="none" stroke="{c["hairline"]}" stroke-width="1"/>

  <!-- Title block -->
  <circle cx="{cx}" cy="130" r="42" fill="{c["green_dark"]}" stroke="{c["gold"]}" stroke-width="5"/>
  <polygon points="{_star_points(cx, 131, 17, 7)}" fill="#ffffff"/>
  <text x="{cx}" y="215" font-family="{serif_font}" font-size="36" font-weight="bold" fill="{c["green_dark"]}" text-anchor="middle" letter-spacing="2">CERTIFICATE</text>
  <rect x="{cx - 85}" y="230" width="170" height="28" rx="14" fill="#ffffff" stroke="{c["gold"]}" stroke-width="2"/>
  <text x="{cx}" y="249" font-family="{sans_font}" font-size="12" font-weight="600" fill="{c["green_dark"]}" text-anchor="middle" letter-spacing="3">OF COMPLETION</text>

  <!-- Recipient -->
  <text x="{cx}" y="310" font-family="{sans_font}" font-size="12" fill="{c["text_muted"]}" text-anchor="middle">This is to certify that</text>
  <text x="{cx}" y="365" font-family="{script_font}" font-size="{_name_font_size(full_name)}" fill="{c["green_dark"]}" text-anchor="middle">{safe_name}</text>
  <rect x="{cx - 60}" y="380" width="120" height="1.5" fill="{c["gold"]}"/>

{description_block}

  <text x="{cx}" y="{awarded_y}" font-family="{sans_font}" font-size="12" font-weight="600" fill="{c["text"]}" text-anchor="middle">{html.escape(awarded_line)}</text>

  <!-- Brand and signer -->
{brand_block}
  <g>
    <rect x="295" y="580" width="200" height="1.2" fill="{c["text"]}"/>
    <text x="395" y="598" font-family="{sans_font}" font-size="11" font-weight="600" fill="{c["text"]}" text-anchor="middle">{safe_signer_name}</text>
    <text x="395" y="613" font-family="{sans_font}" font-size="10" fill="{c["text_muted"]}" text-anchor="middle">{safe_signer_title}</text>
  </g>

  <!-- Verification footer -->
  <g font-family="{sans_font}" font-size="9.5" text-anchor="end">
    <text x="543" y="764" fill="{c["text_muted"]}">Verify:</text>
    <text x="543" y="777" fill="{c["text"]}">{safe_verify_url}</text>
    <text x="543" y="790" fill="{c["text_muted"]}">Certificate ID: {safe_cert_id}</text>
  </g>
</svg>"""

    return svg


def svg_to_pdf(svg_content: str) -> bytes:
    """Convert SVG string to PDF bytes using CairoSVG.

    Args:
        svg_content: SVG string to convert

    Returns:
        PDF content as bytes

    Raises:
        RuntimeError: If cairo library is not installed on the system
    """
    try:
        import cairosvg
    except OSError as e:
        if "cairo" in str(e).lower():
            raise RuntimeError(
                "PDF generation requires the Cairo library. "
                "On macOS: brew install cairo. "
                "On Ubuntu/Debian: apt-get install libcairo2-dev. "
                "On Alpine: apk add cairo-dev."
            ) from e
        raise

    return cairosvg.svg2pdf(bytestring=svg_content.encode("utf-8"))


def svg_to_png(svg_content: str, *, scale: float = 2.0) -> bytes:
    """Convert SVG string to PNG bytes using CairoSVG.

    Raises:
        RuntimeError: If cairo library is not installed on the system
    """
    try:
        import cairosvg
    except OSError as e:
        if "cairo" in str(e).lower():
            raise RuntimeError(
                "PNG generation requires the Cairo library. "
                "On macOS: brew install cairo. "
                "On Ubuntu/Debian: apt-get install libcairo2-dev. "
                "On Alpine: apk add cairo-dev."
            ) from e
        raise

    return cairosvg.svg2png(bytestring=svg_content.encode("utf-8"), scale=scale)
