"""Rendering module for presentation concerns.

This module handles all presentation/rendering logic:
- Certificate SVG generation
- PDF/PNG conversion
- Course title lookup and logo embedding

This separates presentation concerns from business logic in services.
"""

from rendering.certificates import (
    COURSE_TITLES,
    generate_certificate_svg,
    load_logo_data_uri,
    resolve_course_title,
    svg_to_pdf,
    svg_to_png,
)

__all__ = [
    "COURSE_TITLES",
    "generate_certificate_svg",
    "load_logo_data_uri",
    "resolve_course_title",
    "svg_to_pdf",
    "svg_to_png",
]
