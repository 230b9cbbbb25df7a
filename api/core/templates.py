"""Jinja2 template engine shared across routes.

Provides a module-level ``templates`` instance so route files can import
it directly instead of reaching through ``request.app.state``.
"""

from pathlib import Path

from fastapi.templating import Jinja2Templates

_templates_dir = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(_templates_dir))
