from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from baseline.links import LinkRegistry, display_name
from baseline.schemas import Category

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent / "default_template"
VIEW_SUFFIXES = (".html", ".js")


class Template:
    """Jinja2 views under ``<path>/views`` plus the static assets under ``<path>/static``."""

    def __init__(self, path: Path, registry: LinkRegistry) -> None:
        self.path = path
        self.views_dir = path / "views"
        self.static_dir = path / "static"
        self.env = Environment(
            loader=FileSystemLoader(str(self.views_dir)),
            autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=True),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.globals.update(
            CATEGORIES=Category,
            linkto=registry.link_to,
            tutoriallink=registry.tutorial_link,
            display_name=display_name,
        )
        self.views = self._find_views()

    def _find_views(self) -> dict[str, str]:
        views: dict[str, str] = {}
        if not self.views_dir.is_dir():
            logger.warning("Template has no views directory: %s", self.views_dir)
            return views
        for path in sorted(self.views_dir.iterdir()):
            if path.is_file() and path.suffix in VIEW_SUFFIXES and not path.name.startswith("_"):
                logger.debug("Loading the view %s", path.name)
                views[path.stem] = path.name
        return views

    def render(self, view_name: str, data: dict[str, Any]) -> str:
        filename = self.views.get(view_name)
        if filename is None:
            logger.error("Cannot render output with unknown view %s", view_name)
            return ""
        try:
            view = self.env.get_template(filename)
        except TemplateNotFound:
            logger.error("Cannot render output with unknown view %s", view_name)
            return ""
        return view.render(**data)
