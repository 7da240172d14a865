"""Tutorial tree: a directory of Markdown/HTML pages plus an optional hierarchy file.

The hierarchy file (``*.json``, ``*.yaml`` or ``*.yml``) maps tutorial names to
``{"title": ..., "children": [...]}``. Children may be listed by name or as
nested mappings of the same shape. Tutorials not claimed as a child of another
tutorial hang off the root.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import markdown
import yaml

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = {".md", ".markdown"}
HTML_SUFFIXES = {".html", ".htm"}
HIERARCHY_SUFFIXES = {".json", ".yaml", ".yml"}
MARKDOWN_EXTENSIONS = ["fenced_code", "tables"]


@dataclass(eq=False)
class Tutorial:
    name: str
    title: str
    content: str = ""
    content_type: str = "html"
    children: list["Tutorial"] = field(default_factory=list)
    parent: "Tutorial | None" = field(default=None, repr=False)

    def add_child(self, child: "Tutorial") -> None:
        if child.parent is not None:
            child.parent.children.remove(child)
        child.parent = self
        self.children.append(child)

    def parse(self) -> str:
        if self.content_type == "markdown":
            return markdown.markdown(self.content, extensions=MARKDOWN_EXTENSIONS)
        return self.content


def flatten_tutorials(root: Tutorial) -> list[Tutorial]:
    """Breadth-first order: top-level tutorials first, siblings in child order."""
    ordered: list[Tutorial] = []
    queue = deque(root.children)
    while queue:
        tutorial = queue.popleft()
        ordered.append(tutorial)
        queue.extend(tutorial.children)
    return ordered


def _content_type(path: Path) -> str | None:
    suffix = path.suffix.lower()
    if suffix in MARKDOWN_SUFFIXES:
        return "markdown"
    if suffix in HTML_SUFFIXES:
        return "html"
    return None


def _read_hierarchy(path: Path) -> dict[str, Any]:
    payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(payload, dict):
        raise ValueError(f"{path.as_posix()} must contain a mapping of tutorial names")
    return payload


def _apply_hierarchy(
    parent: Tutorial,
    name: str,
    settings: Any,
    tutorials: dict[str, Tutorial],
) -> None:
    tutorial = tutorials.get(name)
    if tutorial is None:
        logger.warning("Tutorial hierarchy names unknown tutorial %s", name)
        return

    if isinstance(settings, dict):
        title = settings.get("title")
        if title:
            tutorial.title = str(title)
        children = settings.get("children") or []
    else:
        children = []

    ancestor: Tutorial | None = parent
    while ancestor is not None:
        if ancestor is tutorial:
            logger.warning("Tutorial %s cannot be its own descendant", name)
            return
        ancestor = ancestor.parent

    if parent is not tutorial.parent:
        parent.add_child(tutorial)

    if isinstance(children, dict):
        for child_name, child_settings in children.items():
            _apply_hierarchy(tutorial, str(child_name), child_settings, tutorials)
    else:
        for child_name in children:
            _apply_hierarchy(tutorial, str(child_name), None, tutorials)


def load_tutorials(directory: Path) -> Tutorial:
    root = Tutorial(name="", title="")
    tutorials: dict[str, Tutorial] = {}
    hierarchy: dict[str, Any] = {}

    for path in sorted(directory.rglob("*"), key=lambda item: item.as_posix()):
        if not path.is_file() or path.name.startswith("."):
            continue
        if path.suffix.lower() in HIERARCHY_SUFFIXES:
            hierarchy.update(_read_hierarchy(path))
            continue
        content_type = _content_type(path)
        if content_type is None:
            continue
        name = path.stem
        if name in tutorials:
            logger.warning("Duplicate tutorial name %s; ignoring %s", name, path.as_posix())
            continue
        tutorial = Tutorial(
            name=name,
            title=name,
            content=path.read_text(encoding="utf-8"),
            content_type=content_type,
        )
        root.add_child(tutorial)
        tutorials[name] = tutorial

    for name, settings in hierarchy.items():
        tutorial = tutorials.get(str(name))
        if tutorial is None:
            logger.warning("Tutorial hierarchy names unknown tutorial %s", name)
            continue
        _apply_hierarchy(tutorial.parent or root, str(name), settings, tutorials)

    return root
