from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

MODULE_PREFIX = "module:"
NAMESPACE_KINDS = ("event", "external", "module", "package")
SCOPE_PUNCTUATION = {"inner": "~", "instance": "#", "static": "."}
GLOBAL_KINDS = frozenset({"member", "function", "constant", "typedef"})
CONTAINER_KINDS = frozenset({"class", "external", "mixin", "module", "namespace"})
NULL_PATH = "null"

EXAMPLE_CAPTION_RE = re.compile(
    r"^\s*<caption>([\s\S]+?)</caption>(?:\s*[\n\r])([\s\S]+)$",
    re.IGNORECASE,
)


class BaselineBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class Category(str, Enum):
    classes = "classes"
    events = "events"
    externals = "externals"
    functions = "functions"
    globals = "globals"
    listeners = "listeners"
    members = "members"
    mixins = "mixins"
    modules = "modules"
    namespaces = "namespaces"
    packages = "packages"
    typedefs = "typedefs"


# Categories that require a separate output file for each longname.
OUTPUT_FILE_CATEGORIES = frozenset(
    {
        Category.classes,
        Category.externals,
        Category.mixins,
        Category.modules,
        Category.namespaces,
    }
)

KIND_CATEGORIES: dict[str, Category] = {
    "class": Category.classes,
    "constant": Category.members,
    "event": Category.events,
    "external": Category.externals,
    "function": Category.functions,
    "member": Category.members,
    "mixin": Category.mixins,
    "module": Category.modules,
    "namespace": Category.namespaces,
    "package": Category.packages,
    "typedef": Category.typedefs,
}

PAGE_TITLES: dict[str, str] = {
    Category.classes.value: "Class: ",
    Category.externals.value: "External: ",
    Category.globals.value: "Globals",
    Category.mixins.value: "Mixin: ",
    Category.modules.value: "Module: ",
    Category.namespaces.value: "Namespace: ",
    "sources": "Source: ",
    "tutorials": "Tutorial: ",
}


class DocletMeta(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    path: str | None = None
    filename: str | None = None
    lineno: int | None = None

    def source_path(self) -> str | None:
        """Join the directory and filename; a literal "null" path means no directory."""
        if not self.filename:
            return None
        if self.path and self.path != NULL_PATH:
            return f"{self.path.rstrip('/')}/{self.filename}"
        return self.filename


class Doclet(BaseModel):
    """One symbol record as emitted by the parser; never mutated by the publisher."""

    model_config = ConfigDict(extra="allow", frozen=True)

    kind: str
    longname: str | None = None
    name: str | None = None
    memberof: str | None = None
    scope: str | None = None
    access: str | None = None
    variation: str | None = None
    version: str | None = None
    since: str | None = None
    undocumented: bool = False
    ignore: bool = False
    meta: DocletMeta | None = None
    examples: list[str] | None = None
    see: list[str] | None = None
    listens: list[str] | None = None

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("kind must be non-empty")
        return text

    @field_validator("longname", "name", "memberof", "scope")
    @classmethod
    def normalize_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value or None

    def is_global(self) -> bool:
        return not self.memberof and self.kind in GLOBAL_KINDS

    def is_module_export(self) -> bool:
        return bool(
            self.longname
            and self.longname == self.name
            and self.longname.startswith(MODULE_PREFIX)
        )


class Example(BaselineBaseModel):
    caption: str = ""
    code: str

    @classmethod
    def from_text(cls, text: str) -> "Example":
        match = EXAMPLE_CAPTION_RE.match(text)
        if not match:
            return cls(caption="", code=text)
        return cls(caption=match.group(1), code=match.group(2))


class TocEntry(BaselineBaseModel):
    label: str
    id: str
    children: list["TocEntry"] = Field(default_factory=list)


def category_for(doclet: Doclet) -> Category | None:
    """Map a doclet to its category, or None when it is untracked or a module export."""
    if doclet.kind in {"class", "function"} and doclet.is_module_export():
        return None
    return KIND_CATEGORIES.get(doclet.kind)
