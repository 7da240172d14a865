from __future__ import annotations

import re
from collections.abc import Container
from typing import TYPE_CHECKING
from urllib.parse import quote

from markupsafe import Markup, escape

from baseline.names import shorten, strip_external_quotes
from baseline.schemas import CONTAINER_KINDS, NAMESPACE_KINDS, SCOPE_PUNCTUATION

if TYPE_CHECKING:
    from baseline.symbols import Symbol

FILE_EXTENSION = ".html"
GLOBAL_NAME = "global"
INDEX_NAME = "index"
# Characters encodeURI leaves alone.
URI_SAFE = ";,/?:@&=+$-_.!~*'()#"

NAMESPACE_PREFIX_RE = re.compile(r"^(" + "|".join(NAMESPACE_KINDS) + r"):")
UNSAFE_FILENAME_RE = re.compile(r"[\\/?*:|'\"<>]")
VARIATION_RE = re.compile(r"\([\s\S]*\)$")
WHITESPACE_RE = re.compile(r"\s")
FAKE_CONTAINER_RE = re.compile(r"(\S+):")
URL_TARGET_RE = re.compile(r"^(?:[a-z][a-z0-9+.-]*:)?//|^mailto:", re.IGNORECASE)
INLINE_LINK_RE = re.compile(
    r"(?:\[(?P<label>[^\]]+)\])?\{@(?P<tag>link|linkcode|linkplain|tutorial)\s+(?P<body>[^}]*)\}",
)


class LinkResolutionError(RuntimeError):
    def __init__(self, *, longname: str | None, details: str) -> None:
        super().__init__(f"unable to resolve link for '{longname}': {details}")
        self.longname = longname
        self.details = details


def split_fragment(url: str) -> tuple[str, str]:
    if "#" not in url:
        return url, ""
    page, fragment = url.split("#", 1)
    return page, fragment


def format_name_for_link(symbol: "Symbol") -> str:
    namespace = f"{symbol.kind}:" if symbol.kind in NAMESPACE_KINDS else ""
    name = f"{namespace}{symbol.name or ''}{symbol.doclet.variation or ''}"
    punctuation = SCOPE_PUNCTUATION.get(symbol.scope or "", "")
    # `#` already opens the fragment.
    if punctuation != "#":
        name = f"{punctuation}{name}"
    return name


class LinkRegistry:
    """Maps longnames and other named targets to output URLs for a single run."""

    def __init__(self) -> None:
        self._files: dict[str, str] = {}
        self._ids: dict[str, dict[str, str]] = {}
        self._longname_to_url: dict[str, str] = {}
        self._longname_to_id: dict[str, str] = {}
        self._tutorial_to_url: dict[str, str] = {}

        # `index` is also a valid longname, so claim the filename without registering it.
        self.index_url = self.get_unique_filename(INDEX_NAME)
        self.global_url = self.register_link(GLOBAL_NAME)

    def get_unique_filename(self, name: str) -> str:
        basename = NAMESPACE_PREFIX_RE.sub(r"\1-", name or "")
        basename = UNSAFE_FILENAME_RE.sub("_", basename)
        basename = basename.replace("~", "-").replace("#", "_")
        basename = VARIATION_RE.sub("", basename)
        basename = re.sub(r"^[.\-]", "", basename)
        if not basename:
            basename = "_"
        if basename.startswith("_"):
            basename = f"-{basename}"

        while basename.lower() in self._files:
            basename += "_"
        self._files[basename.lower()] = name
        return f"{basename}{FILE_EXTENSION}"

    def register_link(self, name: str, url: str | None = None) -> str:
        existing = self._longname_to_url.get(name)
        if existing is not None:
            return existing
        if url is None:
            url = quote(self.get_unique_filename(name), safe=URI_SAFE)
        self._longname_to_url[name] = url
        return url

    def get_unique_id(self, url: str, candidate: str) -> str:
        page, _ = split_fragment(url)
        issued = self._ids.setdefault(page, {})
        identifier = WHITESPACE_RE.sub("", candidate)
        while identifier.lower() in issued:
            identifier += "_"
        issued[identifier.lower()] = identifier
        return identifier

    def create_link(self, symbol: "Symbol", needs_file: Container[str] = ()) -> str:
        longname = symbol.longname
        if longname is None:
            raise LinkResolutionError(longname=None, details="symbol has no longname")

        existing = self._longname_to_url.get(longname)
        if existing is not None:
            return existing

        fake_container = None
        if symbol.kind not in CONTAINER_KINDS:
            match = FAKE_CONTAINER_RE.match(longname)
            if match and match.group(1) in CONTAINER_KINDS:
                fake_container = match.group(1)

        fragment = ""
        if symbol.kind in CONTAINER_KINDS or symbol.doclet.is_module_export() or longname in needs_file:
            page = self.register_link(longname)
        elif fake_container:
            # mistagged doclet whose longname implies its own page
            page = self.register_link(symbol.memberof or longname)
            if symbol.name != longname:
                fragment = self.get_unique_id(page, format_name_for_link(symbol))
        else:
            page = self.register_link(symbol.memberof or GLOBAL_NAME)
            if symbol.name != longname or symbol.scope == "global" or not symbol.memberof:
                fragment = self.get_unique_id(page, format_name_for_link(symbol))

        url = page
        if fragment:
            url = f"{page}#{quote(fragment, safe=URI_SAFE)}"
            self._longname_to_id[longname] = fragment
        return self.register_link(longname, url)

    def url_for(self, longname: str) -> str | None:
        return self._longname_to_url.get(longname)

    def fragment_for(self, longname: str) -> str | None:
        return self._longname_to_id.get(longname)

    def link_to(
        self,
        longname: str,
        text: str | None = None,
        css_class: str | None = None,
        fragment_id: str | None = None,
    ) -> Markup:
        label = text if text is not None else longname
        url = self._longname_to_url.get(longname)
        if url is None and URL_TARGET_RE.match(longname or ""):
            url = longname
        if url is None:
            return escape(label)

        if fragment_id:
            page, _ = split_fragment(url)
            url = f"{page}#{fragment_id}"
        class_attr = Markup(' class="{}"').format(css_class) if css_class else ""
        return Markup('<a href="{}"{}>{}</a>').format(url, class_attr, label)

    def register_tutorial(self, name: str) -> str:
        existing = self._tutorial_to_url.get(name)
        if existing is not None:
            return existing
        url = quote(self.get_unique_filename(f"tutorial-{name}"), safe=URI_SAFE)
        self._tutorial_to_url[name] = url
        return url

    def tutorial_to_url(self, name: str) -> str | None:
        return self._tutorial_to_url.get(name)

    def tutorial_link(self, name: str, text: str | None = None) -> Markup:
        url = self._tutorial_to_url.get(name)
        label = text if text is not None else name
        if url is None:
            return Markup('<em class="disabled">Tutorial: {}</em>').format(label)
        return Markup('<a href="{}">{}</a>').format(url, label)

    def resolve_links(self, text: str) -> str:
        """Replace inline {@link}, {@linkcode}, {@linkplain} and {@tutorial} tags.

        ``text`` is rendered HTML, so tag bodies and labels are unescaped before
        lookup and escaped once when the link is built.
        """

        def replace(match: re.Match[str]) -> str:
            tag = match.group("tag")
            body = Markup(match.group("body")).unescape().strip()
            label = match.group("label")
            if label is not None:
                label = Markup(label).unescape()

            if "|" in body:
                target, _, inline_text = body.partition("|")
            else:
                target, _, inline_text = body.partition(" ")
            target = target.strip()
            link_text = label or inline_text.strip() or None

            if tag == "tutorial":
                return str(self.tutorial_link(target, link_text))

            if link_text is None:
                link_text = target
            if tag == "linkcode":
                link_text = Markup("<code>{}</code>").format(link_text)
            return self._link_markup(target, link_text)

        return INLINE_LINK_RE.sub(replace, text)

    def _link_markup(self, target: str, text: str) -> str:
        if target not in self._longname_to_url and "#" in target:
            longname, _, fragment = target.rpartition("#")
            if longname in self._longname_to_url:
                return str(self.link_to(longname, text, fragment_id=fragment))
        return str(self.link_to(target, text))


def display_name(longname: str) -> str:
    """Short display name for a longname, without any leading namespace."""
    return strip_external_quotes(re.sub(r"^[a-zA-Z]+:", "", shorten(longname).name))
