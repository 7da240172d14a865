"""Symbol graph built from a sorted doclet collection.

`SymbolIndex.ingest` files each doclet into the category, longname, memberof,
global and listener indices; `SymbolIndex.finalize` resolves module exports,
short source paths, event listeners, the navigation tree, and finally the
URL and page-unique id of every symbol.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from urllib.parse import unquote

from baseline.links import LinkRegistry, LinkResolutionError, split_fragment
from baseline.names import NavNode, longnames_to_tree, strip_external_quotes
from baseline.schemas import (
    MODULE_PREFIX,
    OUTPUT_FILE_CATEGORIES,
    Category,
    Doclet,
    Example,
    category_for,
)

logger = logging.getLogger(__name__)

LOCAL_ANCHOR_MARKER = "#"


class IndexStateError(RuntimeError):
    def __init__(self, *, operation: str, details: str) -> None:
        super().__init__(f"cannot {operation}: {details}")
        self.operation = operation
        self.details = details


@dataclass(slots=True, eq=False)
class Symbol:
    """A doclet plus everything the publisher derives for it."""

    doclet: Doclet
    kind: str
    name: str | None
    category: Category | None = None
    examples: list[Example] = field(default_factory=list)
    see: list[str] = field(default_factory=list)
    ancestors: list[str] = field(default_factory=list)
    listeners: list[str] = field(default_factory=list)
    exports: "Symbol | None" = None
    id: str | None = None
    source_path: str | None = None
    shortpath: str | None = None

    @property
    def longname(self) -> str | None:
        return self.doclet.longname

    @property
    def memberof(self) -> str | None:
        return self.doclet.memberof

    @property
    def scope(self) -> str | None:
        return self.doclet.scope

    @property
    def is_global(self) -> bool:
        return self.doclet.is_global()


class SymbolBucket:
    """Symbols grouped by category, in insertion order."""

    def __init__(self) -> None:
        self._by_category: dict[Category, list[Symbol]] = {category: [] for category in Category}
        self._first: Symbol | None = None

    def add(self, symbol: Symbol, category: Category) -> None:
        if self._first is None:
            self._first = symbol
        self._by_category[category].append(symbol)

    def get(self, category: Category) -> list[Symbol]:
        return self._by_category[category]

    def has_symbols(self, category: Category | None = None) -> bool:
        if category is not None:
            return bool(self._by_category[category])
        return any(self._by_category.values())

    def first(self) -> Symbol | None:
        """The earliest symbol added, whatever its category."""
        return self._first

    def categories(self) -> dict[str, list[Symbol]]:
        """Non-empty categories keyed by name, for views."""
        return {category.value: symbols for category, symbols in self._by_category.items() if symbols}

    def __iter__(self) -> Iterator[Symbol]:
        for symbols in self._by_category.values():
            yield from symbols

    def __len__(self) -> int:
        return sum(len(symbols) for symbols in self._by_category.values())


def common_path_prefix(paths: list[str]) -> str:
    """Longest shared directory prefix, with forward slashes and a trailing slash."""
    if not paths:
        return ""

    directories = [path.replace("\\", "/").split("/")[:-1] for path in paths]
    common: list[str] = []
    for index, segment in enumerate(directories[0]):
        if all(len(parts) > index and parts[index] == segment for parts in directories[1:]):
            common.append(segment)
        else:
            break

    if not common:
        return ""
    return "/".join(common) + "/"


class SymbolIndex:
    def __init__(self, registry: LinkRegistry, *, register_source_links: bool = True) -> None:
        self.registry = registry
        self.register_source_links = register_source_links

        self.symbols = SymbolBucket()
        self.globals = SymbolBucket()
        self.by_longname: dict[str, SymbolBucket] = {}
        self.by_memberof: dict[str, SymbolBucket] = {}
        self.listeners: dict[str, SymbolBucket] = {}
        self.short_paths: dict[str, str | None] = {}
        self.nav_tree: dict[str, NavNode] = {}
        self.skipped: list[Doclet] = []

        self._needs_file: dict[str, None] = {}
        self._module_exports: list[Symbol] = []
        self._retained: list[Symbol] = []
        self._claimed_fragments: set[str] = set()
        self._finalized = False

    def ingest(self, doclets: Iterable[Doclet]) -> "SymbolIndex":
        for doclet in doclets:
            self.add_doclet(doclet)
        return self

    def add_doclet(self, doclet: Doclet) -> Symbol | None:
        if self._finalized:
            raise IndexStateError(operation="add doclet", details="index is already finalized")

        symbol = self._categorize(doclet)
        if symbol is None:
            return None

        self._track_listeners(symbol)
        self._process_examples(symbol)
        self._process_see(symbol)
        self._add_source_path(symbol)
        self._add_ancestors(symbol)
        self._retained.append(symbol)
        return symbol

    def _categorize(self, doclet: Doclet) -> Symbol | None:
        category = category_for(doclet)
        symbol = Symbol(doclet=doclet, kind=doclet.kind, name=doclet.name, category=category)

        if doclet.kind == "constant":
            symbol.kind = "member"
        elif doclet.kind == "external" and symbol.name:
            # quoted names like "jquery.fn" are flat names, not a namespace hierarchy
            symbol.name = strip_external_quotes(symbol.name)

        if doclet.kind in {"class", "function"} and doclet.is_module_export():
            logger.debug("Holding %s as the export of its module", doclet.longname)
            self._module_exports.append(symbol)
            return symbol

        if category is None:
            logger.debug(
                "Not tracking doclet with unknown kind %s. Name: %s, longname: %s",
                doclet.kind,
                doclet.name,
                doclet.longname,
            )
            self.skipped.append(doclet)
            return None

        self.symbols.add(symbol, category)
        self._track_by_category(symbol, category)
        return symbol

    def _track_by_category(self, symbol: Symbol, category: Category) -> None:
        if symbol.is_global:
            # globals are tracked here and nowhere else
            self.globals.add(symbol, category)
            return

        longname = symbol.longname
        if not longname:
            return

        self.by_longname.setdefault(longname, SymbolBucket()).add(symbol, category)
        if symbol.memberof:
            self.by_memberof.setdefault(symbol.memberof, SymbolBucket()).add(symbol, category)
        if category in OUTPUT_FILE_CATEGORIES:
            self._needs_file[longname] = None

    def _track_listeners(self, symbol: Symbol) -> None:
        for event_longname in symbol.doclet.listens or []:
            self.listeners.setdefault(event_longname, SymbolBucket()).add(symbol, Category.listeners)

    def _process_examples(self, symbol: Symbol) -> None:
        symbol.examples = [Example.from_text(example) for example in symbol.doclet.examples or []]

    def _process_see(self, symbol: Symbol) -> None:
        see: list[str] = []
        for entry in symbol.doclet.see or []:
            anchor = entry[len(LOCAL_ANCHOR_MARKER) :]
            if entry.startswith(LOCAL_ANCHOR_MARKER) and anchor and not anchor[0].isspace() and symbol.longname:
                # resolved once the page exists, like any other inline link
                target = anchor.split()[0]
                entry = f"{{@link {symbol.longname}#{target}|{target}}}"
            see.append(entry)
        symbol.see = see

    def _add_source_path(self, symbol: Symbol) -> None:
        meta = symbol.doclet.meta
        if meta is None:
            return
        source_path = meta.source_path()
        if source_path is None:
            return
        symbol.source_path = source_path
        self.short_paths.setdefault(source_path, None)

    def _add_ancestors(self, symbol: Symbol) -> None:
        ancestors: list[str] = []
        seen = {symbol.longname}
        parent_longname = symbol.memberof

        while parent_longname and parent_longname not in seen:
            bucket = self.by_longname.get(parent_longname)
            parent = bucket.first() if bucket is not None else None
            if parent is None:
                break
            ancestors.insert(0, parent_longname)
            seen.add(parent_longname)
            parent_longname = parent.memberof

        symbol.ancestors = ancestors

    def finalize(self) -> "SymbolIndex":
        if self._finalized:
            raise IndexStateError(operation="finalize", details="index is already finalized")

        self._resolve_module_exports()
        self._find_short_paths()
        self._add_listeners()
        self.nav_tree = longnames_to_tree(self.output_longnames())

        for symbol in self._retained:
            if symbol.longname:
                self.registry.create_link(symbol, self._needs_file)
            if symbol.source_path is not None:
                symbol.shortpath = self.short_paths.get(symbol.source_path)
            self._add_id(symbol)

        if self.register_source_links:
            for shortpath in self.short_paths.values():
                if shortpath:
                    self.registry.register_link(shortpath)

        self._finalized = True
        return self

    def _resolve_module_exports(self) -> None:
        candidates: dict[str, Symbol] = {}
        for exported in self._module_exports:
            candidates.setdefault(exported.longname or "", exported)

        renamed: set[Symbol] = set()
        for module in self.symbols.get(Category.modules):
            exported = candidates.get(module.longname or "")
            if exported is None:
                continue
            module.exports = exported
            if exported not in renamed and exported.name:
                exported.name = exported.name.replace(MODULE_PREFIX, 'require("', 1) + '")'
                renamed.add(exported)

        self._module_exports = []

    def _find_short_paths(self) -> None:
        paths = list(self.short_paths)
        if not paths:
            return
        prefix = common_path_prefix(paths)
        for path in paths:
            normalized = path.replace("\\", "/")
            self.short_paths[path] = normalized[len(prefix) :]

    def _add_listeners(self) -> None:
        for event in self.symbols.get(Category.events):
            bucket = self.listeners.get(event.longname or "")
            if bucket is None:
                continue
            for listener in bucket.get(Category.listeners):
                if listener.longname and listener.longname not in event.listeners:
                    event.listeners.append(listener.longname)

    def _add_id(self, symbol: Symbol) -> None:
        longname = symbol.longname
        if not longname:
            return

        url = self.registry.url_for(longname)
        if url is None:
            raise LinkResolutionError(longname=longname, details="no URL was registered before id assignment")

        _, fragment = split_fragment(url)
        if fragment:
            reserved = self.registry.fragment_for(longname)
            if reserved is not None and longname not in self._claimed_fragments:
                # the fragment was made unique on its page when the link was created
                self._claimed_fragments.add(longname)
                symbol.id = reserved
                return
            candidate = reserved or unquote(fragment)
        else:
            candidate = symbol.name or ""

        if candidate:
            symbol.id = self.registry.get_unique_id(url, candidate)

    def output_longnames(self) -> list[str]:
        return list(self._needs_file)

    def needs_file(self, longname: str) -> bool:
        return longname in self._needs_file

    def symbols_for(self, longname: str) -> SymbolBucket:
        return self.by_longname.get(longname) or SymbolBucket()

    def members_of(self, longname: str) -> SymbolBucket:
        return self.by_memberof.get(longname) or SymbolBucket()

    def get_packages(self) -> list[Symbol]:
        return list(self.symbols.get(Category.packages))

    def get_package(self) -> Symbol | None:
        packages = self.symbols.get(Category.packages)
        return packages[0] if packages else None

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def retained(self) -> list[Symbol]:
        return list(self._retained)
