"""Generate the documentation site from a finalized symbol index."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import unquote

from baseline import assets
from baseline.config import TemplateConfig
from baseline.links import LinkRegistry, LinkResolutionError, display_name, split_fragment
from baseline.names import NavNode
from baseline.schemas import OUTPUT_FILE_CATEGORIES, PAGE_TITLES, Category, Doclet, TocEntry
from baseline.symbols import SymbolIndex
from baseline.template import DEFAULT_TEMPLATE_PATH, Template
from baseline.tutorials import Tutorial, flatten_tutorials

logger = logging.getLogger(__name__)

PACKAGE_PREFIX = "package:"
TOC_URL = "scripts/toc.js"


@dataclass(frozen=True)
class PublishFailure:
    stage: str
    path: str
    message: str

    def as_dict(self) -> dict[str, Any]:
        return {"stage": self.stage, "path": self.path, "message": self.message}


@dataclass
class PublishResult:
    destination: Path
    written: list[Path] = field(default_factory=list)
    copied: list[Path] = field(default_factory=list)
    failures: list[PublishFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def as_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "destination": self.destination.as_posix(),
            "written": [path.relative_to(self.destination).as_posix() for path in self.written],
            "copied": len(self.copied),
            "failures": [failure.as_dict() for failure in self.failures],
        }


def build_toc(nav_tree: dict[str, NavNode], registry: LinkRegistry) -> list[TocEntry]:
    """Depth-first walk; siblings are visited in sorted key order."""
    entries: list[TocEntry] = []
    for key in sorted(nav_tree):
        node = nav_tree[key]
        entries.append(
            TocEntry(
                label=str(registry.link_to(node.longname, display_name(node.longname))),
                id=node.longname,
                children=build_toc(node.children, registry),
            )
        )
    return entries


class PublishJob:
    def __init__(
        self,
        template: Template,
        index: SymbolIndex,
        destination: Path,
        *,
        config: TemplateConfig | None = None,
        base_dir: Path | None = None,
    ) -> None:
        if not index.finalized:
            raise ValueError("symbol index must be finalized before publishing")
        self.template = template
        self.index = index
        self.registry = index.registry
        self.destination = destination
        self.config = config or TemplateConfig()
        self.base_dir = base_dir or Path.cwd()
        self.package = index.get_package()
        self.result = PublishResult(destination=destination)

    def page_title(self, title: str) -> str:
        return f"{self.config.page_title_prefix}{title}"

    def output_path(self, url: str) -> Path:
        page, _ = split_fragment(url)
        return self.destination / unquote(page)

    def create_output_directory(self) -> "PublishJob":
        logger.debug("Creating the output directory %s", self.destination)
        self.destination.mkdir(parents=True, exist_ok=True)
        return self

    def write(self, path: Path, text: str) -> bool:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding=self.config.encoding)
        except OSError as exc:
            logger.error("Unable to save the output file %s: %s", path, exc)
            self.result.failures.append(PublishFailure(stage="write", path=path.as_posix(), message=str(exc)))
            return False
        self.result.written.append(path)
        return True

    def generate(
        self,
        view_name: str,
        data: dict[str, Any],
        url: str,
        *,
        resolve_links: bool = False,
    ) -> "PublishJob":
        data.setdefault("package", self.package)
        data.setdefault("page_title_prefix", self.config.page_title_prefix)

        logger.debug("Rendering template output for %s with view %s", url, view_name)
        output = self.template.render(view_name, data)
        if resolve_links:
            output = self.registry.resolve_links(output)

        self.write(self.output_path(url), output)
        return self

    def generate_source_files(self) -> "PublishJob":
        if not self.config.output_source_files:
            logger.debug("Pretty-printed source files are disabled; not generating them")
            return self

        for raw_path, shortpath in self.index.short_paths.items():
            if not shortpath:
                continue
            url = self.registry.url_for(shortpath)
            if url is None:
                raise LinkResolutionError(longname=shortpath, details="source file link was never registered")

            source = Path(raw_path)
            if not source.is_absolute():
                source = self.base_dir / source
            try:
                logger.debug("Generating pretty-printed source for %s", shortpath)
                code = source.read_text(encoding=self.config.encoding)
            except (OSError, UnicodeDecodeError) as exc:
                logger.error("Unable to generate output for source file %s: %s", raw_path, exc)
                self.result.failures.append(PublishFailure(stage="source", path=raw_path, message=str(exc)))
                continue

            data = {
                "code": code,
                "shortpath": shortpath,
                "page_title": self.page_title(PAGE_TITLES["sources"] + shortpath),
            }
            self.generate("source", data, url)

        return self

    def generate_globals(self) -> "PublishJob":
        globals_bucket = self.index.globals
        if not globals_bucket.has_symbols():
            logger.debug("Not generating a globals page because no globals were found")
            return self

        logger.debug("Generating globals page as %s", self.registry.global_url)
        data = {
            "members": globals_bucket.categories(),
            "page_title": self.page_title(PAGE_TITLES[Category.globals.value]),
        }
        return self.generate("globals", data, self.registry.global_url, resolve_links=True)

    def generate_index(self, readme: str | None = None) -> "PublishJob":
        logger.debug("Generating index page as %s", self.registry.index_url)
        title = self.package.name if self.package is not None and self.package.name else "Home"
        data = {
            "packages": self.index.get_packages(),
            "readme": readme,
            "page_title": self.page_title(title),
        }
        return self.generate("index", data, self.registry.index_url, resolve_links=True)

    def generate_by_longname(self, longname: str) -> "PublishJob":
        # package info is shown on the index page
        if longname.startswith(PACKAGE_PREFIX):
            return self

        symbols = self.index.symbols_for(longname)
        categories = [
            category
            for category in Category
            if category in OUTPUT_FILE_CATEGORIES and symbols.has_symbols(category)
        ]
        if not categories:
            return self

        url = self.registry.url_for(longname)
        if url is None:
            raise LinkResolutionError(longname=longname, details="page link was never registered")

        docs = [symbol for category in categories for symbol in symbols.get(category)]
        data = {
            "docs": docs,
            "categories": [category.value for category in categories],
            "members": self.index.members_of(longname).categories(),
            "page_title": self.page_title(PAGE_TITLES[categories[0].value] + display_name(longname)),
        }
        return self.generate("symbol", data, url, resolve_links=True)

    def generate_symbol_pages(self) -> "PublishJob":
        for longname in self.index.output_longnames():
            self.generate_by_longname(longname)
        return self

    def generate_tutorials(self, root: Tutorial) -> "PublishJob":
        for tutorial in flatten_tutorials(root):
            url = self.registry.tutorial_to_url(tutorial.name)
            if url is None:
                raise LinkResolutionError(longname=tutorial.name, details="tutorial link was never registered")
            data = {
                "page_title": self.page_title(PAGE_TITLES["tutorials"] + tutorial.title),
                "header": tutorial.title,
                "content": tutorial.parse(),
                "children": tutorial.children,
            }
            self.generate("tutorial", data, url, resolve_links=True)
        return self

    def toc_data(self) -> list[TocEntry]:
        return build_toc(self.index.nav_tree, self.registry)

    def generate_toc_data(self) -> "PublishJob":
        logger.debug("Generating the JS file for the table of contents")
        payload = [entry.model_dump(mode="json") for entry in self.toc_data()]
        return self.generate("toc", {"toc_json": json.dumps(payload, indent=2)}, TOC_URL)

    def copy_static_files(self) -> "PublishJob":
        report = assets.copy_static_files(
            self.template.static_dir,
            self.destination,
            self.config.static_files,
            base_dir=self.base_dir,
        )
        self.result.copied.extend(report.copied)
        for path, message in report.failed:
            self.result.failures.append(PublishFailure(stage="static", path=path.as_posix(), message=message))
        return self


def publish(
    doclets: list[Doclet],
    destination: Path,
    *,
    config: TemplateConfig | None = None,
    tutorials: Tutorial | None = None,
    readme: str | None = None,
    template_path: Path | None = None,
    base_dir: Path | None = None,
) -> PublishResult:
    """Index the doclets, then write every page of the site under ``destination``."""
    config = config or TemplateConfig()
    tutorial_root = tutorials or Tutorial(name="", title="")

    registry = LinkRegistry()
    for tutorial in flatten_tutorials(tutorial_root):
        registry.register_tutorial(tutorial.name)

    index = SymbolIndex(registry, register_source_links=config.output_source_files)
    index.ingest(doclets).finalize()

    template = Template(template_path or DEFAULT_TEMPLATE_PATH, registry)
    job = PublishJob(template, index, destination, config=config, base_dir=base_dir)

    # source pages first so later pages can link to them
    (
        job.create_output_directory()
        .generate_source_files()
        .generate_globals()
        .generate_index(readme)
        .generate_symbol_pages()
        .generate_tutorials(tutorial_root)
        .generate_toc_data()
        .copy_static_files()
    )
    return job.result
