from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

import markdown
import yaml

from baseline.config import TemplateConfig, load_config, load_config_from_env
from baseline.links import LinkRegistry
from baseline.publish import build_toc, publish
from baseline.store import DocletLoadError, DocletStore
from baseline.symbols import SymbolIndex
from baseline.template import DEFAULT_TEMPLATE_PATH
from baseline.tutorials import load_tutorials

logger = logging.getLogger(__name__)

README_EXTENSIONS = ["fenced_code", "tables"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Publish doclets as a static documentation site")
    subparsers = parser.add_subparsers(dest="command", required=True)

    publish_parser = subparsers.add_parser("publish", help="Generate the documentation site")
    publish_parser.add_argument("doclets", type=Path, help="JSON file holding the parser's doclet array.")
    publish_parser.add_argument(
        "--destination",
        type=Path,
        required=True,
        help="Output directory for the generated site.",
    )
    publish_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML or JSON config file (templates.baseline section or a bare object).",
    )
    publish_parser.add_argument("--readme", type=Path, default=None, help="Markdown README for the index page.")
    publish_parser.add_argument("--tutorials", type=Path, default=None, help="Directory of tutorial pages.")
    publish_parser.add_argument(
        "--template",
        type=Path,
        default=DEFAULT_TEMPLATE_PATH,
        help="Template directory with views/ and static/ (default: built-in template).",
    )
    publish_parser.add_argument("--private", action="store_true", help="Include private symbols.")
    verbosity = publish_parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", action="store_true", help="Log debug output.")
    verbosity.add_argument("--quiet", action="store_true", help="Only log errors.")
    publish_parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output.")

    toc_parser = subparsers.add_parser("toc", help="Print the table of contents as JSON")
    toc_parser.add_argument("doclets", type=Path, help="JSON file holding the parser's doclet array.")
    toc_parser.add_argument("--private", action="store_true", help="Include private symbols.")
    toc_parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output.")

    return parser


def configure_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _print_payload(payload: Any, *, pretty: bool) -> None:
    if pretty:
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        print(json.dumps(payload, sort_keys=True))


def _error_payload(exc: Exception) -> dict[str, Any]:
    return {
        "ok": False,
        "error_type": exc.__class__.__name__,
        "message": str(exc),
    }


def render_readme(path: Path) -> str:
    return markdown.markdown(path.read_text(encoding="utf-8"), extensions=README_EXTENSIONS)


def run_publish(args: argparse.Namespace) -> int:
    configure_logging(verbose=args.verbose, quiet=args.quiet)

    try:
        base_config = load_config(args.config) if args.config is not None else TemplateConfig()
        config = load_config_from_env(base_config=base_config)
        store = DocletStore.from_path(args.doclets, include_private=args.private)
        readme = render_readme(args.readme) if args.readme is not None else None
        tutorials = load_tutorials(args.tutorials) if args.tutorials is not None else None
    except (OSError, ValueError, yaml.YAMLError) as exc:
        _print_payload(_error_payload(exc), pretty=args.pretty)
        return 1

    base_dir = args.config.resolve().parent if args.config is not None else Path.cwd()

    logger.info("Publishing %d doclets to %s", len(store), args.destination)
    result = publish(
        store.get(),
        args.destination,
        config=config,
        tutorials=tutorials,
        readme=readme,
        template_path=args.template,
        base_dir=base_dir,
    )
    _print_payload(result.as_dict(), pretty=args.pretty)
    return 0 if result.ok else 1


def run_toc(args: argparse.Namespace) -> int:
    try:
        store = DocletStore.from_path(args.doclets, include_private=args.private)
    except DocletLoadError as exc:
        _print_payload(_error_payload(exc), pretty=args.pretty)
        return 1

    registry = LinkRegistry()
    index = SymbolIndex(registry, register_source_links=False).ingest(store.get()).finalize()
    entries = build_toc(index.nav_tree, registry)
    _print_payload([entry.model_dump(mode="json") for entry in entries], pretty=args.pretty)
    return 0


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if args.command == "publish":
        return run_publish(args)
    if args.command == "toc":
        return run_toc(args)
    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
