from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from baseline.config import StaticFilesConfig

logger = logging.getLogger(__name__)

RECURSE_DEPTH = 10


@dataclass(frozen=True)
class StaticFileFilter:
    include_pattern: re.Pattern[str] | None = None
    exclude_pattern: re.Pattern[str] | None = None
    exclude: tuple[Path, ...] = ()

    @classmethod
    def from_config(cls, config: StaticFilesConfig, *, base_dir: Path) -> "StaticFileFilter":
        return cls(
            include_pattern=re.compile(config.include_pattern) if config.include_pattern else None,
            exclude_pattern=re.compile(config.exclude_pattern) if config.exclude_pattern else None,
            exclude=tuple((base_dir / item).resolve() for item in config.exclude),
        )

    def is_included(self, path: Path) -> bool:
        text = path.as_posix()
        if self.include_pattern is not None and not self.include_pattern.search(text):
            return False
        if self.exclude_pattern is not None and self.exclude_pattern.search(text):
            return False
        resolved = path.resolve()
        for excluded in self.exclude:
            if resolved == excluded or excluded in resolved.parents:
                return False
        return True


@dataclass
class CopyReport:
    copied: list[Path] = field(default_factory=list)
    failed: list[tuple[Path, str]] = field(default_factory=list)


def scan_files(root: Path, *, depth: int = RECURSE_DEPTH) -> list[Path]:
    if root.is_file():
        return [root]
    if not root.is_dir():
        logger.warning("Static path does not exist: %s", root.as_posix())
        return []

    files: list[Path] = []
    for path in sorted(root.rglob("*"), key=lambda item: item.as_posix()):
        if not path.is_file():
            continue
        if len(path.relative_to(root).parts) > depth:
            continue
        files.append(path)
    return files


def copy_tree(
    source_root: Path,
    destination: Path,
    *,
    file_filter: StaticFileFilter | None = None,
    report: CopyReport | None = None,
) -> CopyReport:
    report = report if report is not None else CopyReport()
    base = source_root.parent if source_root.is_file() else source_root

    for path in scan_files(source_root):
        if file_filter is not None and not file_filter.is_included(path):
            continue
        target = destination / path.relative_to(base)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            logger.debug("Copying static file %s to %s", path.as_posix(), target.parent.as_posix())
            shutil.copy2(path, target)
        except OSError as exc:
            logger.error("Unable to copy static file %s: %s", path.as_posix(), exc)
            report.failed.append((path, str(exc)))
            continue
        report.copied.append(target)

    return report


def copy_static_files(
    template_static_dir: Path,
    destination: Path,
    config: StaticFilesConfig,
    *,
    base_dir: Path | None = None,
) -> CopyReport:
    """Copy the template's own assets, then any configured extra static paths."""
    report = copy_tree(template_static_dir, destination)

    if config.paths:
        root = base_dir or Path.cwd()
        file_filter = StaticFileFilter.from_config(config, base_dir=root)
        for raw_path in config.paths:
            source = Path(raw_path)
            if not source.is_absolute():
                source = root / source
            copy_tree(source, destination, file_filter=file_filter, report=report)

    return report
