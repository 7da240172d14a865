from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from baseline.schemas import Doclet

logger = logging.getLogger(__name__)

ANONYMOUS_MEMBEROF = "<anonymous>"


class DocletLoadError(ValueError):
    def __init__(self, *, source: str, details: str) -> None:
        super().__init__(f"unable to load doclets from {source}: {details}")
        self.source = source
        self.details = details


def parse_doclets(payload: Any, *, source: str = "<doclets>") -> list[Doclet]:
    if not isinstance(payload, list):
        raise DocletLoadError(source=source, details="expected a JSON array of doclets")

    doclets: list[Doclet] = []
    for position, item in enumerate(payload):
        if not isinstance(item, dict):
            raise DocletLoadError(source=source, details=f"item {position} is not an object")
        try:
            doclets.append(Doclet.model_validate(item))
        except ValidationError as exc:
            raise DocletLoadError(
                source=source,
                details=f"item {position}: {exc.errors()[0]['msg']}",
            ) from exc
    return doclets


def load_doclets(path: Path) -> list[Doclet]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise DocletLoadError(source=path.as_posix(), details=str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise DocletLoadError(source=path.as_posix(), details=f"JSON parse error: {exc.msg}") from exc
    return parse_doclets(payload, source=path.as_posix())


def is_prunable(doclet: Doclet, *, include_private: bool = False) -> bool:
    if doclet.undocumented or doclet.ignore:
        return True
    if doclet.memberof == ANONYMOUS_MEMBEROF:
        return True
    if doclet.access == "private" and not include_private:
        return True
    return False


def sort_key(doclet: Doclet) -> tuple[str, str, str]:
    return (doclet.longname or "", doclet.version or "", doclet.since or "")


class DocletStore:
    """Parser output after pruning, ordered by longname, version and since."""

    def __init__(self, doclets: Iterable[Doclet], *, include_private: bool = False) -> None:
        kept: list[Doclet] = []
        pruned = 0
        for doclet in doclets:
            if is_prunable(doclet, include_private=include_private):
                pruned += 1
                continue
            kept.append(doclet)
        if pruned:
            logger.debug("Pruned %d doclets", pruned)
        # sorted() is stable, so ties keep parser order
        self._doclets = sorted(kept, key=sort_key)

    @classmethod
    def from_path(cls, path: Path, *, include_private: bool = False) -> "DocletStore":
        return cls(load_doclets(path), include_private=include_private)

    def get(self) -> list[Doclet]:
        return list(self._doclets)

    def __len__(self) -> int:
        return len(self._doclets)
