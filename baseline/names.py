"""Longname parsing and the navigation tree built from longnames.

A longname is a chain of names joined by scope punctuation: ``.`` (static),
``#`` (instance) and ``~`` (inner). Quoted segments such as
``external:"jquery.fn"`` are atomic, and a trailing ``(variation)`` is kept
apart from the name.
"""

from __future__ import annotations

from dataclasses import dataclass, field

PUNCTUATION_SCOPES = {".": "static", "#": "instance", "~": "inner"}
QUOTE = '"'


@dataclass(frozen=True)
class NameInfo:
    longname: str
    memberof: str
    scope: str
    punctuation: str
    name: str
    variation: str


@dataclass
class NavNode:
    longname: str
    name: str
    memberof: str
    children: dict[str, "NavNode"] = field(default_factory=dict)


def strip_external_quotes(name: str) -> str:
    if len(name) > 2 and name.startswith(QUOTE) and name.endswith(QUOTE):
        return name[1:-1]
    return name


def _split_variation(longname: str) -> tuple[str, str]:
    if not longname.endswith(")"):
        return longname, ""
    depth = 0
    for index in range(len(longname) - 1, -1, -1):
        char = longname[index]
        if char == ")":
            depth += 1
        elif char == "(":
            depth -= 1
            if depth == 0:
                if index == 0:
                    return longname, ""
                return longname[:index], longname[index + 1 : -1]
    return longname, ""


def _boundaries(longname: str) -> list[int]:
    """Indexes of scope punctuation that are outside quotes and not leading."""
    positions: list[int] = []
    in_quote = False
    for index, char in enumerate(longname):
        if char == '"':
            in_quote = not in_quote
            continue
        if in_quote or index == 0:
            continue
        if char in PUNCTUATION_SCOPES:
            positions.append(index)
    return positions


def shorten(longname: str) -> NameInfo:
    base, variation = _split_variation(longname)
    positions = _boundaries(base)
    if not positions:
        return NameInfo(
            longname=longname,
            memberof="",
            scope="",
            punctuation="",
            name=base,
            variation=variation,
        )

    cut = positions[-1]
    punctuation = base[cut]
    return NameInfo(
        longname=longname,
        memberof=base[:cut],
        scope=PUNCTUATION_SCOPES[punctuation],
        punctuation=punctuation,
        name=base[cut + 1 :],
        variation=variation,
    )


def split_longname(longname: str) -> list[str]:
    """Return every enclosing longname, outermost first, ending with the longname itself."""
    base, _ = _split_variation(longname)
    chunks = [base[:position] for position in _boundaries(base)]
    chunks.append(longname)
    return chunks


def longnames_to_tree(longnames: list[str]) -> dict[str, NavNode]:
    tree: dict[str, NavNode] = {}

    for longname in longnames:
        if not longname:
            continue
        level = tree
        for chunk in split_longname(longname):
            info = shorten(chunk)
            key = info.name
            node = level.get(key)
            if node is not None and node.longname != chunk:
                # `Foo.bar` and `Foo#bar` share a name but not a node
                key = f"{info.punctuation}{info.name}"
                node = level.get(key)
            if node is None:
                node = NavNode(longname=chunk, name=info.name, memberof=info.memberof)
                level[key] = node
            level = node.children

    return tree
