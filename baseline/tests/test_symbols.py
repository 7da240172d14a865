from __future__ import annotations

from typing import Any

import pytest

from baseline.links import LinkRegistry, LinkResolutionError
from baseline.schemas import Category, Doclet
from baseline.symbols import IndexStateError, SymbolIndex, common_path_prefix


def _doclet(kind: str, longname: str, **fields: Any) -> Doclet:
    fields.setdefault("name", longname)
    return Doclet.model_validate({"kind": kind, "longname": longname, **fields})


def _index(*doclets: Doclet) -> SymbolIndex:
    return SymbolIndex(LinkRegistry()).ingest(doclets)


def test_constant_is_filed_as_member_and_unknown_kinds_are_skipped() -> None:
    index = _index(
        _doclet("class", "Foo"),
        _doclet("constant", "Foo.LIMIT", name="LIMIT", memberof="Foo", scope="static"),
        _doclet("file", "lib/foo.js"),
    )

    members = index.symbols.get(Category.members)
    assert [symbol.longname for symbol in members] == ["Foo.LIMIT"]
    assert members[0].kind == "member"
    assert members[0].doclet.kind == "constant"
    assert [doclet.kind for doclet in index.skipped] == ["file"]
    assert len(index.retained) == 2


def test_globals_live_only_in_the_global_bucket() -> None:
    index = _index(
        _doclet("function", "helper"),
        _doclet("typedef", "Options"),
        _doclet("class", "Foo"),
    )

    assert [symbol.longname for symbol in index.globals] == ["helper", "Options"]
    assert "helper" not in index.by_longname
    assert "Options" not in index.by_longname
    assert all("helper" not in [s.longname for s in bucket] for bucket in index.by_memberof.values())
    assert "Foo" in index.by_longname


def test_short_paths_strip_common_directory_prefix() -> None:
    assert common_path_prefix(["/a/b/x.js", "/a/b/c/y.js"]) == "/a/b/"
    assert common_path_prefix(["x.js", "y.js"]) == ""
    assert common_path_prefix([]) == ""

    index = _index(
        _doclet("class", "X", meta={"path": "/a/b", "filename": "x.js", "lineno": 1}),
        _doclet("class", "Y", meta={"path": "/a/b/c", "filename": "y.js", "lineno": 3}),
    ).finalize()

    assert index.short_paths == {"/a/b/x.js": "x.js", "/a/b/c/y.js": "c/y.js"}
    assert [symbol.shortpath for symbol in index.retained] == ["x.js", "c/y.js"]
    assert index.registry.url_for("x.js") == "x.js.html"
    assert index.registry.url_for("c/y.js") == "c_y.js.html"


def test_null_meta_path_means_no_directory() -> None:
    index = _index(_doclet("class", "X", meta={"path": "null", "filename": "x.js"})).finalize()

    assert index.short_paths == {"x.js": "x.js"}


def test_source_links_are_not_registered_when_disabled() -> None:
    registry = LinkRegistry()
    index = SymbolIndex(registry, register_source_links=False)
    index.ingest([_doclet("class", "X", meta={"path": "/src", "filename": "x.js"})]).finalize()

    assert index.retained[0].shortpath == "x.js"
    assert registry.url_for("x.js") is None


def test_module_export_is_merged_into_its_module() -> None:
    index = _index(
        _doclet("module", "module:foo", name="foo"),
        _doclet("class", "module:foo"),
        _doclet("module", "module:bar", name="bar"),
    ).finalize()

    foo, bar = index.symbols.get(Category.modules)
    assert foo.exports is not None
    assert foo.exports.doclet.kind == "class"
    assert foo.exports.name == 'require("foo")'
    assert bar.exports is None
    assert index.symbols.get(Category.classes) == []
    assert index.registry.url_for("module:foo") == "module-foo.html"


def test_listeners_are_attached_to_events_once() -> None:
    index = _index(
        _doclet("class", "Foo"),
        _doclet("event", "Foo#event:ready", name="ready", memberof="Foo", scope="instance"),
        _doclet(
            "function",
            "Foo#onReady",
            name="onReady",
            memberof="Foo",
            scope="instance",
            listens=["Foo#event:ready", "Foo#event:ready"],
        ),
    ).finalize()

    (event,) = index.symbols.get(Category.events)
    assert event.listeners == ["Foo#onReady"]


def test_ancestors_follow_memberof_and_truncate_on_missing_parent() -> None:
    index = _index(
        _doclet("namespace", "a"),
        _doclet("namespace", "a.b", name="b", memberof="a", scope="static"),
        _doclet("function", "a.b.c", name="c", memberof="a.b", scope="static"),
        _doclet("member", "x.y", name="y", memberof="x", scope="static"),
    )

    ancestors = {symbol.longname: symbol.ancestors for symbol in index.retained}
    assert ancestors == {"a": [], "a.b": ["a"], "a.b.c": ["a", "a.b"], "x.y": []}


def test_see_entries_with_local_anchor_point_at_own_page() -> None:
    index = _index(_doclet("class", "Foo", see=["#bar", "Other"]))

    assert index.retained[0].see == ["{@link Foo#bar|bar}", "Other"]


def test_examples_are_split_into_caption_and_code() -> None:
    index = _index(
        _doclet("class", "Foo", examples=["<caption>Usage</caption>\nnew Foo();", "Foo.make();"]),
    )

    examples = index.retained[0].examples
    assert [(example.caption, example.code) for example in examples] == [
        ("Usage", "new Foo();"),
        ("", "Foo.make();"),
    ]


def test_ids_are_unique_within_a_page() -> None:
    index = _index(
        _doclet("class", "Foo"),
        _doclet("function", "Foo#bar", name="bar", memberof="Foo", scope="instance"),
        _doclet("function", "Foo#bar", name="bar", memberof="Foo", scope="instance", variation="2"),
        _doclet("member", "Foo.bar", name="bar", memberof="Foo", scope="static"),
        _doclet("class", "Baz"),
        _doclet("function", "Baz#bar", name="bar", memberof="Baz", scope="instance"),
    ).finalize()

    ids = [(symbol.longname, symbol.id) for symbol in index.retained]
    assert ids == [
        ("Foo", "Foo"),
        ("Foo#bar", "bar"),
        ("Foo#bar", "bar_"),
        ("Foo.bar", ".bar"),
        ("Baz", "Baz"),
        ("Baz#bar", "bar"),
    ]
    assert index.registry.url_for("Foo#bar") == "Foo.html#bar"
    assert index.registry.url_for("Foo.bar") == "Foo.html#.bar"


def test_output_longnames_keep_insertion_order() -> None:
    index = _index(
        _doclet("class", "b"),
        _doclet("class", "a"),
        _doclet("function", "a#run", name="run", memberof="a", scope="instance"),
        _doclet("namespace", "a.ns", name="ns", memberof="a", scope="static"),
    ).finalize()

    assert index.output_longnames() == ["b", "a", "a.ns"]
    assert list(index.nav_tree) == ["b", "a"]
    assert list(index.nav_tree["a"].children) == ["ns"]
    assert index.needs_file("a.ns") is True
    assert index.needs_file("a#run") is False


def test_lifecycle_misuse_raises() -> None:
    index = _index(_doclet("class", "Foo")).finalize()

    with pytest.raises(IndexStateError, match="already finalized"):
        index.finalize()
    with pytest.raises(IndexStateError, match="cannot add doclet"):
        index.add_doclet(_doclet("class", "Bar"))


def test_id_assignment_requires_a_registered_link(monkeypatch) -> None:
    registry = LinkRegistry()
    monkeypatch.setattr(registry, "create_link", lambda symbol, needs_file=(): "")
    index = SymbolIndex(registry).ingest([_doclet("class", "Foo")])

    with pytest.raises(LinkResolutionError, match="Foo"):
        index.finalize()


def test_package_accessors() -> None:
    index = _index(
        _doclet("package", "package:demo", name="demo"),
        _doclet("class", "Foo"),
    ).finalize()

    package = index.get_package()
    assert package is not None
    assert package.name == "demo"
    assert index.get_packages() == [package]
    assert index.output_longnames() == ["Foo"]


def test_external_names_lose_their_quotes_but_stay_flat() -> None:
    index = _index(_doclet("external", 'external:"jquery.fn"', name='"jquery.fn"')).finalize()

    (symbol,) = index.symbols.get(Category.externals)
    assert symbol.name == "jquery.fn"
    assert symbol.longname == 'external:"jquery.fn"'
    assert list(index.by_longname) == ['external:"jquery.fn"']
    assert list(index.nav_tree) == ['external:"jquery.fn"']
    assert index.nav_tree['external:"jquery.fn"'].children == {}
    assert index.registry.url_for('external:"jquery.fn"') == "external-_jquery.fn_.html"
    assert symbol.id == "jquery.fn"


def test_ancestors_follow_the_first_symbol_ingested_for_a_parent() -> None:
    index = _index(
        _doclet("namespace", "x"),
        _doclet("namespace", "y"),
        _doclet("namespace", "a", memberof="x", scope="static"),
        _doclet("class", "a", memberof="y", scope="static"),
        _doclet("function", "a.c", name="c", memberof="a", scope="static"),
    )

    first = index.by_longname["a"].first()
    assert first is not None
    assert first.kind == "namespace"
    assert index.retained[-1].ancestors == ["x", "a"]
