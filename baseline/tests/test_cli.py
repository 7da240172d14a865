from __future__ import annotations

import json
from pathlib import Path

import pytest

from baseline.cli import build_parser, run_publish, run_toc

BASELINE_ENV_VARS = (
    "BASELINE_OUTPUT_SOURCE_FILES",
    "BASELINE_ENCODING",
    "BASELINE_PAGE_TITLE_PREFIX",
    "BASELINE_STATIC_PATHS",
)


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _write_doclets(path: Path) -> None:
    _write(
        path,
        json.dumps(
            [
                {"kind": "class", "longname": "b", "name": "b"},
                {"kind": "class", "longname": "a", "name": "a"},
                {"kind": "member", "longname": "a.x", "name": "x", "memberof": "a", "scope": "static"},
                {"kind": "function", "longname": "a#hidden", "name": "hidden", "memberof": "a", "access": "private"},
            ]
        ),
    )


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch) -> None:
    for name in BASELINE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_publish_parser_accepts_flags() -> None:
    parser = build_parser()
    args = parser.parse_args(
        [
            "publish",
            "doclets.json",
            "--destination",
            "out",
            "--readme",
            "README.md",
            "--private",
            "--verbose",
        ]
    )

    assert args.command == "publish"
    assert args.doclets == Path("doclets.json")
    assert args.destination == Path("out")
    assert args.readme == Path("README.md")
    assert args.private is True
    assert args.verbose is True
    assert args.quiet is False


def test_publish_parser_rejects_verbose_with_quiet() -> None:
    parser = build_parser()

    with pytest.raises(SystemExit):
        parser.parse_args(["publish", "doclets.json", "--destination", "out", "--verbose", "--quiet"])


def test_run_toc_prints_sorted_entries(tmp_path: Path, capsys) -> None:
    doclets_path = tmp_path / "doclets.json"
    _write_doclets(doclets_path)
    args = build_parser().parse_args(["toc", str(doclets_path)])

    exit_code = run_toc(args)

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload == [
        {"label": '<a href="a.html">a</a>', "id": "a", "children": []},
        {"label": '<a href="b.html">b</a>', "id": "b", "children": []},
    ]


def test_run_publish_writes_site_and_reports_summary(tmp_path: Path, capsys) -> None:
    doclets_path = tmp_path / "doclets.json"
    _write_doclets(doclets_path)
    _write(tmp_path / "README.md", "# Demo\n\nWelcome.\n")
    _write(tmp_path / "tutorials" / "start.md", "# Start\n")
    _write(tmp_path / "conf.yaml", "templates:\n  baseline:\n    pageTitlePrefix: 'Demo: '\n")
    destination = tmp_path / "site"
    args = build_parser().parse_args(
        [
            "publish",
            str(doclets_path),
            "--destination",
            str(destination),
            "--config",
            str(tmp_path / "conf.yaml"),
            "--readme",
            str(tmp_path / "README.md"),
            "--tutorials",
            str(tmp_path / "tutorials"),
            "--quiet",
        ]
    )

    exit_code = run_publish(args)

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is True
    assert payload["failures"] == []
    assert payload["written"] == ["index.html", "a.html", "b.html", "tutorial-start.html", "scripts/toc.js"]

    index_page = (destination / "index.html").read_text(encoding="utf-8")
    assert "<h1>Demo</h1>" in index_page
    assert "<title>Demo: Home</title>" in index_page
    assert "hidden" not in (destination / "a.html").read_text(encoding="utf-8")


def test_run_publish_reports_invalid_config(tmp_path: Path, capsys) -> None:
    doclets_path = tmp_path / "doclets.json"
    _write_doclets(doclets_path)
    _write(tmp_path / "conf.yaml", "bogus: true\n")
    args = build_parser().parse_args(
        [
            "publish",
            str(doclets_path),
            "--destination",
            str(tmp_path / "site"),
            "--config",
            str(tmp_path / "conf.yaml"),
        ]
    )

    exit_code = run_publish(args)

    assert exit_code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is False
    assert payload["error_type"] == "ConfigError"
    assert not (tmp_path / "site").exists()


def _publish_args(tmp_path: Path, *extra: str):
    doclets_path = tmp_path / "doclets.json"
    _write_doclets(doclets_path)
    return build_parser().parse_args(
        ["publish", str(doclets_path), "--destination", str(tmp_path / "site"), *extra]
    )


def test_run_publish_reports_missing_readme(tmp_path: Path, capsys) -> None:
    args = _publish_args(tmp_path, "--readme", str(tmp_path / "missing.md"))

    exit_code = run_publish(args)

    assert exit_code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is False
    assert payload["error_type"] == "FileNotFoundError"
    assert not (tmp_path / "site").exists()


def test_run_publish_reports_bad_tutorial_hierarchy(tmp_path: Path, capsys) -> None:
    _write(tmp_path / "tutorials" / "start.md", "# Start\n")
    _write(tmp_path / "tutorials" / "toc.yaml", "- start\n- other\n")
    args = _publish_args(tmp_path, "--tutorials", str(tmp_path / "tutorials"))

    exit_code = run_publish(args)

    assert exit_code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["error_type"] == "ValueError"
    assert "mapping of tutorial names" in payload["message"]


def test_run_publish_reports_undecodable_tutorial(tmp_path: Path, capsys) -> None:
    (tmp_path / "tutorials").mkdir()
    (tmp_path / "tutorials" / "start.md").write_bytes(b"\xff\xfe\xfa")
    args = _publish_args(tmp_path, "--tutorials", str(tmp_path / "tutorials"))

    exit_code = run_publish(args)

    assert exit_code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["error_type"] == "UnicodeDecodeError"
