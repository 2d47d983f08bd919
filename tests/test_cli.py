from __future__ import annotations

import json
from pathlib import Path

import pytest

import hunkwise.reconcile
from hunkwise.cli import EXIT_CONFIG_OR_INPUT, EXIT_OK, EXIT_RECONCILE_FAILED, main
from hunkwise.reconcile.base import Reconciler, ReconcileRequest

HUNK = "<<<<<<< SEARCH\nb\n=======\nB\n>>>>>>> REPLACE\n"


@pytest.fixture
def project(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    (tmp_path / "orig.txt").write_text("a\nb\nc\n", encoding="utf-8")
    (tmp_path / "new.txt").write_text("a\nB\nc\n", encoding="utf-8")
    (tmp_path / "change.txt").write_text(HUNK, encoding="utf-8")
    (tmp_path / "rewrite.txt").write_text("a\nB\n", encoding="utf-8")
    return tmp_path


class _StaticReconciler(Reconciler):
    def __init__(self, reply: str | Exception) -> None:
        self.reply = reply

    async def reconcile(
        self, request: ReconcileRequest, *, extra_error_context: list[str] | None = None
    ) -> str:
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def test_diff_prints_prefixed_lines(project: Path, capsys) -> None:
    assert main(["diff", "orig.txt", "new.txt"]) == EXIT_OK
    out = capsys.readouterr().out
    assert out.splitlines() == ["  a", "- b", "+ B", "  c", "  "]


def test_diff_json(project: Path, capsys) -> None:
    assert main(["diff", "orig.txt", "new.txt", "--json"]) == EXIT_OK
    data = json.loads(capsys.readouterr().out)
    assert data["lines"] == ["a", "b", "B", "c", ""]
    assert data["line_types"] == ["context", "removed", "added", "context", "context"]
    assert data["counts"] == {"context": 3, "added": 1, "removed": 1}


def test_diff_missing_file_is_an_input_error(project: Path, capsys) -> None:
    assert main(["diff", "orig.txt", "nope.txt"]) == EXIT_CONFIG_OR_INPUT
    err = capsys.readouterr().err
    assert "error: No such file: nope.txt" in err
    assert "hint:" in err


def test_preview_against_original(project: Path, capsys) -> None:
    assert main(["preview", "change.txt", "--against", "orig.txt", "--json"]) == EXIT_OK
    data = json.loads(capsys.readouterr().out)
    assert data["lines"] == ["a", "b", "B", "c", ""]
    assert data["line_types"] == ["context", "removed", "added", "context", "context"]


def test_preview_payload_only(project: Path, capsys) -> None:
    assert main(["preview", "change.txt"]) == EXIT_OK
    assert capsys.readouterr().out.splitlines() == ["- b", "+ B", "  "]


def test_preview_without_markers_fails(project: Path, capsys) -> None:
    assert main(["preview", "new.txt"]) == EXIT_CONFIG_OR_INPUT
    assert "no SEARCH/REPLACE markers" in capsys.readouterr().err


def test_apply_hunks_prints_merged_body(project: Path, capsys) -> None:
    assert main(["apply", "orig.txt", "change.txt"]) == EXIT_OK
    assert capsys.readouterr().out == "a\nB\nc\n"
    assert (project / "orig.txt").read_text(encoding="utf-8") == "a\nb\nc\n"


def test_apply_write_updates_file(project: Path, capsys) -> None:
    assert main(["apply", "orig.txt", "change.txt", "--write", "--json"]) == EXIT_OK
    data = json.loads(capsys.readouterr().out)
    assert data["strategy"] == "hunks"
    assert data["changed"] is True
    assert data["written"] is True
    assert data["error"] is None
    assert (project / "orig.txt").read_text(encoding="utf-8") == "a\nB\nc\n"


def test_apply_reports_skipped_blocks(project: Path, capsys) -> None:
    (project / "bad.txt").write_text(
        "<<<<<<< SEARCH\nzzz\n=======\ny\n>>>>>>> REPLACE\n", encoding="utf-8"
    )
    assert main(["apply", "orig.txt", "bad.txt", "--json"]) == EXIT_OK
    captured = capsys.readouterr()
    data = json.loads(captured.out)
    assert data["changed"] is False
    assert data["skipped"] == ["block 1: SEARCH text not found"]
    assert "Unapplied changes in 1 file(s):" in captured.err


def test_apply_rewrite_with_no_reconcile_keeps_file(project: Path, capsys) -> None:
    assert main(["apply", "orig.txt", "rewrite.txt", "--no-reconcile", "--json"]) == EXIT_OK
    data = json.loads(capsys.readouterr().out)
    assert data["strategy"] == "unchanged"
    assert data["merged_code"] == "a\nb\nc\n"


def test_apply_rewrite_without_api_key_is_a_config_error(project: Path, capsys) -> None:
    assert main(["apply", "orig.txt", "rewrite.txt"]) == EXIT_CONFIG_OR_INPUT
    err = capsys.readouterr().err
    assert "Missing API key: OPENAI_API_KEY" in err
    assert ".env" in err


def test_apply_rewrite_uses_reconciler(project: Path, capsys, monkeypatch) -> None:
    monkeypatch.setattr(
        hunkwise.reconcile,
        "build_reconciler",
        lambda llm, prompts: _StaticReconciler("a\nB\nc\n"),
    )
    assert main(["apply", "orig.txt", "rewrite.txt", "--write"]) == EXIT_OK
    assert (project / "orig.txt").read_text(encoding="utf-8") == "a\nB\nc\n"


def test_apply_reconcile_failure_keeps_original(project: Path, capsys, monkeypatch) -> None:
    monkeypatch.setattr(
        hunkwise.reconcile,
        "build_reconciler",
        lambda llm, prompts: _StaticReconciler(RuntimeError("provider down")),
    )
    assert main(["apply", "orig.txt", "rewrite.txt", "--write"]) == EXIT_RECONCILE_FAILED
    err = capsys.readouterr().err
    assert "error: RuntimeError: provider down" in err
    assert "left unchanged" in err
    assert (project / "orig.txt").read_text(encoding="utf-8") == "a\nb\nc\n"


def test_apply_reads_config_file(project: Path, capsys) -> None:
    (project / "hunkwise.toml").write_text(
        "version = 1\n[merge]\nreconcile = false\n", encoding="utf-8"
    )
    assert main(["apply", "orig.txt", "rewrite.txt", "--json"]) == EXIT_OK
    assert json.loads(capsys.readouterr().out)["strategy"] == "unchanged"


def test_apply_invalid_config_is_reported(project: Path, capsys) -> None:
    (project / "hunkwise.toml").write_text("version = 3\n", encoding="utf-8")
    assert main(["apply", "orig.txt", "change.txt"]) == EXIT_CONFIG_OR_INPUT
    assert "Unsupported config version" in capsys.readouterr().err


def test_version_flag(capsys) -> None:
    assert main(["--version"]) == 0
    assert capsys.readouterr().out.startswith("hunkwise ")


def test_unknown_command_is_a_usage_error(capsys) -> None:
    assert main(["frobnicate"]) == EXIT_CONFIG_OR_INPUT
