from __future__ import annotations

import json
from pathlib import Path

import pytest

from folio.cli.ingest_books import _collect_inputs, main as ingest_cli_main
from folio.storage.repository import LibraryRepository


def test_cli_reports_duplicate_on_repeated_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "book.txt"
    source.write_text("Repeat\n\nCLI duplicate test body.", encoding="utf-8")
    db_path = tmp_path / "library.db"

    exit_code_first = ingest_cli_main(["--path", str(source), "--db-path", str(db_path)])
    payload_first = json.loads(capsys.readouterr().out)

    exit_code_second = ingest_cli_main(["--path", str(source), "--db-path", str(db_path)])
    payload_second = json.loads(capsys.readouterr().out)

    assert exit_code_first == 0
    assert exit_code_second == 0
    assert payload_first["processed"] == 1
    assert payload_first["results"][0]["status"] == "success"
    assert payload_first["results"][0]["metadata"]["title"] == "Repeat"
    assert payload_second["results"][0]["status"] == "duplicate"
    assert payload_second["results"][0]["duplicateOf"] == payload_first["results"][0]["bookId"]

    with LibraryRepository(db_path) as repo:
        assert repo.count_books() == 1


def test_cli_exits_non_zero_when_a_file_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    books = tmp_path / "books"
    books.mkdir()
    (books / "a.txt").write_text("Small", encoding="utf-8")
    (books / "b.txt").write_text("This one is far too large", encoding="utf-8")

    exit_code = ingest_cli_main(
        ["--path", str(books), "--db-path", str(tmp_path / "library.db"), "--max-file-size", "10"]
    )
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 1
    assert payload["processed"] == 2
    assert [result["fileName"] for result in payload["results"]] == ["a.txt", "b.txt"]
    assert payload["results"][1]["status"] == "error"
    assert payload["results"][1]["kind"] == "size_limit"


def test_cli_rejects_invalid_environment(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("FOLIO_DUPLICATE_STRATEGY", "replace")
    source = tmp_path / "book.txt"
    source.write_text("Body", encoding="utf-8")

    exit_code = ingest_cli_main(["--path", str(source), "--db-path", str(tmp_path / "library.db")])

    assert exit_code == 2
    assert capsys.readouterr().out == ""


def test_collect_inputs_filters_and_sorts_directories(tmp_path: Path) -> None:
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "z.epub").write_bytes(b"")
    (tmp_path / "a.pdf").write_bytes(b"")
    (tmp_path / "notes.md").write_text("skip", encoding="utf-8")
    (tmp_path / "page.HTML").write_text("<html></html>", encoding="utf-8")

    collected = _collect_inputs(tmp_path)

    assert collected == sorted([tmp_path / "a.pdf", tmp_path / "nested" / "z.epub", tmp_path / "page.HTML"])
    assert _collect_inputs(tmp_path / "missing") == []


def test_cli_rejects_zero_size_limit(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "book.txt"
    source.write_text("Body", encoding="utf-8")

    exit_code = ingest_cli_main(
        ["--path", str(source), "--db-path", str(tmp_path / "library.db"), "--max-file-size", "0"]
    )

    assert exit_code == 2
    assert capsys.readouterr().out == ""
