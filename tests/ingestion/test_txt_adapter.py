from __future__ import annotations

from pathlib import Path

from folio.ingestion.adapters.txt_adapter import TXTAdapter
from folio.ingestion.models import BookFile


def test_txt_adapter_uses_first_line_as_title_and_single_spine_entry(tmp_path: Path) -> None:
    sample = tmp_path / "notes.txt"
    sample.write_text("\n\n  The Long Road  \nIt began on a Tuesday.\n", encoding="utf-8")

    result = TXTAdapter().parse(BookFile.from_path(sample))

    assert result.metadata.title == "The Long Road"
    assert result.metadata.format == "text"
    assert result.metadata.description == "The Long Road  \nIt began on a Tuesday."
    assert result.manifest.table_of_contents == ()
    assert len(result.manifest.spine) == 1

    resource = result.manifest.spine[0]
    assert resource.id == "root"
    assert resource.href == "notes.txt"
    assert resource.media_type == "text/plain"
    assert result.cover_image is None


def test_txt_adapter_truncates_title_and_description(tmp_path: Path) -> None:
    sample = tmp_path / "long.txt"
    sample.write_text("A" * 300 + "\n" + "b" * 1000, encoding="utf-8")

    metadata = TXTAdapter(title_max_chars=200, description_max_chars=500).parse(BookFile.from_path(sample)).metadata

    assert metadata.title == "A" * 200
    assert metadata.description is not None
    assert len(metadata.description) == 500


def test_txt_adapter_decodes_utf8_and_extracts_headers(tmp_path: Path) -> None:
    sample = tmp_path / "book_utf8.txt"
    sample.write_text("Title: Луна\nAuthor: Александр\n\nПервая строка\nВторая строка\n", encoding="utf-8")

    metadata = TXTAdapter().parse(BookFile.from_path(sample)).metadata

    assert metadata.title == "Луна"
    assert metadata.author == "Александр"


def test_txt_adapter_decodes_cp1251(tmp_path: Path) -> None:
    sample = tmp_path / "book_cp1251.txt"
    sample.write_bytes("Название: Путь\nАвтор: Ирина\n\nПривет мир\nТихий лес\n".encode("cp1251"))

    metadata = TXTAdapter().parse(BookFile.from_path(sample)).metadata

    assert metadata.title == "Путь"
    assert metadata.author == "Ирина"
    assert metadata.description is not None
    assert "Тихий лес" in metadata.description


def test_txt_adapter_falls_back_to_file_name_for_empty_file() -> None:
    result = TXTAdapter().parse(BookFile(data=b"", file_name="empty-notes.txt"))

    assert result.metadata.title == "empty-notes"
    assert result.metadata.description is None
    assert result.manifest.spine[0].title is None


def test_txt_adapter_supports_text_mime_and_extensions() -> None:
    adapter = TXTAdapter()

    assert adapter.supports(BookFile(data=b"", file_name="a.txt"), "txt", "text/plain")
    assert adapter.supports(BookFile(data=b"", file_name="a.text"), "text", "application/octet-stream")
    assert adapter.supports(BookFile(data=b"", file_name="a"), "", "text/plain; charset=utf-8")
    assert not adapter.supports(BookFile(data=b"", file_name="a.html"), "html", "text/html")
