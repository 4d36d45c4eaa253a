from __future__ import annotations

from pathlib import Path

from folio.ingestion.models import (
    BookFile,
    BookMetadata,
    ContentManifest,
    ContentManifestItem,
    CoverImage,
    ManifestResource,
)
from folio.storage.repository import LibraryRepository


def _manifest() -> ContentManifest:
    return ContentManifest(
        format="text",
        spine=(ManifestResource(id="root", href="a.txt", media_type="text/plain", order=0),),
        table_of_contents=(ContentManifestItem(id="toc-0", title="Start", order=0),),
    )


def test_schema_initialization_creates_expected_tables(tmp_path: Path) -> None:
    with LibraryRepository(tmp_path / "library.db") as repo:
        rows = repo.connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        names = {row["name"] for row in rows}

    assert {"files", "books"} <= names


def test_add_book_persists_file_book_and_cover(tmp_path: Path) -> None:
    file = BookFile(data=b"hello world", file_name="a.txt")
    metadata = BookMetadata(title="Hello", author="Ann", tags=("greeting",), format="text")
    cover = CoverImage(data=b"\x89PNG\r\n\x1a\nfake", media_type="image/png")

    with LibraryRepository(tmp_path / "library.db") as repo:
        book_id = repo.add_book(file, metadata, _manifest(), cover)

    with LibraryRepository(tmp_path / "library.db") as repo:
        book = repo.get_book(book_id)
        stored = repo.get_file(file.id)
        listing = repo.list_files()

    assert book is not None
    assert book.file_id == file.id
    assert book.title == "Hello"
    assert book.metadata["tags"] == ["greeting"]
    assert book.manifest["spine"][0]["mediaType"] == "text/plain"
    assert book.manifest["tableOfContents"][0]["id"] == "toc-0"
    assert book.is_favorite is False

    assert stored is not None
    assert stored.data == b"hello world"
    assert stored.file_size == 11
    assert stored.file_type == "text/plain"
    assert stored.cover_image == cover
    assert stored.added_date == file.added_date

    assert [(row.id, row.file_name, row.file_size) for row in listing] == [(file.id, "a.txt", 11)]
    assert listing[0].data is None


def test_find_book_id_for_file_and_counts() -> None:
    with LibraryRepository() as repo:
        file = BookFile(data=b"abc", file_name="b.txt")
        book_id = repo.add_book(file, BookMetadata(title="B"), _manifest())

        assert repo.find_book_id_for_file(file.id) == book_id
        assert repo.find_book_id_for_file("missing") is None
        assert repo.count_books() == 1
        assert [book.id for book in repo.list_books()] == [book_id]


def test_save_file_upserts_and_delete_cascades_to_books() -> None:
    with LibraryRepository() as repo:
        file = BookFile(data=b"v1", file_name="c.txt")
        repo.save_file(file)
        repo.save_file(file, manifest=_manifest())

        stored = repo.get_file(file.id)
        assert stored is not None
        assert stored.manifest is not None
        assert stored.manifest["format"] == "text"
        assert len(repo.list_files()) == 1

        book_id = repo.add_book(BookFile(data=b"v2", file_name="d.txt"), BookMetadata(title="D"), _manifest())
        book = repo.get_book(book_id)
        assert book is not None

        repo.delete_file(book.file_id)

        assert repo.get_book(book_id) is None
        assert repo.get_file(book.file_id) is None
        assert repo.count_books() == 0
