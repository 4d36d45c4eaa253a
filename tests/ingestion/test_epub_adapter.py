from __future__ import annotations

from pathlib import Path

from ebooklib import epub
import pytest

from folio.ingestion.adapters.epub_adapter import EPUBAdapter
from folio.ingestion.cover import PLACEHOLDER_PNG
from folio.ingestion.errors import CoverExtractionFailure
from folio.ingestion.models import BookFile, CoverImage


def _chapter(title: str, file_name: str, body: str) -> epub.EpubHtml:
    chapter = epub.EpubHtml(title=title, file_name=file_name, lang="en")
    chapter.content = f"<html><body><h1>{title}</h1><p>{body}</p></body></html>"
    return chapter


def _build_epub(path: Path, *, title: str = "Mock Book", with_cover: bool = False, nested: bool = False) -> None:
    book = epub.EpubBook()
    book.set_identifier("mock-book-id")
    book.set_title(title)
    book.set_language("en")
    book.add_author("Jane Roe")
    book.add_metadata("DC", "publisher", "Folio Press")
    book.add_metadata("DC", "subject", "fiction, mystery")
    book.add_metadata("DC", "description", "A short mock book.")

    chapter_one = _chapter("Chapter One", "chapter_1.xhtml", "First chapter text.")
    book.add_item(chapter_one)
    spine = [chapter_one]
    toc: list[object] = [epub.Link("chapter_1.xhtml", "Chapter One", "ch1")]

    if nested:
        chapter_two = _chapter("Chapter Two", "chapter_2.xhtml", "Second chapter text.")
        book.add_item(chapter_two)
        spine.append(chapter_two)
        toc.append(
            (
                epub.Section("Part Two", href="chapter_2.xhtml"),
                (epub.Link("chapter_2.xhtml#scene", "Scene", "scene"),),
            )
        )

    if with_cover:
        book.set_cover("cover.png", PLACEHOLDER_PNG, create_page=False)

    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.toc = tuple(toc)
    book.spine = spine
    epub.write_epub(str(path), book)


def _build_epub_with_cover_reference(path: Path, reference: str) -> None:
    book = epub.EpubBook()
    book.set_identifier("referenced-cover")
    book.set_title("Referenced Cover")
    book.set_language("en")
    chapter = _chapter("Only", "only.xhtml", "Only chapter.")
    book.add_item(chapter)
    book.add_item(
        epub.EpubImage(uid="cover-art", file_name="images/cover.png", media_type="image/png", content=PLACEHOLDER_PNG)
    )
    book.add_metadata(None, "meta", "", {"name": "cover", "content": reference})
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.toc = (epub.Link("only.xhtml", "Only", "only"),)
    book.spine = [chapter]
    epub.write_epub(str(path), book)


def test_epub_adapter_builds_single_entry_manifest(tmp_path: Path) -> None:
    path = tmp_path / "mock.epub"
    _build_epub(path)

    result = EPUBAdapter().parse(BookFile.from_path(path))

    assert result.manifest.format == "epub"
    assert len(result.manifest.spine) == 1
    assert len(result.manifest.table_of_contents) == 1
    assert result.metadata.title == "Mock Book"
    assert result.metadata.page_count == 1

    resource = result.manifest.spine[0]
    assert resource.href == "chapter_1.xhtml"
    assert resource.title == "Chapter One"
    assert resource.media_type == "application/xhtml+xml"
    assert resource.order == 0

    entry = result.manifest.table_of_contents[0]
    assert entry.id == "ch1"
    assert entry.title == "Chapter One"
    assert entry.level == 0
    assert entry.spine_item_id == resource.id


def test_epub_adapter_reads_descriptive_metadata(tmp_path: Path) -> None:
    path = tmp_path / "metadata.epub"
    _build_epub(path)

    metadata = EPUBAdapter().parse(BookFile.from_path(path)).metadata

    assert metadata.author == "Jane Roe"
    assert metadata.publisher == "Folio Press"
    assert metadata.language == "en"
    assert metadata.description == "A short mock book."
    assert metadata.tags == ("fiction", "mystery")
    assert metadata.identifiers == {"identifier": "mock-book-id"}
    assert metadata.format == "epub"


def test_epub_adapter_projects_nested_navigation(tmp_path: Path) -> None:
    path = tmp_path / "nested.epub"
    _build_epub(path, nested=True)

    manifest = EPUBAdapter().parse(BookFile.from_path(path)).manifest

    assert len(manifest.spine) == 2
    assert [resource.order for resource in manifest.spine] == [0, 1]

    part = manifest.table_of_contents[1]
    assert part.title == "Part Two"
    assert part.level == 0
    assert part.order == 1
    assert len(part.children) == 1

    scene = part.children[0]
    assert scene.id == "scene"
    assert scene.title == "Scene"
    assert scene.level == 1
    assert scene.spine_item_id == manifest.spine[1].id


def test_epub_adapter_truncates_navigation_beyond_depth_limit(tmp_path: Path) -> None:
    path = tmp_path / "deep.epub"
    _build_epub(path, nested=True)

    manifest = EPUBAdapter(toc_max_depth=1).parse(BookFile.from_path(path)).manifest

    assert len(manifest.table_of_contents) == 2
    assert all(not item.children for item in manifest.table_of_contents)


def test_epub_adapter_extracts_declared_cover(tmp_path: Path) -> None:
    path = tmp_path / "cover.epub"
    _build_epub(path, with_cover=True)

    cover = EPUBAdapter().parse(BookFile.from_path(path)).cover_image

    assert isinstance(cover, CoverImage)
    assert cover.data == PLACEHOLDER_PNG
    assert cover.media_type == "image/png"


def test_epub_adapter_resolves_cover_from_meta_reference(tmp_path: Path) -> None:
    path = tmp_path / "meta-cover.epub"
    _build_epub_with_cover_reference(path, "cover-art")

    cover = EPUBAdapter().parse(BookFile.from_path(path)).cover_image

    assert isinstance(cover, CoverImage)
    assert cover.data == PLACEHOLDER_PNG
    assert cover.media_type == "image/png"


def test_epub_adapter_dangling_cover_reference_yields_no_cover(tmp_path: Path) -> None:
    path = tmp_path / "dangling-cover.epub"
    _build_epub_with_cover_reference(path, "missing-art")

    result = EPUBAdapter().parse(BookFile.from_path(path))

    assert result.cover_image is None
    assert result.metadata.title == "Referenced Cover"


def test_epub_adapter_falls_back_to_reference_when_cover_item_fails(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    path = tmp_path / "broken-item.epub"
    _build_epub(path, with_cover=True)

    def broken_cover_item(self: EPUBAdapter, book: epub.EpubBook) -> CoverImage:
        raise CoverExtractionFailure(stage="cover-item", message="unreadable")

    monkeypatch.setattr(EPUBAdapter, "_cover_from_cover_item", broken_cover_item)

    cover = EPUBAdapter().parse(BookFile.from_path(path)).cover_image

    assert isinstance(cover, CoverImage)
    assert cover.data == PLACEHOLDER_PNG


def test_epub_adapter_without_cover_returns_none(tmp_path: Path) -> None:
    path = tmp_path / "plain.epub"
    _build_epub(path)

    assert EPUBAdapter().parse(BookFile.from_path(path)).cover_image is None


def test_epub_adapter_supports_extension_mime_and_container_signature(tmp_path: Path) -> None:
    path = tmp_path / "sniffed.epub"
    _build_epub(path)
    payload = path.read_bytes()
    adapter = EPUBAdapter()

    disguised = BookFile(data=payload, file_name="upload.bin")
    assert adapter.supports(disguised, "bin", "application/octet-stream")
    assert adapter.supports(BookFile(data=b"", file_name="x.epub"), "epub", "application/octet-stream")
    assert adapter.supports(BookFile(data=b"", file_name="x"), "", "application/epub+zip")
    assert not adapter.supports(BookFile(data=b"%PDF-1.7", file_name="x.pdf"), "pdf", "application/pdf")
