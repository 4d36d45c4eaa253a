"""EPUB adapter projecting the container's spine and navigation into a manifest."""

from __future__ import annotations

from io import BytesIO
import logging
import posixpath
from typing import Any, Sequence

import ebooklib
from ebooklib import epub

from folio.ingestion.config import DEFAULT_TOC_MAX_DEPTH
from folio.ingestion.errors import CoverExtractionFailure
from folio.ingestion.models import (
    AdapterParseResult,
    BookFile,
    BookMetadata,
    ContentManifest,
    ContentManifestItem,
    CoverImage,
    ManifestResource,
)
from folio.ingestion.normalization import clean_optional, normalize_whitespace, title_from_file_name

logger = logging.getLogger(__name__)

EPUB_FORMAT = "epub"
DEFAULT_DOCUMENT_MEDIA_TYPE = "application/xhtml+xml"
DEFAULT_COVER_MEDIA_TYPE = "image/png"

# Uncompressed first entry of every EPUB container: local header (30 bytes),
# the name "mimetype", then its content.
_MIMETYPE_ENTRY = b"mimetypeapplication/epub+zip"
_ZIP_MAGIC = b"PK\x03\x04"


def _href_path(href: str | None) -> str:
    if not href:
        return ""
    return href.split("#", 1)[0]


def _first_non_empty(values: list[tuple[str, dict[str, str]]] | None) -> str | None:
    if not values:
        return None
    for value, _attrs in values:
        cleaned = clean_optional(value)
        if cleaned:
            return cleaned
    return None


class EPUBAdapter:
    """Parse EPUB containers with ebooklib."""

    format = EPUB_FORMAT

    def __init__(self, *, toc_max_depth: int = DEFAULT_TOC_MAX_DEPTH) -> None:
        self._toc_max_depth = toc_max_depth

    def supports(self, file: BookFile, extension: str, mime_type: str) -> bool:
        if extension == "epub" or "epub" in mime_type:
            return True
        head = file.data[:64]
        return head.startswith(_ZIP_MAGIC) and head[30:58] == _MIMETYPE_ENTRY

    def parse(self, file: BookFile) -> AdapterParseResult:
        book = epub.read_epub(BytesIO(file.data), options={"ignore_ncx": False})

        # An empty NCX navMap comes back as a bare Link instead of a list.
        nodes = book.toc if isinstance(book.toc, (list, tuple)) else []
        toc = self._project_toc(book, nodes, level=0)
        labels = self._labels_by_path(toc)
        spine = self._build_spine(book, labels)

        manifest = ContentManifest(
            format=EPUB_FORMAT,
            spine=spine,
            table_of_contents=toc,
            page_count=len(spine) or None,
        )
        metadata = self._extract_metadata(book, file, manifest)
        cover = self._extract_cover(book, file.file_name)
        return AdapterParseResult(metadata=metadata, manifest=manifest, cover_image=cover)

    def _metadata_values(self, book: epub.EpubBook, namespace: str, name: str) -> list[tuple[str, dict[str, str]]]:
        try:
            return list(book.get_metadata(namespace, name) or [])
        except (KeyError, AttributeError, TypeError):
            return []

    def _extract_metadata(self, book: epub.EpubBook, file: BookFile, manifest: ContentManifest) -> BookMetadata:
        title = _first_non_empty(self._metadata_values(book, "DC", "title")) or title_from_file_name(file.file_name)
        creators = [
            cleaned
            for value, _attrs in self._metadata_values(book, "DC", "creator")
            if (cleaned := clean_optional(value))
        ]

        return BookMetadata(
            title=title,
            author=", ".join(creators) if creators else None,
            publisher=_first_non_empty(self._metadata_values(book, "DC", "publisher")),
            published_date=_first_non_empty(self._metadata_values(book, "DC", "date")),
            language=_first_non_empty(self._metadata_values(book, "DC", "language")),
            description=_first_non_empty(self._metadata_values(book, "DC", "description")),
            tags=self._extract_tags(book),
            identifiers=self._extract_identifiers(book),
            format=EPUB_FORMAT,
            page_count=manifest.page_count,
        )

    def _extract_tags(self, book: epub.EpubBook) -> tuple[str, ...] | None:
        subjects = [value for value, _attrs in self._metadata_values(book, "DC", "subject") if isinstance(value, str)]
        if len(subjects) == 1:
            subjects = subjects[0].split(",")

        tags: list[str] = []
        for subject in subjects:
            cleaned = normalize_whitespace(subject)
            if cleaned and cleaned not in tags:
                tags.append(cleaned)
        return tuple(tags) or None

    def _extract_identifiers(self, book: epub.EpubBook) -> dict[str, str] | None:
        identifiers: dict[str, str] = {}
        for value, attrs in self._metadata_values(book, "DC", "identifier"):
            cleaned = clean_optional(value)
            if not cleaned:
                continue
            scheme = next(
                (attr_value for key, attr_value in (attrs or {}).items() if key.endswith("scheme") and attr_value),
                None,
            )
            key = (scheme or "identifier").strip().lower()
            if key in identifiers:
                key = f"{key}-{len(identifiers) + 1}"
            identifiers[key] = cleaned
        return identifiers or None

    def _build_spine(self, book: epub.EpubBook, labels: dict[str, str]) -> tuple[ManifestResource, ...]:
        resources: list[ManifestResource] = []

        for index, entry in enumerate(book.spine or []):
            raw_idref = entry[0] if isinstance(entry, tuple) else entry
            idref = raw_idref if isinstance(raw_idref, str) else None
            item = book.get_item_with_id(idref) if idref else None

            href = getattr(item, "file_name", None) or None
            properties = getattr(item, "properties", None)
            label = labels.get(href or "") or clean_optional(getattr(item, "title", None))

            resources.append(
                ManifestResource(
                    id=idref,
                    href=href,
                    media_type=getattr(item, "media_type", None) or DEFAULT_DOCUMENT_MEDIA_TYPE,
                    title=label or idref or f"Section {index + 1}",
                    order=index,
                    properties=" ".join(properties) if properties else None,
                )
            )

        return tuple(resources)

    def _project_toc(self, book: epub.EpubBook, nodes: Sequence[Any], *, level: int) -> tuple[ContentManifestItem, ...]:
        items: list[ContentManifestItem] = []

        for index, node in enumerate(nodes):
            children_nodes: Sequence[Any] = ()
            if isinstance(node, tuple) and len(node) == 2:
                node, children_nodes = node

            href = getattr(node, "href", None) or getattr(node, "file_name", None) or None
            title = clean_optional(getattr(node, "title", None))
            uid = getattr(node, "uid", None) or getattr(node, "id", None)

            children: tuple[ContentManifestItem, ...] = ()
            if children_nodes:
                if level + 1 >= self._toc_max_depth:
                    logger.warning("EPUB navigation deeper than %d levels truncated", self._toc_max_depth)
                else:
                    children = self._project_toc(book, children_nodes, level=level + 1)

            items.append(
                ContentManifestItem(
                    id=uid or href or f"item-{level}-{index}",
                    title=title,
                    href=href,
                    order=index,
                    level=level,
                    children=children,
                    spine_item_id=self._item_id_for_href(book, href),
                )
            )

        return tuple(items)

    def _item_id_for_href(self, book: epub.EpubBook, href: str | None) -> str | None:
        path = _href_path(href)
        if not path:
            return None
        item = book.get_item_with_href(path) or book.get_item_with_href(posixpath.normpath(path))
        return item.get_id() if item is not None else None

    def _labels_by_path(self, toc: Sequence[ContentManifestItem]) -> dict[str, str]:
        labels: dict[str, str] = {}
        pending = list(toc)
        while pending:
            item = pending.pop(0)
            path = _href_path(item.href)
            if path and item.title and path not in labels:
                labels[path] = item.title
            pending.extend(item.children)
        return labels

    def _extract_cover(self, book: epub.EpubBook, file_name: str) -> CoverImage | None:
        for step in (self._cover_from_cover_item, self._cover_from_declared_reference):
            try:
                cover = step(book)
            except Exception as exc:
                logger.warning("Failed to extract EPUB cover for %s: %s", file_name, exc)
                continue
            if cover is not None:
                return cover
        return None

    def _cover_from_cover_item(self, book: epub.EpubBook) -> CoverImage | None:
        for item in book.get_items_of_type(ebooklib.ITEM_COVER):
            return self._cover_from_item(item, stage="cover-item")
        return None

    def _cover_from_declared_reference(self, book: epub.EpubBook) -> CoverImage | None:
        reference = None
        for value, attrs in self._metadata_values(book, "OPF", "cover"):
            reference = (attrs or {}).get("content") or value
            if reference:
                break
        if not reference:
            return None

        item = book.get_item_with_id(reference) or book.get_item_with_href(reference)
        if item is None:
            raise CoverExtractionFailure(stage="cover-reference", message=f"Declared cover {reference!r} not found")
        return self._cover_from_item(item, stage="cover-reference")

    def _cover_from_item(self, item: Any, *, stage: str) -> CoverImage:
        content = item.get_content()
        if not content:
            raise CoverExtractionFailure(stage=stage, message=f"Cover item {item.get_id()!r} is empty")
        media_type = getattr(item, "media_type", None) or ""
        if not media_type.startswith("image/"):
            media_type = DEFAULT_COVER_MEDIA_TYPE
        return CoverImage(data=content, media_type=media_type)
