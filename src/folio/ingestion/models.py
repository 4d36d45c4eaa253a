"""Canonical data structures shared by all ingestion adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Mapping, Union
import uuid

from folio.ingestion.normalization import get_extension, infer_mime_type


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _compact(payload: dict[str, Any]) -> dict[str, Any]:
    """Drop unset keys so the JSON projection only carries known fields."""

    return {key: value for key, value in payload.items() if value is not None}


@dataclass(frozen=True, slots=True)
class BookFile:
    """An uploaded file payload together with its declared attributes."""

    data: bytes = field(repr=False)
    file_name: str
    file_type: str = ""
    id: str = field(default_factory=_new_id)
    added_date: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_path(cls, path: str | Path, file_type: str = "") -> "BookFile":
        source = Path(path)
        return cls(data=source.read_bytes(), file_name=source.name, file_type=file_type)

    @property
    def file_size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return get_extension(self.file_name)

    @property
    def mime_type(self) -> str:
        return infer_mime_type(self.file_name, self.file_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "fileType": self.mime_type,
            "fileSize": self.file_size,
            "addedDate": self.added_date.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class CoverImage:
    """Binary cover image with its media type."""

    data: bytes = field(repr=False)
    media_type: str = "image/png"


@dataclass(frozen=True, slots=True)
class ManifestResource:
    """One reading-order unit: a chapter document or a page."""

    id: str | None = None
    href: str | None = None
    media_type: str | None = None
    title: str | None = None
    order: int | None = None
    properties: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "href": self.href,
                "mediaType": self.media_type,
                "title": self.title,
                "order": self.order,
                "properties": self.properties,
            }
        )


@dataclass(frozen=True, slots=True)
class ContentManifestItem:
    """A table-of-contents node; children form the nested navigation tree."""

    id: str | None = None
    title: str | None = None
    href: str | None = None
    order: int | None = None
    level: int = 0
    children: tuple["ContentManifestItem", ...] = ()
    spine_item_id: str | None = None
    page: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "title": self.title,
                "href": self.href,
                "order": self.order,
                "level": self.level,
                "spineItemId": self.spine_item_id,
                "page": self.page,
                "children": [child.to_dict() for child in self.children] if self.children else None,
            }
        )


@dataclass(frozen=True, slots=True)
class ManifestTextLayer:
    """Marker for a page whose text content was visited during ingestion."""

    id: str
    page: int
    label: str | None = None
    char_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return _compact({"id": self.id, "page": self.page, "label": self.label, "charCount": self.char_count})


@dataclass(frozen=True, slots=True)
class ContentManifest:
    """Format-agnostic structure description consumed by readers and indexers."""

    format: str | None = None
    spine: tuple[ManifestResource, ...] = ()
    table_of_contents: tuple[ContentManifestItem, ...] = ()
    page_count: int | None = None
    text_layers: tuple[ManifestTextLayer, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "format": self.format,
                "spine": [resource.to_dict() for resource in self.spine],
                "tableOfContents": [item.to_dict() for item in self.table_of_contents],
                "pageCount": self.page_count,
                "textLayers": (
                    [layer.to_dict() for layer in self.text_layers] if self.text_layers is not None else None
                ),
            }
        )


@dataclass(frozen=True, slots=True)
class BookMetadata:
    """Descriptive metadata reconciled across source formats."""

    title: str
    author: str | None = None
    publisher: str | None = None
    published_date: str | None = None
    language: str | None = None
    description: str | None = None
    tags: tuple[str, ...] | None = None
    identifiers: Mapping[str, str] | None = None
    format: str | None = None
    page_count: int | None = None
    cover_image: str | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "title": self.title,
                "author": self.author,
                "publisher": self.publisher,
                "publishedDate": self.published_date,
                "language": self.language,
                "description": self.description,
                "tags": list(self.tags) if self.tags is not None else None,
                "identifiers": dict(self.identifiers) if self.identifiers is not None else None,
                "format": self.format,
                "pageCount": self.page_count,
                "coverImage": self.cover_image,
            }
        )


@dataclass(frozen=True, slots=True)
class AdapterParseResult:
    """Raw adapter output before manifest, metadata and cover normalization."""

    metadata: BookMetadata
    manifest: ContentManifest
    cover_image: CoverImage | bytes | str | None = None


@dataclass(frozen=True, slots=True)
class IngestionSuccess:
    file_name: str
    book_id: str
    metadata: BookMetadata
    manifest: ContentManifest
    status: Literal["success"] = "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "fileName": self.file_name,
            "bookId": self.book_id,
            "metadata": self.metadata.to_dict(),
            "manifest": self.manifest.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class IngestionDuplicate:
    file_name: str
    duplicate_of: str | None
    status: Literal["duplicate"] = "duplicate"

    def to_dict(self) -> dict[str, Any]:
        return _compact({"status": self.status, "fileName": self.file_name, "duplicateOf": self.duplicate_of})


@dataclass(frozen=True, slots=True)
class IngestionUnsupported:
    file_name: str
    error: str
    status: Literal["unsupported"] = "unsupported"

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "fileName": self.file_name, "error": self.error}


@dataclass(frozen=True, slots=True)
class IngestionFailed:
    file_name: str
    error: str
    kind: Literal["size_limit", "parse_failure", "storage_failure"] = "parse_failure"
    status: Literal["error"] = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "fileName": self.file_name, "error": self.error, "kind": self.kind}


FileIngestionResult = Union[IngestionSuccess, IngestionDuplicate, IngestionUnsupported, IngestionFailed]
