"""Persistence contract consumed by the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from folio.ingestion.models import BookFile, BookMetadata, ContentManifest, CoverImage


@dataclass(frozen=True, slots=True)
class StoredBookFile:
    """A persisted file row; ``data`` is only loaded by single-file lookups."""

    id: str
    file_name: str
    file_type: str
    file_size: int
    added_date: datetime
    updated_date: datetime
    manifest: dict[str, Any] | None = None
    data: bytes | None = field(default=None, repr=False)
    cover_image: CoverImage | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class BookRecord:
    """Downstream book entry; metadata and manifest are kept as their JSON projection."""

    id: str
    file_id: str
    metadata: dict[str, Any]
    manifest: dict[str, Any]
    date_added: datetime
    is_favorite: bool = False

    @property
    def title(self) -> str:
        return str(self.metadata.get("title") or "")


class BookLibrary(Protocol):
    """Collaborator that owns file bytes and book records."""

    def add_book(
        self,
        file: BookFile,
        metadata: BookMetadata,
        manifest: ContentManifest,
        cover_image: CoverImage | None = None,
    ) -> str:
        """Persist the file and a new book record; return the book id."""

    def list_files(self) -> list[StoredBookFile]:
        """List stored files without their payload bytes."""

    def save_file(
        self,
        file: BookFile,
        *,
        manifest: ContentManifest | None = None,
        cover_image: CoverImage | None = None,
    ) -> None:
        ...

    def get_file(self, file_id: str) -> StoredBookFile | None:
        ...

    def delete_file(self, file_id: str) -> None:
        ...

    def find_book_id_for_file(self, file_id: str) -> str | None:
        ...
