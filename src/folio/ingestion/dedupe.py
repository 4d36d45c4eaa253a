"""Duplicate detection against previously stored files."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Protocol

from folio.ingestion.models import BookFile

if TYPE_CHECKING:
    from folio.storage.base import StoredBookFile


class StoredFileListing(Protocol):
    def list_files(self) -> list[StoredBookFile]:
        ...


def find_duplicate(file: BookFile, stored_files: Iterable[StoredBookFile]) -> StoredBookFile | None:
    """Return the first stored file with the same name and size.

    Name and size only; two different files sharing both are reported as
    duplicates.
    """

    for stored in stored_files:
        if stored.file_name == file.file_name and stored.file_size == file.file_size:
            return stored
    return None


class DuplicateDetector:
    """Name+size duplicate lookup over the library's stored-file listing."""

    def __init__(self, library: StoredFileListing) -> None:
        self._library = library

    def find(self, file: BookFile) -> StoredBookFile | None:
        return find_duplicate(file, self._library.list_files())
