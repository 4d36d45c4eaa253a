"""Book library persistence."""

from folio.storage.base import BookLibrary, BookRecord, StoredBookFile
from folio.storage.repository import LibraryRepository

__all__ = ["BookLibrary", "BookRecord", "LibraryRepository", "StoredBookFile"]
