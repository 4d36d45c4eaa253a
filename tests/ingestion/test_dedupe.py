from __future__ import annotations

from datetime import datetime, timezone

from folio.ingestion.dedupe import DuplicateDetector, find_duplicate
from folio.ingestion.models import BookFile
from folio.storage.base import StoredBookFile


def _stored(file_id: str, file_name: str, file_size: int) -> StoredBookFile:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return StoredBookFile(
        id=file_id,
        file_name=file_name,
        file_type="text/plain",
        file_size=file_size,
        added_date=now,
        updated_date=now,
    )


class _Listing:
    def __init__(self, files: list[StoredBookFile]) -> None:
        self.files = files
        self.calls = 0

    def list_files(self) -> list[StoredBookFile]:
        self.calls += 1
        return self.files


def test_duplicate_requires_matching_name_and_size() -> None:
    stored = [_stored("a", "book.txt", 5), _stored("b", "other.txt", 4)]

    assert find_duplicate(BookFile(data=b"12345", file_name="book.txt"), stored).id == "a"
    assert find_duplicate(BookFile(data=b"1234", file_name="book.txt"), stored) is None
    assert find_duplicate(BookFile(data=b"12345", file_name="Book.txt"), stored) is None


def test_same_name_and_size_with_different_content_counts_as_duplicate() -> None:
    stored = [_stored("a", "book.txt", 5)]

    assert find_duplicate(BookFile(data=b"zzzzz", file_name="book.txt"), stored) is not None


def test_detector_reads_current_listing_each_time() -> None:
    listing = _Listing([])
    detector = DuplicateDetector(listing)
    candidate = BookFile(data=b"abc", file_name="fresh.txt")

    assert detector.find(candidate) is None
    listing.files.append(_stored("f1", "fresh.txt", 3))
    assert detector.find(candidate).id == "f1"
    assert listing.calls == 2
