"""SQLite-backed storage for uploaded book files and book records."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from pathlib import Path
import sqlite3
from typing import Any
import uuid

from folio.ingestion.models import BookFile, BookMetadata, ContentManifest, CoverImage
from folio.storage.base import BookRecord, StoredBookFile
from folio.storage.schema import apply_runtime_pragmas, ensure_schema

IN_MEMORY = ":memory:"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dump(payload: dict[str, Any] | None) -> str | None:
    if payload is None:
        return None
    return json.dumps(payload, ensure_ascii=False)


def _load(raw: str | None) -> dict[str, Any] | None:
    if raw is None:
        return None
    return json.loads(raw)


class LibraryRepository:
    """Storage facade implementing the ingestion persistence contract."""

    def __init__(self, db_path: str | Path = IN_MEMORY) -> None:
        self._db_path = str(db_path)
        self._connection = sqlite3.connect(self._db_path)
        self._connection.row_factory = sqlite3.Row
        apply_runtime_pragmas(self._connection)
        ensure_schema(self._connection)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "LibraryRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def add_book(
        self,
        file: BookFile,
        metadata: BookMetadata,
        manifest: ContentManifest,
        cover_image: CoverImage | None = None,
    ) -> str:
        book_id = uuid.uuid4().hex
        metadata_payload = metadata.to_dict()
        manifest_payload = manifest.to_dict()

        with self._connection:
            self._write_file(file, manifest=manifest, cover_image=cover_image)
            self._connection.execute(
                """
                INSERT INTO books (id, file_id, title, metadata_json, manifest_json, date_added)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    book_id,
                    file.id,
                    metadata.title,
                    _dump(metadata_payload),
                    _dump(manifest_payload),
                    _utcnow().isoformat(),
                ),
            )
        return book_id

    def save_file(
        self,
        file: BookFile,
        *,
        manifest: ContentManifest | None = None,
        cover_image: CoverImage | None = None,
    ) -> None:
        with self._connection:
            self._write_file(file, manifest=manifest, cover_image=cover_image)

    def _write_file(
        self,
        file: BookFile,
        *,
        manifest: ContentManifest | None,
        cover_image: CoverImage | None,
    ) -> None:
        self._connection.execute(
            """
            INSERT INTO files (
                id, file_name, file_type, file_size, data, manifest_json,
                cover_image, cover_media_type, added_date, updated_date
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                file_name = excluded.file_name,
                file_type = excluded.file_type,
                file_size = excluded.file_size,
                data = excluded.data,
                manifest_json = excluded.manifest_json,
                cover_image = excluded.cover_image,
                cover_media_type = excluded.cover_media_type,
                updated_date = excluded.updated_date
            """,
            (
                file.id,
                file.file_name,
                file.mime_type,
                file.file_size,
                file.data,
                _dump(manifest.to_dict()) if manifest is not None else None,
                cover_image.data if cover_image is not None else None,
                cover_image.media_type if cover_image is not None else None,
                file.added_date.isoformat(),
                _utcnow().isoformat(),
            ),
        )

    def list_files(self) -> list[StoredBookFile]:
        rows = self._connection.execute(
            """
            SELECT id, file_name, file_type, file_size, manifest_json, added_date, updated_date
            FROM files
            ORDER BY added_date ASC, id ASC
            """
        ).fetchall()
        return [self._row_to_file(row) for row in rows]

    def get_file(self, file_id: str) -> StoredBookFile | None:
        row = self._connection.execute(
            "SELECT * FROM files WHERE id = ?",
            (file_id,),
        ).fetchone()
        if row is None:
            return None

        cover = None
        if row["cover_image"] is not None:
            cover = CoverImage(data=bytes(row["cover_image"]), media_type=row["cover_media_type"] or "image/png")
        return self._row_to_file(row, data=bytes(row["data"]), cover_image=cover)

    def delete_file(self, file_id: str) -> None:
        with self._connection:
            self._connection.execute("DELETE FROM files WHERE id = ?", (file_id,))

    def find_book_id_for_file(self, file_id: str) -> str | None:
        row = self._connection.execute(
            "SELECT id FROM books WHERE file_id = ? ORDER BY date_added ASC LIMIT 1",
            (file_id,),
        ).fetchone()
        return row["id"] if row is not None else None

    def get_book(self, book_id: str) -> BookRecord | None:
        row = self._connection.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        return self._row_to_book(row) if row is not None else None

    def list_books(self) -> list[BookRecord]:
        rows = self._connection.execute("SELECT * FROM books ORDER BY date_added ASC, id ASC").fetchall()
        return [self._row_to_book(row) for row in rows]

    def count_books(self) -> int:
        return int(self._connection.execute("SELECT COUNT(*) AS c FROM books").fetchone()["c"])

    def _row_to_file(
        self,
        row: sqlite3.Row,
        *,
        data: bytes | None = None,
        cover_image: CoverImage | None = None,
    ) -> StoredBookFile:
        return StoredBookFile(
            id=row["id"],
            file_name=row["file_name"],
            file_type=row["file_type"],
            file_size=int(row["file_size"]),
            added_date=datetime.fromisoformat(row["added_date"]),
            updated_date=datetime.fromisoformat(row["updated_date"]),
            manifest=_load(row["manifest_json"]),
            data=data,
            cover_image=cover_image,
        )

    def _row_to_book(self, row: sqlite3.Row) -> BookRecord:
        return BookRecord(
            id=row["id"],
            file_id=row["file_id"],
            metadata=_load(row["metadata_json"]) or {},
            manifest=_load(row["manifest_json"]) or {},
            date_added=datetime.fromisoformat(row["date_added"]),
            is_favorite=bool(row["is_favorite"]),
        )
