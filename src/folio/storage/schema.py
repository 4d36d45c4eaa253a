"""SQLite schema and pragmas for the book library."""

from __future__ import annotations

import sqlite3


PRAGMA_BUSY_TIMEOUT_MS = 5000


def apply_runtime_pragmas(connection: sqlite3.Connection) -> None:
    """Apply runtime pragmas for a single-writer local library."""

    connection.execute("PRAGMA journal_mode=WAL;")
    connection.execute(f"PRAGMA busy_timeout={PRAGMA_BUSY_TIMEOUT_MS};")
    connection.execute("PRAGMA synchronous=NORMAL;")
    connection.execute("PRAGMA foreign_keys=ON;")


def ensure_schema(connection: sqlite3.Connection) -> None:
    """Create file and book tables if missing."""

    connection.executescript(
        """
        CREATE TABLE IF NOT EXISTS files (
            id TEXT PRIMARY KEY,
            file_name TEXT NOT NULL,
            file_type TEXT NOT NULL,
            file_size INTEGER NOT NULL,
            data BLOB NOT NULL,
            manifest_json TEXT,
            cover_image BLOB,
            cover_media_type TEXT,
            added_date TEXT NOT NULL,
            updated_date TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_files_name_size ON files(file_name, file_size);

        CREATE TABLE IF NOT EXISTS books (
            id TEXT PRIMARY KEY,
            file_id TEXT NOT NULL,
            title TEXT NOT NULL,
            metadata_json TEXT NOT NULL,
            manifest_json TEXT NOT NULL,
            is_favorite INTEGER NOT NULL DEFAULT 0,
            date_added TEXT NOT NULL,
            FOREIGN KEY(file_id) REFERENCES files(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_books_file_id ON books(file_id);
        """
    )
