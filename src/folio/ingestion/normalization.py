"""Text and file-name normalization helpers used during ingestion."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")

DEFAULT_MIME_TYPE = "application/octet-stream"
UNTITLED = "Untitled"

MIME_BY_EXTENSION: dict[str, str] = {
    "epub": "application/epub+zip",
    "pdf": "application/pdf",
    "txt": "text/plain",
    "text": "text/plain",
    "html": "text/html",
    "htm": "text/html",
}


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim boundaries."""

    return _WHITESPACE_RE.sub(" ", text).strip()


def clean_optional(value: object) -> str | None:
    """Return a whitespace-normalized string, or None for blank/non-text values."""

    if not isinstance(value, str):
        return None
    cleaned = normalize_whitespace(value)
    return cleaned or None


def strip_extension(file_name: str) -> str:
    """Drop the last dotted suffix, keeping names without one untouched."""

    last_dot = file_name.rfind(".")
    if last_dot == -1:
        return file_name
    return file_name[:last_dot]


def get_extension(file_name: str) -> str:
    parts = file_name.split(".")
    return parts[-1].lower() if len(parts) > 1 else ""


def infer_mime_type(file_name: str, declared: str | None = None) -> str:
    """Prefer the declared content type, else map the extension."""

    if declared:
        return declared
    return MIME_BY_EXTENSION.get(get_extension(file_name), DEFAULT_MIME_TYPE)


def title_from_file_name(file_name: str) -> str:
    """Fallback title: the file name minus its extension, never empty."""

    stem = normalize_whitespace(strip_extension(file_name))
    return stem or normalize_whitespace(file_name) or UNTITLED
