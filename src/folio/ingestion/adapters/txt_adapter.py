"""Plain-text adapter with encoding detection."""

from __future__ import annotations

from charset_normalizer import from_bytes

from folio.ingestion.config import DEFAULT_DESCRIPTION_MAX_CHARS, DEFAULT_TITLE_MAX_CHARS
from folio.ingestion.models import (
    AdapterParseResult,
    BookFile,
    BookMetadata,
    ContentManifest,
    ManifestResource,
)
from folio.ingestion.normalization import normalize_whitespace, title_from_file_name

TEXT_FORMAT = "text"
TEXT_MIME_TYPE = "text/plain"

_HEADER_FIELDS = {
    "title": "title",
    "author": "author",
    "by": "author",
    "название": "title",
    "автор": "author",
}
_HEADER_SCAN_LINES = 20


class TXTAdapter:
    """Single-resource manifest for plain-text documents."""

    format = TEXT_FORMAT

    def __init__(
        self,
        *,
        title_max_chars: int = DEFAULT_TITLE_MAX_CHARS,
        description_max_chars: int = DEFAULT_DESCRIPTION_MAX_CHARS,
    ) -> None:
        self._title_max_chars = title_max_chars
        self._description_max_chars = description_max_chars

    def supports(self, file: BookFile, extension: str, mime_type: str) -> bool:
        return mime_type.startswith(TEXT_MIME_TYPE) or extension in {"txt", "text"}

    def parse(self, file: BookFile) -> AdapterParseResult:
        text = self._decode(file.data)
        headers = self._read_headers(text)

        first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
        title = headers.get("title") or first_line[: self._title_max_chars].strip()
        description = text[: self._description_max_chars].strip()

        manifest = ContentManifest(
            format=TEXT_FORMAT,
            spine=(
                ManifestResource(
                    id="root",
                    href=file.file_name,
                    media_type=TEXT_MIME_TYPE,
                    title=title or None,
                    order=0,
                ),
            ),
            table_of_contents=(),
        )
        metadata = BookMetadata(
            title=title or title_from_file_name(file.file_name),
            author=headers.get("author"),
            description=description or None,
            format=TEXT_FORMAT,
        )
        return AdapterParseResult(metadata=metadata, manifest=manifest)

    def _decode(self, raw: bytes) -> str:
        if not raw:
            return ""
        return raw.decode(self._detect_encoding(raw))

    def _detect_encoding(self, raw: bytes) -> str:
        if raw.startswith(b"\xef\xbb\xbf"):
            return "utf-8-sig"

        best = from_bytes(raw).best()
        if best and best.encoding:
            name = best.encoding.lower()
            if name in {"windows-1251", "cp1251"}:
                return "cp1251"
            return best.encoding

        for fallback in ("utf-8", "cp1251"):
            try:
                raw.decode(fallback)
                return fallback
            except UnicodeDecodeError:
                continue
        raise ValueError("Could not detect text encoding")

    def _read_headers(self, text: str) -> dict[str, str]:
        headers: dict[str, str] = {}
        for line in text.splitlines()[:_HEADER_SCAN_LINES]:
            normalized = normalize_whitespace(line)
            if not normalized or ":" not in normalized:
                continue
            key, value = normalized.split(":", 1)
            field = _HEADER_FIELDS.get(key.strip().casefold())
            clean_value = normalize_whitespace(value)
            if field and clean_value and field not in headers:
                headers[field] = clean_value[: self._title_max_chars]
        return headers
