"""HTML adapter producing a single-document manifest."""

from __future__ import annotations

from bs4 import BeautifulSoup

from folio.ingestion.config import DEFAULT_DESCRIPTION_MAX_CHARS, DEFAULT_TITLE_MAX_CHARS
from folio.ingestion.models import (
    AdapterParseResult,
    BookFile,
    BookMetadata,
    ContentManifest,
    ManifestResource,
)
from folio.ingestion.normalization import clean_optional, normalize_whitespace, title_from_file_name

HTML_FORMAT = "html"
HTML_MIME_TYPE = "text/html"


def _meta_content(soup: BeautifulSoup, name: str) -> str | None:
    tag = soup.find("meta", attrs={"name": lambda value: bool(value) and value.lower() == name})
    if tag is None:
        return None
    return clean_optional(tag.get("content"))


class HTMLAdapter:
    """Parse HTML documents with BeautifulSoup and lxml."""

    format = HTML_FORMAT

    def __init__(
        self,
        *,
        title_max_chars: int = DEFAULT_TITLE_MAX_CHARS,
        description_max_chars: int = DEFAULT_DESCRIPTION_MAX_CHARS,
    ) -> None:
        self._title_max_chars = title_max_chars
        self._description_max_chars = description_max_chars

    def supports(self, file: BookFile, extension: str, mime_type: str) -> bool:
        return "html" in mime_type or extension in {"html", "htm"}

    def parse(self, file: BookFile) -> AdapterParseResult:
        soup = BeautifulSoup(file.data, "lxml")

        title_tag = soup.find("title")
        raw_title = normalize_whitespace(title_tag.get_text()) if title_tag is not None else ""
        title = raw_title[: self._title_max_chars].strip() or None

        html_tag = soup.find("html")
        language = clean_optional(html_tag.get("lang")) if html_tag is not None else None

        keywords = _meta_content(soup, "keywords")
        tags = tuple(
            dict.fromkeys(cleaned for part in (keywords or "").split(",") if (cleaned := normalize_whitespace(part)))
        )

        manifest = ContentManifest(
            format=HTML_FORMAT,
            spine=(
                ManifestResource(
                    id="root",
                    href=file.file_name,
                    media_type=HTML_MIME_TYPE,
                    title=title,
                    order=0,
                ),
            ),
            table_of_contents=(),
        )
        metadata = BookMetadata(
            title=title or title_from_file_name(file.file_name),
            author=_meta_content(soup, "author"),
            language=language,
            description=_meta_content(soup, "description") or self._excerpt(soup),
            tags=tags or None,
            format=HTML_FORMAT,
        )
        return AdapterParseResult(metadata=metadata, manifest=manifest)

    def _excerpt(self, soup: BeautifulSoup) -> str | None:
        body = soup.find("body")
        if body is None:
            return None
        for hidden in body.find_all(["script", "style"]):
            hidden.decompose()
        return clean_optional(normalize_whitespace(body.get_text(" "))[: self._description_max_chars])
