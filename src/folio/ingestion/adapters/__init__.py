"""Format adapter implementations and contracts."""

from __future__ import annotations

import logging

from folio.ingestion.config import IngestionSettings

from .base import FormatAdapter

logger = logging.getLogger(__name__)

try:
    from .epub_adapter import EPUBAdapter
except ImportError:
    EPUBAdapter = None
    logger.warning("EPUB support unavailable: install 'EbookLib'")

try:
    from .pdf_adapter import PDFAdapter
except ImportError:
    PDFAdapter = None
    logger.warning("PDF support unavailable: install 'pymupdf'")

try:
    from .txt_adapter import TXTAdapter
except ImportError:
    TXTAdapter = None
    logger.warning("Plain-text support unavailable: install 'charset-normalizer'")

try:
    from .html_adapter import HTMLAdapter
except ImportError:
    HTMLAdapter = None
    logger.warning("HTML support unavailable: install 'beautifulsoup4' and 'lxml'")


def build_default_adapters(settings: IngestionSettings | None = None) -> list[FormatAdapter]:
    """Return the built-in adapters in lookup order: EPUB, PDF, plain text, HTML."""
    settings = settings or IngestionSettings()
    adapters: list[FormatAdapter] = []
    if EPUBAdapter is not None:
        adapters.append(EPUBAdapter(toc_max_depth=settings.toc_max_depth))
    if PDFAdapter is not None:
        adapters.append(
            PDFAdapter(
                settings.text_layer_page_limit,
                cover_scale=settings.cover_scale,
                toc_max_depth=settings.toc_max_depth,
            )
        )
    if TXTAdapter is not None:
        adapters.append(
            TXTAdapter(
                title_max_chars=settings.title_max_chars,
                description_max_chars=settings.description_max_chars,
            )
        )
    if HTMLAdapter is not None:
        adapters.append(
            HTMLAdapter(
                title_max_chars=settings.title_max_chars,
                description_max_chars=settings.description_max_chars,
            )
        )
    return adapters


__all__ = [
    "FormatAdapter",
    "EPUBAdapter",
    "PDFAdapter",
    "TXTAdapter",
    "HTMLAdapter",
    "build_default_adapters",
]
