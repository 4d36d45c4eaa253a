"""Shared adapter contract for per-format ingestion parsers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from folio.ingestion.models import AdapterParseResult, BookFile


@runtime_checkable
class FormatAdapter(Protocol):
    """Protocol that every format adapter must implement."""

    format: str

    def supports(self, file: BookFile, extension: str, mime_type: str) -> bool:
        """Return True when this adapter can parse the given file."""

    def parse(self, file: BookFile) -> AdapterParseResult:
        """Parse the payload into raw metadata, a manifest draft and an optional cover."""
