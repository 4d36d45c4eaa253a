"""Orchestration entrypoint: size check, routing, dedupe, parse, normalize, persist."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Iterable

from folio.ingestion.adapters import build_default_adapters
from folio.ingestion.adapters.base import FormatAdapter
from folio.ingestion.config import IngestionSettings
from folio.ingestion.cover import CoverNormalizer, NormalizedCover
from folio.ingestion.dedupe import DuplicateDetector
from folio.ingestion.errors import IngestionError, ParseFailure, SizeLimitExceeded, UnsupportedFormat
from folio.ingestion.manifest import normalize_manifest, normalize_metadata
from folio.ingestion.models import (
    AdapterParseResult,
    BookFile,
    BookMetadata,
    ContentManifest,
    FileIngestionResult,
    IngestionDuplicate,
    IngestionFailed,
    IngestionSuccess,
    IngestionUnsupported,
)
from folio.ingestion.resolver import FormatResolver

if TYPE_CHECKING:
    from folio.storage.base import BookLibrary

logger = logging.getLogger(__name__)

_MEBIBYTE = 1024 * 1024


def size_limit_message(max_file_size: int) -> str:
    if max_file_size < _MEBIBYTE:
        return f"File exceeds maximum allowed size of {max_file_size} bytes."
    return f"File exceeds maximum allowed size of {round(max_file_size / _MEBIBYTE)} MB."


class FileIngestionService:
    """Turn uploaded files into stored book records, one result per file.

    Per-file problems never raise out of ``ingest_file``; they come back as
    ``IngestionFailed``, ``IngestionUnsupported`` or ``IngestionDuplicate``.
    """

    def __init__(
        self,
        library: BookLibrary,
        settings: IngestionSettings | None = None,
        *,
        adapters: Iterable[FormatAdapter] | None = None,
        cover_normalizer: CoverNormalizer | None = None,
        register_defaults: bool = True,
    ) -> None:
        self._library = library
        self._settings = settings or IngestionSettings()
        self._resolver = FormatResolver()
        self._duplicates = DuplicateDetector(library)
        self._covers = cover_normalizer or CoverNormalizer(
            timeout_seconds=self._settings.remote_cover_timeout_seconds
        )

        if register_defaults:
            for adapter in build_default_adapters(self._settings):
                self._resolver.register(adapter)
        for adapter in adapters or ():
            self._resolver.register(adapter)

    @property
    def settings(self) -> IngestionSettings:
        return self._settings

    @property
    def formats(self) -> list[str]:
        """Registered format tags in lookup order."""

        return self._resolver.formats

    def register_adapter(self, adapter: FormatAdapter) -> None:
        """Register an adapter; it replaces any adapter with the same format tag."""

        self._resolver.register(adapter)

    async def ingest_files(self, files: Iterable[BookFile]) -> list[FileIngestionResult]:
        """Ingest files one at a time, returning results in input order."""

        results: list[FileIngestionResult] = []
        for file in files:
            results.append(await self.ingest_file(file))
        return results

    async def ingest_file(self, file: BookFile) -> FileIngestionResult:
        try:
            self._check_size(file)
            adapter = self._resolve_adapter(file)
        except SizeLimitExceeded as exc:
            logger.warning("Rejected oversized file %s (%d bytes)", file.file_name, file.file_size)
            return IngestionFailed(file_name=file.file_name, error=exc.message, kind="size_limit")
        except UnsupportedFormat as exc:
            logger.warning("Unsupported file format: %s", file.file_name)
            return IngestionUnsupported(file_name=file.file_name, error=exc.message)

        if self._settings.duplicate_strategy == "skip":
            try:
                existing = self._duplicates.find(file)
                duplicate_of = self._library.find_book_id_for_file(existing.id) if existing is not None else None
            except Exception as exc:
                logger.exception("Duplicate lookup failed for %s", file.file_name)
                return IngestionFailed(
                    file_name=file.file_name,
                    error=f"Failed to check for duplicates: {exc}",
                    kind="storage_failure",
                )
            if existing is not None:
                logger.info("Skipped duplicate %s (book=%s)", file.file_name, duplicate_of)
                return IngestionDuplicate(file_name=file.file_name, duplicate_of=duplicate_of)

        try:
            parsed = await self._parse(adapter, file)
            manifest = self._normalize_manifest(adapter, file, parsed)
            cover = await self._normalize_cover(file, parsed)
            metadata = self._normalize_metadata(adapter, file, parsed, manifest, cover.data_url)
        except ParseFailure as exc:
            logger.warning("Failed to parse %s: %s", file.file_name, exc)
            return IngestionFailed(file_name=file.file_name, error=exc.message, kind="parse_failure")

        try:
            book_id = self._library.add_book(file, metadata, manifest, cover.image)
        except Exception as exc:
            logger.exception("Failed to store %s", file.file_name)
            return IngestionFailed(
                file_name=file.file_name,
                error=f"Failed to store book: {exc}",
                kind="storage_failure",
            )

        logger.info(
            "Ingested %s as %s (format=%s spine=%d toc=%d)",
            file.file_name,
            book_id,
            manifest.format,
            len(manifest.spine),
            len(manifest.table_of_contents),
        )
        return IngestionSuccess(file_name=file.file_name, book_id=book_id, metadata=metadata, manifest=manifest)

    def _check_size(self, file: BookFile) -> None:
        if file.file_size > self._settings.max_file_size:
            raise SizeLimitExceeded(file.file_name, size_limit_message(self._settings.max_file_size))

    def _resolve_adapter(self, file: BookFile) -> FormatAdapter:
        adapter = self._resolver.resolve(file)
        if adapter is None:
            raise UnsupportedFormat(file.file_name, "Unsupported file format")
        return adapter

    async def _parse(self, adapter: FormatAdapter, file: BookFile) -> AdapterParseResult:
        try:
            parsed = await asyncio.to_thread(adapter.parse, file)
        except IngestionError as exc:
            raise ParseFailure(file.file_name, exc.message) from exc
        except Exception as exc:
            raise ParseFailure(file.file_name, str(exc) or "Failed to ingest file") from exc

        if not isinstance(parsed, AdapterParseResult):
            raise ParseFailure(file.file_name, "Adapter returned non-canonical output")
        return parsed

    def _normalize_manifest(
        self,
        adapter: FormatAdapter,
        file: BookFile,
        parsed: AdapterParseResult,
    ) -> ContentManifest:
        try:
            return normalize_manifest(
                parsed.manifest,
                adapter.format,
                text_layer_limit=self._settings.text_layer_page_limit,
                max_depth=self._settings.toc_max_depth,
            )
        except Exception as exc:
            raise ParseFailure(file.file_name, f"Invalid manifest: {exc}") from exc

    async def _normalize_cover(self, file: BookFile, parsed: AdapterParseResult) -> NormalizedCover:
        try:
            return await self._covers.normalize(parsed.cover_image)
        except Exception:
            logger.warning("Dropping cover for %s", file.file_name, exc_info=True)
            return NormalizedCover()

    def _normalize_metadata(
        self,
        adapter: FormatAdapter,
        file: BookFile,
        parsed: AdapterParseResult,
        manifest: ContentManifest,
        cover_data_url: str | None,
    ) -> BookMetadata:
        try:
            return normalize_metadata(
                parsed.metadata,
                adapter.format,
                manifest,
                file_name=file.file_name,
                cover_data_url=cover_data_url,
            )
        except Exception as exc:
            raise ParseFailure(file.file_name, f"Invalid metadata: {exc}") from exc
