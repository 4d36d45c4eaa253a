"""Adapter registry keyed by format tag."""

from __future__ import annotations

import logging

from folio.ingestion.adapters.base import FormatAdapter
from folio.ingestion.models import BookFile

logger = logging.getLogger(__name__)


class FormatResolver:
    """Pick the adapter that claims a file.

    Adapters are consulted in registration order. Registering an adapter for a
    format tag that is already present replaces the earlier one and moves the
    tag to the end of the lookup order.
    """

    def __init__(self, adapters: list[FormatAdapter] | None = None) -> None:
        self._adapters: dict[str, FormatAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    @property
    def adapters(self) -> list[FormatAdapter]:
        return list(self._adapters.values())

    @property
    def formats(self) -> list[str]:
        return list(self._adapters)

    def register(self, adapter: FormatAdapter) -> None:
        """Register an adapter; the last registration for a format wins."""

        tag = getattr(adapter, "format", None)
        if not tag:
            raise ValueError("Adapter format tag cannot be empty")
        self._adapters.pop(tag, None)
        self._adapters[tag] = adapter

    def resolve(self, file: BookFile) -> FormatAdapter | None:
        extension = file.extension
        mime_type = file.mime_type

        for adapter in self._adapters.values():
            try:
                if adapter.supports(file, extension, mime_type):
                    return adapter
            except Exception:
                logger.warning(
                    "Adapter support check failed: format=%s file=%s",
                    adapter.format,
                    file.file_name,
                    exc_info=True,
                )
        return None
