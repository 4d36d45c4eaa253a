"""Post-processing that makes any adapter's draft manifest obey the canonical invariants.

After ``normalize_manifest`` every spine and table-of-contents entry has an id
that is unique within the manifest and an ``order`` equal to its position
among its siblings, ``level`` equals the tree depth, text layers are clamped
to the configured page limit, and ``format`` is the adapter's tag.
"""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Iterable, Sequence

from folio.ingestion.config import DEFAULT_TEXT_LAYER_PAGE_LIMIT, DEFAULT_TOC_MAX_DEPTH
from folio.ingestion.models import (
    BookMetadata,
    ContentManifest,
    ContentManifestItem,
    ManifestResource,
    ManifestTextLayer,
)
from folio.ingestion.normalization import clean_optional, title_from_file_name

logger = logging.getLogger(__name__)


def _unique_id(candidate: str | None, fallback: str, seen: set[str]) -> str:
    if candidate and candidate not in seen:
        seen.add(candidate)
        return candidate

    value = fallback
    suffix = 1
    while value in seen:
        value = f"{fallback}-{suffix}"
        suffix += 1
    seen.add(value)
    return value


def normalize_spine(spine: Iterable[ManifestResource]) -> tuple[ManifestResource, ...]:
    seen: set[str] = set()
    return tuple(
        replace(resource, id=_unique_id(resource.id, f"spine-{index}", seen), order=index)
        for index, resource in enumerate(spine)
    )


def normalize_table_of_contents(
    items: Sequence[ContentManifestItem],
    *,
    max_depth: int = DEFAULT_TOC_MAX_DEPTH,
) -> tuple[ContentManifestItem, ...]:
    seen: set[str] = set()
    return _normalize_toc_level(items, level=0, prefix="toc", seen=seen, max_depth=max_depth)


def _normalize_toc_level(
    items: Sequence[ContentManifestItem],
    *,
    level: int,
    prefix: str,
    seen: set[str],
    max_depth: int,
) -> tuple[ContentManifestItem, ...]:
    normalized: list[ContentManifestItem] = []

    for index, item in enumerate(items):
        fallback = f"{prefix}-{index}"
        item_id = _unique_id(item.id, fallback, seen)

        children: tuple[ContentManifestItem, ...] = ()
        if item.children:
            if level + 1 >= max_depth:
                logger.warning("Dropping table-of-contents entries nested deeper than %d levels", max_depth)
            else:
                children = _normalize_toc_level(
                    item.children,
                    level=level + 1,
                    prefix=fallback,
                    seen=seen,
                    max_depth=max_depth,
                )

        normalized.append(replace(item, id=item_id, order=index, level=level, children=children))

    return tuple(normalized)


def limit_text_layers(
    text_layers: Sequence[ManifestTextLayer] | None,
    limit: int,
) -> tuple[ManifestTextLayer, ...] | None:
    if text_layers is None:
        return None
    return tuple(text_layers[: max(limit, 0)])


def normalize_manifest(
    manifest: ContentManifest,
    format_tag: str,
    *,
    text_layer_limit: int = DEFAULT_TEXT_LAYER_PAGE_LIMIT,
    max_depth: int = DEFAULT_TOC_MAX_DEPTH,
) -> ContentManifest:
    """Fill missing ids and ordering, clamp text layers and stamp the format."""

    if manifest.format and manifest.format != format_tag:
        logger.warning("Adapter manifest format %r replaced by adapter tag %r", manifest.format, format_tag)

    return ContentManifest(
        format=format_tag,
        spine=normalize_spine(manifest.spine),
        table_of_contents=normalize_table_of_contents(manifest.table_of_contents, max_depth=max_depth),
        page_count=manifest.page_count,
        text_layers=limit_text_layers(manifest.text_layers, text_layer_limit),
    )


def normalize_metadata(
    metadata: BookMetadata,
    format_tag: str,
    manifest: ContentManifest,
    *,
    file_name: str,
    cover_data_url: str | None = None,
) -> BookMetadata:
    title = clean_optional(metadata.title) or title_from_file_name(file_name)
    page_count = metadata.page_count if metadata.page_count is not None else manifest.page_count
    return replace(
        metadata,
        title=title,
        format=metadata.format or format_tag,
        page_count=page_count,
        cover_image=cover_data_url or metadata.cover_image,
    )
