"""Runtime configuration for the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, replace
import os
from typing import Literal, Mapping


DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024
DEFAULT_DUPLICATE_STRATEGY = "skip"
DEFAULT_TEXT_LAYER_PAGE_LIMIT = 20
DEFAULT_REMOTE_COVER_TIMEOUT_SECONDS = 10.0
DEFAULT_COVER_SCALE = 0.5
DEFAULT_TOC_MAX_DEPTH = 32
DEFAULT_TITLE_MAX_CHARS = 200
DEFAULT_DESCRIPTION_MAX_CHARS = 500

DuplicateStrategy = Literal["skip", "allow"]
_DUPLICATE_STRATEGIES = ("skip", "allow")

MIN_MAX_FILE_SIZE = 1
MIN_REMOTE_COVER_TIMEOUT_SECONDS = 0.1
MIN_COVER_SCALE = 0.05
MIN_TOC_MAX_DEPTH = 1


def _parse_positive_int(*, name: str, raw_value: str, minimum: int = 1) -> int:
    try:
        value = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_positive_float(*, name: str, raw_value: str, minimum: float = 0.001) -> float:
    try:
        value = float(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_duplicate_strategy(raw_value: str) -> DuplicateStrategy:
    value = raw_value.strip().lower()
    if value not in _DUPLICATE_STRATEGIES:
        raise ValueError(f"FOLIO_DUPLICATE_STRATEGY must be one of: {', '.join(_DUPLICATE_STRATEGIES)}")
    return value  # type: ignore[return-value]


@dataclass(frozen=True, slots=True)
class IngestionSettings:
    """Validated options recognized by the ingestion orchestrator."""

    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    duplicate_strategy: DuplicateStrategy = DEFAULT_DUPLICATE_STRATEGY
    text_layer_page_limit: int = DEFAULT_TEXT_LAYER_PAGE_LIMIT
    remote_cover_timeout_seconds: float = DEFAULT_REMOTE_COVER_TIMEOUT_SECONDS
    cover_scale: float = DEFAULT_COVER_SCALE
    toc_max_depth: int = DEFAULT_TOC_MAX_DEPTH
    title_max_chars: int = DEFAULT_TITLE_MAX_CHARS
    description_max_chars: int = DEFAULT_DESCRIPTION_MAX_CHARS

    def __post_init__(self) -> None:
        if self.max_file_size < MIN_MAX_FILE_SIZE:
            raise ValueError(f"max_file_size must be >= {MIN_MAX_FILE_SIZE}")
        if self.duplicate_strategy not in _DUPLICATE_STRATEGIES:
            raise ValueError(f"duplicate_strategy must be one of: {', '.join(_DUPLICATE_STRATEGIES)}")
        if self.text_layer_page_limit < 0:
            raise ValueError("text_layer_page_limit cannot be negative")
        if self.remote_cover_timeout_seconds < MIN_REMOTE_COVER_TIMEOUT_SECONDS:
            raise ValueError(f"remote_cover_timeout_seconds must be >= {MIN_REMOTE_COVER_TIMEOUT_SECONDS}")
        if self.cover_scale < MIN_COVER_SCALE:
            raise ValueError(f"cover_scale must be >= {MIN_COVER_SCALE}")
        if self.toc_max_depth < MIN_TOC_MAX_DEPTH:
            raise ValueError(f"toc_max_depth must be >= {MIN_TOC_MAX_DEPTH}")

    def with_overrides(self, **overrides: object) -> "IngestionSettings":
        """Return a copy with the given options replaced; None values are ignored."""

        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "IngestionSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        max_file_size_raw = source.get("FOLIO_MAX_FILE_SIZE", str(DEFAULT_MAX_FILE_SIZE)).strip()
        strategy_raw = source.get("FOLIO_DUPLICATE_STRATEGY", DEFAULT_DUPLICATE_STRATEGY).strip()
        page_limit_raw = source.get("FOLIO_TEXT_LAYER_PAGE_LIMIT", str(DEFAULT_TEXT_LAYER_PAGE_LIMIT)).strip()
        timeout_raw = source.get(
            "FOLIO_REMOTE_COVER_TIMEOUT_SECONDS", str(DEFAULT_REMOTE_COVER_TIMEOUT_SECONDS)
        ).strip()
        scale_raw = source.get("FOLIO_COVER_SCALE", str(DEFAULT_COVER_SCALE)).strip()
        depth_raw = source.get("FOLIO_TOC_MAX_DEPTH", str(DEFAULT_TOC_MAX_DEPTH)).strip()

        if not max_file_size_raw:
            raise ValueError("FOLIO_MAX_FILE_SIZE cannot be empty")
        if not strategy_raw:
            raise ValueError("FOLIO_DUPLICATE_STRATEGY cannot be empty")
        if not page_limit_raw:
            raise ValueError("FOLIO_TEXT_LAYER_PAGE_LIMIT cannot be empty")

        return cls(
            max_file_size=_parse_positive_int(
                name="FOLIO_MAX_FILE_SIZE",
                raw_value=max_file_size_raw,
                minimum=MIN_MAX_FILE_SIZE,
            ),
            duplicate_strategy=_parse_duplicate_strategy(strategy_raw),
            text_layer_page_limit=_parse_positive_int(
                name="FOLIO_TEXT_LAYER_PAGE_LIMIT",
                raw_value=page_limit_raw,
                minimum=0,
            ),
            remote_cover_timeout_seconds=_parse_positive_float(
                name="FOLIO_REMOTE_COVER_TIMEOUT_SECONDS",
                raw_value=timeout_raw or str(DEFAULT_REMOTE_COVER_TIMEOUT_SECONDS),
                minimum=MIN_REMOTE_COVER_TIMEOUT_SECONDS,
            ),
            cover_scale=_parse_positive_float(
                name="FOLIO_COVER_SCALE",
                raw_value=scale_raw or str(DEFAULT_COVER_SCALE),
                minimum=MIN_COVER_SCALE,
            ),
            toc_max_depth=_parse_positive_int(
                name="FOLIO_TOC_MAX_DEPTH",
                raw_value=depth_raw or str(DEFAULT_TOC_MAX_DEPTH),
                minimum=MIN_TOC_MAX_DEPTH,
            ),
        )
