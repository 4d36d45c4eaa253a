"""Error taxonomy for file ingestion.

Only the top-level errors (size limit, unsupported format, parse failure)
ever reach the orchestrator; they are converted into result variants there.
Recoverable extraction errors are raised and caught inside adapters and only
degrade the output.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class IngestionError(Exception):
    """Domain error for adapter routing and extraction failures."""

    file_name: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (file={self.file_name})"


class SizeLimitExceeded(IngestionError):
    """The payload is larger than the configured maximum; nothing was parsed."""


class UnsupportedFormat(IngestionError):
    """No registered adapter claimed the file."""


class ParseFailure(IngestionError):
    """The selected adapter raised or returned non-canonical output."""


@dataclass(slots=True)
class RecoverableExtractionError(Exception):
    """A sub-step failure that an adapter absorbs locally."""

    stage: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (stage={self.stage})"


class CoverExtractionFailure(RecoverableExtractionError):
    pass


class OutlineResolutionFailure(RecoverableExtractionError):
    pass


class PageTextExtractionFailure(RecoverableExtractionError):
    pass
