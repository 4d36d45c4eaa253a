"""Ingestion pipeline interfaces."""

from .config import IngestionSettings
from .errors import IngestionError, ParseFailure, SizeLimitExceeded, UnsupportedFormat
from .ingestor import FileIngestionService
from .models import (
    BookFile,
    BookMetadata,
    ContentManifest,
    FileIngestionResult,
    IngestionDuplicate,
    IngestionFailed,
    IngestionSuccess,
    IngestionUnsupported,
)

__all__ = [
    "BookFile",
    "BookMetadata",
    "ContentManifest",
    "FileIngestionResult",
    "FileIngestionService",
    "IngestionDuplicate",
    "IngestionError",
    "IngestionFailed",
    "IngestionSettings",
    "IngestionSuccess",
    "IngestionUnsupported",
    "ParseFailure",
    "SizeLimitExceeded",
    "UnsupportedFormat",
]
