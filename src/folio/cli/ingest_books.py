"""CLI command that ingests book files into a SQLite library and reports per-file results."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

from folio.ingestion.config import IngestionSettings
from folio.ingestion.ingestor import FileIngestionService
from folio.ingestion.models import BookFile, FileIngestionResult, IngestionFailed
from folio.storage.repository import LibraryRepository


load_dotenv()

LOGGER = logging.getLogger(__name__)

_SUPPORTED_SUFFIXES = {".epub", ".pdf", ".txt", ".text", ".html", ".htm"}


def _is_supported(path: Path) -> bool:
    return path.suffix.lower() in _SUPPORTED_SUFFIXES


def _collect_inputs(target: Path) -> list[Path]:
    if target.is_file():
        return [target]
    if target.is_dir():
        return sorted(path for path in target.rglob("*") if path.is_file() and _is_supported(path))
    return []


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest book files and store normalized manifests")
    parser.add_argument("--path", required=True, help="Source file or directory")
    parser.add_argument("--db-path", default=".folio-library.db", help="SQLite database path")
    parser.add_argument("--max-file-size", type=int, default=None, help="Maximum accepted file size in bytes")
    parser.add_argument(
        "--duplicate-strategy",
        choices=("skip", "allow"),
        default=None,
        help="What to do with files already in the library",
    )
    parser.add_argument(
        "--text-layer-page-limit",
        type=int,
        default=None,
        help="Maximum number of PDF pages that get a text layer",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def _ingest(paths: list[Path], db_path: str, settings: IngestionSettings) -> list[FileIngestionResult]:
    results: list[FileIngestionResult] = []
    with LibraryRepository(db_path) as library:
        service = FileIngestionService(library, settings)
        for path in paths:
            try:
                file = BookFile.from_path(path)
            except OSError as exc:
                LOGGER.error("Failed to read source file %s: %s", path, exc)
                results.append(
                    IngestionFailed(file_name=path.name, error=f"Failed to read source file: {exc}")
                )
                continue
            results.append(await service.ingest_file(file))
    return results


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        settings = IngestionSettings.from_env().with_overrides(
            max_file_size=args.max_file_size,
            duplicate_strategy=args.duplicate_strategy,
            text_layer_page_limit=args.text_layer_page_limit,
        )
    except ValueError as exc:
        LOGGER.error("Invalid ingestion settings: %s", exc)
        return 2

    source_path = Path(args.path)
    files = _collect_inputs(source_path)
    if not files:
        LOGGER.warning("No ingestible files found at %s", source_path)

    results = asyncio.run(_ingest(files, args.db_path, settings))

    payload = {
        "path": str(source_path),
        "processed": len(results),
        "results": [result.to_dict() for result in results],
    }
    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 1 if any(result.status == "error" for result in results) else 0


if __name__ == "__main__":
    raise SystemExit(main())
