"""Checkout shim so `python -m folio.cli.ingest_books` works without installing."""

from __future__ import annotations

from pathlib import Path

_SRC_PACKAGE = Path(__file__).resolve().parent.parent / "src" / "folio"

if _SRC_PACKAGE.is_dir():
    __path__.append(str(_SRC_PACKAGE))
