"""Cover image normalization into a (binary image, data URL) pair.

Adapters hand back covers as raw bytes, ``CoverImage`` records, data URLs or
remote URLs. Every path here fails soft: a cover that cannot be converted is
dropped (or kept as binary only), it never fails the ingestion.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
from dataclasses import dataclass
from io import BytesIO
import logging
import re
from typing import Callable, Sequence
from urllib.parse import unquote_to_bytes, urlparse

from PIL import Image
import requests

from folio.ingestion.config import DEFAULT_REMOTE_COVER_TIMEOUT_SECONDS
from folio.ingestion.models import CoverImage

logger = logging.getLogger(__name__)

DEFAULT_COVER_MEDIA_TYPE = "image/png"

PLACEHOLDER_PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR4nGNgYAAAAAMAAWgmWQ0AAAAASUVORK5CYII="
)
PLACEHOLDER_PNG_DATA_URL = f"data:image/png;base64,{PLACEHOLDER_PNG_BASE64}"
PLACEHOLDER_PNG = base64.b64decode(PLACEHOLDER_PNG_BASE64)

_DATA_URL_RE = re.compile(
    r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*?),(?P<payload>.*)$",
    re.IGNORECASE | re.DOTALL,
)

# Multiple of 3 so each chunk encodes without inner padding.
_CHUNK_SIZE = 3 * 2730
_PROBE = b"\x89PNG\r\n\x1a\n\x00\xff folio"

_MAGIC_TYPES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
)


@dataclass(frozen=True, slots=True)
class Base64Codec:
    """One binary/text conversion path."""

    name: str
    encode: Callable[[bytes], str]
    decode: Callable[[str], bytes]


@dataclass(frozen=True, slots=True)
class NormalizedCover:
    image: CoverImage | None = None
    data_url: str | None = None


def _stdlib_encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _stdlib_decode(text: str) -> bytes:
    return base64.b64decode("".join(text.split()), validate=True)


def _chunked_encode(data: bytes) -> str:
    parts: list[str] = []
    for start in range(0, len(data), _CHUNK_SIZE):
        chunk = data[start : start + _CHUNK_SIZE]
        parts.append(binascii.b2a_base64(chunk, newline=False).decode("ascii"))
    return "".join(parts)


def _chunked_decode(text: str) -> bytes:
    cleaned = "".join(text.split())
    return binascii.a2b_base64(cleaned.encode("ascii"))


DEFAULT_CODECS: tuple[Base64Codec, ...] = (
    Base64Codec(name="base64", encode=_stdlib_encode, decode=_stdlib_decode),
    Base64Codec(name="binascii-chunked", encode=_chunked_encode, decode=_chunked_decode),
)


def resolve_codec(candidates: Sequence[Base64Codec] = DEFAULT_CODECS) -> Base64Codec | None:
    """Return the first codec that round-trips a probe payload, or None."""

    for codec in candidates:
        try:
            if codec.decode(codec.encode(_PROBE)) == _PROBE:
                return codec
        except Exception:
            logger.debug("Cover codec unavailable: %s", codec.name, exc_info=True)
    logger.warning("No base64 codec available; covers will be stored as binary only")
    return None


def placeholder_cover() -> CoverImage:
    return CoverImage(data=PLACEHOLDER_PNG, media_type="image/png")


def sniff_image_type(data: bytes, default: str = DEFAULT_COVER_MEDIA_TYPE) -> str:
    """Guess an image media type from magic bytes, then from Pillow."""

    for magic, media_type in _MAGIC_TYPES:
        if data.startswith(magic):
            return media_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data.lstrip()[:5].lower() in (b"<?xml", b"<svg "):
        return "image/svg+xml"

    try:
        with Image.open(BytesIO(data)) as image:
            fmt = image.format
    except Exception:
        logger.debug("Pillow could not identify cover image", exc_info=True)
        return default
    return Image.MIME.get(fmt or "", default)


def encode_data_url(image: CoverImage, codec: Base64Codec) -> str:
    media_type = image.media_type or DEFAULT_COVER_MEDIA_TYPE
    return f"data:{media_type};base64,{codec.encode(image.data)}"


def decode_data_url(value: str, codec: Base64Codec | None) -> CoverImage:
    """Decode a ``data:`` URL; raises ValueError when it cannot be decoded."""

    match = _DATA_URL_RE.match(value.strip())
    if match is None:
        raise ValueError("Malformed data URL")

    media_type = match.group("mime") or "application/octet-stream"
    params = [part.strip().lower() for part in match.group("params").split(";") if part.strip()]
    payload = match.group("payload")

    if "base64" in params:
        if codec is None:
            raise ValueError("Base64 decoding is not supported in this environment")
        return CoverImage(data=codec.decode(payload), media_type=media_type)
    return CoverImage(data=unquote_to_bytes(payload), media_type=media_type)


def fetch_remote_cover(url: str, timeout: float = DEFAULT_REMOTE_COVER_TIMEOUT_SECONDS) -> CoverImage:
    """Download a cover image with a single GET request."""

    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    content_type = response.headers.get("content-type") or DEFAULT_COVER_MEDIA_TYPE
    media_type = content_type.split(";", 1)[0].strip() or DEFAULT_COVER_MEDIA_TYPE
    return CoverImage(data=response.content, media_type=media_type)


class CoverNormalizer:
    """Convert any supported cover reference into a canonical pair."""

    def __init__(
        self,
        codec: Base64Codec | None = None,
        *,
        resolve: bool = True,
        fetcher: Callable[[str, float], CoverImage] = fetch_remote_cover,
        timeout_seconds: float = DEFAULT_REMOTE_COVER_TIMEOUT_SECONDS,
    ) -> None:
        self._codec = codec if codec is not None or not resolve else resolve_codec()
        self._fetcher = fetcher
        self._timeout_seconds = timeout_seconds

    @property
    def codec(self) -> Base64Codec | None:
        return self._codec

    async def normalize(self, cover: CoverImage | bytes | str | None) -> NormalizedCover:
        if cover is None:
            return NormalizedCover()

        if isinstance(cover, (bytes, bytearray)):
            data = bytes(cover)
            if not data:
                return NormalizedCover()
            return self._from_binary(CoverImage(data=data, media_type=sniff_image_type(data)))

        if isinstance(cover, CoverImage):
            if not cover.data:
                return NormalizedCover()
            return self._from_binary(cover)

        value = cover.strip()
        if not value:
            return NormalizedCover()
        if value[:5].lower() == "data:":
            return self._from_data_url(value)
        return await self._from_remote(value)

    def _from_binary(self, image: CoverImage) -> NormalizedCover:
        if self._codec is None:
            return NormalizedCover(image=image)
        try:
            return NormalizedCover(image=image, data_url=encode_data_url(image, self._codec))
        except Exception:
            logger.warning("Failed to serialize cover image", exc_info=True)
            return NormalizedCover(image=image)

    def _from_data_url(self, value: str) -> NormalizedCover:
        try:
            image = decode_data_url(value, self._codec)
        except Exception:
            logger.warning("Failed to decode cover data URL", exc_info=True)
            return NormalizedCover()
        if not image.data:
            return NormalizedCover()
        return NormalizedCover(image=image, data_url=value)

    async def _from_remote(self, url: str) -> NormalizedCover:
        if urlparse(url).scheme.lower() not in {"http", "https"}:
            logger.warning("Unsupported cover reference: %s", url[:80])
            return NormalizedCover()
        try:
            image = await asyncio.to_thread(self._fetcher, url, self._timeout_seconds)
        except Exception:
            logger.warning("Failed to resolve cover image: %s", url, exc_info=True)
            return NormalizedCover()
        if not image.data:
            return NormalizedCover()
        return self._from_binary(image)
