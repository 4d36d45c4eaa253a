"""PDF adapter producing a page-per-resource manifest with outline navigation."""

from __future__ import annotations

from functools import lru_cache, partial
from io import BytesIO
import logging
import re
from typing import Any, Callable, Mapping, Sequence
from urllib.parse import unquote

from lxml import etree
from PIL import Image
import pymupdf

from folio.ingestion.config import DEFAULT_COVER_SCALE, DEFAULT_TEXT_LAYER_PAGE_LIMIT, DEFAULT_TOC_MAX_DEPTH
from folio.ingestion.cover import Base64Codec, encode_data_url, placeholder_cover, resolve_codec
from folio.ingestion.errors import OutlineResolutionFailure, PageTextExtractionFailure
from folio.ingestion.models import (
    AdapterParseResult,
    BookFile,
    BookMetadata,
    ContentManifest,
    ContentManifestItem,
    CoverImage,
    ManifestResource,
    ManifestTextLayer,
)
from folio.ingestion.normalization import clean_optional, normalize_whitespace, title_from_file_name

logger = logging.getLogger(__name__)

PDF_FORMAT = "pdf"
PDF_MIME_TYPE = "application/pdf"

_PDF_MAGIC = b"%PDF-"
_DC_NS = "http://purl.org/dc/elements/1.1/"
_XMP_NS = "http://ns.adobe.com/xap/1.0/"
_PDF_DATE_RE = re.compile(r"^(?:D:)?(?P<year>\d{4})(?P<month>\d{2})?(?P<day>\d{2})?")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}(?:-\d{2})?")
_KEYWORD_SPLIT_RE = re.compile(r"[,;]")

CoverEncoder = Callable[[pymupdf.Pixmap], "CoverImage | str"]


def encode_pixmap_png(pixmap: pymupdf.Pixmap) -> CoverImage:
    """Binary PNG straight from MuPDF."""

    return CoverImage(data=pixmap.tobytes("png"), media_type="image/png")


@lru_cache(maxsize=1)
def default_cover_codec() -> Base64Codec | None:
    return resolve_codec()


def encode_pixmap_data_url(pixmap: pymupdf.Pixmap, codec: Base64Codec | None = None) -> str:
    """PNG re-encoded through Pillow and serialized as a base64 data URL.

    Without an explicit ``codec`` the process-wide codec is used; it is
    resolved on first use only.
    """

    mode = "RGBA" if pixmap.alpha else "RGB"
    image = Image.frombytes(mode, (pixmap.width, pixmap.height), pixmap.samples)
    buffer = BytesIO()
    image.save(buffer, format="PNG")

    codec = codec if codec is not None else default_cover_codec()
    if codec is None:
        raise RuntimeError("No base64 codec available for cover serialization")
    return encode_data_url(CoverImage(data=buffer.getvalue(), media_type="image/png"), codec)


DEFAULT_COVER_ENCODERS: tuple[CoverEncoder, ...] = (encode_pixmap_png, encode_pixmap_data_url)


def _parse_pdf_date(raw: str | None) -> str | None:
    """Turn ``D:YYYYMMDDHHmmSS`` (or an ISO string) into an ISO date prefix."""

    if not raw:
        return None
    value = raw.strip()
    iso = _ISO_DATE_RE.match(value)
    if iso is not None:
        return iso.group(0)
    match = _PDF_DATE_RE.match(value)
    if match is None:
        return clean_optional(value[:10])
    parts = [match.group("year")]
    if match.group("month"):
        parts.append(match.group("month"))
        if match.group("day"):
            parts.append(match.group("day"))
    return "-".join(parts)


def _split_keywords(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [cleaned for part in _KEYWORD_SPLIT_RE.split(raw) if (cleaned := normalize_whitespace(part))]


def _parse_xmp(xml_text: str | None) -> dict[str, list[str]]:
    """Collect Dublin Core values (and xmp:CreateDate) from an XMP packet."""

    if not xml_text or not xml_text.strip():
        return {}

    parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False, recover=True)
    root = etree.fromstring(xml_text.encode("utf-8"), parser=parser)
    if root is None:
        return {}

    values: dict[str, list[str]] = {}
    for key in ("title", "creator", "language", "description", "publisher", "date", "subject"):
        nodes = root.xpath(f"//*[local-name()='{key}' and namespace-uri()='{_DC_NS}']")
        collected: list[str] = []
        for node in nodes:
            items = node.xpath(".//*[local-name()='li']") or [node]
            for item in items:
                text = normalize_whitespace(" ".join(item.itertext()))
                if text and text not in collected:
                    collected.append(text)
        if collected:
            values[f"dc:{key}"] = collected

    created = root.xpath(f"//@*[local-name()='CreateDate' and namespace-uri()='{_XMP_NS}']")
    created += root.xpath(f"//*[local-name()='CreateDate' and namespace-uri()='{_XMP_NS}']/text()")
    if created:
        values["xmp:CreateDate"] = [str(created[0]).strip()]
    return values


def _destination_name(uri: str | None) -> str | None:
    if not uri or not uri.startswith("#"):
        return None
    fragment = uri[1:]
    if fragment.startswith("nameddest="):
        return unquote(fragment[len("nameddest=") :]) or None
    if "=" in fragment:
        return None
    return unquote(fragment) or None


class PDFAdapter:
    """Parse PDF documents with PyMuPDF."""

    format = PDF_FORMAT

    def __init__(
        self,
        text_layer_limit: int = DEFAULT_TEXT_LAYER_PAGE_LIMIT,
        *,
        cover_scale: float = DEFAULT_COVER_SCALE,
        toc_max_depth: int = DEFAULT_TOC_MAX_DEPTH,
        cover_encoders: Sequence[CoverEncoder] | None = None,
        codec: Base64Codec | None = None,
    ) -> None:
        if cover_encoders is None:
            cover_encoders = DEFAULT_COVER_ENCODERS
            if codec is not None:
                cover_encoders = (encode_pixmap_png, partial(encode_pixmap_data_url, codec=codec))
        self._text_layer_limit = text_layer_limit
        self._cover_scale = cover_scale
        self._toc_max_depth = toc_max_depth
        self._cover_encoders = tuple(cover_encoders)

    def supports(self, file: BookFile, extension: str, mime_type: str) -> bool:
        if extension == "pdf" or mime_type == PDF_MIME_TYPE:
            return True
        return file.data[:1024].lstrip().startswith(_PDF_MAGIC)

    def parse(self, file: BookFile) -> AdapterParseResult:
        with pymupdf.open(stream=file.data, filetype="pdf") as doc:
            if doc.needs_pass and not doc.authenticate(""):
                raise ValueError("Password-protected PDF cannot be ingested")

            page_count = doc.page_count
            spine = tuple(
                ManifestResource(id=f"page-{number}", title=f"Page {number}", order=number - 1)
                for number in range(1, page_count + 1)
            )
            manifest = ContentManifest(
                format=PDF_FORMAT,
                spine=spine,
                table_of_contents=self._build_table_of_contents(doc, file.file_name),
                page_count=page_count,
                text_layers=self._build_text_layers(doc, file.file_name),
            )
            metadata = self._extract_metadata(doc, file, page_count)
            cover = self._render_cover(doc, file.file_name)

        return AdapterParseResult(metadata=metadata, manifest=manifest, cover_image=cover)

    def _extract_metadata(self, doc: pymupdf.Document, file: BookFile, page_count: int) -> BookMetadata:
        info: Mapping[str, Any] = doc.metadata or {}
        try:
            xmp = _parse_xmp(doc.get_xml_metadata())
        except Exception as exc:
            logger.warning("Failed to read XMP metadata from %s: %s", file.file_name, exc)
            xmp = {}

        def info_value(key: str) -> str | None:
            return clean_optional(info.get(key))

        def xmp_first(key: str) -> str | None:
            found = xmp.get(key)
            return found[0] if found else None

        creators = xmp.get("dc:creator")
        tags = _split_keywords(info_value("keywords")) or xmp.get("dc:subject") or []

        return BookMetadata(
            title=info_value("title") or xmp_first("dc:title") or title_from_file_name(file.file_name),
            author=info_value("author") or (", ".join(creators) if creators else None),
            publisher=xmp_first("dc:publisher") or info_value("producer"),
            published_date=_parse_pdf_date(
                info_value("creationDate") or xmp_first("dc:date") or xmp_first("xmp:CreateDate")
            ),
            language=xmp_first("dc:language"),
            description=info_value("subject") or xmp_first("dc:description"),
            tags=tuple(tags) or None,
            format=PDF_FORMAT,
            page_count=page_count,
        )

    def _build_text_layers(self, doc: pymupdf.Document, file_name: str) -> tuple[ManifestTextLayer, ...]:
        layers: list[ManifestTextLayer] = []
        page_limit = min(doc.page_count, self._text_layer_limit)

        for page_number in range(1, page_limit + 1):
            try:
                text = self._page_text(doc, page_number)
            except PageTextExtractionFailure as exc:
                logger.warning("Skipping text layer for %s: %s", file_name, exc)
                continue
            layers.append(
                ManifestTextLayer(
                    id=f"page-{page_number}-text",
                    page=page_number,
                    label=f"Page {page_number}",
                    char_count=len(text),
                )
            )

        return tuple(layers)

    def _page_text(self, doc: pymupdf.Document, page_number: int) -> str:
        try:
            page = doc.load_page(page_number - 1)
            return page.get_text("text")
        except Exception as exc:
            raise PageTextExtractionFailure(stage=f"page-{page_number}", message=str(exc)) from exc

    def _build_table_of_contents(self, doc: pymupdf.Document, file_name: str) -> tuple[ContentManifestItem, ...]:
        try:
            entries = doc.get_toc(simple=False)
        except Exception as exc:
            logger.warning("Failed to load PDF outline for %s: %s", file_name, exc)
            return ()
        if not entries:
            return ()

        try:
            names = doc.resolve_names() or {}
        except Exception as exc:
            logger.debug("Named destinations unavailable for %s: %s", file_name, exc)
            names = {}

        return self._nest_outline(doc, entries, names=names, file_name=file_name)

    def _nest_outline(
        self,
        doc: pymupdf.Document,
        entries: Sequence[Sequence[Any]],
        *,
        names: Mapping[str, Mapping[str, Any]],
        file_name: str,
    ) -> tuple[ContentManifestItem, ...]:
        """Turn the flat ``[level, title, page, dest]`` outline into a tree.

        Entries deeper than ``toc_max_depth`` are dropped along with their
        descendants.
        """

        roots: list[dict[str, Any]] = []
        stack: list[tuple[int, dict[str, Any]]] = []
        truncated = False

        for entry in entries:
            level = entry[0] if isinstance(entry[0], int) else 1
            while stack and stack[-1][0] >= level:
                stack.pop()
            if len(stack) >= self._toc_max_depth:
                truncated = True
                continue

            siblings = stack[-1][1]["children"] if stack else roots
            parent_path = stack[-1][1]["path"] if stack else ""
            path = f"{parent_path}.{len(siblings)}" if parent_path else str(len(siblings))

            page_hint = entry[2] if len(entry) > 2 else None
            dest = entry[3] if len(entry) > 3 and isinstance(entry[3], Mapping) else {}
            try:
                page = self._resolve_outline_page(doc, page_hint, dest, names)
            except OutlineResolutionFailure as exc:
                logger.warning("Outline entry %s in %s defaults to page 1: %s", path, file_name, exc)
                page = 1

            node = {
                "path": path,
                "title": clean_optional(entry[1] if len(entry) > 1 else None),
                "page": page,
                "level": len(stack),
                "children": [],
            }
            siblings.append(node)
            stack.append((level, node))

        if truncated:
            logger.warning("PDF outline deeper than %d levels truncated in %s", self._toc_max_depth, file_name)
        return _freeze_outline(roots)

    def _resolve_outline_page(
        self,
        doc: pymupdf.Document,
        page_hint: Any,
        dest: Mapping[str, Any],
        names: Mapping[str, Mapping[str, Any]],
    ) -> int:
        """Return the 1-based destination page of an outline entry."""

        page_count = doc.page_count
        if isinstance(page_hint, int) and 1 <= page_hint <= page_count:
            return page_hint

        dest_page = dest.get("page")
        if isinstance(dest_page, int) and 0 <= dest_page < page_count:
            return dest_page + 1

        uri = dest.get("uri")
        name = dest.get("nameddest") or dest.get("name") or _destination_name(uri)
        if name:
            target = names.get(name) or {}
            named_page = target.get("page", -1)
            if isinstance(named_page, int) and 0 <= named_page < page_count:
                return named_page + 1

        if isinstance(uri, str) and uri.startswith("#"):
            try:
                resolved, _x, _y = doc.resolve_link(uri)
            except Exception as exc:
                raise OutlineResolutionFailure(stage="outline", message=f"Cannot resolve {uri!r}: {exc}") from exc
            if isinstance(resolved, int) and 0 <= resolved < page_count:
                return resolved + 1

        raise OutlineResolutionFailure(stage="outline", message=f"No destination page for {name or uri or 'entry'!r}")

    def _render_cover(self, doc: pymupdf.Document, file_name: str) -> CoverImage | str:
        try:
            page = doc.load_page(0)
            matrix = pymupdf.Matrix(self._cover_scale, self._cover_scale)
            pixmap = page.get_pixmap(matrix=matrix, colorspace=pymupdf.csRGB, alpha=False)
        except Exception as exc:
            logger.warning("Failed to render PDF cover for %s: %s", file_name, exc)
            return placeholder_cover()

        for encoder in self._cover_encoders:
            try:
                return encoder(pixmap)
            except Exception as exc:
                name = getattr(encoder, "__name__", type(encoder).__name__)
                logger.warning("PDF cover encoder %s failed for %s: %s", name, file_name, exc)

        return placeholder_cover()


def _freeze_outline(nodes: Sequence[Mapping[str, Any]]) -> tuple[ContentManifestItem, ...]:
    return tuple(
        ContentManifestItem(
            id=f"outline-{node['path']}",
            title=node["title"],
            href=f"#page={node['page']}",
            order=index,
            level=node["level"],
            children=_freeze_outline(node["children"]),
            spine_item_id=f"page-{node['page']}",
            page=node["page"],
        )
        for index, node in enumerate(nodes)
    )
