"""
Embedded raster image enumeration for PDFs (pdfplumber + Pillow).

Each image XObject drawn on a page is materialized by priority:

    1. decode to PNG (JPEG / JPEG 2000 via Pillow, or raw 8-bit / 1-bit
       pixel data of a known colour space)
    2. keep the encoded bytes, typed from the stream's filter
       (DCT → JPEG, JPX → JPEG 2000, JBIG2 → JBIG2)
    3. skip
"""

from __future__ import annotations

import io
from typing import Any

import pdfplumber
from PIL import Image, UnidentifiedImageError
from pdfminer.pdftypes import PDFStream, resolve1
from pdfminer.psparser import PSLiteral

from docflow.core.logging import get_logger
from docflow.pipeline.envelope import ExtractedArtifact

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF-"

PNG = ("image/png", "png")

# Filters whose output is an encoded image file rather than raw pixels.
_ENCODED_IMAGE_TYPES: dict[str, tuple[str, str]] = {
    "DCTDecode": ("image/jpeg", "jpg"),
    "DCT": ("image/jpeg", "jpg"),
    "JPXDecode": ("image/jp2", "jp2"),
    "JBIG2Decode": ("image/jbig2", "jb2"),
}
_PILLOW_DECODABLE = {"DCTDecode", "DCT", "JPXDecode"}

_COLOR_MODES = {
    "DeviceRGB": "RGB",
    "CalRGB": "RGB",
    "DeviceGray": "L",
    "CalGray": "L",
    "DeviceCMYK": "CMYK",
}
_ICC_COMPONENTS = {1: "L", 3: "RGB", 4: "CMYK"}
_BYTES_PER_PIXEL = {"RGB": 3, "L": 1, "CMYK": 4}


def is_pdf(data: bytes) -> bool:
    return data[:1024].lstrip().startswith(PDF_MAGIC)


def extract_images(pdf_bytes: bytes) -> list[ExtractedArtifact]:
    """All materializable images, in page order then drawing order."""
    artifacts: list[ExtractedArtifact] = []

    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        for page in pdf.pages:
            for index, image in enumerate(page.images):
                artifact = _materialize(image, page.page_number, index)
                if artifact is None:
                    logger.debug(
                        "Skipping undecodable image",
                        page=page.page_number,
                        index=index,
                        filters=_filter_names(image.get("stream")),
                    )
                    continue
                artifacts.append(artifact)

    logger.info("PDF images extracted", count=len(artifacts))
    return artifacts


# ─── Materialization ───────────────────────────────────

def _materialize(image: dict[str, Any], page_number: int, index: int) -> ExtractedArtifact | None:
    stream = image.get("stream")
    if not isinstance(stream, PDFStream):
        return None

    filters = _filter_names(stream)
    raw = stream.rawdata if stream.rawdata is not None else stream.data

    png = _decode_to_png(stream, image, filters)
    if png is not None:
        return ExtractedArtifact(png, page_number, index, *PNG)

    encoded = filters[-1] if filters else None
    if encoded in _ENCODED_IMAGE_TYPES and raw:
        content_type, extension = _ENCODED_IMAGE_TYPES[encoded]
        # Encoded image filters are the last in the chain; earlier ones
        # (e.g. Flate over DCT) have to be undone first.
        data = raw if len(filters) == 1 else _safe_data(stream) or raw
        return ExtractedArtifact(data, page_number, index, content_type, extension)

    return None


def _decode_to_png(stream: PDFStream, image: dict[str, Any], filters: list[str]) -> bytes | None:
    data = _safe_data(stream)
    if not data:
        return None

    last = filters[-1] if filters else None
    try:
        if last in _PILLOW_DECODABLE:
            picture = Image.open(io.BytesIO(data))
            picture.load()
        elif last in _ENCODED_IMAGE_TYPES or last == "CCITTFaxDecode":
            return None
        else:
            picture = _from_raw_pixels(data, image)
            if picture is None:
                return None
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.debug("Image decode failed", error=str(exc))
        return None

    if picture.mode not in ("1", "L", "LA", "RGB", "RGBA", "P", "I"):
        picture = picture.convert("RGB")

    buffer = io.BytesIO()
    picture.save(buffer, format="PNG")
    return buffer.getvalue()


def _from_raw_pixels(data: bytes, image: dict[str, Any]) -> Image.Image | None:
    size = image.get("srcsize")
    bits = resolve1(image.get("bits"))
    if not size or not all(size):
        return None
    width, height = int(size[0]), int(size[1])

    if bits == 1:
        expected = ((width + 7) // 8) * height
        if len(data) < expected:
            return None
        return Image.frombytes("1", (width, height), data[:expected])

    if bits != 8:
        return None

    mode = _color_mode(image.get("colorspace"))
    if mode is None:
        return None
    expected = width * height * _BYTES_PER_PIXEL[mode]
    if len(data) < expected:
        return None
    return Image.frombytes(mode, (width, height), data[:expected])


def _safe_data(stream: PDFStream) -> bytes | None:
    try:
        return stream.get_data()
    except Exception as exc:
        # pdfminer raises bare Exception subclasses for unsupported filters
        logger.debug("Stream decode failed", error=str(exc))
        return None


# ─── PDF object helpers ────────────────────────────────

def _literal_name(value: Any) -> str | None:
    value = resolve1(value)
    if isinstance(value, PSLiteral):
        name = value.name
        return name.decode("latin-1") if isinstance(name, bytes) else str(name)
    if isinstance(value, str):
        return value
    return None


def _filter_names(stream: Any) -> list[str]:
    if not isinstance(stream, PDFStream):
        return []
    value = resolve1(stream.attrs.get("Filter") or stream.attrs.get("F"))
    values = value if isinstance(value, list) else [value]
    return [name for name in (_literal_name(v) for v in values if v is not None) if name]


def _color_mode(colorspace: Any) -> str | None:
    spaces = colorspace if isinstance(colorspace, list) else [colorspace]
    for space in spaces:
        space = resolve1(space)
        if isinstance(space, list) and space:
            if _literal_name(space[0]) == "ICCBased" and len(space) > 1:
                profile = resolve1(space[1])
                components = resolve1(profile.attrs.get("N")) if isinstance(profile, PDFStream) else None
                return _ICC_COMPONENTS.get(components)
            return None
        name = _literal_name(space)
        if name in _COLOR_MODES:
            return _COLOR_MODES[name]
    return None
