"""
Image construction from raw bytes.

Raster formats go through Pillow; SVG documents are not rasterized, only their
intrinsic size is read from the root element (width/height, else viewBox).
"""

from __future__ import annotations

import io
import logging
import re
import xml.etree.ElementTree as ET
from typing import Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from .domain import DecodedPayload, ImageData
from .exceptions import ImageDecodeError
from .sniffing import SNIFF_WINDOW, is_svg_mime, resolve_mime, sniff

LOGGER = logging.getLogger(__name__)

_LENGTH = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*(px)?\s*$")


def _svg_length(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    m = _LENGTH.match(raw)
    return float(m.group(1)) if m else None


def svg_size(data: Union[bytes, bytearray]) -> Tuple[int, int]:
    """Intrinsic (width, height) of an SVG document; (0, 0) when unknown."""
    try:
        root = ET.fromstring(bytes(data))
    except ET.ParseError as e:
        raise ImageDecodeError(f"Invalid SVG document: {e}") from e
    if not root.tag.lower().endswith("svg"):
        raise ImageDecodeError(f"Root element is not <svg>: {root.tag}")

    width = _svg_length(root.get("width"))
    height = _svg_length(root.get("height"))
    if width is None or height is None:
        box = (root.get("viewBox") or "").replace(",", " ").split()
        if len(box) == 4:
            try:
                width = width if width is not None else float(box[2])
                height = height if height is not None else float(box[3])
            except ValueError:
                pass
    return int(round(width or 0)), int(round(height or 0))


def image_from_bytes(
    data: Union[bytes, bytearray],
    mime_type: Optional[str] = None,
    source: Optional[str] = None,
) -> ImageData:
    """Build an ``ImageData`` from encoded image bytes.

    Raises ``ImageDecodeError`` when the bytes are not a readable image.
    """
    if not mime_type:
        mime_type = sniff(data[:SNIFF_WINDOW])
    if is_svg_mime(mime_type):
        width, height = svg_size(data)
        LOGGER.debug("imagesource.imaging.svg %dx%d", width, height)
        return ImageData(
            mime_type=mime_type or "image/svg+xml",
            width=width,
            height=height,
            data=bytes(data),
            kind="vector",
            source=source,
        )

    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ImageDecodeError(f"Unreadable image data: {e}", uri=source) from e

    resolved = Image.MIME.get(img.format or "", mime_type or "application/octet-stream")
    LOGGER.debug(
        "imagesource.imaging.raster format=%s %dx%d", img.format, img.width, img.height
    )
    return ImageData(
        mime_type=resolved,
        width=img.width,
        height=img.height,
        data=bytes(data),
        kind="raster",
        pil_image=img,
        source=source,
    )


def image_from_payload(
    payload: DecodedPayload,
    source: Optional[str] = None,
    sniff_window: int = SNIFF_WINDOW,
) -> ImageData:
    """Consume ``payload`` and construct the image it encodes."""
    mime = resolve_mime(payload, sniff_window)
    return image_from_bytes(payload.consume(), mime, source=source)
