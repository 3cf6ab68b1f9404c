"""MIME sniffing for decoded payloads that arrived without a type hint."""

from __future__ import annotations

import logging
from typing import Optional, Union

from .domain import DecodedPayload

LOGGER = logging.getLogger(__name__)

SVG_MIME = "image/svg+xml"
RASTER_MIME = "application/octet-stream"
SNIFF_WINDOW = 128

_SVG_SIGNATURE = b"svg"


def sniff(
    data: Union[bytes, bytearray, memoryview], window: int = SNIFF_WINDOW
) -> Optional[str]:
    """Return ``image/svg+xml`` when the data opens with ``<svg``.

    Leading whitespace and control bytes are skipped, as are spaces between
    ``<`` and the tag name. Only the first ``window`` bytes are examined.
    """
    head = bytes(data[:window])
    pos = 0
    while pos < len(head) and head[pos] <= 0x20:
        pos += 1
    if pos >= len(head) or head[pos] != ord("<"):
        return None
    pos += 1
    while pos < len(head) and head[pos] == 0x20:
        pos += 1
    if head[pos : pos + 3].lower() == _SVG_SIGNATURE:
        return SVG_MIME
    return None


def is_svg_mime(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and "svg" in mime_type.lower()


def resolve_mime(payload: DecodedPayload, window: int = SNIFF_WINDOW) -> str:
    """Explicit hint first, then the sniffer, then the raster default."""
    if payload.mime_type:
        return payload.mime_type
    sniffed = sniff(payload.peek(window), window)
    LOGGER.debug("imagesource.sniffer length=%d sniffed=%s", payload.length, sniffed)
    return sniffed or RASTER_MIME
