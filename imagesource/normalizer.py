"""
Source normalization: arbitrary assigned value -> SourceValue.

Deterministic and free of I/O. Embedded data always wins over URI parsing;
a positive decode is never reinterpreted as a URI.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Any, Optional

from .decoding import PayloadDecoder
from .domain import EmbeddedSource, Handle, ImageData, SourceValue, Uri, UriSource
from .exceptions import SourceFormatError
from .options import DEFAULT_APP_ROOT

LOGGER = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def parse_uri(text: str) -> Uri:
    """Parse absolute or relative URI text; raise ``SourceFormatError`` if invalid."""
    if not text or not text.strip() or _CONTROL_CHARS.search(text):
        raise SourceFormatError("Invalid uri specified.", text=text)
    try:
        uri = Uri(text)
        uri.port  # invalid ports raise ValueError
    except ValueError as exc:
        raise SourceFormatError("Invalid uri specified.", text=text) from exc
    if uri.is_http and not uri.host:
        raise SourceFormatError("Invalid uri specified.", text=text)
    return uri


class SourceNormalizer:
    def __init__(
        self,
        app_root: str = DEFAULT_APP_ROOT,
        decoder: Optional[PayloadDecoder] = None,
    ):
        self._app_root = app_root
        self._decoder = decoder or PayloadDecoder()

    @property
    def app_root(self) -> str:
        return self._app_root

    def normalize(self, value: Any) -> SourceValue:
        """Map ``value`` to a Handle, UriSource or EmbeddedSource.

        Raises ``SourceFormatError`` for text that is neither embedded data nor
        a URI, and lets ``PayloadDecodeError`` through for a ``data:`` segment
        that failed every decoder.
        """
        if isinstance(value, ImageData):
            return Handle(value)
        if isinstance(value, Uri):
            return UriSource(value)

        text = os.fspath(value) if isinstance(value, os.PathLike) else value
        if not isinstance(text, str):
            text = str(text)

        payload = self._decoder.decode(text)
        if payload is not None:
            LOGGER.debug(
                "imagesource.normalizer.embedded bytes=%d mime=%s",
                payload.length,
                payload.mime_type,
            )
            return EmbeddedSource(text=text, payload=payload)

        uri = parse_uri(text)
        if not uri.is_absolute:
            uri = Uri(self._app_root + text.lstrip("/"))
            LOGGER.debug("imagesource.normalizer.relative -> %s", uri)
        return UriSource(uri)
