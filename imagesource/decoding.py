"""
Embedded-data decoder for image sources.

Turns a string into bytes without requiring an explicit scheme. Attempts, in
order, first success wins:
  1. the whole string as base64 (standard or URL-safe alphabet, padding optional)
  2. the whole string as hexadecimal
     (line breaks and spaces inside base64 or hex are ignored)
  3. ``data:<mime>,<segment>`` where the segment is base64, hex, or
     percent-escaped text

Base64 and hex use a two-phase decode: a bounded trial buffer first, and only
when the input proved valid so far does the decoder allocate the full-size
buffer and resume from where the trial stopped. Invalid input never costs more
than the trial buffer.

No match returns ``None`` so callers can fall back to URI parsing. A detected
``data:`` + comma structure whose segment cannot be decoded raises
``PayloadDecodeError`` instead: at that point the text is committed to being
embedded data.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator, List, Optional, Tuple

from .domain import DecodedPayload
from .exceptions import PayloadDecodeError

LOGGER = logging.getLogger(__name__)

DATA_SCHEME = "data:"
TRIAL_BUFFER_SIZE = 1 << 10

_B64_CHARS = re.compile(r"[A-Za-z0-9+/_-]*")
_HEX_CHARS = re.compile(r"[0-9A-Fa-f]*")
_PERCENT_SEQ = re.compile(rb"%([0-9A-Fa-f]{2})")
_URLSAFE_TO_STD = str.maketrans("-_", "+/")
_WHITESPACE = re.compile(r"[ \t\r\n]+")

# Every buffer the decoder creates goes through here (tests patch it).
_allocate: Callable[[int], bytearray] = bytearray


class OperationStatus(Enum):
    DONE = "done"
    DESTINATION_TOO_SMALL = "destination_too_small"
    NEED_MORE_DATA = "need_more_data"
    INVALID_DATA = "invalid_data"


DecodeResult = Tuple[OperationStatus, int, int]


def max_base64_decoded_length(length: int) -> int:
    """Worst-case output size for ``length`` base64 characters (padding optional)."""
    return (length // 4) * 3 + max(length % 4 - 1, 0)


# ------------------------------ Primitives -----------------------------------


def _b64decode(body: str) -> bytes:
    std = body.translate(_URLSAFE_TO_STD)
    return base64.b64decode(std + "=" * (-len(std) % 4), validate=True)


def decode_base64_into(chars: str, dest: bytearray, start: int = 0) -> DecodeResult:
    """Decode base64 ``chars`` into ``dest[start:]``.

    Returns ``(status, consumed, written)``. With ``DESTINATION_TOO_SMALL`` the
    first ``consumed`` characters were decoded into ``written`` bytes, and a
    second call on ``chars[consumed:]`` picks up where this one stopped.
    Validation covers the whole input before anything is written.
    """
    body = chars.rstrip("=")
    padding = len(chars) - len(body)
    if padding > 2 or (padding and len(chars) % 4):
        return OperationStatus.INVALID_DATA, 0, 0
    if not _B64_CHARS.fullmatch(body):
        return OperationStatus.INVALID_DATA, 0, 0
    if len(body) % 4 == 1:
        # a lone trailing sextet cannot form a byte
        return OperationStatus.NEED_MORE_DATA, 0, 0

    room = len(dest) - start
    total = max_base64_decoded_length(len(body))
    try:
        if total <= room:
            out = _b64decode(body)
            dest[start : start + len(out)] = out
            return OperationStatus.DONE, len(chars), len(out)
        consumed = (room // 3) * 4
        out = _b64decode(body[:consumed])
    except (binascii.Error, ValueError):
        return OperationStatus.INVALID_DATA, 0, 0
    dest[start : start + len(out)] = out
    return OperationStatus.DESTINATION_TOO_SMALL, consumed, len(out)


def decode_hex_into(chars: str, dest: bytearray, start: int = 0) -> DecodeResult:
    """Hex counterpart of ``decode_base64_into`` with the same contract."""
    if not _HEX_CHARS.fullmatch(chars):
        return OperationStatus.INVALID_DATA, 0, 0
    if len(chars) % 2:
        return OperationStatus.NEED_MORE_DATA, 0, 0

    room = len(dest) - start
    total = len(chars) // 2
    if total <= room:
        dest[start : start + total] = bytes.fromhex(chars)
        return OperationStatus.DONE, len(chars), total
    consumed = room * 2
    dest[start : start + room] = bytes.fromhex(chars[:consumed])
    return OperationStatus.DESTINATION_TOO_SMALL, consumed, room


# ------------------------------ Scratch pool ---------------------------------


class ScratchPool:
    """Small free list of reusable scratch buffers.

    ``rent`` may hand out a buffer larger than requested. Buffers always come
    back to the pool when the ``with`` block exits, including on errors.
    """

    def __init__(self, max_retained: int = 4, max_buffer_size: int = 1 << 20):
        self._lock = threading.Lock()
        self._free: List[bytearray] = []
        self._max_retained = max_retained
        self._max_buffer_size = max_buffer_size
        self.outstanding = 0

    @contextmanager
    def rent(self, size: int) -> Iterator[bytearray]:
        buf = self._take(size)
        try:
            yield buf
        finally:
            self._give_back(buf)

    def _take(self, size: int) -> bytearray:
        with self._lock:
            self.outstanding += 1
            for idx, buf in enumerate(self._free):
                if len(buf) >= size:
                    return self._free.pop(idx)
        return bytearray(size)

    def _give_back(self, buf: bytearray) -> None:
        with self._lock:
            self.outstanding -= 1
            if (
                len(buf) <= self._max_buffer_size
                and len(self._free) < self._max_retained
            ):
                self._free.append(buf)


_SHARED_POOL = ScratchPool()


def _mime_from_hint(hint: str) -> Optional[str]:
    mime = hint.split(";", 1)[0].strip()
    return mime or None


# ------------------------------- Decoder -------------------------------------


class PayloadDecoder:
    """Decode embedded image data from a string. Stateless and thread-safe."""

    def __init__(
        self,
        trial_size: int = TRIAL_BUFFER_SIZE,
        scratch_pool: Optional[ScratchPool] = None,
    ):
        if trial_size <= 0:
            raise ValueError("trial_size must be positive")
        self._trial_size = trial_size
        self._pool = scratch_pool or _SHARED_POOL

    def decode(self, text: Optional[str]) -> Optional[DecodedPayload]:
        if not text:
            return None

        payload = self.try_base64(text)
        if payload is None:
            payload = self.try_hex(text)
        if payload is not None:
            return payload

        marker = text.find(DATA_SCHEME)
        if marker < 0:
            return None
        comma = text.find(",", marker + len(DATA_SCHEME))
        if comma < 0:
            return None

        mime = _mime_from_hint(text[marker + len(DATA_SCHEME) : comma])
        segment = text[comma + 1 :]
        payload = self.try_base64(segment, mime)
        if payload is None:
            payload = self.try_hex(segment, mime)
        if payload is None:
            payload = self.try_percent(segment, mime)
        if payload is None:
            LOGGER.debug(
                "imagesource.decoder.data_segment_fail mime=%s len=%d",
                mime,
                len(segment),
            )
            raise PayloadDecodeError(
                "Embedded data segment could not be decoded.", mime_type=mime
            )
        return payload

    # -- individual strategies ------------------------------------------------

    def try_base64(
        self, text: str, mime_type: Optional[str] = None
    ) -> Optional[DecodedPayload]:
        chars = _WHITESPACE.sub("", text.strip())
        if not chars:
            return None
        if len(chars) % 2 == 0 and _HEX_CHARS.fullmatch(chars):
            # even-length hex digits belong to the hex strategy
            return None
        payload = self._two_phase(
            chars,
            decode_base64_into,
            max_base64_decoded_length(len(chars)),
            mime_type,
        )
        if payload is not None:
            LOGGER.debug(
                "imagesource.decoder.base64 len=%d -> bytes=%d",
                len(chars),
                payload.length,
            )
        return payload

    def try_hex(
        self, text: str, mime_type: Optional[str] = None
    ) -> Optional[DecodedPayload]:
        chars = _WHITESPACE.sub("", text.strip())
        if not chars or len(chars) % 2:
            return None
        payload = self._two_phase(chars, decode_hex_into, len(chars) // 2, mime_type)
        if payload is not None:
            LOGGER.debug(
                "imagesource.decoder.hex len=%d -> bytes=%d",
                len(chars),
                payload.length,
            )
        return payload

    def try_percent(
        self, text: str, mime_type: Optional[str] = None
    ) -> Optional[DecodedPayload]:
        if not text:
            return None
        raw = text.encode("utf-8", errors="surrogatepass")
        with self._pool.rent(len(raw)) as scratch:
            written = 0
            pos = 0
            for match in _PERCENT_SEQ.finditer(raw):
                literal = raw[pos : match.start()]
                scratch[written : written + len(literal)] = literal
                written += len(literal)
                scratch[written] = int(match.group(1), 16)
                written += 1
                pos = match.end()
            literal = raw[pos:]
            scratch[written : written + len(literal)] = literal
            written += len(literal)
            try:
                unescaped = scratch[:written].decode("utf-8")
            except UnicodeDecodeError:
                LOGGER.debug("imagesource.decoder.percent_not_utf8 len=%d", len(text))
                return None

        encoded = unescaped.encode("utf-8")
        out = _allocate(len(encoded))
        out[:] = encoded
        LOGGER.debug(
            "imagesource.decoder.percent len=%d -> bytes=%d", len(text), len(out)
        )
        return DecodedPayload(out, len(out), mime_type)

    # -- two-phase driver -----------------------------------------------------

    def _two_phase(
        self,
        chars: str,
        primitive: Callable[[str, bytearray, int], DecodeResult],
        full_length: int,
        mime_type: Optional[str],
    ) -> Optional[DecodedPayload]:
        trial = _allocate(min(self._trial_size, full_length))
        status, consumed, written = primitive(chars, trial, 0)
        if status is OperationStatus.DONE:
            exact = _allocate(written)
            exact[:] = trial[:written]
            return DecodedPayload(exact, written, mime_type)
        if status is not OperationStatus.DESTINATION_TOO_SMALL:
            return None

        full = _allocate(full_length)
        full[:written] = trial[:written]
        status, _, more = primitive(chars[consumed:], full, written)
        if status is not OperationStatus.DONE:
            return None
        return DecodedPayload(full, written + more, mime_type)


_DEFAULT = PayloadDecoder()


def decode(text: Optional[str]) -> Optional[DecodedPayload]:
    """Decode ``text`` with the default decoder. See ``PayloadDecoder.decode``."""
    return _DEFAULT.decode(text)
