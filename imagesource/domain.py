# imagesource/domain.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Optional, Union
from urllib.parse import urlsplit

from .exceptions import PayloadConsumedError

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from PIL import Image


@dataclass(frozen=True)
class Uri:
    """Parsed URI that keeps the text it was built from.

    ``str(uri)`` always gives back the original text, so ``app:///a.png``
    survives even though ``urlunsplit`` would drop the empty authority.
    Raises ``ValueError`` when ``urlsplit`` rejects the text.
    """

    text: str
    scheme: str = field(init=False, compare=False)
    authority: str = field(init=False, compare=False)
    path: str = field(init=False, compare=False)
    query: str = field(init=False, compare=False)
    fragment: str = field(init=False, compare=False)

    def __post_init__(self) -> None:
        parts = urlsplit(self.text)
        object.__setattr__(self, "scheme", parts.scheme.lower())
        object.__setattr__(self, "authority", parts.netloc)
        object.__setattr__(self, "path", parts.path)
        object.__setattr__(self, "query", parts.query)
        object.__setattr__(self, "fragment", parts.fragment)

    @property
    def is_absolute(self) -> bool:
        return bool(self.scheme)

    @property
    def is_http(self) -> bool:
        return self.scheme in ("http", "https")

    @property
    def host(self) -> Optional[str]:
        return urlsplit(self.text).hostname

    @property
    def port(self) -> Optional[int]:
        return urlsplit(self.text).port

    @property
    def path_and_query(self) -> str:
        return self.path + (f"?{self.query}" if self.query else "")

    def __str__(self) -> str:
        return self.text


class DecodedPayload:
    """Bytes produced by the embedded-data decoder.

    ``buffer`` may be larger than the decoded data (the two-phase decode sizes
    it for the worst case); only the first ``length`` bytes are meaningful.
    The payload owns the buffer until ``consume()`` hands it over.
    """

    __slots__ = ("mime_type", "length", "_buffer")

    def __init__(
        self, buffer: bytearray, length: int, mime_type: Optional[str] = None
    ):
        if length < 0 or length > len(buffer):
            raise ValueError(
                f"payload length {length} exceeds buffer capacity {len(buffer)}"
            )
        self._buffer: Optional[bytearray] = buffer
        self.length = length
        self.mime_type = mime_type

    @property
    def capacity(self) -> int:
        return len(self._buffer) if self._buffer is not None else 0

    @property
    def consumed(self) -> bool:
        return self._buffer is None

    def peek(self, count: int) -> bytes:
        """Copy of at most ``count`` leading bytes; does not consume."""
        if self._buffer is None:
            raise PayloadConsumedError("payload already consumed")
        return bytes(self._buffer[: min(count, self.length)])

    def consume(self) -> bytearray:
        """Transfer the buffer, trimmed to ``length``, to the caller."""
        buf = self._buffer
        if buf is None:
            raise PayloadConsumedError("payload already consumed")
        self._buffer = None
        if len(buf) != self.length:
            del buf[self.length :]
        return buf

    def __repr__(self) -> str:
        return (
            f"DecodedPayload(mime_type={self.mime_type!r}, length={self.length}, "
            f"consumed={self.consumed})"
        )


@dataclass(frozen=True, eq=False)
class ImageData:
    """A resolved image ready for display."""

    mime_type: str
    width: int
    height: int
    data: bytes = field(repr=False)
    kind: str = "raster"  # "raster" | "vector"
    pil_image: Optional["Image.Image"] = field(default=None, repr=False)
    source: Optional[str] = None

    @property
    def has_positive_size(self) -> bool:
        return self.width > 0 and self.height > 0


# ----------------------------- Source values ---------------------------------


@dataclass(frozen=True)
class Handle:
    kind: ClassVar[str] = "handle"

    image: ImageData


@dataclass(frozen=True)
class UriSource:
    kind: ClassVar[str] = "uri"

    uri: Uri


@dataclass(frozen=True)
class EmbeddedSource:
    kind: ClassVar[str] = "embedded"

    text: str = field(repr=False)
    payload: DecodedPayload = field(compare=False)


SourceValue = Union[Handle, UriSource, EmbeddedSource]
