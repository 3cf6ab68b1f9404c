"""Pydantic report models emitted by the CLI (``--json``)."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import Field

from ..domain import DecodedPayload, EmbeddedSource, Handle, ImageData, SourceValue
from ..sniffing import SNIFF_WINDOW, sniff
from ._base import ReportModel

_PREVIEW_BYTES = 16


class PayloadReport(ReportModel):
    """Summary of a decoded embedded payload."""

    mime_type: Optional[str] = None
    """MIME hint taken from a ``data:`` prefix, if any."""

    sniffed_mime: Optional[str] = None
    length: int = Field(..., ge=0)
    capacity: int = Field(..., ge=0)
    preview_hex: str = ""
    """Hex of the leading bytes."""

    @classmethod
    def from_payload(
        cls, payload: DecodedPayload, window: int = SNIFF_WINDOW
    ) -> "PayloadReport":
        head = payload.peek(window)
        return cls(
            mime_type=payload.mime_type,
            sniffed_mime=None if payload.mime_type else sniff(head, window),
            length=payload.length,
            capacity=payload.capacity,
            preview_hex=head[:_PREVIEW_BYTES].hex(),
        )


class SourceReport(ReportModel):
    """Normalized form of an assigned source."""

    kind: Literal["handle", "uri", "embedded"]
    reference: Optional[str] = None
    payload: Optional[PayloadReport] = None

    @classmethod
    def from_source(cls, source: SourceValue) -> "SourceReport":
        if isinstance(source, EmbeddedSource):
            return cls(kind="embedded", payload=PayloadReport.from_payload(source.payload))
        if isinstance(source, Handle):
            return cls(kind="handle", reference=source.image.source)
        return cls(kind="uri", reference=str(source.uri))


class ResolutionReport(ReportModel):
    """Outcome of resolving one source through an ImageView."""

    source: str
    state: Literal["Unloaded", "Loading", "Loaded", "Failed"]
    states: List[str] = Field(default_factory=list)
    mime_type: Optional[str] = None
    kind: Optional[Literal["raster", "vector"]] = None
    width: Optional[int] = None
    height: Optional[int] = None
    error_type: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def build(
        cls,
        source: str,
        state: str,
        states: List[str],
        image: Optional[ImageData] = None,
        error: Optional[BaseException] = None,
    ) -> "ResolutionReport":
        return cls(
            source=source,
            state=state,  # type: ignore[arg-type]
            states=list(states),
            mime_type=image.mime_type if image else None,
            kind=image.kind if image else None,  # type: ignore[arg-type]
            width=image.width if image else None,
            height=image.height if image else None,
            error_type=type(error).__name__ if error else None,
            error=str(error) if error else None,
        )
