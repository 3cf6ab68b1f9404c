"""Resolve image sources (handles, URIs, embedded data) into image data."""

from .component import ImageView
from .decoding import PayloadDecoder, decode
from .domain import (
    DecodedPayload,
    EmbeddedSource,
    Handle,
    ImageData,
    SourceValue,
    Uri,
    UriSource,
)
from .exceptions import (
    ImageDecodeError,
    ImageHttpError,
    ImageLoadError,
    ImageSourceError,
    PayloadDecodeError,
    SessionCancelled,
    SourceFormatError,
    UnsupportedSchemeError,
)
from .loader import DefaultImageLoader
from .normalizer import SourceNormalizer
from .options import ResolverConfig
from .session import CancelSignal, LoadSession
from .sniffing import sniff
from .state import ComponentState, ResolutionStateMachine

__all__ = [
    "ImageView",
    "PayloadDecoder",
    "decode",
    "sniff",
    "SourceNormalizer",
    "LoadSession",
    "CancelSignal",
    "ResolutionStateMachine",
    "ComponentState",
    "DefaultImageLoader",
    "ResolverConfig",
    "DecodedPayload",
    "ImageData",
    "SourceValue",
    "Handle",
    "UriSource",
    "EmbeddedSource",
    "Uri",
    "ImageSourceError",
    "SourceFormatError",
    "PayloadDecodeError",
    "ImageLoadError",
    "ImageHttpError",
    "ImageDecodeError",
    "UnsupportedSchemeError",
    "SessionCancelled",
]
