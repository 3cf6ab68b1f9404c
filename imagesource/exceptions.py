"""Library exceptions."""

from __future__ import annotations

from typing import Optional


class ImageSourceError(Exception):
    """Base image source error."""


class SourceFormatError(ImageSourceError):
    """Text source is neither an embedded payload nor a parseable URI."""

    def __init__(self, message: str, text: Optional[str] = None):
        super().__init__(message)
        self.text = text


class PayloadDecodeError(ImageSourceError):
    """A ``data:`` segment was found but no decoder could read it."""

    def __init__(self, message: str, mime_type: Optional[str] = None):
        super().__init__(message)
        self.mime_type = mime_type


class PayloadConsumedError(ImageSourceError):
    """Decoded payload buffer was already handed off."""


class ImageLoadError(ImageSourceError):
    """Catch-all loader error."""

    def __init__(self, message: str, uri: Optional[str] = None):
        super().__init__(message)
        self.uri = uri


class ImageHttpError(ImageLoadError):
    """Remote server answered with an error status."""

    def __init__(
        self,
        message: str,
        uri: Optional[str] = None,
        status_code: Optional[int] = None,
        payload: Optional[object] = None,
    ):
        super().__init__(message, uri=uri)
        self.status_code = status_code
        self.payload = payload


class UnsupportedSchemeError(ImageLoadError):
    """No loader route for the URI scheme."""


class ImageDecodeError(ImageLoadError):
    """Bytes were fetched but are not a readable image."""


class SessionCancelled(ImageSourceError):
    """The load session was superseded by a newer source."""


class InvalidTransitionError(ImageSourceError):
    """Lifecycle state change not allowed from the current state."""
