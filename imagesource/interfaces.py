"""
Collaborator seams for the resolution core.

The core never renders pixels or talks to a platform image cache; it only
calls these interfaces:
  - ImageLoader: fetch a URI into ``ImageData`` (may suspend)
  - DisplaySink: set or clear the displayed image
  - StateNotifier: visual-feedback hook receiving lifecycle state names

``MemoryDisplay`` and ``RecordingNotifier`` are in-memory implementations used
by the CLI and tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Protocol

from .domain import ImageData, Uri

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from .session import CancelSignal


class ImageLoader(Protocol):
    """External loader for URI sources."""

    async def load(
        self, uri: Uri, use_cache: bool, cancel_signal: "CancelSignal"
    ) -> Optional[ImageData]: ...


class DisplaySink(Protocol):
    def attach(self, image: Optional[ImageData]) -> None: ...


class StateNotifier(Protocol):
    def notify(self, state_name: str) -> None: ...


@dataclass
class MemoryDisplay(DisplaySink):
    current: Optional[ImageData] = None
    history: List[Optional[ImageData]] = field(default_factory=list)

    def attach(self, image: Optional[ImageData]) -> None:
        self.current = image
        self.history.append(image)


@dataclass
class RecordingNotifier(StateNotifier):
    states: List[str] = field(default_factory=list)

    def notify(self, state_name: str) -> None:
        self.states.append(state_name)
