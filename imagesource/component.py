"""
Host-side image component.

``ImageView`` accepts a stream of source assignments and keeps at most one
LoadSession active. Every assignment bumps the generation; a session whose
generation no longer matches can never attach or report.

Lazy loading: while enabled and the view is not visible, a non-None source is
staged instead of loaded. Becoming visible (or switching lazy loading off)
promotes the staged value; a newer assignment replaces it.

``set_source`` schedules work on the running asyncio loop and must be called
from inside it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .decoding import PayloadDecoder
from .interfaces import DisplaySink, ImageLoader, MemoryDisplay, StateNotifier
from .loader import DefaultImageLoader
from .normalizer import SourceNormalizer
from .options import ResolverConfig
from .session import LoadSession
from .state import ComponentState, EventHook, ResolutionStateMachine

LOGGER = logging.getLogger(__name__)


class ImageView:
    def __init__(
        self,
        loader: Optional[ImageLoader] = None,
        *,
        display: Optional[DisplaySink] = None,
        notifier: Optional[StateNotifier] = None,
        config: Optional[ResolverConfig] = None,
        visible: bool = True,
    ):
        self.config = config or ResolverConfig()
        self.display = display if display is not None else MemoryDisplay()
        self.state_machine = ResolutionStateMachine(self.display, notifier)
        self.normalizer = SourceNormalizer(
            app_root=self.config.app_root,
            decoder=PayloadDecoder(trial_size=self.config.trial_buffer_size),
        )
        self.loader: ImageLoader = loader or DefaultImageLoader(self.config)

        self.cache_enabled = self.config.cache_enabled
        self._lazy_loading = self.config.lazy_loading
        self._visible = visible
        self._source: Any = None
        self._pending: Any = None
        self._session: Optional[LoadSession] = None
        self._generation = 0

    # ------------------------------ properties -------------------------------

    @property
    def opened(self) -> EventHook:
        return self.state_machine.opened

    @property
    def failed(self) -> EventHook:
        return self.state_machine.failed

    @property
    def state(self) -> ComponentState:
        return self.state_machine.state

    @property
    def source(self) -> Any:
        return self._source

    @property
    def pending_source(self) -> Any:
        return self._pending

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current_session(self) -> Optional[LoadSession]:
        return self._session

    @property
    def is_visible(self) -> bool:
        return self._visible

    @property
    def lazy_loading_enabled(self) -> bool:
        return self._lazy_loading

    # ------------------------------ operations -------------------------------

    def set_source(self, value: Any) -> Optional[LoadSession]:
        """Assign a new source.

        Returns the started session, or ``None`` when the value equals the
        current source or was staged for lazy loading.
        """
        old = self._source
        if old is not None and value is not None and old == value:
            return None

        self._source = value
        self._generation += 1
        if value is None or not self._lazy_loading or self._visible:
            self._pending = None
            return self._start(value)

        LOGGER.debug("imagesource.view.staged generation=%d", self._generation)
        self._pending = value
        if self._session is not None:
            self._session.cancel()
        return None

    def set_visible(self, visible: bool) -> Optional[LoadSession]:
        self._visible = visible
        if visible:
            return self._promote()
        return None

    def set_lazy_loading(self, enabled: bool) -> Optional[LoadSession]:
        self._lazy_loading = enabled
        if not enabled:
            return self._promote()
        return None

    async def wait_idle(self) -> None:
        """Wait until the current session (and any it superseded) has finished."""
        if self._session is not None:
            await self._session.acknowledged()

    async def close(self) -> None:
        self._pending = None
        self._generation += 1
        if self._session is not None:
            self._session.cancel()
            await self._session.acknowledged()

    # ------------------------------- internals -------------------------------

    def _promote(self) -> Optional[LoadSession]:
        if self._pending is None:
            return None
        value, self._pending = self._pending, None
        LOGGER.debug("imagesource.view.promote generation=%d", self._generation)
        return self._start(value)

    def _start(self, value: Any) -> LoadSession:
        self._session = LoadSession.begin(
            self, value, self._generation, previous=self._session
        )
        return self._session
