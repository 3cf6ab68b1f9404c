"""
Load sessions and cooperative cancellation.

A LoadSession is one resolution attempt for one component. Starting a session
cancels the component's previous one and waits for it to acknowledge (its
task to finish) before touching the display, so two sessions never run against
the same display at once.

Cancellation is cooperative: the shared CancelSignal is checked at every
suspension point and once more right before the image is attached. Work past
the last check still finishes, but its result is dropped.
"""

from __future__ import annotations

import asyncio
import functools
import itertools
import logging
import threading
from typing import TYPE_CHECKING, Any, List, Optional

from .domain import EmbeddedSource, Handle, ImageData
from .exceptions import ImageLoadError, ImageSourceError, SessionCancelled
from .imaging import image_from_payload
from .state import ComponentState

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from .component import ImageView

LOGGER = logging.getLogger(__name__)

_SESSION_IDS = itertools.count(1)


class CancelSignal:
    """Thread-safe cancellation flag shared with the loader."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SessionCancelled("load session was superseded")


class LoadSession:
    """One in-flight resolution of ``target`` for ``owner``."""

    def __init__(
        self,
        owner: "ImageView",
        target: Any,
        generation: int,
        previous: Optional["LoadSession"] = None,
    ):
        self.id = next(_SESSION_IDS)
        self.target = target
        self.generation = generation
        self.cancel_signal = CancelSignal()
        self.outcome: Optional[ComponentState] = None
        self.error: Optional[BaseException] = None
        self._owner = owner
        # Tasks of superseded sessions that may still be running. Flat, so a
        # burst of assignments never builds a chain of sessions.
        self._superseded: List[asyncio.Task] = []
        if previous is not None:
            self._superseded = [t for t in previous._superseded if not t.done()]
            if previous._task is not None and not previous._task.done():
                self._superseded.append(previous._task)
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def begin(
        cls,
        owner: "ImageView",
        target: Any,
        generation: int,
        previous: Optional["LoadSession"] = None,
    ) -> "LoadSession":
        """Cancel ``previous`` and schedule a new session on the running loop."""
        if previous is not None:
            previous.cancel()
        session = cls(owner, target, generation, previous)
        session._task = asyncio.get_running_loop().create_task(
            session._run(), name=f"imagesource-session-{session.id}"
        )
        LOGGER.debug(
            "imagesource.session.begin id=%d generation=%d", session.id, generation
        )
        return session

    # ------------------------------ state ------------------------------------

    @property
    def is_valid(self) -> bool:
        return (
            not self.cancel_signal.is_cancelled
            and self._owner.generation == self.generation
        )

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancel(self) -> None:
        if self.cancel_signal.is_cancelled:
            return
        LOGGER.debug("imagesource.session.cancel id=%d", self.id)
        self.cancel_signal.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def acknowledged(self) -> None:
        """Return once this session and everything it superseded has stopped."""
        pending = [t for t in self._superseded if not t.done()]
        if self._task is not None and not self._task.done():
            pending.append(self._task)
        if pending:
            await asyncio.wait(pending)

    wait = acknowledged

    # ------------------------------- run -------------------------------------

    async def _run(self) -> None:
        machine = self._owner.state_machine
        try:
            if self._superseded:
                await asyncio.wait(self._superseded)
                self._superseded = []
            self.cancel_signal.raise_if_cancelled()

            machine.attach(None)
            if self.target is None:
                self.outcome = machine.state
                return

            machine.begin_loading()
            image = await self._resolve()

            if not self.is_valid:
                raise SessionCancelled("load session was superseded")
            self.outcome = machine.attach(image)
            LOGGER.debug(
                "imagesource.session.done id=%d state=%s", self.id, self.outcome.value
            )
        except (SessionCancelled, asyncio.CancelledError):
            LOGGER.debug("imagesource.session.cancelled id=%d", self.id)
        except Exception as e:
            if not self.is_valid:
                LOGGER.debug(
                    "imagesource.session.stale_error id=%d %s", self.id, e
                )
                return
            if isinstance(e, ImageSourceError):
                error: ImageSourceError = e
            else:
                error = ImageLoadError(f"Loader failed: {e}")
                error.__cause__ = e
            LOGGER.warning(
                "imagesource.session.failed id=%d %s: %s",
                self.id,
                type(error).__name__,
                error,
            )
            self.error = error
            self.outcome = ComponentState.FAILED
            machine.fail(error)

    async def _resolve(self) -> Optional[ImageData]:
        owner = self._owner
        offload = owner.config.offload_decoding
        if offload:
            source = await asyncio.to_thread(owner.normalizer.normalize, self.target)
        else:
            source = owner.normalizer.normalize(self.target)
        self.cancel_signal.raise_if_cancelled()

        if isinstance(source, Handle):
            return source.image
        if isinstance(source, EmbeddedSource):
            # embedded data never touches the loader or its cache
            build = functools.partial(
                image_from_payload,
                source.payload,
                sniff_window=owner.config.sniff_window,
            )
            return await asyncio.to_thread(build) if offload else build()

        return await owner.loader.load(
            source.uri, owner.cache_enabled, self.cancel_signal
        )

    def __repr__(self) -> str:
        return (
            f"LoadSession(id={self.id}, generation={self.generation}, "
            f"cancelled={self.cancel_signal.is_cancelled}, outcome={self.outcome})"
        )
