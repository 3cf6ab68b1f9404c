"""
Lifecycle state machine for an image component.

  Unloaded -> Loading -> Loaded | Failed | Unloaded
  any      -> Unloaded   (display detached)

Only this class moves the state. Each state change is reported to the
StateNotifier once; ``opened``/``failed`` fire once per terminal report.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional

from .domain import ImageData
from .exceptions import InvalidTransitionError
from .interfaces import DisplaySink, StateNotifier

LOGGER = logging.getLogger(__name__)


class ComponentState(str, Enum):
    UNLOADED = "Unloaded"
    LOADING = "Loading"
    LOADED = "Loaded"
    FAILED = "Failed"


_ALLOWED: Dict[ComponentState, FrozenSet[ComponentState]] = {
    ComponentState.UNLOADED: frozenset({ComponentState.LOADING}),
    ComponentState.LOADING: frozenset(
        {ComponentState.LOADED, ComponentState.FAILED, ComponentState.UNLOADED}
    ),
    ComponentState.LOADED: frozenset({ComponentState.UNLOADED}),
    ComponentState.FAILED: frozenset({ComponentState.UNLOADED}),
}


class EventHook:
    """Observer list. A listener that raises is logged and skipped."""

    def __init__(self, name: str):
        self._name = name
        self._listeners: List[Callable[..., None]] = []

    def connect(self, listener: Callable[..., None]) -> Callable[..., None]:
        self._listeners.append(listener)
        return listener

    def disconnect(self, listener: Callable[..., None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def emit(self, *args) -> None:
        for listener in list(self._listeners):
            try:
                listener(*args)
            except Exception:
                LOGGER.warning(
                    "imagesource.events.listener_failed event=%s",
                    self._name,
                    exc_info=True,
                )

    def __len__(self) -> int:
        return len(self._listeners)


class ResolutionStateMachine:
    def __init__(self, sink: DisplaySink, notifier: Optional[StateNotifier] = None):
        self._sink = sink
        self._notifier = notifier
        self._state = ComponentState.UNLOADED
        self.opened = EventHook("opened")
        self.failed = EventHook("failed")

    @property
    def state(self) -> ComponentState:
        return self._state

    def _check(self, target: ComponentState) -> None:
        if target is not self._state and target not in _ALLOWED[self._state]:
            raise InvalidTransitionError(
                f"Cannot move from {self._state.value} to {target.value}"
            )

    def _move(self, target: ComponentState) -> None:
        if target is self._state:
            return
        self._check(target)
        LOGGER.debug(
            "imagesource.state %s -> %s", self._state.value, target.value
        )
        self._state = target
        if self._notifier is None:
            return
        try:
            self._notifier.notify(target.value)
        except Exception:
            LOGGER.warning(
                "imagesource.state.notifier_failed state=%s", target.value, exc_info=True
            )

    def begin_loading(self) -> None:
        self._move(ComponentState.LOADING)

    def attach(self, image: Optional[ImageData]) -> ComponentState:
        """Hand ``image`` to the display and settle the state.

        ``None`` and images without a positive size end in Unloaded; anything
        else must come from Loading and ends in Loaded with ``opened`` fired.
        The state only moves once the sink accepted the image.
        """
        if image is not None and image.has_positive_size:
            self._check(ComponentState.LOADED)
            self._sink.attach(image)
            self._move(ComponentState.LOADED)
            self.opened.emit()
            return self._state
        self._sink.attach(image)
        self._move(ComponentState.UNLOADED)
        return self._state

    def fail(self, error: BaseException) -> None:
        """Report ``error`` from any state.

        Failures raised outside Loading (e.g. a sink that rejects the detach)
        go through Unloaded and Loading first so every step stays legal.
        """
        if ComponentState.FAILED not in _ALLOWED[self._state]:
            if self._state is not ComponentState.UNLOADED:
                self._move(ComponentState.UNLOADED)
            self._move(ComponentState.LOADING)
        self._move(ComponentState.FAILED)
        self.failed.emit(error)
