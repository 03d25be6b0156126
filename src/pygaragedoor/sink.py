"""Presentation sink: the consumer-facing door-opener characteristics.

The sink stores the current state, target state and obstruction flag and
delivers target-write requests to a single registered handler. Every
target write is delivered, including the ones the controller pushes
itself; the attached provenance is what lets the handler tell them apart
from genuine user commands.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from pygaragedoor.exceptions import AcknowledgementError
from pygaragedoor.models.door import DoorState, Provenance, TargetState

_logger = logging.getLogger(__name__)

Ack = Callable[..., None]
"""``ack(error=None)``; must be invoked exactly once per target-write request."""

TargetWriteHandler = Callable[[TargetState, Ack, Provenance], Awaitable[None] | None]


class Characteristic(enum.StrEnum):
    CURRENT_DOOR_STATE = "current_door_state"
    TARGET_DOOR_STATE = "target_door_state"
    OBSTRUCTION_DETECTED = "obstruction_detected"


@dataclass(frozen=True, slots=True)
class SinkUpdate:
    """A characteristic value change, as seen by sink listeners."""

    characteristic: Characteristic
    value: Any
    provenance: Provenance


class PresentationSink(Protocol):
    """What the door controller needs from the presentation layer."""

    def push_current_state(self, state: DoorState, provenance: Provenance) -> None: ...

    def push_target_state(self, state: TargetState, provenance: Provenance) -> None: ...

    def push_obstruction(self, detected: bool, provenance: Provenance) -> None: ...

    def set_target_write_handler(self, handler: TargetWriteHandler | None) -> None: ...


class _Acknowledgement:
    """Exactly-once completion callback handed to target-write handlers."""

    def __init__(self, future: asyncio.Future[None]) -> None:
        self._future = future
        self._called = False

    @property
    def called(self) -> bool:
        return self._called

    def __call__(self, error: BaseException | None = None) -> None:
        if self._called:
            raise AcknowledgementError("Target write already acknowledged")
        self._called = True
        if self._future.done():
            return
        if error is None:
            self._future.set_result(None)
        else:
            self._future.set_exception(error)


class GarageDoorService:
    """In-process door-opener service holding the characteristic values."""

    def __init__(
        self,
        *,
        current_state: DoorState = DoorState.CLOSED,
        target_state: TargetState | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._current_state = current_state
        self._target_state = target_state if target_state is not None else TargetState.for_door_state(current_state)
        self._obstruction_detected = False
        self._handler: TargetWriteHandler | None = None
        self._listeners: list[Callable[[SinkUpdate], None]] = []
        self._pending: set[asyncio.Task[Any]] = set()
        self._logger = logger or _logger

    # ------------------------------------------------------------------
    # Characteristic values
    # ------------------------------------------------------------------

    @property
    def current_state(self) -> DoorState:
        return self._current_state

    @property
    def target_state(self) -> TargetState:
        return self._target_state

    @property
    def obstruction_detected(self) -> bool:
        return self._obstruction_detected

    def add_listener(self, callback: Callable[[SinkUpdate], None]) -> Callable[[], None]:
        """Register *callback* for every characteristic update.

        Returns a function that removes the listener again.
        """
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _notify(self, update: SinkUpdate) -> None:
        for callback in list(self._listeners):
            try:
                callback(update)
            except Exception:
                self._logger.debug("Sink listener failed for %s", update.characteristic, exc_info=True)

    # ------------------------------------------------------------------
    # Writes from the controller
    # ------------------------------------------------------------------

    def push_current_state(self, state: DoorState, provenance: Provenance) -> None:
        self._current_state = DoorState(state)
        self._notify(SinkUpdate(Characteristic.CURRENT_DOOR_STATE, self._current_state, provenance))

    def push_target_state(self, state: TargetState, provenance: Provenance) -> None:
        future = self._write_target(state, provenance)
        future.add_done_callback(self._log_unobserved)

    def push_obstruction(self, detected: bool, provenance: Provenance) -> None:
        self._obstruction_detected = bool(detected)
        self._notify(SinkUpdate(Characteristic.OBSTRUCTION_DETECTED, self._obstruction_detected, provenance))

    # ------------------------------------------------------------------
    # Target-write requests
    # ------------------------------------------------------------------

    def set_target_write_handler(self, handler: TargetWriteHandler | None) -> None:
        self._handler = handler

    async def request_target_state(
        self,
        state: TargetState,
        provenance: Provenance = Provenance.EXTERNAL_REQUEST,
    ) -> None:
        """Deliver a target-write request and wait for its acknowledgement.

        Raises whatever error the handler acknowledged with.
        """
        await self._write_target(state, provenance)

    def _write_target(self, state: TargetState, provenance: Provenance) -> asyncio.Future[None]:
        self._target_state = TargetState(state)
        self._notify(SinkUpdate(Characteristic.TARGET_DOOR_STATE, self._target_state, provenance))
        return self._dispatch(self._target_state, provenance)

    def _dispatch(self, state: TargetState, provenance: Provenance) -> asyncio.Future[None]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()
        ack = _Acknowledgement(future)

        handler = self._handler
        if handler is None:
            ack()
            return future

        try:
            result = handler(state, ack, provenance)
        except Exception as exc:
            self._logger.debug("Target write handler failed", exc_info=True)
            if not ack.called:
                ack(exc)
            return future

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(lambda t: self._finish(t, ack))
        return future

    def _log_unobserved(self, future: asyncio.Future[None]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self._logger.debug("Pushed target write acknowledged with error: %s", exc)

    def _finish(self, task: asyncio.Task[Any], ack: _Acknowledgement) -> None:
        self._pending.discard(task)
        if task.cancelled():
            if not ack.called:
                ack(asyncio.CancelledError())
            return
        exc = task.exception()
        if exc is not None:
            self._logger.debug("Target write handler failed", exc_info=exc)
            if not ack.called:
                ack(exc)
