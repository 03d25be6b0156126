"""Simulated door motion around closed-sensor changes.

The closed sensor only reports the end condition, never motion, so every
sensor change is shown as a transient OPENING/CLOSING state that settles
on the sensor-confirmed state after the settle delay.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pygaragedoor.door.tracker import StateTracker
from pygaragedoor.models.door import DoorState, Provenance, TargetState

_logger = logging.getLogger(__name__)


class SettleTimer:
    """A single cancellable settle timer.

    Scheduling a new settle cancels the outstanding one. When the delay
    elapses ``on_settle`` runs with the final state while holding *lock*.
    """

    def __init__(
        self,
        delay: float,
        on_settle: Callable[[DoorState], None],
        *,
        lock: asyncio.Lock,
        logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        self._delay = delay
        self._on_settle = on_settle
        self._lock = lock
        self._logger = logger or _logger
        self._task: asyncio.Task[None] | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, final_state: DoorState) -> None:
        self.cancel()
        self._task = asyncio.create_task(self._run(final_state))

    def cancel(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            self._logger.debug("Cancelling outstanding settle timer")
            task.cancel()

    async def _run(self, final_state: DoorState) -> None:
        await asyncio.sleep(self._delay)
        async with self._lock:
            if self._task is not asyncio.current_task():
                return
            self._task = None
            self._on_settle(final_state)

    async def wait(self) -> None:
        """Wait for the outstanding timer to fire or be cancelled."""
        task = self._task
        if task is None:
            return
        await asyncio.wait({task})


class TransitionSimulator:
    """Turns closed-sensor readings into OPENING/CLOSING then OPEN/CLOSED."""

    def __init__(
        self,
        tracker: StateTracker,
        timer: SettleTimer,
        *,
        logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        self._tracker = tracker
        self._timer = timer
        self._logger = logger or _logger

    def sensor_changed(self, closed: bool) -> None:
        """Apply a new closed-sensor reading. Callers hold the controller lock."""
        if closed:
            target, transient, final = TargetState.CLOSED, DoorState.CLOSING, DoorState.CLOSED
        else:
            target, transient, final = TargetState.OPEN, DoorState.OPENING, DoorState.OPEN

        self._timer.cancel()
        self._logger.debug("Sensor reports %s; simulating %s", "closed" if closed else "open", transient.name)
        self._tracker.set_target_state(target, Provenance.FIXUP)
        self._tracker.set_current_state(transient, Provenance.INTERNAL_SYNC)
        self._timer.schedule(final)
