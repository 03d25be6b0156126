"""Momentary relay activation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pygaragedoor.device import SetSwitch

_logger = logging.getLogger(__name__)


class PulseController:
    """Switches the relay on, then off again after ``pulse_time`` seconds.

    At most one pulse is in flight at a time; asking for another one while
    the relay is still held is a no-op.
    """

    def __init__(
        self,
        set_switch: SetSwitch,
        pulse_time: float,
        *,
        is_switched_on: Callable[[], bool] | None = None,
        label: str = "relay",
        logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        self._set_switch = set_switch
        self._pulse_time = pulse_time
        self._is_switched_on = is_switched_on
        self._label = label
        self._logger = logger or _logger
        self._in_flight = False
        self._release_task: asyncio.Task[None] | None = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def pulse(self) -> bool:
        """Fire one pulse.

        Returns ``False`` when a pulse was already in flight. Raises
        whatever ``set_switch(True)`` raised; in that case nothing is in
        flight afterwards.
        """
        if self._in_flight or (self._is_switched_on is not None and self._is_switched_on()):
            self._logger.debug("Pulse on %s already in flight; ignoring", self._label)
            return False

        self._in_flight = True
        try:
            await self._set_switch(True)
        except BaseException:
            self._in_flight = False
            raise

        self._logger.debug("Pulse on %s started (%.3fs)", self._label, self._pulse_time)
        self._release_task = asyncio.create_task(self._release())
        return True

    async def _release(self) -> None:
        try:
            await asyncio.sleep(self._pulse_time)
        finally:
            # The relay must be released even when the timer is cancelled.
            try:
                await self._set_switch(False)
            except Exception:
                self._logger.warning("Failed to release %s after pulse", self._label, exc_info=True)
            else:
                self._logger.debug("Pulse on %s released", self._label)
            finally:
                self._in_flight = False

    async def wait_released(self) -> None:
        """Wait until an outstanding pulse has released the relay."""
        task = self._release_task
        if task is None or task.done():
            return
        await asyncio.shield(task)
