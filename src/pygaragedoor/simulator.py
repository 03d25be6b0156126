"""In-memory device and door simulators.

``SimulatedDevice`` implements the :class:`~pygaragedoor.device.Device`
interface with a property bag. ``SimulatedGarageDoor`` adds door physics
behind one of its relays so a controller can be driven end to end
without hardware.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from pygaragedoor.device import ChangeHandler, change_event
from pygaragedoor.models.door import DoorState, PropertyChange

_logger = logging.getLogger(__name__)


class SimulatedDevice:
    """A relay device whose properties live in memory.

    Setting a property to a new value notifies ``change:<property>``
    subscribers with a :class:`PropertyChange` payload.
    """

    def __init__(
        self,
        id: str = "sim-1",  # noqa: A002
        type: str = "SHSW-1",  # noqa: A002
        *,
        name: str | None = None,
        host: str | None = "127.0.0.1",
        properties: Mapping[str, Any] | None = None,
        settings: Mapping[str, Any] | None = None,
        relay_latency: float = 0.0,
    ) -> None:
        self.id = id
        self.type = type
        self.name = name
        self.host = host
        self._properties: dict[str, Any] = dict(properties or {})
        self._settings: dict[str, Any] = dict(settings or {})
        self._handlers: dict[str, list[ChangeHandler]] = {}
        self._relay_latency = relay_latency
        self._relay_failures: dict[bool | None, Exception] = {}
        self.relay_calls: list[tuple[int, bool]] = []

    @property
    def settings(self) -> Mapping[str, Any]:
        return self._settings

    def update_settings(self, settings: Mapping[str, Any]) -> None:
        previous = dict(self._settings)
        self._settings = dict(settings)
        self._emit(PropertyChange(device_id=self.id, property_name="settings", value=self._settings, previous=previous))

    def get_property(self, name: str) -> Any:
        return self._properties.get(name)

    def set_property(self, name: str, value: Any) -> None:
        """Store *value* and notify subscribers if it changed."""
        previous = self._properties.get(name)
        self._properties[name] = value
        if previous == value:
            return
        self._emit(PropertyChange(device_id=self.id, property_name=name, value=value, previous=previous))

    def on(self, event: str, handler: ChangeHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: ChangeHandler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def _emit(self, change: PropertyChange) -> None:
        for handler in list(self._handlers.get(change_event(change.property_name), [])):
            try:
                handler(change)
            except Exception:
                _logger.debug("Handler for %s failed", change.property_name, exc_info=True)

    def fail_relay(self, error: Exception | None, *, value: bool | None = None) -> None:
        """Make ``set_relay`` raise *error* (for *value* only, if given).

        Pass ``None`` as *error* to clear the failure again.
        """
        if error is None:
            self._relay_failures.pop(value, None)
        else:
            self._relay_failures[value] = error

    async def set_relay(self, index: int, value: bool) -> None:
        if self._relay_latency > 0:
            await asyncio.sleep(self._relay_latency)
        else:
            await asyncio.sleep(0)
        self.relay_calls.append((index, value))
        error = self._relay_failures.get(value) or self._relay_failures.get(None)
        if error is not None:
            raise error
        self.set_property(f"relay{index}", value)


class SimulatedGarageDoor:
    """Door physics driven by a pulsed relay.

    A rising relay edge starts, stops or reverses the motor. The closed
    sensor clears as soon as the door leaves the closed position and is
    set again only when the door has travelled all the way down.
    """

    def __init__(
        self,
        device: SimulatedDevice,
        *,
        travel_time: float,
        relay_index: int = 0,
        sensor_property: str = "input0",
        closed: bool = True,
    ) -> None:
        self.device = device
        self.travel_time = travel_time
        self._relay_property = f"relay{relay_index}"
        self._sensor_property = sensor_property
        self._state = DoorState.CLOSED if closed else DoorState.OPEN
        self._last_motion: DoorState | None = None
        self._handle: asyncio.TimerHandle | None = None
        device.set_property(sensor_property, 1 if closed else 0)
        device.on(change_event(self._relay_property), self._on_relay)

    @property
    def state(self) -> DoorState:
        return self._state

    def close(self) -> None:
        """Stop reacting to the relay and cancel any motion in progress."""
        self._cancel()
        self.device.off(change_event(self._relay_property), self._on_relay)

    def _on_relay(self, change: PropertyChange) -> None:
        if change.value and not change.previous:
            self.trigger()

    def trigger(self) -> None:
        """What the motor does on one pulse."""
        if self._state.is_moving:
            self._cancel()
            self._last_motion = self._state
            self._state = DoorState.STOPPED
            _logger.debug("Simulated door stopped")
            return

        if self._state is DoorState.CLOSED:
            self._start(DoorState.OPENING)
        elif self._state is DoorState.OPEN:
            self._start(DoorState.CLOSING)
        elif self._last_motion is DoorState.OPENING:
            self._start(DoorState.CLOSING)
        else:
            self._start(DoorState.OPENING)

    def _start(self, motion: DoorState) -> None:
        self._state = motion
        _logger.debug("Simulated door %s", motion.name)
        if motion is DoorState.OPENING:
            self.device.set_property(self._sensor_property, 0)
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.travel_time, self._arrive)

    def _arrive(self) -> None:
        self._handle = None
        if self._state is DoorState.OPENING:
            self._state = DoorState.OPEN
        elif self._state is DoorState.CLOSING:
            self._state = DoorState.CLOSED
            self.device.set_property(self._sensor_property, 1)
        _logger.debug("Simulated door arrived %s", self._state.name)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
