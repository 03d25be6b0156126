"""Garage door controller.

Bridges a pulsed relay and a binary closed sensor to the five-state
door-opener model of the presentation sink.

Usage::

    controller = GarageDoorController(config, set_switch)
    controller.attach(device, service)
    ...
    controller.detach()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

from pygaragedoor._log import describe_device, handle_failed_request
from pygaragedoor.config import GarageDoorConfig
from pygaragedoor.device import Device, SetSwitch, change_event, read_bool
from pygaragedoor.door.pulse import PulseController
from pygaragedoor.door.toggle import ToggleStrategy
from pygaragedoor.door.tracker import StateTracker
from pygaragedoor.door.transition import SettleTimer, TransitionSimulator
from pygaragedoor.exceptions import ActuationError, ControllerDetachedError
from pygaragedoor.models.door import (
    DoorState,
    DoorStrategy,
    PropertyChange,
    Provenance,
    TargetState,
)
from pygaragedoor.sink import Ack, PresentationSink

if TYPE_CHECKING:
    from pygaragedoor.accessory import GarageDoorAccessory

_logger = logging.getLogger(__name__)


class GarageDoorController:
    """Door controller for one garage door.

    Every target write coming from the sink carries a provenance. Writes the
    controller produced itself are recorded and acknowledged without
    touching the relay; genuine external requests pulse the relay.

    Device notifications may be delivered on any thread. They are handed to
    the controller's event loop and state mutations are serialised by a
    per-instance lock.
    """

    def __init__(
        self,
        config: GarageDoorConfig,
        set_switch: SetSwitch,
        *,
        logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        self._config = config
        self._set_switch = set_switch
        self._logger = logger or _logger
        self._lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._device: Device | None = None
        self._sink: PresentationSink | None = None
        self._tracker: StateTracker | None = None
        self._timer: SettleTimer | None = None
        self._transition: TransitionSimulator | None = None
        self._toggle: ToggleStrategy | None = None
        self._pulse: PulseController | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._detached = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def config(self) -> GarageDoorConfig:
        return self._config

    @property
    def strategy(self) -> DoorStrategy:
        return self._config.strategy

    @property
    def device(self) -> Device | None:
        return self._device

    @property
    def is_attached(self) -> bool:
        return self._tracker is not None and not self._detached

    @property
    def current_state(self) -> DoorState:
        return self._require_tracker().current_state

    @property
    def target_state(self) -> TargetState:
        return self._require_tracker().target_state

    @property
    def pre_stopped_state(self) -> DoorState | None:
        return self._require_tracker().pre_stopped_state

    @property
    def pulse_in_flight(self) -> bool:
        return self._pulse is not None and self._pulse.in_flight

    @property
    def settle_pending(self) -> bool:
        return self._timer is not None and self._timer.pending

    def _require_tracker(self) -> StateTracker:
        if self._tracker is None:
            raise ControllerDetachedError("Controller is not attached to a device")
        return self._tracker

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def setup(self, accessory: GarageDoorAccessory) -> None:
        """Attach to the device and door service of *accessory*."""
        if accessory.device is None or accessory.service is None:
            raise ControllerDetachedError("Accessory has no device or door service")
        self._logger = accessory.log
        self.attach(accessory.device, accessory.service)

    def attach(self, device: Device, sink: PresentationSink) -> None:
        """Seed the door state from *device* and subscribe to both event sources.

        Must be called from the event loop that will run the controller.
        """
        if self._tracker is not None or self._detached:
            raise ControllerDetachedError("Controller can only be attached once")

        self._loop = asyncio.get_running_loop()
        self._device = device
        self._sink = sink

        closed = read_bool(device, self._config.state_property)
        initial = DoorState.CLOSED if closed else DoorState.OPEN
        self._tracker = StateTracker(sink, initial, logger=self._logger)
        self._timer = SettleTimer(
            self._config.settle_delay,
            self._settled,
            lock=self._lock,
            logger=self._logger,
        )
        self._transition = TransitionSimulator(self._tracker, self._timer, logger=self._logger)
        self._toggle = ToggleStrategy(self._tracker, self._timer, logger=self._logger)
        self._pulse = PulseController(
            self._set_switch,
            self._config.pulse_time,
            is_switched_on=self._is_switched_on,
            label=f"{self._config.switch_property} of device {describe_device(device)}",
            logger=self._logger,
        )

        # Initial values are written before the handler is registered so they
        # are never delivered as write requests.
        sink.push_current_state(initial, Provenance.INTERNAL_SYNC)
        sink.push_target_state(self._tracker.target_state, Provenance.INTERNAL_SYNC)
        sink.set_target_write_handler(self._handle_target_write)

        if self.strategy is DoorStrategy.SENSOR:
            device.on(change_event(self._config.state_property), self._on_sensor_change)

        self._logger.debug(
            "Attached garage door on %s (%s strategy), initial state %s",
            describe_device(device),
            self.strategy,
            initial.name,
        )

    def detach(self) -> None:
        """Unsubscribe from both event sources and cancel pending timers.

        No state is pushed to the sink once this returns. A relay pulse that
        is in flight still releases the relay.
        """
        if self._detached:
            return
        self._detached = True

        if self._tracker is not None:
            self._tracker.close()
        if self._timer is not None:
            self._timer.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

        if self._sink is not None:
            self._sink.set_target_write_handler(None)
        if self._device is not None and self.strategy is DoorStrategy.SENSOR:
            self._device.off(change_event(self._config.state_property), self._on_sensor_change)

        self._logger.debug("Detached garage door from %s", describe_device(self._device))
        self._device = None
        self._sink = None

    async def wait_idle(self) -> None:
        """Wait for queued sensor changes, settle timers and pulse releases."""
        # let notifications already handed to the loop spawn their tasks
        await asyncio.sleep(0)
        while self._tasks:
            await asyncio.wait(set(self._tasks))
        if self._timer is not None:
            await self._timer.wait()
        if self._pulse is not None:
            await self._pulse.wait_released()

    # ------------------------------------------------------------------
    # Sink: target-write requests
    # ------------------------------------------------------------------

    async def _handle_target_write(self, new_value: TargetState, ack: Ack, provenance: Provenance) -> None:
        provenance = Provenance(provenance)
        tracker = self._tracker
        if tracker is None or self._detached:
            ack(ControllerDetachedError("Controller is detached"))
            return

        target = TargetState(new_value)
        tracker.record_target_state(target)
        self._logger.debug("Target door state is %s (%s)", target.name, provenance)

        if provenance.is_self_originated:
            ack()
            return

        device = self._device
        self._logger.debug(
            "Setting %s of device %s to %s",
            self._config.switch_property,
            describe_device(device),
            True,
        )
        assert self._pulse is not None  # noqa: S101
        try:
            pulsed = await self._pulse.pulse()
        except Exception as exc:
            handle_failed_request(self._logger, device, exc, f"Failed to set {self._config.switch_property}")
            error = ActuationError(
                f"Failed to set {self._config.switch_property}",
                device_id=str(getattr(device, "id", "")),
                device_type=str(getattr(device, "type", "")),
                property_name=self._config.switch_property,
            )
            error.__cause__ = exc
            ack(error)
            return

        if pulsed and self.strategy is DoorStrategy.SENSORLESS:
            async with self._lock:
                if not self._detached and self._toggle is not None:
                    self._toggle.toggle(target, Provenance.INTERNAL_SYNC)
        ack()

    # ------------------------------------------------------------------
    # Device: closed-sensor changes
    # ------------------------------------------------------------------

    def _on_sensor_change(self, change: PropertyChange) -> None:
        loop = self._loop
        if loop is None or self._detached:
            return
        loop.call_soon_threadsafe(self._spawn, self._apply_sensor_change(change))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        if self._detached:
            coro.close()
            return
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error("Handling sensor change failed", exc_info=exc)

    async def _apply_sensor_change(self, change: PropertyChange) -> None:
        self._logger.debug(
            "%s of device %s changed to %s",
            change.property_name,
            describe_device(self._device),
            change.value,
        )
        async with self._lock:
            if self._detached or self._transition is None:
                return
            self._transition.sensor_changed(change.is_closed)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _settled(self, final_state: DoorState) -> None:
        if self._detached or self._tracker is None:
            return
        self._tracker.set_current_state(final_state, Provenance.INTERNAL_SYNC)

    def _is_switched_on(self) -> bool:
        device = self._device
        if device is None:
            return False
        return read_bool(device, self._config.switch_property)
