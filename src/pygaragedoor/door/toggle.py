"""Sensor-less door state inference.

For doors without a closed sensor the controller has to reason from its
own command history. Each pulse advances the motor through the cycle
open -> closing -> (stop) -> opening -> ... and the table below maps the
current state to the state after one pulse.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pygaragedoor.door.tracker import StateTracker
from pygaragedoor.door.transition import SettleTimer
from pygaragedoor.models.door import DoorState, Provenance, TargetState

_logger = logging.getLogger(__name__)

_NEXT_STATE: dict[DoorState, DoorState] = {
    DoorState.OPEN: DoorState.CLOSING,
    DoorState.CLOSED: DoorState.OPENING,
    DoorState.OPENING: DoorState.STOPPED,
    DoorState.CLOSING: DoorState.OPENING,
}

_SETTLED: dict[DoorState, DoorState] = {
    DoorState.OPENING: DoorState.OPEN,
    DoorState.CLOSING: DoorState.CLOSED,
}


@dataclass(frozen=True, slots=True)
class ToggleStep:
    current: DoorState
    target: TargetState
    target_provenance: Provenance


def next_toggle_step(
    current: DoorState,
    requested: TargetState,
    *,
    pre_stopped: DoorState | None,
    provenance: Provenance = Provenance.INTERNAL_SYNC,
) -> ToggleStep:
    """Work out what one pulse does to a door in state *current*.

    A stopped door resumes in the opposite direction of the motion it was
    interrupted in; the target is then corrected with a ``fixup`` write.
    """
    if current is DoorState.STOPPED:
        if pre_stopped is DoorState.OPENING:
            return ToggleStep(DoorState.CLOSING, TargetState.CLOSED, Provenance.FIXUP)
        return ToggleStep(DoorState.OPENING, TargetState.OPEN, Provenance.FIXUP)

    new_state = _NEXT_STATE[current]
    if new_state is DoorState.STOPPED:
        return ToggleStep(new_state, requested, provenance)

    target = TargetState.for_door_state(new_state)
    return ToggleStep(new_state, target, provenance if target is requested else Provenance.FIXUP)


class ToggleStrategy:
    """Applies :func:`next_toggle_step` to the tracker after each pulse."""

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

    def toggle(self, requested: TargetState, provenance: Provenance = Provenance.INTERNAL_SYNC) -> ToggleStep:
        """Advance the door by one pulse. Callers hold the controller lock."""
        step = next_toggle_step(
            self._tracker.current_state,
            requested,
            pre_stopped=self._tracker.pre_stopped_state,
            provenance=provenance,
        )
        self._timer.cancel()
        self._logger.debug("Toggle %s -> %s", self._tracker.current_state.name, step.current.name)
        self._tracker.set_target_state(step.target, step.target_provenance)
        self._tracker.set_current_state(step.current, Provenance.INTERNAL_SYNC)

        settled = _SETTLED.get(step.current)
        if settled is not None:
            self._timer.schedule(settled)
        return step
