"""Current/target door state bookkeeping."""

from __future__ import annotations

import logging
from typing import Any

from pygaragedoor.models.door import DoorState, Provenance, TargetState
from pygaragedoor.sink import PresentationSink

_logger = logging.getLogger(__name__)


class StateTracker:
    """Holds the door state and pushes every change to the presentation sink.

    The target state starts unset; until it is set explicitly it is
    derived from the current state.
    """

    def __init__(
        self,
        sink: PresentationSink,
        initial_state: DoorState,
        *,
        logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        self._sink = sink
        self._current_state = DoorState(initial_state)
        self._target_state: TargetState | None = None
        self._pre_stopped_state: DoorState | None = None
        self._closed = False
        self._logger = logger or _logger

    @property
    def current_state(self) -> DoorState:
        return self._current_state

    @property
    def target_state(self) -> TargetState:
        if self._target_state is not None:
            return self._target_state
        return TargetState.for_door_state(self._current_state)

    @property
    def pre_stopped_state(self) -> DoorState | None:
        """State held right before the door last entered STOPPED."""
        return self._pre_stopped_state

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop accepting mutations; nothing is pushed after this."""
        self._closed = True

    def record_target_state(self, new_state: TargetState) -> None:
        """Record a target that was already written to the sink."""
        if self._closed:
            return
        self._target_state = TargetState(new_state)

    def set_current_state(self, new_state: DoorState, provenance: Provenance = Provenance.INTERNAL_SYNC) -> None:
        new_state = DoorState(new_state)
        if self._closed:
            self._logger.debug("Dropping current state %s after detach", new_state.name)
            return

        previous = self._current_state
        if previous is DoorState.STOPPED and new_state is not DoorState.STOPPED:
            # leaving STOPPED resets the obstruction flag
            self._sink.push_obstruction(False, provenance)
        if new_state is DoorState.STOPPED and previous is not DoorState.STOPPED:
            self._pre_stopped_state = previous

        self._current_state = new_state
        self._logger.debug("Current door state %s -> %s (%s)", previous.name, new_state.name, provenance)
        self._sink.push_current_state(new_state, provenance)

    def set_target_state(self, new_state: TargetState, provenance: Provenance) -> None:
        new_state = TargetState(new_state)
        if self._closed:
            self._logger.debug("Dropping target state %s after detach", new_state.name)
            return

        self._target_state = new_state
        self._logger.debug("Target door state %s (%s)", new_state.name, provenance)
        self._sink.push_target_state(new_state, provenance)
