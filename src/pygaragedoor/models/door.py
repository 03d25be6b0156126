"""Door-opener state model and typed device payloads.

``DoorState`` and ``TargetState`` carry the integer values of the
consumer's door-opener characteristics so they can be written straight
through to a presentation layer.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class DoorState(enum.IntEnum):
    """Current (observable) door state."""

    OPEN = 0
    CLOSED = 1
    OPENING = 2
    CLOSING = 3
    STOPPED = 4

    @property
    def is_moving(self) -> bool:
        return self in (DoorState.OPENING, DoorState.CLOSING)


class TargetState(enum.IntEnum):
    """Desired end state of the door."""

    OPEN = 0
    CLOSED = 1

    @classmethod
    def for_door_state(cls, state: DoorState) -> TargetState:
        """Derive the target implied by a current state.

        OPEN and OPENING head towards OPEN; everything else is CLOSED.
        """
        if state in (DoorState.OPEN, DoorState.OPENING):
            return cls.OPEN
        return cls.CLOSED


class Provenance(enum.StrEnum):
    """Origin of a state write pushed to, or requested from, the presentation sink."""

    INTERNAL_SYNC = "internal-sync"
    EXTERNAL_REQUEST = "external-request"
    FIXUP = "fixup"

    @property
    def is_self_originated(self) -> bool:
        """Whether the write was produced by the controller itself."""
        return self is not Provenance.EXTERNAL_REQUEST


class DoorStrategy(enum.StrEnum):
    """How the controller infers door motion.

    ``SENSOR`` follows the binary closed sensor and simulates the
    transient states around each change. ``SENSORLESS`` reasons from the
    controller's own command history using the toggle table.
    """

    SENSOR = "sensor"
    SENSORLESS = "sensorless"


# ------------------------------------------------------------------
# Device payloads
# ------------------------------------------------------------------


class PropertyChange(BaseModel):
    """A change of a single device property, as delivered to subscribers."""

    model_config = ConfigDict(frozen=True)

    device_id: str = Field(..., description="Identifier of the reporting device")
    property_name: str = Field(..., description="Name of the property that changed")
    value: Any = None
    previous: Any = None
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("property_name")
    @classmethod
    def _normalize_property(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("property_name must be non-empty")
        return name

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def is_closed(self) -> bool:
        """Interpret ``value`` as a closed-sensor reading (truthy = closed)."""
        return bool(self.value)
