"""Typed models for pygaragedoor."""

from pygaragedoor.models.door import (
    DoorState,
    DoorStrategy,
    PropertyChange,
    Provenance,
    TargetState,
)

__all__ = [
    "DoorState",
    "DoorStrategy",
    "PropertyChange",
    "Provenance",
    "TargetState",
]
