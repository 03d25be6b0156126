"""pygaragedoor - Async controller for pulse-driven garage doors."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pygaragedoor")
except PackageNotFoundError:
    __version__ = "0+local"
from pygaragedoor.accessory import GarageDoorAccessory, create_garage_door_accessory
from pygaragedoor.config import GarageDoorConfig
from pygaragedoor.controller import GarageDoorController
from pygaragedoor.device import Device, SetSwitch
from pygaragedoor.exceptions import (
    AcknowledgementError,
    ActuationError,
    ControllerDetachedError,
    GarageDoorConfigError,
    GarageDoorError,
)
from pygaragedoor.models import (
    DoorState,
    DoorStrategy,
    PropertyChange,
    Provenance,
    TargetState,
)
from pygaragedoor.sink import GarageDoorService, PresentationSink

__all__ = [
    "__version__",
    "AcknowledgementError",
    "ActuationError",
    "ControllerDetachedError",
    "Device",
    "DoorState",
    "DoorStrategy",
    "GarageDoorAccessory",
    "GarageDoorConfig",
    "GarageDoorConfigError",
    "GarageDoorController",
    "GarageDoorError",
    "GarageDoorService",
    "PresentationSink",
    "PropertyChange",
    "Provenance",
    "SetSwitch",
    "TargetState",
    "create_garage_door_accessory",
]
