"""Custom exception hierarchy for pygaragedoor."""

from __future__ import annotations


class GarageDoorError(Exception):
    """Base exception for all pygaragedoor errors."""


class GarageDoorConfigError(GarageDoorError):
    """Invalid or missing configuration."""


class ActuationError(GarageDoorError):
    """The relay could not be switched on (the device rejected the command)."""

    def __init__(
        self,
        message: str,
        *,
        device_id: str = "",
        device_type: str = "",
        property_name: str = "",
    ) -> None:
        self.device_id = device_id
        self.device_type = device_type
        self.property_name = property_name
        super().__init__(message)


class AcknowledgementError(GarageDoorError):
    """A target-write acknowledgement was invoked more than once."""


class ControllerDetachedError(GarageDoorError):
    """The controller is not attached (or was already attached)."""
