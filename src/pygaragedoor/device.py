"""Device collaborator interface.

A device exposes readable properties, per-property change notifications
(``change:<property>``) and an asynchronous relay command. Connectivity
and polling live behind this interface.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from pygaragedoor.models.door import PropertyChange

ChangeHandler = Callable[[PropertyChange], None]
"""Callback invoked with the typed payload of a property change."""

SetSwitch = Callable[[bool], Awaitable[None]]
"""Coroutine function that switches the door relay on or off."""


def change_event(property_name: str) -> str:
    """Name of the notification emitted when *property_name* changes."""
    return f"change:{property_name}"


@runtime_checkable
class Device(Protocol):
    """A relay device with a closed-position input."""

    id: str
    type: str
    name: str | None
    host: str | None

    @property
    def settings(self) -> Mapping[str, Any]:
        """Device settings (firmware and hardware information)."""

    def get_property(self, name: str) -> Any:
        """Return the current value of a device property, or ``None``."""

    def on(self, event: str, handler: ChangeHandler) -> None:
        """Subscribe *handler* to *event*."""

    def off(self, event: str, handler: ChangeHandler) -> None:
        """Remove a previously registered *handler*."""

    async def set_relay(self, index: int, value: bool) -> None:
        """Switch relay *index* on or off. Raises on failure."""


def read_bool(device: Device, property_name: str) -> bool:
    """Read a boolean-ish device property (missing values read as ``False``)."""
    return bool(device.get_property(property_name) or False)
