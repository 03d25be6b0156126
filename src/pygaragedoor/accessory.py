"""Accessories: the consumer-facing wrapper around a relay device.

An accessory owns a door service, a logging facility and a list of
abilities (such as :class:`~pygaragedoor.controller.GarageDoorController`)
that it sets up and detaches together.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable, MutableMapping
from typing import Any, Protocol

from pygaragedoor._log import handle_failed_request
from pygaragedoor.config import GarageDoorConfig
from pygaragedoor.controller import GarageDoorController
from pygaragedoor.device import Device, change_event
from pygaragedoor.models.door import PropertyChange
from pygaragedoor.sink import GarageDoorService

_logger = logging.getLogger(__name__)

_FIRMWARE_VERSION = re.compile(r"v([0-9]+(?:\.[0-9]+)*)")

#: Seconds the relay is inverted while identifying the accessory.
IDENTIFY_DURATION: float = 1.0


class Ability(Protocol):
    def setup(self, accessory: GarageDoorAccessory) -> None: ...

    def detach(self) -> None: ...


class _AccessoryLogAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Prefixes every message with the accessory name."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['accessory']}] {msg}", kwargs


def parse_firmware_version(firmware: str) -> str:
    """Extract ``1.2.3`` from strings like ``20210115-103659/v1.2.3@abc``."""
    match = _FIRMWARE_VERSION.search(firmware)
    return match.group(1) if match is not None else firmware


class GarageDoorAccessory:
    """A relay device exposed as a garage door opener.

    Parameters
    ----------
    device : Device
        The device behind this accessory.
    index : int
        Relay index, for devices with several relays.
    name : str or None
        Configured name; overrides the device name.
    abilities : iterable of Ability
        Abilities set up with this accessory.
    logger : logging.Logger or None
        Base logger; messages are prefixed with the accessory name.
    """

    accessory_type = "garageDoorSwitch"
    manufacturer = "Shelly"

    def __init__(
        self,
        device: Device,
        index: int = 0,
        *,
        name: str | None = None,
        abilities: Iterable[Ability] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.device: Device | None = device
        self.index = index
        self._configured_name = name
        self.abilities: list[Ability] = list(abilities or [])
        self.service: GarageDoorService | None = None
        self.accessory_information: dict[str, str] = {}
        self.log = _AccessoryLogAdapter(logger or _logger, {"accessory": self.name})

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        """Configured name, else the device name, else :attr:`default_name`."""
        if self._configured_name:
            return self._configured_name
        device_name = getattr(self.device, "name", None)
        if device_name:
            return f"{device_name} #{self.index}"
        return self.default_name

    @property
    def default_name(self) -> str:
        d = self._require_device()
        return f"{d.type} {d.id} {self.index}"

    @property
    def context(self) -> dict[str, Any]:
        """Key facts persisted with the accessory between restarts."""
        d = self._require_device()
        return {
            "type": d.type,
            "id": d.id,
            "host": d.host,
            "accessoryType": self.accessory_type,
            "index": self.index,
        }

    def _require_device(self) -> Device:
        if self.device is None:
            raise RuntimeError("Accessory has been detached from its device")
        return self.device

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def setup(self, service: GarageDoorService | None = None) -> None:
        """Set up the door service, event handlers and all abilities.

        Pass an existing *service* to reuse restored characteristic values.
        """
        d = self._require_device()
        self.service = service if service is not None else GarageDoorService(logger=_logger)
        d.on(change_event("settings"), self.update_accessory_information)
        self.update_accessory_information()

        for ability in self.abilities:
            ability.setup(self)

    def detach(self) -> None:
        """Detach all abilities and drop the reference to the device."""
        for ability in self.abilities:
            ability.detach()

        if self.device is not None:
            self.device.off(change_event("settings"), self.update_accessory_information)
        self.device = None

    def update_accessory_information(self, change: PropertyChange | None = None) -> None:
        """Refresh manufacturer, model, serial and revisions from the device."""
        d = self._require_device()
        info = {
            "manufacturer": self.manufacturer,
            "model": d.type,
            "serial_number": d.id,
        }
        settings = d.settings or {}
        fw = settings.get("fw")
        if fw:
            info["firmware_revision"] = parse_firmware_version(str(fw))
        hwinfo = settings.get("hwinfo")
        if isinstance(hwinfo, dict) and hwinfo.get("hw_revision"):
            info["hardware_revision"] = str(hwinfo["hw_revision"])
        self.accessory_information = info

    # ------------------------------------------------------------------
    # Relay
    # ------------------------------------------------------------------

    async def set_relay(self, value: bool) -> None:
        """Switch this accessory's relay on or off."""
        await self._require_device().set_relay(self.index, value)

    async def identify(self) -> None:
        """Invert the relay for a moment so the device can be located."""
        d = self._require_device()
        self.log.info("%s at %s identified", self.name, d.host)
        current = bool(d.get_property(f"relay{self.index}"))
        try:
            await self.set_relay(not current)
            await asyncio.sleep(IDENTIFY_DURATION)
            await self.set_relay(current)
        except Exception as exc:
            handle_failed_request(self.log, d, exc, "Failed to identify device")
            raise


def create_garage_door_accessory(
    device: Device,
    config: GarageDoorConfig,
    *,
    logger: logging.Logger | None = None,
) -> GarageDoorAccessory:
    """Build an accessory whose garage door ability pulses the accessory relay.

    The controller switches the relay on *device* directly, so a pulse that
    is in flight when the accessory detaches still releases the relay.
    """
    accessory = GarageDoorAccessory(device, config.relay_index, name=config.name, logger=logger)

    async def set_switch(value: bool) -> None:
        await device.set_relay(config.relay_index, value)

    accessory.abilities.append(GarageDoorController(config, set_switch, logger=accessory.log))
    return accessory
