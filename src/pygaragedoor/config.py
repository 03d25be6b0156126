"""Door configuration for pygaragedoor."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pygaragedoor.exceptions import GarageDoorConfigError
from pygaragedoor.models.door import DoorStrategy


def _env_float(value: str, name: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise GarageDoorConfigError(f"{name} must be a number, got {value!r}") from exc


def _env_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise GarageDoorConfigError(f"{name} must be an integer, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class GarageDoorConfig:
    """Construction parameters of a single garage door.

    Parameters
    ----------
    switch_property : str
        Device property that reflects the relay driving the door motor.
    state_property : str
        Device property of the binary sensor that reports the door is
        closed (truthy = closed).
    movement_time : float
        Seconds the door needs to open or close completely. Used as the
        settle delay before a simulated OPENING/CLOSING state completes.
    pulse_time : float
        Seconds the relay is held on to trigger the motor.
    strategy : DoorStrategy
        ``sensor`` to follow the closed sensor, ``sensorless`` to infer
        motion from the controller's own commands.
        Both strategies seed the initial state from *state_property*; a
        sensorless door whose property is missing or falsy starts as OPEN.
    relay_index : int
        Relay channel on the device.
    name : str or None
        Optional accessory name.
    """

    switch_property: str
    state_property: str
    movement_time: float
    pulse_time: float
    strategy: DoorStrategy = DoorStrategy.SENSOR
    relay_index: int = 0
    name: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.switch_property, str) or not self.switch_property.strip():
            raise GarageDoorConfigError("switch_property must be a non-empty string")
        if not isinstance(self.state_property, str) or not self.state_property.strip():
            raise GarageDoorConfigError("state_property must be a non-empty string")
        if self.movement_time <= 0:
            raise GarageDoorConfigError("movement_time must be positive")
        if self.pulse_time <= 0:
            raise GarageDoorConfigError("pulse_time must be positive")
        if self.relay_index < 0:
            raise GarageDoorConfigError("relay_index must not be negative")
        try:
            strategy = DoorStrategy(self.strategy)
        except ValueError as exc:
            raise GarageDoorConfigError(f"Unknown strategy {self.strategy!r}") from exc
        # Frozen dataclass: coerce plain strings to the enum in place.
        object.__setattr__(self, "strategy", strategy)

    @property
    def settle_delay(self) -> float:
        """Seconds a simulated transient state lasts before it settles."""
        return self.movement_time

    @classmethod
    def from_env(cls, **overrides: Any) -> GarageDoorConfig:
        """Create configuration from environment variables.

        Reads ``GARAGE_DOOR_SWITCH_PROPERTY``, ``GARAGE_DOOR_STATE_PROPERTY``,
        ``GARAGE_DOOR_MOVEMENT_TIME``, ``GARAGE_DOOR_PULSE_TIME`` and the
        optional ``GARAGE_DOOR_STRATEGY``, ``GARAGE_DOOR_RELAY_INDEX`` and
        ``GARAGE_DOOR_NAME``. Explicit keyword arguments override
        environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "GARAGE_DOOR_SWITCH_PROPERTY": "switch_property",
            "GARAGE_DOOR_STATE_PROPERTY": "state_property",
            "GARAGE_DOOR_STRATEGY": "strategy",
            "GARAGE_DOOR_NAME": "name",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # numeric fields, handled separately
        for env_key, field_name in (
            ("GARAGE_DOOR_MOVEMENT_TIME", "movement_time"),
            ("GARAGE_DOOR_PULSE_TIME", "pulse_time"),
        ):
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_float(val, env_key)

        index_env = env.get("GARAGE_DOOR_RELAY_INDEX")
        if index_env is not None and "relay_index" not in overrides:
            config_kwargs["relay_index"] = _env_int(index_env, "GARAGE_DOOR_RELAY_INDEX")

        config_kwargs.update(overrides)

        missing = [
            name
            for name in ("switch_property", "state_property", "movement_time", "pulse_time")
            if name not in config_kwargs
        ]
        if missing:
            raise GarageDoorConfigError(f"Missing configuration: {', '.join(missing)}")

        return cls(**config_kwargs)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> GarageDoorConfig:
        """Create configuration from a plugin-style mapping.

        Keys are camelCase and times are expressed in milliseconds, e.g.::

            {"switchProperty": "relay0", "stateProperty": "input0",
             "movementTime": 20000, "pulseTime": 500}
        """
        try:
            kwargs: dict[str, Any] = {
                "switch_property": mapping["switchProperty"],
                "state_property": mapping["stateProperty"],
                "movement_time": float(mapping["movementTime"]) / 1000.0,
                "pulse_time": float(mapping["pulseTime"]) / 1000.0,
            }
        except KeyError as exc:
            raise GarageDoorConfigError(f"Missing configuration key {exc.args[0]!r}") from exc
        except (TypeError, ValueError) as exc:
            raise GarageDoorConfigError(f"Invalid time value: {exc}") from exc

        if "strategy" in mapping:
            kwargs["strategy"] = mapping["strategy"]
        if "relayIndex" in mapping:
            kwargs["relay_index"] = int(mapping["relayIndex"])
        if mapping.get("name"):
            kwargs["name"] = str(mapping["name"])
        return cls(**kwargs)
