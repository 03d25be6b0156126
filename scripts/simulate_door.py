#!/usr/bin/env python3
"""Drive a garage door controller against a simulated door.

Runs a sequence of target requests (``open`` / ``close``) through the door
service and prints every characteristic update the controller pushes.

Example::

    python scripts/simulate_door.py open close --travel-time 2 -v
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pygaragedoor import (  # noqa: E402
    DoorStrategy,
    GarageDoorConfig,
    GarageDoorError,
    TargetState,
    create_garage_door_accessory,
)
from pygaragedoor.simulator import SimulatedDevice, SimulatedGarageDoor  # noqa: E402
from pygaragedoor.sink import SinkUpdate  # noqa: E402

_COMMANDS = {"open": TargetState.OPEN, "close": TargetState.CLOSED}


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("commands", nargs="*", metavar="{open,close}", help="Requests to send (default: open close)")
    parser.add_argument("--travel-time", type=float, default=1.0, help="Seconds the simulated door needs to move")
    parser.add_argument("--movement-time", type=float, default=None, help="Controller settle delay (default: travel time)")
    parser.add_argument("--pulse-time", type=float, default=0.2, help="Seconds the relay is held on")
    parser.add_argument("--pause", type=float, default=0.5, help="Extra seconds to wait between commands")
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in DoorStrategy],
        default=DoorStrategy.SENSOR.value,
    )
    parser.add_argument("--open", dest="start_open", action="store_true", help="Start with the door open")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)
    unknown = [c for c in args.commands if c not in _COMMANDS]
    if unknown:
        parser.error(f"unknown command(s): {', '.join(unknown)}")
    args.commands = args.commands or ["open", "close"]
    return args


def _print_update(update: SinkUpdate) -> None:
    value = update.value.name if hasattr(update.value, "name") else update.value
    print(f"{update.characteristic:<22} {value!s:<8} ({update.provenance})")


async def _run(args: argparse.Namespace) -> int:
    device = SimulatedDevice("sim-garage", "SHSW-1", name="Garage")
    door = SimulatedGarageDoor(device, travel_time=args.travel_time, closed=not args.start_open)
    config = GarageDoorConfig(
        switch_property="relay0",
        state_property="input0",
        movement_time=args.movement_time or args.travel_time,
        pulse_time=args.pulse_time,
        strategy=DoorStrategy(args.strategy),
    )
    accessory = create_garage_door_accessory(device, config)
    accessory.setup()
    assert accessory.service is not None  # noqa: S101
    accessory.service.add_listener(_print_update)

    exit_code = 0
    try:
        for command in args.commands:
            print(f"--> {command}")
            try:
                await accessory.service.request_target_state(_COMMANDS[command])
            except GarageDoorError as exc:
                print(f"request failed: {exc}", file=sys.stderr)
                exit_code = 1
            await asyncio.sleep(args.travel_time + config.settle_delay + args.pause)
        print(f"door is {door.state.name}")
    finally:
        accessory.detach()
        door.close()
    return exit_code


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
