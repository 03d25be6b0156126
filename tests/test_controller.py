from __future__ import annotations

import asyncio
import logging

import pytest

from pygaragedoor.config import GarageDoorConfig
from pygaragedoor.controller import GarageDoorController
from pygaragedoor.exceptions import ActuationError, ControllerDetachedError
from pygaragedoor.models.door import DoorState, DoorStrategy, Provenance, TargetState
from pygaragedoor.simulator import SimulatedDevice
from pygaragedoor.sink import Characteristic, GarageDoorService, SinkUpdate

MOVEMENT_TIME = 0.05
PULSE_TIME = 0.02


def _config(**overrides: object) -> GarageDoorConfig:
    values: dict[str, object] = {
        "switch_property": "relay0",
        "state_property": "input0",
        "movement_time": MOVEMENT_TIME,
        "pulse_time": PULSE_TIME,
    }
    values.update(overrides)
    return GarageDoorConfig(**values)  # type: ignore[arg-type]


def _attach(
    *,
    closed: bool = True,
    strategy: DoorStrategy = DoorStrategy.SENSOR,
    movement_time: float = MOVEMENT_TIME,
) -> tuple[GarageDoorController, SimulatedDevice, GarageDoorService, list[SinkUpdate]]:
    device = SimulatedDevice(properties={"input0": 1 if closed else 0, "relay0": False})
    service = GarageDoorService()
    updates: list[SinkUpdate] = []
    service.add_listener(updates.append)

    async def set_switch(value: bool) -> None:
        await device.set_relay(0, value)

    controller = GarageDoorController(_config(strategy=strategy, movement_time=movement_time), set_switch)
    controller.attach(device, service)
    return controller, device, service, updates


def _current_states(updates: list[SinkUpdate]) -> list[DoorState]:
    return [u.value for u in updates if u.characteristic is Characteristic.CURRENT_DOOR_STATE]


def _relay_activations(device: SimulatedDevice) -> int:
    return sum(1 for _index, value in device.relay_calls if value)


@pytest.mark.asyncio
async def test_initial_state_seeded_from_closed_sensor() -> None:
    controller, _device, service, _updates = _attach(closed=True)

    assert controller.current_state is DoorState.CLOSED
    assert controller.target_state is TargetState.CLOSED
    assert service.current_state is DoorState.CLOSED
    controller.detach()


@pytest.mark.asyncio
async def test_initial_target_derived_for_open_door() -> None:
    controller, _device, service, _updates = _attach(closed=False)

    assert controller.current_state is DoorState.OPEN
    assert controller.target_state is TargetState.OPEN
    assert service.target_state is TargetState.OPEN
    controller.detach()


@pytest.mark.asyncio
async def test_open_request_pulses_once_and_door_passes_through_opening() -> None:
    controller, device, service, updates = _attach(closed=True)

    await service.request_target_state(TargetState.OPEN)
    assert _relay_activations(device) == 1

    # the motor lifts the door off the closed sensor
    device.set_property("input0", 0)
    await controller.wait_idle()

    assert _current_states(updates) == [DoorState.CLOSED, DoorState.OPENING, DoorState.OPEN]
    assert controller.current_state is DoorState.OPEN
    assert controller.target_state is TargetState.OPEN
    assert device.relay_calls == [(0, True), (0, False)]
    controller.detach()


@pytest.mark.asyncio
async def test_request_while_pulse_in_flight_does_not_activate_relay_again() -> None:
    controller, device, service, _updates = _attach(closed=True)

    await service.request_target_state(TargetState.OPEN)
    assert controller.pulse_in_flight
    await service.request_target_state(TargetState.CLOSED)

    assert _relay_activations(device) == 1
    assert controller.target_state is TargetState.CLOSED

    await controller.wait_idle()
    assert not controller.pulse_in_flight
    controller.detach()


@pytest.mark.parametrize("provenance", [Provenance.INTERNAL_SYNC, Provenance.FIXUP])
@pytest.mark.asyncio
async def test_self_originated_write_never_pulses(provenance: Provenance) -> None:
    controller, device, service, _updates = _attach(closed=True)

    await service.request_target_state(TargetState.OPEN, provenance)

    assert device.relay_calls == []
    assert controller.target_state is TargetState.OPEN
    controller.detach()


@pytest.mark.asyncio
async def test_sensor_fixup_writes_do_not_loop_back_into_pulses() -> None:
    controller, device, _service, updates = _attach(closed=False)

    device.set_property("input0", 1)
    await controller.wait_idle()

    assert device.relay_calls == []
    assert _current_states(updates) == [DoorState.OPEN, DoorState.CLOSING, DoorState.CLOSED]
    fixups = [u for u in updates if u.characteristic is Characteristic.TARGET_DOOR_STATE and u.provenance is Provenance.FIXUP]
    assert [u.value for u in fixups] == [TargetState.CLOSED]
    controller.detach()


@pytest.mark.asyncio
async def test_newer_sensor_change_cancels_stale_settle() -> None:
    controller, device, _service, updates = _attach(closed=True)

    device.set_property("input0", 0)
    await asyncio.sleep(MOVEMENT_TIME / 5)
    device.set_property("input0", 1)
    await controller.wait_idle()
    await asyncio.sleep(MOVEMENT_TIME)

    assert _current_states(updates) == [
        DoorState.CLOSED,
        DoorState.OPENING,
        DoorState.CLOSING,
        DoorState.CLOSED,
    ]
    assert controller.target_state is TargetState.CLOSED
    controller.detach()


@pytest.mark.asyncio
async def test_sensor_sequences_never_jump_between_open_and_closed() -> None:
    controller, device, _service, updates = _attach(closed=True)

    for value, pause in [(0, 0.0), (1, 0.01), (0, 0.08), (1, 0.08), (1, 0.0), (0, 0.02), (1, 0.08)]:
        device.set_property("input0", value)
        await asyncio.sleep(pause)
    await controller.wait_idle()

    states = _current_states(updates)
    forbidden = {(DoorState.OPEN, DoorState.CLOSED), (DoorState.CLOSED, DoorState.OPEN)}
    assert not any(pair in forbidden for pair in zip(states, states[1:], strict=False))
    assert states[-1] is DoorState.CLOSED
    controller.detach()


@pytest.mark.asyncio
async def test_detach_with_outstanding_settle_pushes_nothing_more() -> None:
    controller, device, _service, updates = _attach(closed=True)

    device.set_property("input0", 0)
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert controller.settle_pending

    controller.detach()
    count = len(updates)
    device.set_property("input0", 1)
    await asyncio.sleep(MOVEMENT_TIME * 2)

    assert len(updates) == count
    assert not controller.settle_pending
    assert device.listener_count("change:input0") == 0


@pytest.mark.asyncio
async def test_actuation_failure_acknowledges_with_error(caplog: pytest.LogCaptureFixture) -> None:
    controller, device, service, _updates = _attach(closed=True)
    device.fail_relay(ConnectionError("device offline"), value=True)

    with caplog.at_level(logging.ERROR, logger="pygaragedoor.controller"):
        with pytest.raises(ActuationError) as exc_info:
            await service.request_target_state(TargetState.OPEN)

    exc = exc_info.value
    assert exc.property_name == "relay0"
    assert exc.device_id == "sim-1"
    assert exc.device_type == "SHSW-1"
    assert isinstance(exc.__cause__, ConnectionError)
    assert not controller.pulse_in_flight
    assert "Failed to set relay0" in caplog.text
    assert "SHSW-1 sim-1" in caplog.text
    controller.detach()


@pytest.mark.asyncio
async def test_failed_release_does_not_fail_request(caplog: pytest.LogCaptureFixture) -> None:
    controller, device, service, _updates = _attach(closed=True)
    device.fail_relay(ConnectionError("device offline"), value=False)

    with caplog.at_level(logging.WARNING):
        await service.request_target_state(TargetState.OPEN)
        await controller.wait_idle()

    assert device.relay_calls == [(0, True), (0, False)]
    assert not controller.pulse_in_flight
    assert "Failed to release relay0" in caplog.text
    controller.detach()


@pytest.mark.asyncio
async def test_request_after_detach_is_rejected() -> None:
    device = SimulatedDevice(properties={"input0": 1})
    service = GarageDoorService()

    async def set_switch(value: bool) -> None:
        await device.set_relay(0, value)

    controller = GarageDoorController(_config(), set_switch)
    controller.attach(device, service)
    handler = service._handler  # noqa: SLF001
    controller.detach()

    service.set_target_write_handler(handler)
    with pytest.raises(ControllerDetachedError):
        await service.request_target_state(TargetState.OPEN)
    assert device.relay_calls == []


@pytest.mark.asyncio
async def test_attach_twice_raises() -> None:
    controller, device, service, _updates = _attach(closed=True)

    with pytest.raises(ControllerDetachedError):
        controller.attach(device, service)
    controller.detach()


def test_state_unavailable_before_attach() -> None:
    async def set_switch(value: bool) -> None:
        return None

    controller = GarageDoorController(_config(), set_switch)

    with pytest.raises(ControllerDetachedError):
        _ = controller.current_state


@pytest.mark.asyncio
async def test_sensorless_request_drives_toggle_table() -> None:
    controller, device, service, updates = _attach(closed=False, strategy=DoorStrategy.SENSORLESS)
    assert device.listener_count("change:input0") == 0

    await service.request_target_state(TargetState.CLOSED)
    assert controller.current_state is DoorState.CLOSING
    await controller.wait_idle()

    assert controller.current_state is DoorState.CLOSED
    assert controller.target_state is TargetState.CLOSED
    assert _current_states(updates) == [DoorState.OPEN, DoorState.CLOSING, DoorState.CLOSED]
    controller.detach()


@pytest.mark.asyncio
async def test_sensorless_stop_and_resume() -> None:
    controller, device, service, _updates = _attach(
        closed=True,
        strategy=DoorStrategy.SENSORLESS,
        movement_time=0.3,
    )

    await service.request_target_state(TargetState.OPEN)
    assert controller.current_state is DoorState.OPENING
    await asyncio.sleep(PULSE_TIME * 2)

    await service.request_target_state(TargetState.CLOSED)
    assert controller.current_state is DoorState.STOPPED
    assert controller.pre_stopped_state is DoorState.OPENING
    await asyncio.sleep(PULSE_TIME * 2)

    await service.request_target_state(TargetState.OPEN)
    assert controller.current_state is DoorState.CLOSING
    assert controller.target_state is TargetState.CLOSED
    assert service.target_state is TargetState.CLOSED

    await controller.wait_idle()
    assert controller.current_state is DoorState.CLOSED
    assert _relay_activations(device) == 3
    controller.detach()


@pytest.mark.asyncio
async def test_sensorless_no_toggle_without_pulse() -> None:
    controller, device, service, _updates = _attach(closed=True, strategy=DoorStrategy.SENSORLESS)

    await service.request_target_state(TargetState.OPEN)
    await service.request_target_state(TargetState.CLOSED)

    assert controller.current_state is DoorState.OPENING
    assert _relay_activations(device) == 1
    await controller.wait_idle()
    controller.detach()


@pytest.mark.asyncio
async def test_detach_during_pulse_still_releases_relay() -> None:
    controller, device, service, updates = _attach(closed=True)

    await service.request_target_state(TargetState.OPEN)
    assert controller.pulse_in_flight
    controller.detach()
    count = len(updates)

    await controller.wait_idle()

    assert device.relay_calls == [(0, True), (0, False)]
    assert not controller.pulse_in_flight
    assert len(updates) == count


@pytest.mark.parametrize(
    ("properties", "expected"),
    [({}, DoorState.OPEN), ({"input0": 0}, DoorState.OPEN), ({"input0": 1}, DoorState.CLOSED)],
)
@pytest.mark.asyncio
async def test_sensorless_door_seeds_from_state_property(properties: dict[str, int], expected: DoorState) -> None:
    device = SimulatedDevice(properties=properties)
    service = GarageDoorService()

    async def set_switch(value: bool) -> None:
        await device.set_relay(0, value)

    controller = GarageDoorController(_config(strategy=DoorStrategy.SENSORLESS), set_switch)
    controller.attach(device, service)

    assert controller.current_state is expected
    assert service.current_state is expected
    controller.detach()
