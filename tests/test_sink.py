from __future__ import annotations

import pytest

from pygaragedoor.exceptions import AcknowledgementError
from pygaragedoor.models.door import DoorState, Provenance, TargetState
from pygaragedoor.sink import Ack, Characteristic, GarageDoorService, SinkUpdate


@pytest.mark.asyncio
async def test_request_without_handler_is_acknowledged() -> None:
    service = GarageDoorService()

    await service.request_target_state(TargetState.OPEN)

    assert service.target_state is TargetState.OPEN


@pytest.mark.asyncio
async def test_handler_receives_value_and_provenance() -> None:
    service = GarageDoorService()
    received: list[tuple[TargetState, Provenance]] = []

    async def handler(value: TargetState, ack: Ack, provenance: Provenance) -> None:
        received.append((value, provenance))
        ack()

    service.set_target_write_handler(handler)
    await service.request_target_state(TargetState.OPEN)
    await service.request_target_state(TargetState.CLOSED, Provenance.FIXUP)

    assert received == [
        (TargetState.OPEN, Provenance.EXTERNAL_REQUEST),
        (TargetState.CLOSED, Provenance.FIXUP),
    ]


@pytest.mark.asyncio
async def test_ack_error_is_raised_to_requester() -> None:
    service = GarageDoorService()

    async def handler(value: TargetState, ack: Ack, provenance: Provenance) -> None:
        ack(RuntimeError("relay offline"))

    service.set_target_write_handler(handler)

    with pytest.raises(RuntimeError, match="relay offline"):
        await service.request_target_state(TargetState.OPEN)


@pytest.mark.asyncio
async def test_ack_twice_raises() -> None:
    service = GarageDoorService()
    errors: list[Exception] = []

    def handler(value: TargetState, ack: Ack, provenance: Provenance) -> None:
        ack()
        try:
            ack()
        except AcknowledgementError as exc:
            errors.append(exc)

    service.set_target_write_handler(handler)
    await service.request_target_state(TargetState.OPEN)

    assert len(errors) == 1


@pytest.mark.asyncio
async def test_handler_exception_acknowledges_with_error() -> None:
    service = GarageDoorService()

    async def handler(value: TargetState, ack: Ack, provenance: Provenance) -> None:
        raise ValueError("boom")

    service.set_target_write_handler(handler)

    with pytest.raises(ValueError, match="boom"):
        await service.request_target_state(TargetState.CLOSED)


@pytest.mark.asyncio
async def test_listeners_see_updates_and_can_unsubscribe() -> None:
    service = GarageDoorService()
    updates: list[SinkUpdate] = []

    def broken(update: SinkUpdate) -> None:
        raise RuntimeError("listener bug")

    service.add_listener(broken)
    unsubscribe = service.add_listener(updates.append)

    service.push_current_state(DoorState.OPENING, Provenance.INTERNAL_SYNC)
    service.push_obstruction(True, Provenance.INTERNAL_SYNC)
    unsubscribe()
    service.push_current_state(DoorState.OPEN, Provenance.INTERNAL_SYNC)

    assert updates == [
        SinkUpdate(Characteristic.CURRENT_DOOR_STATE, DoorState.OPENING, Provenance.INTERNAL_SYNC),
        SinkUpdate(Characteristic.OBSTRUCTION_DETECTED, True, Provenance.INTERNAL_SYNC),
    ]
    assert service.current_state is DoorState.OPEN
    assert service.obstruction_detected is True


def test_initial_target_follows_current_state() -> None:
    assert GarageDoorService(current_state=DoorState.OPEN).target_state is TargetState.OPEN
    assert GarageDoorService().target_state is TargetState.CLOSED
