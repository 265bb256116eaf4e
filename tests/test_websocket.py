"""
Tests for the WebSocket text-feed source
"""

import asyncio
import json
from datetime import timedelta

import pytest
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed
from websockets.frames import CloseCode

from iron_heart.coordinator import ErrorPopup, ListeningAddress, Severity, TaskCoordinator
from iron_heart.heart_rate.feed import JSONHeartRate
from iron_heart.heart_rate.status import BatteryLevel
from iron_heart.sources.websocket import WebSocketConfig, WebsocketActor

LOCAL = WebSocketConfig(host='127.0.0.1', port=0)


def drain(queue):
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


def popups(queue):
    return [u for u in drain(queue) if isinstance(u, ErrorPopup)]


# ---------------------------------------------------------------------------
# Record validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("key", ['bpm', 'heartRate', 'heartrate'])
def test_bpm_aliases(key):
    assert JSONHeartRate.model_validate_json(json.dumps({key: 75})).bpm == 75


def test_optional_fields_and_unknown_keys():
    record = JSONHeartRate.model_validate_json(
        '{"bpm": 75, "latest_rr_ms": 800, "battery": 90, "device": "watch"}'
    )
    assert (record.bpm, record.latest_rr_ms, record.battery) == (75, 800, 90)


@pytest.mark.parametrize("payload", [
    'not json',
    '{}',
    '{"bpm": "75"}',
    '{"bpm": -1}',
    '{"bpm": 75, "battery": 300}',
    '{"bpm": 70, "latest_rr_ms": 100000000000000000}',
])
def test_invalid_records(payload):
    coordinator = TaskCoordinator()
    updates = coordinator.broadcaster.subscribe()
    actor = WebsocketActor(coordinator, LOCAL)

    assert actor.handle_message(payload) is None
    assert actor.invalid_count == 1
    assert popups(updates) == [ErrorPopup.intermittent(f"Invalid heart rate message: {payload}")]


# ---------------------------------------------------------------------------
# Message handling
# ---------------------------------------------------------------------------

def test_handle_message_publishes_status(coordinator):
    actor = WebsocketActor(coordinator, LOCAL)
    status = actor.handle_message('{"heartRate": 72, "latest_rr_ms": 830}')

    assert status.heart_rate_bpm == 72
    assert status.latest_rr == timedelta(milliseconds=830)
    assert status.battery_level == BatteryLevel.not_reported()
    assert coordinator.status_channel.qsize() == 1


def test_binary_frame_must_be_dismissed(coordinator):
    updates = coordinator.broadcaster.subscribe()
    actor = WebsocketActor(coordinator, LOCAL)

    assert actor.handle_message(b'\x00\x46') is None
    (popup,) = popups(updates)
    assert popup.severity is Severity.USER_MUST_DISMISS
    assert popup.message.startswith("Invalid message type (expected text)")
    assert coordinator.status_channel.qsize() == 0


# ---------------------------------------------------------------------------
# Live connections
# ---------------------------------------------------------------------------

async def start_actor(coordinator):
    actor = WebsocketActor(coordinator, LOCAL)
    address = await actor.build()
    task = asyncio.create_task(actor.run())
    return actor, address, task


async def next_status(coordinator):
    return await asyncio.wait_for(coordinator.status_channel.recv(), timeout=2)


def test_build_publishes_listening_address(coordinator):
    updates = coordinator.broadcaster.subscribe()

    async def scenario():
        actor, address, task = await start_actor(coordinator)
        coordinator.shutdown.cancel()
        await asyncio.wait_for(task, timeout=2)
        return address

    address = asyncio.run(scenario())

    assert address.host == '127.0.0.1'
    assert address.port > 0
    assert ListeningAddress('127.0.0.1', address.port) in drain(updates)


def test_client_session(coordinator):
    updates = coordinator.broadcaster.subscribe()

    async def scenario():
        actor, address, task = await start_actor(coordinator)
        received = []
        async with connect(str(address)) as ws:
            await ws.send('{"bpm": 65, "battery": 80}')
            received.append(await next_status(coordinator))
            await ws.send(b'\x01\x02')
            await ws.send('garbage')
            await ws.send('{"heartrate": 66}')
            received.append(await next_status(coordinator))
        # Disconnect resets the status
        received.append(await next_status(coordinator))
        coordinator.shutdown.cancel()
        await asyncio.wait_for(task, timeout=2)
        return actor, received

    actor, received = asyncio.run(scenario())

    assert [s.heart_rate_bpm for s in received] == [65, 66, 0]
    assert received[1].battery_level == BatteryLevel.level(80)
    assert received[2].battery_level == BatteryLevel.not_reported()
    assert actor.message_count == 4
    assert actor.invalid_count == 2

    severities = [p.severity for p in popups(updates)]
    assert severities.count(Severity.USER_MUST_DISMISS) == 1
    assert severities.count(Severity.INTERMITTENT) == 2  # garbage + disconnect


def test_second_client_rejected(coordinator):
    async def scenario():
        actor, address, task = await start_actor(coordinator)
        async with connect(str(address)) as first:
            await first.send('{"bpm": 70}')
            await next_status(coordinator)

            async with connect(str(address)) as second:
                with pytest.raises(ConnectionClosed) as closed:
                    await asyncio.wait_for(second.recv(), timeout=2)

            # First client is unaffected
            await first.send('{"bpm": 71}')
            status = await next_status(coordinator)
        coordinator.shutdown.cancel()
        await asyncio.wait_for(task, timeout=2)
        return closed.value, status

    closed, status = asyncio.run(scenario())

    assert closed.rcvd.code == CloseCode.TRY_AGAIN_LATER
    assert status.heart_rate_bpm == 71


def test_shutdown_closes_connected_client(coordinator):
    async def scenario():
        actor, address, task = await start_actor(coordinator)
        async with connect(str(address)) as ws:
            await ws.send('{"bpm": 70}')
            await next_status(coordinator)
            coordinator.shutdown.cancel()
            with pytest.raises(ConnectionClosed) as closed:
                await asyncio.wait_for(ws.recv(), timeout=2)
        await asyncio.wait_for(task, timeout=2)
        return closed.value

    closed = asyncio.run(scenario())
    assert closed.rcvd.code == CloseCode.GOING_AWAY


def test_oversized_interval_keeps_connection_open(coordinator):
    updates = coordinator.broadcaster.subscribe()

    async def scenario():
        actor, address, task = await start_actor(coordinator)
        async with connect(str(address)) as ws:
            await ws.send('{"bpm": 70, "latest_rr_ms": 100000000000000000}')
            await ws.send('{"bpm": 71, "latest_rr_ms": 845}')
            status = await next_status(coordinator)
        coordinator.shutdown.cancel()
        await asyncio.wait_for(task, timeout=2)
        return status

    status = asyncio.run(scenario())

    assert status.heart_rate_bpm == 71
    assert status.latest_rr == timedelta(milliseconds=845)
    assert popups(updates)[0].message.startswith("Invalid heart rate message")
