from __future__ import annotations

import asyncio

import pytest

from relay_service.domain.value_objects.enums import MessageType
from relay_service.infrastructure.ws.client import Client
from relay_service.infrastructure.ws.heartbeat import HeartbeatMonitor, HeartbeatState
from tests.conftest import FakeConnection

INTERVAL = 0.02


@pytest.mark.asyncio
async def test_monitor_sends_heartbeat_each_tick(recording_dispatcher):
    conn = FakeConnection()
    client = Client("a", conn, recording_dispatcher)
    monitor = client.start_heartbeat(INTERVAL)

    await asyncio.sleep(INTERVAL * 4.5)
    monitor.stop()
    await monitor.wait()

    beats = conn.messages()
    assert len(beats) >= 2
    assert all(m.type == MessageType.HEARTBEAT and m.content == "heart beat" for m in beats)
    assert monitor.ticks == len(beats)


@pytest.mark.asyncio
async def test_no_heartbeat_after_cancellation(recording_dispatcher):
    conn = FakeConnection()
    client = Client("a", conn, recording_dispatcher)
    monitor = client.start_heartbeat(INTERVAL)
    await asyncio.sleep(INTERVAL * 2.5)

    client.cancel()
    await monitor.wait()
    sent = len(conn.sent)
    await asyncio.sleep(INTERVAL * 3)

    assert len(conn.sent) == sent
    assert monitor.state is HeartbeatState.CANCELLED


@pytest.mark.asyncio
async def test_cancellation_wakes_monitor_immediately(recording_dispatcher):
    client = Client("a", FakeConnection(), recording_dispatcher)
    monitor = client.start_heartbeat(60)

    await client.close()
    await asyncio.wait_for(monitor.wait(), timeout=1)

    assert monitor.state is HeartbeatState.CANCELLED
    assert monitor.ticks == 0


@pytest.mark.asyncio
async def test_failed_heartbeat_tears_client_down(recording_dispatcher):
    client = Client("a", FakeConnection(fail_send=True), recording_dispatcher)
    monitor = client.start_heartbeat(INTERVAL)

    await asyncio.wait_for(monitor.wait(), timeout=1)

    assert monitor.ticks == 1
    assert recording_dispatcher.destroyed == [client]


def test_interval_must_be_positive(recording_dispatcher):
    client = Client("a", FakeConnection(), recording_dispatcher)
    with pytest.raises(ValueError):
        HeartbeatMonitor(client, 0)
