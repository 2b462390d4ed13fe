"""
Tests for the ConnectionHub (mood-updated broadcast to connected viewers).
"""
import asyncio

import pytest

from moodapp.services.realtime import EVENT_MOOD_UPDATED, ConnectionHub


@pytest.mark.asyncio
async def test_connect_accepts_socket(make_socket):
    hub = ConnectionHub()
    sock = make_socket()
    await hub.connect(sock)
    assert sock.accepted
    assert hub.connection_count == 1


@pytest.mark.asyncio
async def test_broadcast_reaches_all_connections(make_socket):
    hub = ConnectionHub()
    a, b = make_socket(), make_socket()
    await hub.connect(a)
    await hub.connect(b)

    delivered = await hub.broadcast(EVENT_MOOD_UPDATED, {"mood": "happy"})

    assert delivered == 2
    expected = {"event": "mood-updated", "data": {"mood": "happy"}}
    assert a.sent == [expected]
    assert b.sent == [expected]


@pytest.mark.asyncio
async def test_failing_socket_is_dropped_without_affecting_others(make_socket):
    hub = ConnectionHub()
    good, bad = make_socket(), make_socket(fail=True)
    await hub.connect(good)
    await hub.connect(bad)

    delivered = await hub.broadcast(EVENT_MOOD_UPDATED, {"mood": "sad"})

    assert delivered == 1
    assert len(good.sent) == 1
    assert hub.connection_count == 1


@pytest.mark.asyncio
async def test_disconnected_viewer_misses_events(make_socket):
    hub = ConnectionHub()
    sock = make_socket()
    connection_id = await hub.connect(sock)
    await hub.disconnect(connection_id)

    assert await hub.broadcast(EVENT_MOOD_UPDATED, {"mood": "calm"}) == 0
    assert sock.sent == []


@pytest.mark.asyncio
async def test_disconnect_unknown_id_is_noop():
    import uuid
    hub = ConnectionHub()
    await hub.disconnect(uuid.uuid4())
    assert hub.connection_count == 0


def test_websocket_endpoint_registers_viewer():
    from fastapi.testclient import TestClient
    from moodapp.main import app

    hub = app.state.hub
    before = hub.connection_count
    client = TestClient(app)
    with client.websocket_connect("/ws") as ws:
        ws.send_text("ping")
        assert ws.receive_json() == {"event": "pong"}
        assert hub.connection_count == before + 1


@pytest.mark.asyncio
async def test_stalled_socket_does_not_hold_up_other_viewers(make_socket):
    hub = ConnectionHub(send_timeout=0.05)
    stalled, fast = make_socket(stall=True), make_socket()
    await hub.connect(stalled)
    await hub.connect(fast)

    delivered = await asyncio.wait_for(hub.broadcast(EVENT_MOOD_UPDATED, {"mood": "tired"}), timeout=2)

    assert delivered == 1
    assert fast.sent == [{"event": "mood-updated", "data": {"mood": "tired"}}]
    assert hub.connection_count == 1
