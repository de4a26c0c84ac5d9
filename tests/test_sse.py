"""Tests for the server-sent events push stream."""

import asyncio
import json
import logging

import httpx
import pytest

from toolgate.config import GatewaySettings
from toolgate.gateway.dispatcher import build_gateway
from toolgate.models import ToolRequest
from toolgate.transports.http import create_http_app
from toolgate.transports.sse import KEEPALIVE_FRAME, SseBroadcaster, create_sse_app, format_frame


def _drain(client):
    frames = []
    while not client.queue.empty():
        frames.append(client.queue.get_nowait())
    return frames


class TestFormatFrame:
    def test_frame_layout(self):
        assert format_frame("taskUpdated", {"id": 7}) == 'event: taskUpdated\ndata: {"id": 7}\n\n'


class TestSseBroadcaster:
    async def test_broadcast_and_disconnect(self):
        broadcaster = SseBroadcaster()
        first = broadcaster.register()
        second = broadcaster.register()
        assert broadcaster.client_count == 2

        delivered = broadcaster.broadcast("taskUpdated", {"id": 7})
        assert delivered == 2
        expected = 'event: taskUpdated\ndata: {"id": 7}\n\n'
        assert _drain(first) == [expected]
        assert _drain(second) == [expected]

        broadcaster.deregister(first.id)
        assert broadcaster.client_count == 1
        assert broadcaster.broadcast("taskUpdated", {"id": 8}) == 1
        assert _drain(second) == ['event: taskUpdated\ndata: {"id": 8}\n\n']
        assert first.closed is True

    async def test_full_queue_does_not_affect_others(self, caplog):
        broadcaster = SseBroadcaster(queue_size=1)
        slow = broadcaster.register()
        fast = broadcaster.register()
        broadcaster.broadcast("a", 1)
        _drain(fast)

        with caplog.at_level(logging.WARNING, logger="toolgate.sse"):
            delivered = broadcaster.broadcast("b", 2)

        assert delivered == 1
        assert _drain(fast) == ["event: b\ndata: 2\n\n"]
        assert _drain(slow) == ["event: a\ndata: 1\n\n"]
        assert "Failed to deliver b" in caplog.text

    async def test_close_all(self):
        broadcaster = SseBroadcaster()
        clients = [broadcaster.register() for _ in range(3)]
        broadcaster.close_all()
        assert broadcaster.client_count == 0
        assert all(c.closed for c in clients)
        assert all(c.queue.get_nowait() is None for c in clients)

    async def test_deregister_unknown_is_noop(self):
        broadcaster = SseBroadcaster()
        broadcaster.deregister(999)
        assert broadcaster.client_count == 0

    async def test_stream_sequence(self):
        broadcaster = SseBroadcaster(keepalive_s=0.01)
        client = broadcaster.register()
        stream = broadcaster.stream(client)

        assert await stream.__anext__() == 'event: open\ndata: {"clientId": 1}\n\n'
        assert await stream.__anext__() == KEEPALIVE_FRAME
        broadcaster.broadcast("taskUpdated", {"id": 7})
        assert await stream.__anext__() == 'event: taskUpdated\ndata: {"id": 7}\n\n'
        broadcaster.deregister(client.id)
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    async def test_stream_exit_deregisters(self):
        broadcaster = SseBroadcaster()
        client = broadcaster.register()
        stream = broadcaster.stream(client)
        await stream.__anext__()
        await stream.aclose()
        assert broadcaster.client_count == 0


class TestEventsEndpoint:
    async def _collect(self, app, broadcaster, action):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            request = asyncio.create_task(client.get("/events"))
            for _ in range(200):
                if broadcaster.client_count:
                    break
                await asyncio.sleep(0.01)
            await action()
            broadcaster.close_all()
            return await asyncio.wait_for(request, timeout=5)

    async def test_events_stream(self):
        broadcaster = SseBroadcaster()
        app = create_sse_app(broadcaster)

        async def action():
            broadcaster.broadcast("taskUpdated", {"id": 7})

        resp = await self._collect(app, broadcaster, action)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.text.startswith("event: open\n")
        assert 'event: taskUpdated\ndata: {"id": 7}\n\n' in resp.text

    async def test_tool_calls_are_pushed(self, tmp_path):
        gateway = build_gateway(GatewaySettings(workspace_root=str(tmp_path)))
        broadcaster = SseBroadcaster()
        gateway.add_listener(broadcaster.broadcast)
        app = create_http_app(gateway, broadcaster)

        async def action():
            await gateway.handle(ToolRequest(name="teleport"))

        resp = await self._collect(app, broadcaster, action)
        frames = [f for f in resp.text.split("\n\n") if f.startswith("event: toolCalled")]
        assert len(frames) == 1
        data = json.loads(frames[0].split("data: ", 1)[1])
        assert data["name"] == "teleport"
        assert data["success"] is False
