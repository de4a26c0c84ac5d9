"""
Toolgate Push Stream

Server-sent events for agents that want to watch activity. Output only:
clients connect to ``GET /events`` and receive every broadcast as

    event: <name>
    data: <json>

Each client owns a bounded queue, so one slow reader cannot hold up
the others; a full queue drops that client's frame and logs it.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.responses import StreamingResponse

from toolgate.logging import get_logger

logger = get_logger("toolgate.sse")

KEEPALIVE_FRAME = ": keepalive\n\n"


def format_frame(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


class SseClient:
    """One open push-stream connection."""

    def __init__(self, client_id: int, queue_size: int):
        self.id = client_id
        self.queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def send(self, frame: str) -> None:
        if self.closed:
            raise ConnectionError(f"SSE client {self.id} is closed")
        self.queue.put_nowait(frame)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Wake the stream so it can finish; drop the oldest frame if needed.
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            self.queue.get_nowait()
            self.queue.put_nowait(None)


class SseBroadcaster:
    """Registry of connected push-stream clients."""

    def __init__(self, queue_size: int = 100, keepalive_s: float = 15.0):
        self.queue_size = queue_size
        self.keepalive_s = keepalive_s
        self._clients: dict[int, SseClient] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def register(self) -> SseClient:
        with self._lock:
            client = SseClient(next(self._ids), self.queue_size)
            self._clients[client.id] = client
            count = len(self._clients)
        logger.info("Client connected", extra={"client_id": client.id, "client_count": count})
        return client

    def deregister(self, client_id: int) -> None:
        with self._lock:
            client = self._clients.pop(client_id, None)
            count = len(self._clients)
        if client is None:
            return
        client.close()
        logger.info("Client disconnected", extra={"client_id": client_id, "client_count": count})

    def broadcast(self, event: str, data: Any) -> int:
        """Queue a frame for every client. Returns how many accepted it."""
        frame = format_frame(event, data)
        with self._lock:
            clients = list(self._clients.values())

        delivered = 0
        for client in clients:
            try:
                client.send(frame)
                delivered += 1
            except (asyncio.QueueFull, ConnectionError) as e:
                logger.warning(
                    "Failed to deliver %s: %s",
                    event,
                    str(e) or "queue full",
                    extra={"client_id": client.id},
                )
        return delivered

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def close_all(self) -> None:
        with self._lock:
            ids = list(self._clients)
        for client_id in ids:
            self.deregister(client_id)

    async def stream(self, client: SseClient) -> AsyncIterator[str]:
        """Frames for one client: ``open``, then broadcasts and keepalives."""
        try:
            yield format_frame("open", {"clientId": client.id})
            while True:
                try:
                    frame = await asyncio.wait_for(client.queue.get(), timeout=self.keepalive_s)
                except TimeoutError:
                    yield KEEPALIVE_FRAME
                    continue
                if frame is None:
                    break
                yield frame
        finally:
            self.deregister(client.id)


def mount_events(app: FastAPI, broadcaster: SseBroadcaster) -> None:
    """Add ``GET /events`` to an app."""

    @app.get("/events")
    async def events() -> StreamingResponse:
        client = broadcaster.register()
        return StreamingResponse(
            broadcaster.stream(client),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )


def create_sse_app(broadcaster: SseBroadcaster) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        broadcaster.close_all()

    app = FastAPI(title="Toolgate Events", lifespan=lifespan)
    mount_events(app, broadcaster)
    return app
