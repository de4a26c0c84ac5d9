"""
Toolgate Pipe Transport

Newline-delimited JSON over stdin/stdout. Requests are handled strictly
one at a time in arrival order; each produces exactly one response line.
stdout carries nothing but responses, so logging goes to stderr.
"""

from __future__ import annotations

import asyncio
import json
import signal
import sys
from collections.abc import Callable

from toolgate.exceptions import BadRequestError, InternalError
from toolgate.gateway.dispatcher import Gateway
from toolgate.gateway.envelope import ResponseEnvelope, failure
from toolgate.logging import get_logger
from toolgate.models import ConnectionState

logger = get_logger("toolgate.pipe")

MAX_LINE_BYTES = 16 * 1024 * 1024


class PipeTransport:
    """Serves one gateway over a line-oriented byte stream."""

    def __init__(self, gateway: Gateway):
        self.gateway = gateway
        self.state = ConnectionState.IDLE
        self._stop = asyncio.Event()

    def stop(self) -> None:
        self._stop.set()

    async def handle_line(self, line: bytes | str) -> ResponseEnvelope:
        """Decode one request line and dispatch it."""
        try:
            body = json.loads(line)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return failure(BadRequestError(f"Invalid JSON: {e}"))
        self.state = ConnectionState.DISPATCHING
        return await self.gateway.handle_raw(body)

    async def serve(self, reader: asyncio.StreamReader, write: Callable[[str], None]) -> None:
        """Read requests until EOF or ``stop()``; write one response line each."""
        stop_task = asyncio.ensure_future(self._stop.wait())
        try:
            while not self._stop.is_set():
                self.state = ConnectionState.IDLE
                read_task = asyncio.ensure_future(reader.readline())
                done, _ = await asyncio.wait({read_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
                if read_task not in done:
                    read_task.cancel()
                    break

                try:
                    line = read_task.result()
                except ValueError as e:
                    # StreamReader drops the oversized line; the stream stays usable.
                    logger.warning("Rejected oversized request line: %s", e, extra={"transport": "stdio"})
                    self._respond(write, failure(BadRequestError("Request line too large")))
                    continue
                if not line:
                    break
                if not line.strip():
                    continue

                self.state = ConnectionState.RECEIVING
                dispatch = asyncio.ensure_future(self.handle_line(line))
                done, _ = await asyncio.wait({dispatch, stop_task}, return_when=asyncio.FIRST_COMPLETED)
                if dispatch not in done:
                    # Cancelling the dispatch kills any command it spawned.
                    dispatch.cancel()
                    await asyncio.wait({dispatch})
                    logger.info("Pending dispatch cancelled by shutdown", extra={"transport": "stdio"})
                    self._respond(write, failure(InternalError("Gateway is shutting down")))
                    break

                self._respond(write, dispatch.result())
        finally:
            stop_task.cancel()
            self.state = ConnectionState.IDLE

    def _respond(self, write: Callable[[str], None], envelope: ResponseEnvelope) -> None:
        self.state = ConnectionState.RESPONDING
        write(json.dumps(envelope.to_wire()) + "\n")

    async def run(self) -> None:
        """Serve stdin/stdout until EOF or SIGINT/SIGTERM, then shut the gateway down."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no signal handlers
                pass

        reader = asyncio.StreamReader(limit=MAX_LINE_BYTES)
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)

        def write(text: str) -> None:
            sys.stdout.write(text)
            sys.stdout.flush()

        logger.info("Pipe transport listening on stdin", extra={"transport": "stdio"})
        try:
            await self.serve(reader, write)
        finally:
            self.gateway.shutdown()
            logger.info("Pipe transport stopped", extra={"transport": "stdio"})
