"""Newline-delimited JSON socket server in front of the command interpreter."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

from huemcp.lib.commands import CommandInterpreter
from huemcp.lib.models import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    Command,
    error_response,
    hello_response,
)

PROTOCOL_VERSION = "1.0.0"
CAPABILITIES = [
    "lights",
    "colors",
    "flash",
    "brightness",
    "effects",
    "temperature",
    "scenes",
    "groups",
    "disco",
    "stop_effect",
]
MAX_LINE_BYTES = 1024 * 1024
READ_SIZE = 4096

log = logging.getLogger("huemcp")


def encode_message(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode("utf-8") + b"\n"


class LineBuffer:
    """Accumulate stream bytes and split them into newline-terminated messages.

    ``feed`` returns every message completed by the new bytes, in order. A
    message that grows past ``max_line_bytes`` is reported once as ``None`` and
    the rest of it, up to the next newline, is thrown away.
    """

    def __init__(self, max_line_bytes: int = MAX_LINE_BYTES) -> None:
        self.max_line_bytes = max_line_bytes
        self._buffer = bytearray()
        self._discarding = False

    def __len__(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes) -> list[bytes | None]:
        self._buffer += data
        messages: list[bytes | None] = []
        while (index := self._buffer.find(b"\n")) >= 0:
            line = bytes(self._buffer[:index])
            del self._buffer[: index + 1]
            if self._discarding:
                self._discarding = False
                continue
            if line.endswith(b"\r"):
                line = line[:-1]
            messages.append(line if len(line) <= self.max_line_bytes else None)

        if len(self._buffer) > self.max_line_bytes:
            if not self._discarding:
                messages.append(None)
                self._discarding = True
            self._buffer.clear()
        return messages


class LightServer:
    def __init__(
        self,
        interpreter: CommandInterpreter,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        sequential: bool = False,
        max_line_bytes: int = MAX_LINE_BYTES,
    ) -> None:
        self.interpreter = interpreter
        self.host = host
        self.port = port
        self.sequential = sequential
        self.max_line_bytes = max_line_bytes
        self._server: asyncio.Server | None = None
        self._writers: set[asyncio.StreamWriter] = set()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def bound_port(self) -> int:
        if self._server is None or not self._server.sockets:
            raise RuntimeError("Server is not listening.")
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle_connection, self.host, self.port)
        addresses = ", ".join(str(sock.getsockname()) for sock in self._server.sockets)
        log.info("Listening on %s", addresses)

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        assert self._server is not None
        await self._server.serve_forever()

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
        for writer in list(self._writers):
            writer.close()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.interpreter.effects.shutdown()
        if self._server is not None:
            await self._server.wait_closed()
            self._server = None
        log.info("Server closed")

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        peer = writer.get_extra_info("peername")
        log.info("Client connected: %s", peer)
        self._writers.add(writer)
        buffer = LineBuffer(self.max_line_bytes)
        try:
            await self._send(writer, hello_response(PROTOCOL_VERSION, CAPABILITIES))
            while data := await reader.read(READ_SIZE):
                for message in buffer.feed(data):
                    if self.sequential:
                        await self._process(message, writer)
                    else:
                        task = asyncio.create_task(self._process(message, writer))
                        self._tasks.add(task)
                        task.add_done_callback(self._tasks.discard)
        except ConnectionError as exc:
            log.debug("Connection %s dropped: %s", peer, exc)
        finally:
            self._writers.discard(writer)
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()
            log.info("Client disconnected: %s", peer)

    async def _process(self, message: bytes | None, writer: asyncio.StreamWriter) -> None:
        try:
            response = await self.handle_message(message)
        except Exception:
            log.exception("Error processing message")
            response = error_response("Internal server error")
        await self._send(writer, response)

    async def handle_message(self, message: bytes | None) -> dict[str, Any]:
        """Decode one framed message and return the response to write back."""
        if message is None:
            return error_response("Message too long")
        try:
            data = json.loads(message.decode("utf-8"))
        except (ValueError, RecursionError) as exc:
            log.debug("Undecodable message %r: %s", message[:80], exc)
            return error_response("Invalid command format")
        if not isinstance(data, dict):
            return error_response("Invalid command format")

        command = Command.from_dict(data)
        try:
            response = await self.interpreter.execute(command)
        except Exception:
            log.exception("Error handling message")
            response = error_response("Internal server error")
        if command.request_id is not None:
            response = {**response, "id": command.request_id}
        return response

    async def _send(self, writer: asyncio.StreamWriter, payload: dict[str, Any]) -> None:
        if writer.is_closing():
            log.debug("Dropping %s response for closed connection", payload.get("type"))
            return
        writer.write(encode_message(payload))
        try:
            await writer.drain()
        except ConnectionError as exc:
            log.debug("Write failed: %s", exc)
