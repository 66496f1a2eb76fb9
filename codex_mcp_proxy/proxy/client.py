"""Client side transport: JSON-RPC in on stdin, replies out on stdout.

Stdin is read on a daemon thread (works for pipes, files and consoles on every
platform) and each chunk is handed to the event loop thread-safely. Stdout is
written by a second daemon thread fed from a queue, so a client that stops
reading never stalls the event loop.
"""

from __future__ import annotations

import asyncio
import queue
import sys
import threading
from typing import BinaryIO, Callable, Protocol

from loguru import logger

from codex_mcp_proxy.proxy.events import EventKind, ProxyEvent

READ_CHUNK_SIZE = 64 * 1024
CLOSE_TIMEOUT_SECONDS = 2.0

_STOP = object()


class ClientChannel(Protocol):
    """What the proxy needs from a client transport."""

    def start(self, loop: asyncio.AbstractEventLoop) -> None: ...

    def write(self, data: bytes) -> None: ...

    def close(self) -> None: ...


class StdioClientTransport:
    """Owned by ``ProxyCore``; the only writer of the client stream."""

    def __init__(
        self,
        post: Callable[[ProxyEvent], None],
        *,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
    ):
        self._post = post
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._loop: asyncio.AbstractEventLoop | None = None
        self._reader: threading.Thread | None = None
        self._writer: threading.Thread | None = None
        self._outbox: queue.SimpleQueue[object] = queue.SimpleQueue()
        self._closed = False

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._reader is not None:
            return
        self._loop = loop
        self._writer = threading.Thread(target=self._writer_loop, name="client-stdout", daemon=True)
        self._writer.start()
        self._reader = threading.Thread(target=self._reader_loop, args=(loop,), name="client-stdin", daemon=True)
        self._reader.start()

    def write(self, data: bytes) -> None:
        """Queue ``data`` for the client. Never blocks; failures arrive as ``CLIENT_WRITE_FAILED``."""
        if self._closed:
            return
        self._outbox.put(data)

    def close(self) -> None:
        """Stop accepting writes and give queued replies a bounded time to flush."""
        if self._closed:
            return
        self._closed = True
        self._outbox.put(_STOP)
        if self._writer is not None:
            self._writer.join(CLOSE_TIMEOUT_SECONDS)

    def _writer_loop(self) -> None:
        while True:
            data = self._outbox.get()
            if data is _STOP:
                return
            try:
                self._stdout.write(data)
                self._stdout.flush()
            except (OSError, ValueError) as exc:
                logger.error("Failed to write to client: {}", exc)
                self._closed = True
                if self._loop is not None:
                    self._deliver(self._loop, ProxyEvent.client_write_failed(exc))
                return

    def _reader_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        while True:
            try:
                read = getattr(self._stdin, "read1", self._stdin.read)
                chunk = read(READ_CHUNK_SIZE)
            except (OSError, ValueError) as exc:
                logger.error("Stdin error: {}", exc)
                break
            if not chunk:
                break
            if not self._deliver(loop, ProxyEvent.client_data(chunk)):
                return
        logger.info("Client disconnected")
        self._deliver(loop, ProxyEvent(EventKind.CLIENT_CLOSED))

    def _deliver(self, loop: asyncio.AbstractEventLoop, event: ProxyEvent) -> bool:
        try:
            loop.call_soon_threadsafe(self._post, event)
        except RuntimeError:
            # Loop already closed during shutdown.
            return False
        return True
