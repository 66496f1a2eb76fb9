"""Backend MCP server process: spawn, channels, and availability state.

The session owns the child's stdin/stdout/stderr exclusively. It never changes
availability on its own: spawn confirmation, spawn errors, exits and failed
writes are posted as events and ``ProxyCore`` applies them while dispatching.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from enum import Enum
from typing import Any, Callable, Coroutine

from loguru import logger

from codex_mcp_proxy.protocol.messages import Message, Request, serialize_message
from codex_mcp_proxy.proxy.events import EventKind, ProxyEvent
from codex_mcp_proxy.utils.exceptions import (
    BackendConnectionLostError,
    BackendSendError,
    BackendUnavailableError,
    sanitize_error_message,
)

EventSink = Callable[[ProxyEvent], None]

READ_CHUNK_SIZE = 64 * 1024


class BackendState(str, Enum):
    NOT_STARTED = "not_started"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


def resolve_command(command: str) -> str:
    """Resolve an executable through PATH (and PATHEXT on Windows, e.g. ``codex.cmd``).

    Unresolvable commands are returned unchanged so the spawn error is reported
    by the process layer.
    """
    return shutil.which(command) or command


class BackendSession:
    """One long-lived backend process speaking JSON-RPC over stdio."""

    def __init__(
        self,
        argv: list[str],
        *,
        post: EventSink,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        grace_seconds: float = 2.0,
    ):
        if not argv:
            raise ValueError("backend command is empty")
        self.argv = list(argv)
        self.cwd = cwd
        self.env = dict(env or {})
        self.grace_seconds = grace_seconds
        self.state = BackendState.NOT_STARTED
        self.ever_started = False
        self.exit_code: int | None = None
        self._post = post
        self._proc: asyncio.subprocess.Process | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    # =========================================================
    # State (mutated by ProxyCore only)
    # =========================================================

    @property
    def available(self) -> bool:
        return self.state is BackendState.AVAILABLE

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    def mark_available(self) -> None:
        self.state = BackendState.AVAILABLE
        self.ever_started = True

    def mark_unavailable(self, exit_code: int | None = None) -> None:
        self.state = BackendState.UNAVAILABLE
        if exit_code is not None:
            self.exit_code = exit_code

    @property
    def writable(self) -> bool:
        proc = self._proc
        if proc is None or proc.stdin is None or proc.returncode is not None:
            return False
        return not proc.stdin.is_closing()

    # =========================================================
    # Lifecycle
    # =========================================================

    async def start(self) -> None:
        """Spawn the process; the outcome is posted as an event."""
        if self._proc is not None:
            return
        program = resolve_command(self.argv[0])
        env = os.environ.copy()
        env.update(self.env)
        try:
            proc = await asyncio.create_subprocess_exec(
                program,
                *self.argv[1:],
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
                env=env,
            )
        except OSError as exc:
            logger.error("Backend process error: {}", sanitize_error_message(str(exc)))
            self._post(ProxyEvent.backend_error(exc))
            return

        self._proc = proc
        logger.info("Backend process started: {} (pid={})", " ".join(self.argv), proc.pid)
        self._post(ProxyEvent(EventKind.BACKEND_SPAWNED))
        stdout_task = self._spawn_task(self._read_stdout(proc))
        self._spawn_task(self._read_stderr(proc))
        self._spawn_task(self._watch_exit(proc, stdout_task))

    async def stop(self) -> None:
        """Close stdin, terminate, then kill after the grace period."""
        proc = self._proc
        if proc is None:
            return
        try:
            if proc.stdin is not None and not proc.stdin.is_closing():
                proc.stdin.close()
            if proc.returncode is None:
                try:
                    proc.terminate()
                except ProcessLookupError:
                    pass
                try:
                    await asyncio.wait_for(proc.wait(), timeout=self.grace_seconds)
                except asyncio.TimeoutError:
                    logger.warning("Backend did not exit within {}s; killing", self.grace_seconds)
                    try:
                        proc.kill()
                    except ProcessLookupError:
                        pass
                    await proc.wait()
            self.exit_code = proc.returncode
        finally:
            tasks = list(self._tasks)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self._tasks.clear()
            self._proc = None

    # =========================================================
    # Send
    # =========================================================

    def send(self, message: Message | dict[str, Any], request: Request | None = None) -> None:
        """Queue one message on the backend's stdin without blocking.

        Raises ``BackendUnavailableError`` before a spawn and
        ``BackendConnectionLostError`` when the input channel is closed. A failure
        surfacing later while draining is posted as ``BACKEND_SEND_FAILED``.
        """
        proc = self._proc
        if proc is None:
            raise BackendUnavailableError()
        if not self.writable:
            raise BackendConnectionLostError(exit_code=proc.returncode)
        assert proc.stdin is not None
        try:
            proc.stdin.write(serialize_message(message))
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise BackendConnectionLostError(str(exc), exit_code=proc.returncode) from exc
        self._spawn_task(self._drain(proc.stdin, request))

    async def _drain(self, stdin: asyncio.StreamWriter, request: Request | None) -> None:
        try:
            await stdin.drain()
        except (ConnectionError, OSError) as exc:
            logger.error("Failed to write to backend: {}", exc)
            self._post(ProxyEvent.send_failed(request, BackendSendError(str(exc) or type(exc).__name__)))

    # =========================================================
    # Readers
    # =========================================================

    async def _read_stdout(self, proc: asyncio.subprocess.Process) -> None:
        assert proc.stdout is not None
        try:
            while True:
                chunk = await proc.stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                self._post(ProxyEvent.backend_data(chunk))
        except (ConnectionError, OSError) as exc:
            logger.error("Backend stdout error: {}", exc)

    async def _read_stderr(self, proc: asyncio.subprocess.Process) -> None:
        assert proc.stderr is not None
        try:
            while True:
                chunk = await proc.stderr.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                for line in chunk.decode("utf-8", errors="replace").splitlines():
                    if line.strip():
                        logger.debug("[backend stderr] {}", line.rstrip())
        except (ConnectionError, OSError) as exc:
            logger.error("Backend stderr error: {}", exc)

    async def _watch_exit(self, proc: asyncio.subprocess.Process, stdout_task: asyncio.Task[None]) -> None:
        code = await proc.wait()
        # Let trailing responses reach the queue ahead of the exit event.
        await asyncio.wait({stdout_task}, timeout=self.grace_seconds)
        logger.info("Backend process exited: code={}", code)
        self._post(ProxyEvent.backend_exited(code))

    def _spawn_task(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Backend task {} failed", task.get_name())
