"""Pytest hooks and fixtures."""

from __future__ import annotations

import io
import json
import threading
from typing import Any

import pytest

from codex_mcp_proxy.config.schema import ProxyConfig
from codex_mcp_proxy.proxy.backend import BackendState
from codex_mcp_proxy.proxy.core import ProxyCore


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line("markers", "slow: spawns real subprocesses")


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeClient:
    """Collects everything the proxy writes to the client."""

    def __init__(self):
        self.chunks: list[bytes] = []
        self.started = False
        self.closed = False

    def start(self, loop) -> None:
        self.started = True

    def write(self, data: bytes) -> None:
        self.chunks.append(data)

    def close(self) -> None:
        self.closed = True

    @property
    def messages(self) -> list[dict[str, Any]]:
        text = b"".join(self.chunks).decode("utf-8")
        return [json.loads(line) for line in text.splitlines() if line.strip()]


class FakeBackend:
    """Stands in for BackendSession; records sends instead of writing to a process."""

    def __init__(self, state: BackendState = BackendState.AVAILABLE, writable: bool = True):
        self.state = state
        self.ever_started = state is BackendState.AVAILABLE
        self.exit_code = None
        self.writable = writable
        self.sent: list[tuple[dict[str, Any], Any]] = []
        self.send_error: Exception | None = None
        self.started = False
        self.stopped = False

    @property
    def available(self) -> bool:
        return self.state is BackendState.AVAILABLE

    def mark_available(self) -> None:
        self.state = BackendState.AVAILABLE
        self.ever_started = True

    def mark_unavailable(self, exit_code=None) -> None:
        self.state = BackendState.UNAVAILABLE
        if exit_code is not None:
            self.exit_code = exit_code

    def send(self, message, request=None) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((message.raw, request))

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True


class BlockingStdout(io.BytesIO):
    """Stdout double whose writes block until released, like a full pipe."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def write(self, data):
        self.release.wait(5)
        return super().write(data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def blocking_stdout():
    stdout = BlockingStdout()
    yield stdout
    stdout.release.set()


@pytest.fixture
def make_core(client, backend, clock):
    def _make(**config_values: Any) -> ProxyCore:
        return ProxyCore(ProxyConfig(**config_values), backend=backend, client=client, clock=clock)

    return _make
