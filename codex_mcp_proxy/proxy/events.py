"""Events consumed by the proxy control loop.

Readers, process watchers, write drains and the sweep timer only post events;
``ProxyCore.dispatch`` is the single place where state changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from codex_mcp_proxy.protocol.messages import Request


class EventKind(str, Enum):
    CLIENT_DATA = "client_data"
    CLIENT_CLOSED = "client_closed"
    CLIENT_WRITE_FAILED = "client_write_failed"
    BACKEND_DATA = "backend_data"
    BACKEND_SPAWNED = "backend_spawned"
    BACKEND_ERROR = "backend_error"
    BACKEND_EXITED = "backend_exited"
    BACKEND_SEND_FAILED = "backend_send_failed"
    SWEEP_TICK = "sweep_tick"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True, slots=True)
class ProxyEvent:
    kind: EventKind
    data: bytes = b""
    error: BaseException | None = None
    exit_code: int | None = None
    request: Request | None = None

    @classmethod
    def client_data(cls, data: bytes) -> ProxyEvent:
        return cls(EventKind.CLIENT_DATA, data=data)

    @classmethod
    def client_write_failed(cls, error: BaseException) -> ProxyEvent:
        return cls(EventKind.CLIENT_WRITE_FAILED, error=error)

    @classmethod
    def backend_data(cls, data: bytes) -> ProxyEvent:
        return cls(EventKind.BACKEND_DATA, data=data)

    @classmethod
    def backend_error(cls, error: BaseException) -> ProxyEvent:
        return cls(EventKind.BACKEND_ERROR, error=error)

    @classmethod
    def backend_exited(cls, exit_code: int | None) -> ProxyEvent:
        return cls(EventKind.BACKEND_EXITED, exit_code=exit_code)

    @classmethod
    def send_failed(cls, request: Request | None, error: BaseException) -> ProxyEvent:
        return cls(EventKind.BACKEND_SEND_FAILED, request=request, error=error)
