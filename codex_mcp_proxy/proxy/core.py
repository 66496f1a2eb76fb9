"""Proxy orchestration: one control loop between the client and the backend.

Client chunk -> framer -> intercept | forward (tracked).
Backend chunk -> framer -> correlate -> optional rewrite -> client.

All mutable state (both framers, the tracker, backend availability) lives on the
``ProxyCore`` instance and is only touched from ``dispatch``, which runs one event
at a time on the event loop.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

from loguru import logger

from codex_mcp_proxy.config.schema import ProxyConfig
from codex_mcp_proxy.protocol.framer import StreamFramer
from codex_mcp_proxy.protocol.messages import Message, Request, Response, serialize_message
from codex_mcp_proxy.proxy.backend import BackendSession
from codex_mcp_proxy.proxy.client import ClientChannel, StdioClientTransport
from codex_mcp_proxy.proxy.enhance import enhance_tools_list_response, should_enhance_response
from codex_mcp_proxy.proxy.errors import (
    UPSTREAM_CONNECTION_LOST,
    UPSTREAM_SEND_FAILED,
    UPSTREAM_UNAVAILABLE,
    UpstreamErrorTemplate,
    create_upstream_error,
)
from codex_mcp_proxy.proxy.events import EventKind, ProxyEvent
from codex_mcp_proxy.proxy.policy import intercept_request
from codex_mcp_proxy.proxy.tracker import CorrelationTracker
from codex_mcp_proxy.utils.exceptions import (
    BackendConnectionLostError,
    BackendUnavailableError,
    ProxyError,
    classify_exception,
    sanitize_error_message,
)


def exit_status(code: int | None) -> int:
    """Map a child return code to a process exit status (signals -> 128 + n)."""
    if code is None:
        return 0
    return code if code >= 0 else 128 - code


class ProxyCore:
    """Relays JSON-RPC between one client and one backend process."""

    def __init__(
        self,
        config: ProxyConfig | None = None,
        *,
        backend: BackendSession | None = None,
        client: ClientChannel | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or ProxyConfig()
        self._queue: asyncio.Queue[ProxyEvent] = asyncio.Queue()
        self.client_framer = StreamFramer("client")
        self.backend_framer = StreamFramer("backend")
        self.tracker = CorrelationTracker(
            ttl_seconds=self.config.request_ttl_seconds,
            max_size=self.config.max_pending_requests,
            clock=clock,
        )
        self.backend = backend or BackendSession(
            self.config.backend_argv,
            post=self.post,
            cwd=self.config.backend_cwd,
            env=self.config.backend_env,
            grace_seconds=self.config.shutdown_grace_seconds,
        )
        self.client = client or StdioClientTransport(self.post)
        self.exit_code: int | None = None
        self._sweep_task: asyncio.Task[None] | None = None
        self._shut_down = False
        self._handlers: dict[EventKind, Callable[[ProxyEvent], None]] = {
            EventKind.CLIENT_DATA: self._on_client_data,
            EventKind.CLIENT_CLOSED: self._on_client_closed,
            EventKind.CLIENT_WRITE_FAILED: self._on_client_write_failed,
            EventKind.BACKEND_DATA: self._on_backend_data,
            EventKind.BACKEND_SPAWNED: self._on_backend_spawned,
            EventKind.BACKEND_ERROR: self._on_backend_error,
            EventKind.BACKEND_EXITED: self._on_backend_exited,
            EventKind.BACKEND_SEND_FAILED: self._on_send_failed,
            EventKind.SWEEP_TICK: self._on_sweep_tick,
            EventKind.SHUTDOWN: lambda _event: None,
        }

    # =========================================================
    # Lifecycle
    # =========================================================

    @property
    def stopping(self) -> bool:
        return self.exit_code is not None

    async def run(self) -> int:
        """Serve until the client disconnects, a stop is requested, or the backend goes away."""
        loop = asyncio.get_running_loop()
        self._sweep_task = asyncio.create_task(self._sweep_timer())
        try:
            # Backend first: its spawn confirmation is dispatched before any client data.
            await self.backend.start()
            self.client.start(loop)
            while not self.stopping:
                event = await self._queue.get()
                self.dispatch(event)
        finally:
            await self.shutdown()
        return self.exit_code or 0

    def post(self, event: ProxyEvent) -> None:
        self._queue.put_nowait(event)

    def request_stop(self, exit_code: int = 0) -> None:
        if self.exit_code is None:
            self.exit_code = exit_code
        self.post(ProxyEvent(EventKind.SHUTDOWN))

    async def shutdown(self) -> None:
        """Stop the backend and drop all buffered state. Safe to call twice."""
        if self._shut_down:
            return
        self._shut_down = True
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        await self.backend.stop()
        self.client.close()
        self.client_framer.clear()
        self.backend_framer.clear()
        self.tracker.clear()

    async def _sweep_timer(self) -> None:
        while True:
            await asyncio.sleep(self.config.sweep_interval_seconds)
            self.post(ProxyEvent(EventKind.SWEEP_TICK))

    # =========================================================
    # Dispatch
    # =========================================================

    def dispatch(self, event: ProxyEvent) -> None:
        """Handle one event. Failures are logged and never stop the loop."""
        try:
            self._handlers[event.kind](event)
        except Exception:
            logger.exception("Failed to handle {} event", event.kind.value)

    def _each_message(self, messages: list[Message], handle: Callable[[Any], None]) -> None:
        for message in messages:
            try:
                handle(message)
            except Exception:
                logger.exception("Failed to handle message: {}", sanitize_error_message(repr(message.raw)[:200]))

    def _on_client_data(self, event: ProxyEvent) -> None:
        self._each_message(self.client_framer.parse(event.data), self.handle_client_message)

    def _on_backend_data(self, event: ProxyEvent) -> None:
        self._each_message(self.backend_framer.parse(event.data), self.handle_backend_message)

    def _on_client_closed(self, _event: ProxyEvent) -> None:
        self.request_stop(0)

    def _on_client_write_failed(self, event: ProxyEvent) -> None:
        # The client stopped reading; stdin EOF may never arrive.
        logger.error("Client output closed: {}", event.error)
        self.request_stop(0)

    def _on_backend_spawned(self, _event: ProxyEvent) -> None:
        self.backend.mark_available()
        logger.info("Backend available")

    def _on_backend_error(self, event: ProxyEvent) -> None:
        self.backend.mark_unavailable()
        code = classify_exception(event.error)[0] if event.error is not None else "UNKNOWN_ERROR"
        logger.error("Backend unavailable ({}): {}", code, sanitize_error_message(str(event.error)))
        if self.config.exit_with_backend:
            self.request_stop(1)

    def _on_backend_exited(self, event: ProxyEvent) -> None:
        self.backend.mark_unavailable(event.exit_code)
        self.backend_framer.clear()
        logger.info("Backend exited with code {}; {} request(s) pending", event.exit_code, self.tracker.size)
        if self.config.exit_with_backend:
            self.request_stop(exit_status(event.exit_code))

    def _on_send_failed(self, event: ProxyEvent) -> None:
        request = event.request
        if request is None or request.is_notification:
            return
        # A reply already relayed for this id means the write did reach the backend.
        if request.id is not None and not self.tracker.has(request.id):
            return
        self.tracker.settle(request.id)
        self._reply_upstream_error(request, UPSTREAM_SEND_FAILED)

    def _on_sweep_tick(self, _event: ProxyEvent) -> None:
        evicted = self.tracker.sweep()
        if evicted:
            logger.debug("Evicted {} expired pending request(s)", evicted)

    # =========================================================
    # Client -> backend
    # =========================================================

    def handle_client_message(self, message: Message) -> None:
        if isinstance(message, Response):
            self._relay_response_to_backend(message)
            return
        self.handle_client_request(message)

    def handle_client_request(self, request: Request) -> None:
        logger.debug("<- client: {} id={}", request.method, request.id)
        interception = intercept_request(request)
        if interception.intercepted:
            logger.debug("-> intercepted {}", request.method)
            if interception.response is not None:
                self.send_to_client(interception.response)
            return
        self.forward_request(request)

    def forward_request(self, request: Request) -> None:
        """Gate on availability, track, then write to the backend."""
        if not self.backend.available:
            logger.error("Upstream unavailable for {}", request.method)
            template = UPSTREAM_CONNECTION_LOST if self.backend.ever_started else UPSTREAM_UNAVAILABLE
            self._reply_upstream_error(request, template)
            return
        if not self.backend.writable:
            logger.error("Backend input closed; cannot forward {}", request.method)
            self._reply_upstream_error(request, UPSTREAM_CONNECTION_LOST)
            return

        # Tracked before the write so a fast response still correlates.
        self.tracker.track(request)
        try:
            self.backend.send(request, request)
        except (BackendUnavailableError, BackendConnectionLostError) as exc:
            # Nothing reached the backend, so no reply can arrive for this id.
            if request.id is not None:
                self.tracker.complete(request.id)
            logger.error("Failed to forward {}: {}", request.method, exc)
            template = UPSTREAM_UNAVAILABLE if isinstance(exc, BackendUnavailableError) else UPSTREAM_CONNECTION_LOST
            self._reply_upstream_error(request, template)

    def _relay_response_to_backend(self, response: Response) -> None:
        if not (self.backend.available and self.backend.writable):
            logger.warning("Dropping client response id={}: backend unavailable", response.id)
            return
        try:
            self.backend.send(response)
        except ProxyError as exc:
            logger.warning("Dropping client response id={}: {}", response.id, exc)

    # =========================================================
    # Backend -> client
    # =========================================================

    def handle_backend_message(self, message: Message) -> None:
        if isinstance(message, Request):
            # Server-initiated request or notification (e.g. progress).
            logger.debug("-> backend {}: {}", "notification" if message.is_notification else "request", message.method)
            self.send_to_client(message.raw)
            return
        if self.tracker.take_settled(message.id):
            logger.warning("Dropping backend response id={}: already answered with an error", message.id)
            return
        self.send_to_client(self.postprocess_response(message))

    def postprocess_response(self, response: Response) -> dict[str, Any]:
        """Correlate and optionally rewrite. Uncorrelated responses pass through unmodified."""
        original = self.tracker.complete(response.id)
        logger.debug("-> backend response: id={}", response.id)
        payload = response.raw
        if original is None or not self.config.enhance_tool_descriptions:
            return payload
        if not should_enhance_response(original.method):
            return payload
        try:
            enhanced = enhance_tools_list_response(payload)
        except Exception:
            logger.exception("Failed to enhance {} response; relaying unchanged", original.method)
            return payload
        logger.debug("-> enhanced {} response", original.method)
        return enhanced

    def send_to_client(self, payload: dict[str, Any]) -> None:
        self.client.write(serialize_message(payload))

    def _reply_upstream_error(self, request: Request, template: UpstreamErrorTemplate) -> None:
        reply = create_upstream_error(request, template, backend_name=self.config.backend_name)
        if reply is not None:
            self.send_to_client(reply)
