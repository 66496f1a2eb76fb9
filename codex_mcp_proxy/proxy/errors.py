"""Synthesized JSON-RPC error responses.

Every upstream failure reported to the client carries a message plus
``data.detail``, ``data.suggestion``, ``data.method`` and ``data.retryable`` so
the calling model can decide whether to retry. Notifications never get a reply.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from codex_mcp_proxy.protocol.messages import JSONRPC_VERSION, Request


class ErrorCodes:
    """JSON-RPC error codes used by the proxy."""

    UPSTREAM_UNAVAILABLE = -32603
    UPSTREAM_CONNECTION_LOST = -32603
    UPSTREAM_SEND_FAILED = -32603
    RESOURCE_NOT_FOUND = -32002


@dataclass(frozen=True, slots=True)
class UpstreamErrorTemplate:
    code: int
    message: str
    detail: str
    suggestion: str
    retryable: bool

    def render(self, backend_name: str) -> tuple[str, str]:
        return self.message.format(name=backend_name), self.detail.format(name=backend_name)


UPSTREAM_UNAVAILABLE = UpstreamErrorTemplate(
    code=ErrorCodes.UPSTREAM_UNAVAILABLE,
    message="{name} service is not available",
    detail="The {name} backend process is not running or failed to start.",
    suggestion="Wait a few seconds and retry. If the problem persists, restart the MCP server.",
    retryable=True,
)

UPSTREAM_CONNECTION_LOST = UpstreamErrorTemplate(
    code=ErrorCodes.UPSTREAM_CONNECTION_LOST,
    message="Connection to {name} service was lost",
    detail="The {name} backend process terminated unexpectedly.",
    suggestion="Restart the MCP server and retry your request.",
    retryable=False,
)

UPSTREAM_SEND_FAILED = UpstreamErrorTemplate(
    code=ErrorCodes.UPSTREAM_SEND_FAILED,
    message="Failed to send request to {name}",
    detail="Unable to communicate with the {name} backend.",
    suggestion="This is usually a transient error. Wait 2-3 seconds and retry.",
    retryable=True,
)


def create_error_response(
    request: Request,
    code: int,
    message: str,
    data: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Build an error response for ``request``; ``None`` for notifications."""
    if request.is_notification:
        return None
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = {**data, "method": request.method}
    return {"jsonrpc": JSONRPC_VERSION, "id": request.id, "error": error}


def create_upstream_error(
    request: Request,
    template: UpstreamErrorTemplate,
    *,
    backend_name: str = "Codex",
) -> dict[str, Any] | None:
    message, detail = template.render(backend_name)
    return create_error_response(
        request,
        template.code,
        message,
        {"detail": detail, "suggestion": template.suggestion, "retryable": template.retryable},
    )


def create_upstream_unavailable_error(request: Request, *, backend_name: str = "Codex") -> dict[str, Any] | None:
    return create_upstream_error(request, UPSTREAM_UNAVAILABLE, backend_name=backend_name)


def create_upstream_connection_lost_error(request: Request, *, backend_name: str = "Codex") -> dict[str, Any] | None:
    return create_upstream_error(request, UPSTREAM_CONNECTION_LOST, backend_name=backend_name)


def create_upstream_send_failed_error(request: Request, *, backend_name: str = "Codex") -> dict[str, Any] | None:
    return create_upstream_error(request, UPSTREAM_SEND_FAILED, backend_name=backend_name)
