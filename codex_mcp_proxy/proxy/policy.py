"""Methods answered locally instead of being forwarded to the backend.

The backend mishandles resource discovery for this client, so ``resources/list``
is answered with an empty catalog and ``resources/read`` with "Resource not found".
Notifications for these methods are swallowed: never forwarded, never answered.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from codex_mcp_proxy.protocol.messages import JSONRPC_VERSION, Request
from codex_mcp_proxy.proxy.errors import ErrorCodes, create_error_response


@dataclass(frozen=True, slots=True)
class Interception:
    """Outcome of the policy for one request."""

    intercepted: bool
    response: dict[str, Any] | None = None


NOT_INTERCEPTED = Interception(intercepted=False)


def create_empty_resources_response(request: Request) -> dict[str, Any] | None:
    if request.is_notification:
        return None
    return {"jsonrpc": JSONRPC_VERSION, "id": request.id, "result": {"resources": []}}


def create_resource_not_found_response(request: Request) -> dict[str, Any] | None:
    return create_error_response(request, ErrorCodes.RESOURCE_NOT_FOUND, "Resource not found")


_INTERCEPTORS: dict[str, Callable[[Request], dict[str, Any] | None]] = {
    "resources/list": create_empty_resources_response,
    "resources/read": create_resource_not_found_response,
}

INTERCEPTED_METHODS = frozenset(_INTERCEPTORS)


def intercept_request(request: Request) -> Interception:
    """Decide whether ``request`` is answered locally. Pure, never raises."""
    builder = _INTERCEPTORS.get(request.method)
    if builder is None:
        return NOT_INTERCEPTED
    return Interception(intercepted=True, response=builder(request))
