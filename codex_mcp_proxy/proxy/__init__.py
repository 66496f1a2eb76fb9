"""Proxy components: interception, correlation, backend session, orchestration."""

from codex_mcp_proxy.proxy.backend import BackendSession, BackendState, resolve_command
from codex_mcp_proxy.proxy.core import ProxyCore
from codex_mcp_proxy.proxy.enhance import enhance_tools_list_response, should_enhance_response
from codex_mcp_proxy.proxy.events import EventKind, ProxyEvent
from codex_mcp_proxy.proxy.policy import INTERCEPTED_METHODS, Interception, intercept_request
from codex_mcp_proxy.proxy.tracker import CorrelationTracker, PendingRequest

__all__ = [
    "BackendSession",
    "BackendState",
    "CorrelationTracker",
    "EventKind",
    "INTERCEPTED_METHODS",
    "Interception",
    "PendingRequest",
    "ProxyCore",
    "ProxyEvent",
    "enhance_tools_list_response",
    "intercept_request",
    "resolve_command",
    "should_enhance_response",
]
