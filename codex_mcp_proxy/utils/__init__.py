"""Utility functions for codex-mcp-proxy."""

from codex_mcp_proxy.utils.exceptions import (
    BackendConnectionLostError,
    BackendSendError,
    BackendUnavailableError,
    ErrorCategory,
    ProxyError,
    classify_exception,
    sanitize_error_message,
)
from codex_mcp_proxy.utils.helpers import ensure_dir, get_data_path

__all__ = [
    "ensure_dir",
    "get_data_path",
    "ProxyError",
    "BackendUnavailableError",
    "BackendConnectionLostError",
    "BackendSendError",
    "ErrorCategory",
    "classify_exception",
    "sanitize_error_message",
]
