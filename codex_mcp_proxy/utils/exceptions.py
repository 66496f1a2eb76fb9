"""
Exception hierarchy and error handling utilities for codex-mcp-proxy.

Provides:
- Custom exception classes with error codes
- Error categorization for backend failures
- Safe error message formatting (no sensitive data leak)
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    RETRYABLE = "retryable"
    FATAL = "fatal"
    NOT_FOUND = "not_found"
    PERMISSION = "permission"


class ProxyError(Exception):
    """Base exception for all codex-mcp-proxy errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        return self.category is ErrorCategory.RETRYABLE

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class BackendUnavailableError(ProxyError):
    """Backend process never confirmed a successful start."""

    def __init__(self, message: str = "backend process is not running"):
        super().__init__(message, code="UPSTREAM_UNAVAILABLE", category=ErrorCategory.RETRYABLE)


class BackendConnectionLostError(ProxyError):
    """Backend input channel is closed or the process has exited."""

    def __init__(self, message: str = "backend input channel is closed", exit_code: int | None = None):
        details = {"exit_code": exit_code} if exit_code is not None else {}
        super().__init__(message, code="UPSTREAM_CONNECTION_LOST", category=ErrorCategory.FATAL, details=details)


class BackendSendError(ProxyError):
    """Writing a message to the backend failed."""

    def __init__(self, message: str):
        super().__init__(message, code="UPSTREAM_SEND_FAILED", category=ErrorCategory.RETRYABLE)


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"sk-[a-zA-Z0-9]{20,}"),
    re.compile(r"[a-zA-Z0-9]{32,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: BaseException) -> tuple[str, ErrorCategory, bool]:
    """
    Classify a backend failure and return (error_code, category, should_retry).
    """
    if isinstance(exc, ProxyError):
        return exc.code, exc.category, exc.retryable

    if isinstance(exc, FileNotFoundError):
        return "FILE_NOT_FOUND", ErrorCategory.NOT_FOUND, False

    if isinstance(exc, PermissionError):
        return "PERMISSION_DENIED", ErrorCategory.PERMISSION, False

    if isinstance(exc, OSError):
        return "SPAWN_FAILED", ErrorCategory.FATAL, False

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False
