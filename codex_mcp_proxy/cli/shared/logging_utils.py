"""Loguru helpers for CLI logging.

Stdout carries protocol data, so every sink here writes to stderr or a file.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from codex_mcp_proxy.utils.helpers import ensure_dir, get_data_path

_SINK_IDS: dict[str, int] = {}

STDERR_FORMAT = "[{time:YYYY-MM-DDTHH:mm:ss.SSS}] [{level}] {message}"


def configure_logging(*, debug: bool = False, log_file: bool = False) -> Path | None:
    """Route proxy logs to stderr (and optionally a rotating file)."""
    level = "DEBUG" if debug else "INFO"
    logger.remove()
    _SINK_IDS.clear()
    logger.add(sys.stderr, level=level, format=STDERR_FORMAT, colorize=False, backtrace=False, diagnose=False)
    logger.enable("codex_mcp_proxy")
    if log_file:
        return ensure_rotating_log_file("proxy", level=level)
    return None


def ensure_rotating_log_file(name: str, level: str = "INFO") -> Path:
    """Ensure a rotating log sink for the given command name."""
    log_path = get_data_path() / "logs" / f"{name}.log"
    if name in _SINK_IDS:
        return log_path
    ensure_dir(log_path.parent)
    sink_id = logger.add(
        str(log_path),
        level=level,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    _SINK_IDS[name] = sink_id
    return log_path
