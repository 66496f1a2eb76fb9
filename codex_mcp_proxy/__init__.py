"""codex-mcp-proxy - stdio JSON-RPC proxy in front of an MCP backend process."""

from loguru import logger

__version__ = "0.1.0"

logger.disable("codex_mcp_proxy")
