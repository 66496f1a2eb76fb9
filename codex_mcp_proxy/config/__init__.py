"""Configuration module for codex-mcp-proxy."""

from codex_mcp_proxy.config.loader import get_config_path, load_config
from codex_mcp_proxy.config.schema import ProxyConfig

__all__ = ["ProxyConfig", "load_config", "get_config_path"]
