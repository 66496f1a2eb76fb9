"""CLI module for codex-mcp-proxy."""
