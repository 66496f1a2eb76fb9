"""Entry point for ``python -m codex_mcp_proxy``."""

from codex_mcp_proxy.cli.commands import app

if __name__ == "__main__":
    app()
