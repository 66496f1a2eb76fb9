"""Configuration schema using Pydantic.

Single data model and defaults for the proxy, persisted to ~/.codex-mcp-proxy/config.json.
Environment variables use the CODEX_MCP_ prefix (e.g. CODEX_MCP_DEBUG=1).
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProxyConfig(BaseSettings):
    """Root configuration for codex-mcp-proxy."""

    # Backend process
    backend_command: str = "codex"
    backend_args: list[str] = Field(default_factory=lambda: ["mcp-server"])
    backend_cwd: str | None = None
    backend_env: dict[str, str] = Field(default_factory=dict)
    backend_name: str = "Codex"  # Shown in synthesized error messages

    # Correlation
    request_ttl_seconds: float = Field(default=60.0, gt=0)
    max_pending_requests: int = Field(default=10000, gt=0)
    sweep_interval_seconds: float = Field(default=30.0, gt=0)

    # Behavior
    enhance_tool_descriptions: bool = True
    exit_with_backend: bool = True  # Stop the proxy when the backend exits or fails to spawn
    shutdown_grace_seconds: float = Field(default=2.0, gt=0)

    # Logging (verbosity only)
    debug: bool = False
    log_file: bool = False

    @property
    def backend_argv(self) -> list[str]:
        return [self.backend_command, *self.backend_args]

    model_config = SettingsConfigDict(
        env_prefix="CODEX_MCP_",
        env_nested_delimiter="__",
    )
