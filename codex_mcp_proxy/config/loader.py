"""Configuration loading utilities."""

import json
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from codex_mcp_proxy.config.schema import ProxyConfig

ENV_PREFIX = "CODEX_MCP_"


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".codex-mcp-proxy" / "config.json"


def load_config(config_path: Path | None = None, **overrides: Any) -> ProxyConfig:
    """
    Load configuration from file or create default.

    Precedence: explicit overrides > CODEX_MCP_* environment > file > defaults.

    Args:
        config_path: Optional path to config file. Uses default if not provided.
        overrides: Field values that win over everything else (e.g. CLI flags);
            ``None`` values are ignored.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()
    data: dict[str, Any] = {}

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Failed to load config from {path}: {e}. "
                "Fix the file or remove it to use defaults."
            ) from e
        if not isinstance(raw, dict):
            raise ValueError(f"Failed to load config from {path}: top-level value must be an object")
        data = convert_keys(raw)

    # pydantic-settings ranks init kwargs above the environment, so file values
    # already set through the environment are left out.
    values = {k: v for k, v in data.items() if k in ProxyConfig.model_fields and not _set_in_env(k)}
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return ProxyConfig(**values)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration ({path}): {e}") from e


def _set_in_env(field_name: str) -> bool:
    key = f"{ENV_PREFIX}{field_name}".upper()
    return any(name.upper() == key for name in os.environ)


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic.
    Keys under backendEnv are preserved (they are env var names, e.g. API_KEY)."""
    if isinstance(data, dict):
        result: dict[str, Any] = {}
        for k, v in data.items():
            new_k = camel_to_snake(k)
            if new_k == "backend_env" and isinstance(v, dict):
                result[new_k] = dict(v)
            else:
                result[new_k] = convert_keys(v)
        return result
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0 and name[i - 1] != "_":
            result.append("_")
        result.append(char.lower())
    return "".join(result)
