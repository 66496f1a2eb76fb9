"""CLI commands for codex-mcp-proxy.

Running without a subcommand starts the proxy, which is how MCP clients launch it.
"""

import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from codex_mcp_proxy import __version__
from codex_mcp_proxy.cli.shared.logging_utils import configure_logging
from codex_mcp_proxy.config.loader import get_config_path, load_config
from codex_mcp_proxy.config.schema import ProxyConfig

app = typer.Typer(
    name="codex-mcp-proxy",
    help="Stdio MCP proxy that answers resource requests locally and relays everything else to the backend.",
    add_completion=False,
)

# Stdout is reserved for protocol traffic while the proxy runs.
err_console = Console(stderr=True)
console = Console()


def _load(
    config_path: Optional[Path] = None,
    **overrides,
) -> ProxyConfig:
    try:
        return load_config(config_path, **overrides)
    except ValueError as e:
        err_console.print(f"[red][FATAL][/red] {e}", markup=True, highlight=False)
        raise typer.Exit(1)


async def _serve(config: ProxyConfig) -> int:
    from codex_mcp_proxy.proxy.core import ProxyCore

    core = ProxyCore(config)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, core.request_stop, 0)
        except (NotImplementedError, RuntimeError):
            # Windows event loops: Ctrl+C surfaces as KeyboardInterrupt instead.
            pass
    return await core.run()


def _run_proxy(
    command: Optional[str] = None,
    args: Optional[List[str]] = None,
    cwd: Optional[str] = None,
    debug: bool = False,
    config_path: Optional[Path] = None,
    log_file: bool = False,
) -> None:
    config = _load(
        config_path,
        backend_command=command,
        backend_args=args or None,
        backend_cwd=cwd,
        debug=True if debug else None,
        log_file=True if log_file else None,
    )
    configure_logging(debug=config.debug, log_file=config.log_file)
    try:
        code = asyncio.run(_serve(config))
    except KeyboardInterrupt:
        code = 0
    except Exception as e:
        err_console.print(f"[FATAL] {e}", markup=False, highlight=False)
        raise typer.Exit(1)
    raise typer.Exit(code)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Start the proxy when no subcommand is given."""
    if ctx.invoked_subcommand is None:
        _run_proxy()


@app.command()
def run(
    command: str = typer.Option(None, "--command", "-c", help="Backend executable (default: codex)"),
    arg: Optional[List[str]] = typer.Option(None, "--arg", "-a", help="Backend argument; repeat for several (default: mcp-server)"),
    cwd: str = typer.Option(None, "--cwd", help="Working directory for the backend process"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Verbose logging to stderr"),
    config: Path = typer.Option(None, "--config", help="Config file (default: ~/.codex-mcp-proxy/config.json)"),
    log_file: bool = typer.Option(False, "--log-file", help="Also log to ~/.codex-mcp-proxy/logs/proxy.log"),
):
    """Run the proxy on stdin/stdout."""
    _run_proxy(command=command, args=arg, cwd=cwd, debug=debug, config_path=config, log_file=log_file)


@app.command()
def doctor(
    config: Path = typer.Option(None, "--config", help="Config file (default: ~/.codex-mcp-proxy/config.json)"),
):
    """Check that the backend can be launched."""
    from codex_mcp_proxy.proxy.backend import resolve_command

    config_path = config or get_config_path()
    cfg = _load(config_path)
    resolved = resolve_command(cfg.backend_command)
    command_found = os.path.isfile(resolved) and os.access(resolved, os.X_OK)
    cwd_ok = cfg.backend_cwd is None or Path(cfg.backend_cwd).expanduser().is_dir()

    table = Table(title="codex-mcp-proxy doctor")
    table.add_column("Check", style="cyan")
    table.add_column("Value")
    table.add_column("OK")
    table.add_row("config", str(config_path), "[green]✓[/green]" if config_path.exists() else "[dim]defaults[/dim]")
    table.add_row("backend command", " ".join(cfg.backend_argv), "")
    table.add_row("resolved executable", resolved, "[green]✓[/green]" if command_found else "[red]✗[/red]")
    table.add_row("backend cwd", cfg.backend_cwd or "[dim](inherit)[/dim]", "[green]✓[/green]" if cwd_ok else "[red]✗[/red]")
    table.add_row("request TTL", f"{cfg.request_ttl_seconds:g}s", "")
    table.add_row("max pending requests", str(cfg.max_pending_requests), "")
    table.add_row("python", sys.version.split()[0], "")
    console.print(table)

    if not command_found:
        console.print(f"[red]Backend command not found:[/red] {cfg.backend_command}. Install it or set backendCommand.")
        raise typer.Exit(1)
    if not cwd_ok:
        console.print(f"[red]Backend working directory does not exist:[/red] {cfg.backend_cwd}")
        raise typer.Exit(1)


@app.command()
def version():
    """Show version."""
    console.print(f"codex-mcp-proxy v{__version__}")
