"""
SSHScan CLI - Command Line Interface
by BitSpectreLabs
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from sshscan.core.config import ConfigManager, ConfigError, SshscanConfig
from sshscan.core.inspector import SSHInspector, HandshakeResult
from sshscan.reports import (
    format_failure,
    format_json_report,
    format_text_report,
    generate_json_report,
    generate_text_report,
)


app = typer.Typer(
    name="sshscan",
    help="SSHScan - Audit key exchange algorithms and settings on an SSH server",
    add_completion=False,
    no_args_is_help=True
)

console = Console()

COMMANDS = ["scan", "version", "config", "--help", "-h"]


def _load_config() -> SshscanConfig:
    """Load and validate configuration, exiting on a broken config file."""
    manager = ConfigManager()
    try:
        config = manager.load()
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}", style="bold")
        sys.exit(2)

    errors = manager.validate()
    if errors:
        console.print("[red]Configuration validation failed:[/red]")
        for error in errors:
            console.print(f"  • {error}", markup=False)
        sys.exit(2)

    return config


def configure_logging(level: str, log_file: Optional[str] = None) -> None:
    """Send log records to stderr and, optionally, to a file."""
    handlers: list = [
        RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    ]
    if log_file:
        file_handler = logging.FileHandler(Path(log_file).expanduser(), encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


def print_result(result: HandshakeResult, color: bool = True) -> None:
    """Print a text report to the console."""
    if result.failed:
        if color:
            console.print(f"[red]{escape(format_failure(result))}[/red]", highlight=False)
        else:
            console.print(format_failure(result), markup=False, highlight=False)
        return

    typer.echo(format_text_report(result), nl=False)


@app.command(name="scan", help="Audit key exchange settings on an SSH server")
def scan(
    host: str = typer.Argument(..., help="Target hostname or IP address"),
    port: Optional[str] = typer.Option(None, "-p", "--port", help="Specify an explicit port to scan (default: 22)"),
    json_mode: bool = typer.Option(False, "-j", "--json", help="Generate JSON output"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Also save the report to a file"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Connect timeout in seconds (default: 5)"),
    operation_timeout: Optional[float] = typer.Option(None, "--operation-timeout", help="Budget for reads and writes after connecting, 0 disables it (default: 30)"),
    strict: Optional[bool] = typer.Option(None, "--strict/--no-strict", help="Read the full banner line and the full declared KEXINIT packet"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Audit key exchange settings on an SSH server.

    Examples:

      sshscan host

      sshscan -p 22222 host

      sshscan host --json -o host.json
    """
    from sshscan import __version__

    config = _load_config()
    configure_logging("DEBUG" if verbose else config.advanced.log_level, config.advanced.log_file)

    port = port or config.probe.default_port
    json_mode = json_mode or config.output.default_format == "json"

    inspector = SSHInspector(
        connect_timeout=timeout if timeout is not None else config.probe.connect_timeout,
        operation_timeout=operation_timeout if operation_timeout is not None else config.probe.operation_timeout,
        strict=strict if strict is not None else config.probe.strict_read,
        client_banner=config.probe.client_banner,
    )

    if json_mode:
        result = inspector.inspect(host, port)
        typer.echo(format_json_report(result))
    else:
        console.print(f"Starting SSHScan {__version__}\n", highlight=False)
        result = inspector.inspect(host, port)
        print_result(result, color=config.output.color_enabled)

    if output:
        if json_mode:
            generate_json_report([result], output)
        else:
            generate_text_report([result], output)
            console.print(f"\n[green]✓[/green] Report saved to: {output}")

    if result.failed:
        raise typer.Exit(1)


@app.command(name="version")
def show_version():
    """Show version information."""
    from sshscan import __version__
    console.print(f"[bold cyan]SSHScan[/bold cyan] version [yellow]{__version__}[/yellow]")
    console.print("by [bold]BitSpectreLabs[/bold]")


@app.command(name="config")
def manage_config(
    action: str = typer.Argument(..., help="Action: show, init, get, set, validate"),
    key: Optional[str] = typer.Argument(None, help="Config key (e.g., probe.connect_timeout)"),
    value: Optional[str] = typer.Argument(None, help="Value to set"),
    section: Optional[str] = typer.Option(None, "--section", "-s", help="Show specific section"),
    file_path: Optional[Path] = typer.Option(None, "--file", "-f", help="Config file path"),
    project: bool = typer.Option(False, "--project", help="Create project-level config"),
):
    """
    Manage SSHScan configuration.

    Configuration priority (highest to lowest):
      1. CLI arguments
      2. Environment variables (SSHSCAN_*)
      3. Project config (.sshscan.toml)
      4. User config (~/.sshscan/config.toml)
      5. Built-in defaults

    Examples:

      sshscan config show

      sshscan config init

      sshscan config get probe.connect_timeout

      sshscan config set probe.strict_read true

      sshscan config validate
    """
    manager = ConfigManager(user_config_path=file_path) if file_path else ConfigManager()

    if action == "show":
        try:
            manager.load()
            output = manager.show_config(section=section)
            sources = manager.get_loaded_sources()
            console.print(f"[dim]Loaded from: {', '.join(sources)}[/dim]\n")
            console.print(output, markup=False, highlight=False)
        except ConfigError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    elif action == "init":
        config_path = file_path
        if not config_path:
            if project:
                config_path = Path.cwd() / ConfigManager.PROJECT_CONFIG_NAME
            else:
                config_path = manager.user_config_path

        try:
            path = manager.init_config(path=config_path)
            console.print(f"[green]✓[/green] Configuration file created: {path}")
        except ConfigError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    elif action == "get":
        if not key:
            console.print("[red]Error:[/red] Key required (e.g., probe.connect_timeout)")
            sys.exit(1)

        try:
            manager.load()
            console.print(f"{key} = {manager.get_value(key)}", markup=False, highlight=False)
        except (ConfigError, KeyError) as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    elif action == "set":
        if not key or value is None:
            console.print("[red]Error:[/red] Key and value required")
            sys.exit(1)

        try:
            manager.load()
            manager.set_value(key, value)
            manager.save_user_config()
            console.print(f"[green]✓[/green] Set {key} = {value}")
        except (ConfigError, KeyError, ValueError) as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    elif action == "validate":
        try:
            manager.load()
            errors = manager.validate()
        except ConfigError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

        if errors:
            console.print("[red]Configuration validation failed:[/red]\n")
            for error in errors:
                console.print(f"  • {error}", markup=False)
            sys.exit(1)

        console.print("[green]✓[/green] Configuration is valid")
        console.print(f"[dim]Loaded from: {', '.join(manager.get_loaded_sources())}[/dim]")

    else:
        console.print(f"[red]Error:[/red] Unknown action '{action}'")
        console.print("Valid actions: show, init, get, set, validate")
        sys.exit(1)


def main():
    """Main entry point."""
    # `sshscan host` and `sshscan -p 22222 host` run the scan command
    if len(sys.argv) > 1 and sys.argv[1] not in COMMANDS:
        sys.argv.insert(1, "scan")

    app()


if __name__ == "__main__":
    main()
