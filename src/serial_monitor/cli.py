"""Serial monitor CLI.

Default mode runs the monitor protocol over stdin/stdout, which is how an
IDE or CLI tool drives it as a child process.

Usage:
    serial-monitor                        # Stdio protocol server
    serial-monitor --driver loopback      # Same, with an in-memory echo port
    serial-monitor --version              # Version banner
    serial-monitor ports                  # List serial devices
    serial-monitor ports --json           # Same, as JSON
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Any

import click

from . import __version__
from .config import DRIVERS, MonitorConfig
from .errors import ChannelError

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _configure_logging(level: str) -> None:
    # stdout carries the protocol, logs must stay on stderr
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(levelname)s: %(name)s: %(message)s",
        stream=sys.stderr,
    )


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="serial-monitor", message="%(prog)s %(version)s")
@click.option(
    "--driver",
    type=click.Choice(DRIVERS),
    default=None,
    help="Port driver (default: serial, or $SERIAL_MONITOR_DRIVER)",
)
@click.option(
    "--connect-timeout",
    type=float,
    default=None,
    help="Seconds to wait when dialing the client (default: 10)",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="SERIAL_MONITOR_LOG_LEVEL",
    show_default=True,
    help="Log level for stderr diagnostics",
)
@click.option("--debug", is_flag=True, help="Shortcut for --log-level DEBUG")
@click.pass_context
def main(
    ctx: click.Context,
    driver: str | None,
    connect_timeout: float | None,
    log_level: str,
    debug: bool,
) -> None:
    """Serial monitor - bridges a serial port to a client's TCP socket.

    Reads HELLO / DESCRIBE / CONFIGURE / OPEN / CLOSE / QUIT commands on
    stdin and answers with one JSON event per line on stdout.
    """
    _configure_logging("DEBUG" if debug else log_level.upper())

    # If a subcommand is invoked, let it handle everything
    if ctx.invoked_subcommand is not None:
        return

    overrides: dict[str, Any] = {}
    if driver is not None:
        overrides["driver"] = driver
    if connect_timeout is not None:
        overrides["connect_timeout"] = connect_timeout

    try:
        config = replace(MonitorConfig.from_env(), **overrides)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    _run_stdio_server(config)


def _run_stdio_server(config: MonitorConfig) -> None:
    """Run stdio server mode (default)."""
    from .stdio import run_stdio_server

    try:
        asyncio.run(run_stdio_server(config))
    except ChannelError as e:
        logging.getLogger(__name__).error("Fatal: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)


@main.command("ports")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def list_ports(output_json: bool) -> None:
    """List the serial devices present on this machine.

    Examples:

        serial-monitor ports

        serial-monitor ports --json
    """
    from .ports.serial_port import list_ports as enumerate_ports

    ports = enumerate_ports()

    if output_json:
        click.echo(json.dumps(ports, indent=2))
        return

    if not ports:
        click.echo("No serial ports found.")
        return

    click.echo(f"{'Address':<24} {'Description':<40}")
    click.echo("-" * 65)
    for port in ports:
        click.echo(f"{port['address']:<24} {port['description'][:40]:<40}")


if __name__ == "__main__":
    main()
