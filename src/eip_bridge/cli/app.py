"""Command line interface for the EIP bridge.

Commands:
- run: serve MQTT requests against the configured device
- validate: check a configuration file
- probe: connect to the device and print its tag directory
- generate-example: write a starter configuration
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.table import Table

from eip_bridge import __version__
from eip_bridge.adapters.southbound.eip import EIPSession
from eip_bridge.config.loader import ConfigurationError, generate_example_config, load_config
from eip_bridge.main import run_bridge
from eip_bridge.observability.logging import LOG_FORMAT_ENV, LOG_LEVEL_ENV

if TYPE_CHECKING:
    from eip_bridge.config.schema import BridgeConfig
    from eip_bridge.domain.model.tags import Tag, TagDirectory

ConfigFile = Annotated[
    Path,
    typer.Argument(
        help="Bridge configuration (YAML)",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
]

console = Console()

app = typer.Typer(
    name="eip-bridge",
    help="Serve EtherNet/IP Logix tags to MQTT clients as read/write requests",
    add_completion=False,
    no_args_is_help=True,
)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"eip-bridge {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-V", callback=_show_version, is_eager=True, help="Print version"),
    ] = False,
) -> None:
    """EtherNet/IP to MQTT bridge."""


def _load_or_exit(path: Path, override: Path | None = None) -> BridgeConfig:
    try:
        return load_config(path, override_path=override)
    except ConfigurationError as e:
        console.print(f"[bold red]{path} is not a usable configuration[/bold red]")
        console.print(str(e))
        raise typer.Exit(code=1) from e


@app.command()
def run(
    config: ConfigFile,
    override: Annotated[
        Path | None,
        typer.Option("--override", "-o", exists=True, help="YAML merged over CONFIG"),
    ] = None,
    log_level: Annotated[
        str, typer.Option("--log-level", "-l", help="DEBUG, INFO, WARNING or ERROR")
    ] = "INFO",
    log_format: Annotated[str, typer.Option("--log-format", help="console or json")] = "console",
) -> None:
    """Run the bridge until interrupted.

    The tag directory is read from the device once at startup; tags created
    on the controller afterwards need a restart.
    """
    os.environ[LOG_LEVEL_ENV] = log_level
    os.environ[LOG_FORMAT_ENV] = log_format

    console.print(f"[bold green]eip-bridge {__version__}[/bold green] using {config}")
    try:
        asyncio.run(run_bridge(config, override_path=override))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
    except Exception as e:
        console.print(f"[bold red]Bridge stopped:[/bold red] {e}")
        raise typer.Exit(code=1) from e


@app.command()
def validate(
    config: ConfigFile,
    override: Annotated[
        Path | None,
        typer.Option("--override", "-o", exists=True, help="YAML merged over CONFIG"),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Print the resolved settings")
    ] = False,
) -> None:
    """Check a configuration without contacting the device or broker."""
    bridge_config = _load_or_exit(config, override)
    console.print(f"[bold green]Configuration valid:[/bold green] {config}")
    if verbose:
        console.print(_summary_table(bridge_config))


@app.command()
def probe(config: ConfigFile) -> None:
    """Connect to the device and list the tags it reports."""
    device = _load_or_exit(config).device

    async def enumerate_device() -> TagDirectory:
        session = EIPSession(device)
        await session.connect()
        try:
            return await session.enumerate_tags()
        finally:
            await session.disconnect()

    try:
        directory = asyncio.run(enumerate_device())
    except Exception as e:
        console.print(f"[bold red]Cannot probe {device.host}:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    table = Table(title=f"{device.host}:{device.port} slot {device.slot}")
    for column, style in (("Tag", "cyan"), ("Type", "magenta"), ("Code", None)):
        table.add_column(column, style=style)
    table.add_column("Dimensions", justify="right")
    table.add_column("Instance", justify="right")

    for name in directory.names():
        table.add_row(name, *_tag_columns(directory[name]))

    console.print(table)
    console.print(f"[bold green]{len(directory)} tags found[/bold green]")


def _tag_columns(tag: Tag) -> tuple[str, str, str, str]:
    dims = "x".join(str(d) for d in tag.dimensions if d) or "-"
    instance = "" if tag.instance_id is None else str(tag.instance_id)
    return tag.type_name or tag.wire_type.name, f"0x{int(tag.wire_type):02X}", dims, instance


@app.command("generate-example")
def generate_example(
    output: Annotated[
        Path, typer.Option("--output", "-o", help="Where to write the configuration")
    ] = Path("eip-bridge.yaml"),
) -> None:
    """Write a starter configuration."""
    output.write_text(generate_example_config(), encoding="utf-8")
    console.print(f"Wrote {output}. Check it with [cyan]eip-bridge validate {output}[/cyan]")


@app.command()
def version() -> None:
    """Print the bridge version."""
    console.print(f"eip-bridge [bold]{__version__}[/bold]")


def _summary_table(config: BridgeConfig) -> Table:
    device, mqtt, workers = config.device, config.mqtt, config.workers
    table = Table(title=config.bridge.name, show_header=False)
    table.add_column(style="cyan")
    table.add_column()
    table.add_row("Device", f"{device.host}:{device.port} slot {device.slot}")
    table.add_row("Device timeout", f"{device.timeout_ms} ms")
    table.add_row("Broker", f"{mqtt.host}:{mqtt.port} (qos {mqtt.qos})")
    table.add_row("Topic root", mqtt.topic_root)
    table.add_row("Workers", f"{workers.size}, queue {workers.queue_size}")
    return table


if __name__ == "__main__":
    app()
