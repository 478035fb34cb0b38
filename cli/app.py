from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_health, render_result
from logging_config import configure_logging
from models.records import PollResult
from services.broadcaster import BroadcastError
from services.connector import ModbusConnector
from services.scheduler import PollScheduler, poll_once


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for polling a Modbus device and inspecting the monitor service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Monitor service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    host: Optional[str] = typer.Option(None, "--host", help="Modbus device host."),
    port: Optional[int] = typer.Option(None, "--port", help="Modbus device TCP port."),
    unit_id: Optional[int] = typer.Option(None, "--unit-id", help="Modbus unit identifier."),
    register_count: Optional[int] = typer.Option(
        None,
        "--count-registers",
        help="Number of holding registers to read (two per reading).",
    ),
) -> None:
    """Entry point for the CLI."""
    configure_logging()
    try:
        config = load_config(
            base_url=base_url,
            host=host,
            port=port,
            unit_id=unit_id,
            register_count=register_count,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("poll")
def poll_command(ctx: typer.Context) -> None:
    """Run a single poll cycle against the device and print the result."""
    state = _get_state(ctx)
    device = state.config.device
    typer.echo(
        f"Reading {device.register_count} registers from {device.address} "
        f"(unit {device.unit_id}) ..."
    )
    result = asyncio.run(poll_once(ModbusConnector(device)))
    if result is None:
        typer.secho(f"Poll of {device.address} failed.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    render_result(result)


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        help="Seconds between polls (defaults to POLL_INTERVAL).",
    ),
    count: int = typer.Option(
        0,
        "--count",
        "-n",
        min=0,
        help="Stop after this many successful polls (0 runs until interrupted).",
    ),
) -> None:
    """Poll the device on a fixed cadence and print every result."""
    state = _get_state(ctx)
    cadence = interval if interval is not None and interval > 0 else state.config.poll_interval
    typer.echo(f"Polling {state.config.device.address} every {cadence}s ...")
    try:
        received = asyncio.run(_watch(ModbusConnector(state.config.device), cadence, count))
    except KeyboardInterrupt:
        return
    typer.echo(f"Received {received} result(s).")


async def _watch(connector: ModbusConnector, interval: float, count: int) -> int:
    received = 0

    async def sink(result: PollResult) -> None:
        nonlocal received
        render_result(result)
        typer.echo()
        received += 1
        if count and received >= count:
            raise BroadcastError("Requested number of results received.")

    scheduler = PollScheduler(connector, sink, interval, name="cli")
    scheduler.start()
    try:
        await scheduler.wait_closed()
    finally:
        await scheduler.cancel()
    return received


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Fetch the status of a running monitor service."""
    state = _get_state(ctx)
    payload = state.client.get_health()
    render_health(payload)
