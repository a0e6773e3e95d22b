from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import typer
import uvicorn

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_ingest, render_readings, render_summary


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for running and querying the telemetry relay service.",
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
        help="Relay API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("recent")
def recent_command(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, max=1000, help="Number of readings."),
) -> None:
    """Show the most recent readings, newest first."""
    state = _get_state(ctx)
    render_readings(state.client.recent(limit))


@app.command("range")
def range_command(
    ctx: typer.Context,
    start: datetime = typer.Argument(..., help="Inclusive start time (UTC unless an offset is given)."),
    end: datetime = typer.Argument(..., help="Inclusive end time (UTC unless an offset is given)."),
) -> None:
    """Show readings recorded between two timestamps."""
    if start > end:
        raise typer.BadParameter("start must not be later than end.")
    state = _get_state(ctx)
    render_readings(state.client.between(start, end))


@app.command("summary")
def summary_command(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, max=1000),
) -> None:
    """Aggregate statistics over the most recent readings."""
    state = _get_state(ctx)
    render_summary(state.client.summary(limit))


@app.command("send")
def send_command(
    ctx: typer.Context,
    temperature: Optional[float] = typer.Option(None, "--temperature", "-t", help="Water temperature in °C."),
    tds_value: Optional[float] = typer.Option(None, "--tds", help="Total dissolved solids in ppm."),
    latitude: Optional[float] = typer.Option(None, "--latitude", "--lat"),
    longitude: Optional[float] = typer.Option(None, "--longitude", "--lon"),
    speed: Optional[float] = typer.Option(None, "--speed", help="Speed in knots."),
) -> None:
    """Submit one reading; it is stored and relayed to every open socket."""
    fields = {
        "temperature": temperature,
        "TDS_Value": tds_value,
        "latitude": latitude,
        "longitude": longitude,
        "speed": speed,
    }
    payload: Dict[str, Any] = {key: value for key, value in fields.items() if value is not None}
    if not payload:
        raise typer.BadParameter("Provide at least one measurement.")
    state = _get_state(ctx)
    typer.echo(f"Sending reading to {state.config.base_url} ...")
    result = state.client.send(payload)
    typer.secho(f"Reading accepted. recipients={result.get('recipients')}", fg=typer.colors.GREEN)
    render_ingest(result)


@app.command("serve")
def serve_command(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on."),
    reload: bool = typer.Option(False, "--reload/--no-reload", help="Restart on code changes."),
) -> None:
    """Run the relay server."""
    uvicorn.run("app.main:app", host=host, port=port, reload=reload, log_config=None)
