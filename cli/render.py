from __future__ import annotations

from typing import Any, Dict, Iterable

import typer

from models.records import PollResult, Severity
from services.broadcaster import format_timestamp

_SEVERITY_COLORS = {
    Severity.normal: typer.colors.GREEN,
    Severity.warning: typer.colors.YELLOW,
    Severity.critical: typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_result(result: PollResult) -> None:
    echo_heading("Poll Result")
    echo_key_values(
        [
            ("timestamp", format_timestamp(result.timestamp)),
            ("readings", len(result.readings)),
        ]
    )
    typer.echo()
    echo_heading("Readings")
    if not result.alarms:
        typer.echo("No readings decoded.")
        return
    for alarm in result.alarms:
        typer.secho(
            f"  [{alarm.index}] {alarm.value:.6g} {alarm.severity.value}: {alarm.message}",
            fg=_SEVERITY_COLORS[alarm.severity],
        )


def render_health(payload: Dict[str, Any]) -> None:
    echo_heading("Service Health")
    echo_key_values(
        [
            ("status", payload.get("status")),
            ("device", payload.get("device")),
            ("poll_mode", payload.get("poll_mode")),
            ("poll_interval", payload.get("poll_interval")),
            ("subscribers", payload.get("subscribers")),
        ]
    )
