from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_value(value: Any) -> str:
    return "-" if value is None else str(value)


def render_readings(payload: Dict[str, Any]) -> None:
    readings = payload.get("readings") or []
    echo_heading(f"Readings ({payload.get('count', len(readings))})")
    if not readings:
        typer.echo("No readings recorded.")
        return
    for reading in readings:
        typer.echo(
            "  - {timestamp} temp={temp} TDS={tds} ({quality}) at {location} speed={speed}".format(
                timestamp=reading.get("timestamp"),
                temp=_format_value(reading.get("temperature")),
                tds=_format_value(reading.get("TDS_Value")),
                quality=reading.get("water_quality", "Unknown"),
                location=reading.get("location", "Unknown"),
                speed=_format_value(reading.get("speed")),
            )
        )


def render_summary(payload: Dict[str, Any]) -> None:
    echo_heading("Summary")
    echo_key_values(
        [
            ("reading_count", payload.get("reading_count")),
            ("first_timestamp", payload.get("first_timestamp")),
            ("last_timestamp", payload.get("last_timestamp")),
        ]
    )

    for label, key in (("Temperature", "temperature"), ("TDS", "TDS_Value"), ("Speed", "speed")):
        stats = payload.get(key) or {}
        typer.echo()
        echo_heading(label)
        if stats.get("count"):
            echo_key_values(
                [
                    ("count", stats.get("count")),
                    ("min_value", stats.get("min_value")),
                    ("max_value", stats.get("max_value")),
                    ("mean_value", stats.get("mean_value")),
                ]
            )
        else:
            typer.echo("No values recorded.")

    qualities = payload.get("water_quality_counts") or {}
    if qualities:
        typer.echo()
        echo_heading("Water quality")
        for quality, count in qualities.items():
            typer.echo(f"  - {quality}: {count}")


def render_ingest(payload: Dict[str, Any]) -> None:
    echo_heading("Ingest Result")
    reading = payload.get("reading") or {}
    echo_key_values(
        [
            ("status", payload.get("status")),
            ("reading_id", reading.get("id")),
            ("timestamp", reading.get("timestamp")),
            ("recipients", payload.get("recipients")),
        ]
    )
