"""
Root Typer application for the tracestore CLI.

    tracestore ingest spans.json --database spans.db
    tracestore bucket 1700000000000000
    tracestore --version
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table
from typer import Typer

from tracestore.core.errors import BatchWriteError, TraceStoreError
from tracestore.core.logging import configure_logging
from tracestore.core.settings import get_settings
from tracestore.model.span import Span, spans_from_dicts
from tracestore.storage import schema
from tracestore.storage.consumer import SpanConsumer
from tracestore.storage.sqlite import SqliteSession
from tracestore.storage.util import duration_index_bucket

app = Typer(
    name="tracestore",
    help="tracestore — write path of a distributed-tracing span store.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("tracestore")
        except PackageNotFoundError:
            from tracestore import __version__ as v
        typer.echo(f"tracestore {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """tracestore CLI — ingest spans and inspect index buckets."""


# ── Helpers ──────────────────────────────────────────────────────────────


def load_span_dicts(path: Path) -> list[dict[str, Any]]:
    """Read a JSON array or newline-delimited JSON file of span mappings."""
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []
    if text.startswith("["):
        return json.loads(text)
    return [json.loads(line) for line in text.splitlines() if line.strip()]


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def ingest(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Spans (JSON or NDJSON)"),
    database: str | None = typer.Option(None, "--database", "-d", help="SQLite database path"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Ingest a file of spans into a SQLite span store."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs)

    try:
        spans = spans_from_dicts(load_span_dicts(file))
    except (ValueError, KeyError, TypeError) as exc:
        err_console.print(f"[red]Invalid span file:[/red] {exc}")
        raise typer.Exit(code=2) from exc

    session = SqliteSession(
        database or settings.database,
        keyspace=settings.keyspace,
        compaction_class=settings.compaction_class,
    )
    failure: TraceStoreError | None = None
    try:
        consumer = asyncio.run(_ingest(session, spans, settings))
    except BatchWriteError as exc:
        failure = exc
        consumer = None
    finally:
        counts = {table: session.count(table) for table in schema.PRIMARY_KEYS}
        session.close()

    summary: dict[str, Any] = {
        "spans": len(spans),
        "ok": failure is None,
        "tables": counts,
    }
    if consumer is not None:
        summary["dedup"] = consumer.deduplicating_executor.stats
    if failure is not None:
        summary["error"] = failure.to_dict()

    if json_out:
        typer.echo(json.dumps(summary, indent=2, default=str))
    else:
        table = Table(title="Ingest")
        table.add_column("Table", style="cyan")
        table.add_column("Rows", justify="right")
        for name, count in counts.items():
            table.add_row(name, str(count))
        console.print(table)
        if failure is None:
            console.print(f"[green]✓[/green] {len(spans)} spans ingested")
        else:
            err_console.print(f"[red]✗[/red] {failure.message}")

    if failure is not None:
        raise typer.Exit(code=1)


@app.command()
def bucket(
    timestamp: int = typer.Argument(..., help="Epoch microseconds"),
    window: int | None = typer.Option(None, "--window", "-w", help="Bucket window in seconds"),
) -> None:
    """Print the duration-index bucket of a timestamp."""
    if window is None:
        window = get_settings().duration_bucket_window_seconds
    if window <= 0:
        err_console.print("[red]--window must be positive[/red]")
        raise typer.Exit(code=2)
    typer.echo(str(duration_index_bucket(timestamp, window)))


async def _ingest(session: SqliteSession, spans: list[Span], settings: Any) -> SpanConsumer:
    consumer = SpanConsumer(session, settings=settings)
    await consumer.accept(spans)
    return consumer


if __name__ == "__main__":  # pragma: no cover
    app()
