"""Read-only commands over the imported registry tables."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace

import typer

from reyestr.core.config import ReyestrConfig
from reyestr.core.data.storage import RegistryStore
from reyestr.core.exceptions import StoreError

from .constants import NOT_FOUND_EXIT_CODE, SEARCH_COLUMNS, SHOW_COLUMNS, STORE_EXIT_CODE
from .utils import emit_error, fail, parse_category, prepare_output, resolve_config


def register(app: typer.Typer) -> None:
    """Register the query commands on the provided application."""

    app.command("show")(show_command)
    app.command("search")(search_command)
    app.command("stats")(stats_command)


@contextmanager
def _open_store(config: ReyestrConfig) -> Iterator[RegistryStore]:
    store_config = config.store
    if store_config.database != ":memory:":
        store_config = replace(store_config, read_only=True)
    try:
        store = RegistryStore.open(store_config, config.category_specs())
    except StoreError as error:
        fail(error, STORE_EXIT_CODE)
    with store:
        yield store


def show_command(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="Registry category."),
    key: str = typer.Argument(..., help="Natural key of the record."),
    database: str | None = typer.Option(None, "--database", "-d", help="DuckDB database file."),
) -> None:
    """Show one imported record by its natural key."""

    parsed_category = parse_category(category)
    formatter, stream, stack, _ = prepare_output(ctx)
    with stack:
        config = resolve_config(ctx, {"store": {"database": database}} if database else None)
        with _open_store(config) as store:
            record = store.get(parsed_category, key)
        if record is None:
            emit_error(f"No {parsed_category.value} record with key {key}", "NOT_FOUND")
            raise typer.Exit(code=NOT_FOUND_EXIT_CODE)
        formatter.render_record(record, stream=stream, columns=SHOW_COLUMNS)


def search_command(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="Registry category."),
    text: str = typer.Argument(..., help="Text to look for in names (case-insensitive)."),
    prefix: bool = typer.Option(False, "--prefix", help="Match names starting with TEXT."),
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Maximum number of results."),
    offset: int = typer.Option(0, "--offset", min=0, help="Number of results to skip."),
    database: str | None = typer.Option(None, "--database", "-d", help="DuckDB database file."),
) -> None:
    """Search imported records by name."""

    parsed_category = parse_category(category)
    formatter, stream, stack, _ = prepare_output(ctx)
    with stack:
        config = resolve_config(ctx, {"store": {"database": database}} if database else None)
        with _open_store(config) as store:
            rows = store.search_by_name(
                parsed_category,
                text,
                mode="prefix" if prefix else "substring",
                limit=limit,
                offset=offset,
            )
        formatter.render(rows, stream=stream, columns=SEARCH_COLUMNS)


def stats_command(
    ctx: typer.Context,
    database: str | None = typer.Option(None, "--database", "-d", help="DuckDB database file."),
) -> None:
    """Print row counts per category."""

    formatter, stream, stack, _ = prepare_output(ctx)
    with stack:
        config = resolve_config(ctx, {"store": {"database": database}} if database else None)
        with _open_store(config) as store:
            counts = store.stats()
        rows = [{"category": name, "rows": count} for name, count in counts.items()]
        formatter.render(rows, stream=stream, columns=["category", "rows"])


__all__ = ["register", "search_command", "show_command", "stats_command"]
