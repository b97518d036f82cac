"""The ``ingest`` command: load a registry snapshot archive into the store."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import typer

from reyestr.core.data.ingestion import IngestionOrchestrator, resolve_archive_path
from reyestr.core.data.storage import RegistryStore
from reyestr.core.exceptions import ArchiveError, ConfigError, StoreError

from .constants import STORE_EXIT_CODE, SUMMARY_COLUMNS, VALIDATION_EXIT_CODE
from .utils import fail, parse_category, prepare_output, resolve_config


def register(app: typer.Typer) -> None:
    """Register the ingest command on the provided application."""

    app.command("ingest")(ingest_command)


def _overrides(database: str | None, batch_size: int | None, diff: bool) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if database is not None:
        overrides.setdefault("store", {})["database"] = database
    if batch_size is not None:
        overrides.setdefault("pipeline", {})["batch_size"] = batch_size
    if diff:
        overrides.setdefault("pipeline", {})["diff_mode"] = True
    return overrides


def ingest_command(
    ctx: typer.Context,
    archive: Path | None = typer.Argument(
        None,
        help="Snapshot zip; defaults to the newest *.zip in REYESTR_DATA_DIR.",
    ),
    database: str | None = typer.Option(None, "--database", "-d", help="DuckDB database file."),
    batch_size: int | None = typer.Option(None, "--batch-size", "-b", min=1, help="Records per transaction."),
    category: list[str] | None = typer.Option(
        None,
        "--category",
        help="Only ingest these categories (repeatable; legal_entities, sole_proprietors, public_associations or UO/FOP/FSU).",
    ),
    diff: bool = typer.Option(False, "--diff", help="Skip rewriting rows whose content did not change."),
) -> None:
    """Ingest a snapshot archive and print the per-category summary."""

    formatter, stream, stack, _ = prepare_output(ctx)
    with stack:
        categories = [parse_category(value, "--category") for value in category] if category else None
        config = resolve_config(ctx, _overrides(database, batch_size, diff))
        try:
            archive_path = resolve_archive_path(archive, config.pipeline.data_dir)
            specs = config.category_specs()
        except (ArchiveError, ConfigError) as error:
            fail(error, VALIDATION_EXIT_CODE)

        try:
            with RegistryStore.open(config.store, specs) as store:
                orchestrator = IngestionOrchestrator(store, config)
                try:
                    report = asyncio.run(orchestrator.run(archive_path, categories))
                except KeyboardInterrupt:
                    # the interrupted category is already marked failed
                    if orchestrator.last_report is None:
                        raise
                    report = orchestrator.last_report
        except ArchiveError as error:
            fail(error, VALIDATION_EXIT_CODE)
        except StoreError as error:
            fail(error, STORE_EXIT_CODE)

        formatter.render(report.as_rows(), stream=stream, columns=SUMMARY_COLUMNS)
    raise typer.Exit(code=report.exit_code)


__all__ = ["ingest_command", "register"]
