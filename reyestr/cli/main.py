"""Main entry point for the reyestr command line interface."""

from __future__ import annotations

from pathlib import Path

import typer

from .formatters import FORMATS, create_formatter
from .ingest import register as register_ingest_commands
from .query import register as register_query_commands


def create_app() -> typer.Typer:
    """Create a Typer application instance for reyestr."""

    app = typer.Typer(add_completion=False, help="Business registry snapshot ingestion")

    @app.callback()
    def main(
        ctx: typer.Context,
        format: str = typer.Option(
            "table",
            "--format",
            "-f",
            help=f"Output format ({' or '.join(FORMATS)}).",
            show_default=True,
        ),
        output: Path | None = typer.Option(
            None,
            "--output",
            "-o",
            help="Write output to a file instead of stdout.",
        ),
        log_level: str | None = typer.Option(
            None,
            "--log-level",
            help="Log level; overrides the configured one.",
        ),
        no_color: bool = typer.Option(
            False,
            "--no-color",
            help="Disable colorized output for table format.",
        ),
        config: Path | None = typer.Option(
            None,
            "--config",
            "-c",
            help="TOML config file (default ~/.reyestr/config.toml).",
            envvar="REYESTR_CONFIG",
        ),
    ) -> None:
        ctx.ensure_object(dict)
        normalized_format = format.strip().lower()
        try:
            # Validate formatter eagerly for immediate feedback on invalid options
            create_formatter(normalized_format, no_color=no_color)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--format") from exc

        ctx.obj.update(
            {
                "format": normalized_format,
                "output_path": output,
                "log_level": log_level.upper() if log_level else None,
                "no_color": no_color,
                "config_path": config,
            }
        )

    register_ingest_commands(app)
    register_query_commands(app)
    return app


app = create_app()
