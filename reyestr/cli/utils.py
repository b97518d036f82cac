"""Utility helpers shared across CLI commands."""

from __future__ import annotations

import json
import sys
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, NoReturn, Sequence, TextIO

import typer

from reyestr.core.config import ReyestrConfig, load_config
from reyestr.core.exceptions import ConfigError, ReyestrError
from reyestr.core.logging import configure_logging
from reyestr.core.models import Category

from .constants import VALIDATION_EXIT_CODE
from .formatters import OutputFormatter, create_formatter


@dataclass(slots=True)
class CLIOptions:
    """Resolved options derived from the Typer context."""

    format: str = "table"
    output_path: Path | None = None
    no_color: bool = False
    log_level: str | None = None
    config_path: Path | None = None


def get_cli_options(ctx: typer.Context) -> CLIOptions:
    """Extract :class:`CLIOptions` from the Typer context object."""

    ctx.ensure_object(dict)
    data = ctx.obj or {}
    return CLIOptions(
        format=str(data.get("format", "table")),
        output_path=data.get("output_path"),
        no_color=bool(data.get("no_color", False)),
        log_level=data.get("log_level"),
        config_path=data.get("config_path"),
    )


def prepare_output(ctx: typer.Context) -> tuple[OutputFormatter, TextIO, ExitStack, CLIOptions]:
    """Resolve formatter and writable stream for the current command."""

    options = get_cli_options(ctx)
    try:
        formatter = create_formatter(options.format, no_color=options.no_color)
    except ValueError as exc:  # pragma: no cover - validated at callback, safeguard for manual use
        emit_error(str(exc), "INVALID_FORMAT")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc

    stack = ExitStack()
    stream: TextIO
    if options.output_path is not None:
        try:
            stream = stack.enter_context(open(options.output_path, "w", encoding="utf-8"))
        except OSError as exc:
            stack.close()
            emit_error(f"Unable to open '{options.output_path}': {exc}", "OUTPUT_WRITE_ERROR")
            raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    else:
        stream = sys.stdout

    return formatter, stream, stack, options


def resolve_config(ctx: typer.Context, overrides: dict[str, Any] | None = None) -> ReyestrConfig:
    """Load the effective config for a command and apply its logging section.

    Precedence is defaults, then the TOML file, then ``REYESTR_*`` variables,
    then ``overrides`` built from command options. ``--log-level`` wins over
    every configured level.
    """

    options = get_cli_options(ctx)
    try:
        config = load_config(options.config_path, overrides)
        level = options.log_level or config.logging.level
        configure_logging(
            level,
            file_output=config.logging.file is not None,
            file_path=config.logging.file,
        )
    except ConfigError as exc:
        fail(exc, VALIDATION_EXIT_CODE)
    except ValueError as exc:
        emit_error(str(exc), "CONFIG_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    return config


def parse_category(value: str, param_hint: str = "CATEGORY") -> Category:
    try:
        return Category.parse(value)
    except ValueError as exc:
        allowed = ", ".join(category.value for category in Category)
        raise typer.BadParameter(f"Unsupported category '{value}'. Allowed values: {allowed}", param_hint=param_hint) from exc


def emit_error(message: str, code: str, *, details: Mapping[str, object] | None = None) -> None:
    """Print a structured error payload to stderr."""

    payload: dict[str, object] = {"code": code, "message": message}
    if details:
        payload["details"] = _sanitize_details(details)
    typer.echo(json.dumps(payload, ensure_ascii=False, default=str), err=True)


def fail(error: ReyestrError, exit_code: int) -> NoReturn:
    """Report ``error`` on stderr and leave with ``exit_code``."""

    emit_error(error.message, error.error_code, details=error.details)
    raise typer.Exit(code=exit_code) from error


def _sanitize_details(details: Mapping[str, object]) -> Mapping[str, object]:
    sanitized: dict[str, object] = {}
    for key, value in details.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            sanitized[key] = value
        elif isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
            sanitized[key] = [str(item) for item in value]
        else:
            sanitized[key] = str(value)
    return sanitized


__all__ = [
    "CLIOptions",
    "emit_error",
    "fail",
    "get_cli_options",
    "parse_category",
    "prepare_output",
    "resolve_config",
]
