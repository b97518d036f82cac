"""Rendering of command results as rich tables or JSON Lines."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Sequence, TextIO

from rich.box import SIMPLE
from rich.console import Console
from rich.table import Table

Row = Mapping[str, object]


def _json_default(value: object) -> str:
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return str(value)


class OutputFormatter:
    """Base class of the ``--format`` choices.

    Every command passes the columns it wants, in order; values outside
    them are never printed.
    """

    name: str

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str]) -> None:
        raise NotImplementedError

    def render_record(self, row: Row, *, stream: TextIO, columns: Sequence[str]) -> None:
        """Render a single record; defaults to a one-row listing."""

        self.render([row], stream=stream, columns=columns)


@dataclass(slots=True)
class TableFormatter(OutputFormatter):
    """Rich tables for terminals; a single record is shown as field/value pairs."""

    name: str = "table"
    no_color: bool = False
    max_cell_width: int = 80

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str]) -> None:
        console = self._console(stream)
        if not rows:
            console.print("No records.")
            return

        table = Table(box=SIMPLE)
        for column in columns:
            table.add_column(column, header_style=self._header_style, overflow="fold")
        for row in rows:
            table.add_row(*(self._cell(row.get(column)) for column in columns))
        console.print(table)

    def render_record(self, row: Row, *, stream: TextIO, columns: Sequence[str]) -> None:
        table = Table(box=SIMPLE, show_header=False)
        table.add_column("field", style=self._header_style)
        table.add_column("value", overflow="fold")
        for column in columns:
            table.add_row(column, self._cell(row.get(column)))
        self._console(stream).print(table)

    @property
    def _header_style(self) -> str:
        return "" if self.no_color else "bold"

    def _console(self, stream: TextIO) -> Console:
        return Console(file=stream, color_system=None if self.no_color else "auto", no_color=self.no_color)

    def _cell(self, value: object) -> str:
        if value is None or value == "":
            return "-"
        if isinstance(value, datetime):
            text = value.isoformat(sep=" ", timespec="seconds")
        elif isinstance(value, (dict, list)):
            text = json.dumps(value, ensure_ascii=False, default=_json_default)
        else:
            text = str(value)
        if len(text) > self.max_cell_width:
            return text[: self.max_cell_width - 1] + "…"
        return text


@dataclass(slots=True)
class JSONLFormatter(OutputFormatter):
    """One JSON object per row, restricted to the requested columns."""

    name: str = "jsonl"

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str]) -> None:
        for row in rows:
            payload = {column: row.get(column) for column in columns}
            stream.write(json.dumps(payload, ensure_ascii=False, default=_json_default))
            stream.write("\n")
        stream.flush()


FORMATS = ("table", "jsonl")


def create_formatter(name: str, *, no_color: bool = False) -> OutputFormatter:
    """Instantiate a formatter by name."""

    normalized = name.strip().lower()
    if normalized == "table":
        return TableFormatter(no_color=no_color)
    if normalized == "jsonl":
        return JSONLFormatter()
    raise ValueError(f"Unsupported format '{name}'. Available formats: {', '.join(FORMATS)}.")


__all__ = ["FORMATS", "JSONLFormatter", "OutputFormatter", "TableFormatter", "create_formatter"]
