"""DuckDB schema of the imported registry tables."""

from __future__ import annotations

from collections.abc import Sequence  # noqa: TC003
from dataclasses import dataclass

from duckdb import DuckDBPyConnection


@dataclass(frozen=True)
class ColumnDef:
    """Represents a DuckDB table column definition."""

    name: str
    data_type: str
    constraints: Sequence[str] = ()

    def render(self) -> str:
        parts = [self.name, self.data_type, *self.constraints]
        return " ".join(parts)


@dataclass(frozen=True)
class TableSchema:
    """Utility wrapper describing a DuckDB table schema."""

    name: str
    columns: Sequence[ColumnDef]
    primary_key: Sequence[str] = ()
    sequences: Sequence[str] = ()

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def create_ddl(self) -> str:
        column_defs: list[str] = [column.render() for column in self.columns]
        if self.primary_key:
            pk_cols = ", ".join(self.primary_key)
            column_defs.append(f"PRIMARY KEY ({pk_cols})")
        columns_sql = ",\n                ".join(column_defs)
        return f"""
            CREATE TABLE IF NOT EXISTS {self.name} (
                {columns_sql}
            )
            """.strip()

    def ensure(self, conn: DuckDBPyConnection) -> None:
        """Create the table (and its sequences) on the connection if missing."""

        for sequence in self.sequences:
            conn.execute(f"CREATE SEQUENCE IF NOT EXISTS {sequence}")
        conn.execute(self.create_ddl())


def registry_table(name: str) -> TableSchema:
    """Schema shared by the three category tables, keyed by (category, natural_key)."""

    sequence = f"{name}_id_seq"
    return TableSchema(
        name=name,
        columns=(
            ColumnDef("id", "BIGINT", (f"DEFAULT nextval('{sequence}')", "NOT NULL")),
            ColumnDef("category", "VARCHAR", ("NOT NULL",)),
            ColumnDef("natural_key", "VARCHAR", ("NOT NULL",)),
            ColumnDef("name", "VARCHAR", ("NOT NULL",)),
            ColumnDef("status", "VARCHAR"),
            ColumnDef("payload", "JSON"),
            ColumnDef("content_hash", "VARCHAR"),
            ColumnDef("first_imported_at", "TIMESTAMP", ("NOT NULL",)),
            ColumnDef("last_imported_at", "TIMESTAMP", ("NOT NULL",)),
        ),
        primary_key=("category", "natural_key"),
        sequences=(sequence,),
    )


__all__ = ["ColumnDef", "TableSchema", "registry_table"]
