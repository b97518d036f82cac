"""Utility helpers for creating DuckDB connections for runs and tests."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import duckdb
from duckdb import DuckDBPyConnection

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from reyestr.core.config import StoreConfig


@dataclass(frozen=True)
class DuckDBFactoryConfig:
    """Configuration applied to DuckDB connections produced by the factory."""

    database: str | Path = ":memory:"
    read_only: bool = False
    pragmas: Mapping[str, object] = field(default_factory=dict)

    @classmethod
    def from_store_config(cls, config: StoreConfig) -> DuckDBFactoryConfig:
        pragmas = {"threads": config.threads} if config.threads else {}
        return cls(database=config.database, read_only=config.read_only, pragmas=pragmas)


class RegistryDuckDBFactory:
    """Factory that yields configured DuckDB connections."""

    def __init__(self, config: DuckDBFactoryConfig | None = None) -> None:
        self._config = config or DuckDBFactoryConfig()

    @property
    def config(self) -> DuckDBFactoryConfig:
        return self._config

    def create_connection(self) -> DuckDBPyConnection:
        """Create and return a configured DuckDB connection."""

        database = str(self._config.database)
        if database != ":memory:":
            path = Path(database).expanduser()
            if not self._config.read_only:
                path.parent.mkdir(parents=True, exist_ok=True)
            database = str(path)
        conn = duckdb.connect(database=database, read_only=self._config.read_only)
        self._apply_pragmas(conn)
        return conn

    @contextmanager
    def connection(self) -> Iterator[DuckDBPyConnection]:
        """Context manager that yields a configured DuckDB connection."""

        conn = self.create_connection()
        try:
            yield conn
        finally:
            conn.close()

    def _apply_pragmas(self, conn: DuckDBPyConnection) -> None:
        for setting, value in self._config.pragmas.items():
            conn.execute(f"SET {setting}=?", [value])


__all__ = ["DuckDBFactoryConfig", "RegistryDuckDBFactory"]
