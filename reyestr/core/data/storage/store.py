"""DuckDB backed registry store: idempotent batch upserts and read queries."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import duckdb
from duckdb import DuckDBPyConnection

from reyestr.core.config import StoreConfig
from reyestr.core.data.storage.duckdb_factory import DuckDBFactoryConfig, RegistryDuckDBFactory
from reyestr.core.data.storage.schema import TableSchema, registry_table
from reyestr.core.exceptions import StoreError
from reyestr.core.logging import get_logger
from reyestr.core.models import Category, CategorySpec, ParsedEntity, default_specs

logger = get_logger(__name__)

SEARCH_MODES = ("substring", "prefix")
_LIKE_ESCAPE = "!"

_READ_COLUMNS = (
    "id",
    "category",
    "natural_key",
    "name",
    "status",
    "payload",
    "content_hash",
    "first_imported_at",
    "last_imported_at",
)


@dataclass(frozen=True)
class UpsertResult:
    """Row level outcome of one batch transaction."""

    inserted: int = 0
    updated: int = 0
    unchanged: int = 0

    @property
    def imported(self) -> int:
        return self.inserted + self.updated

    @property
    def total(self) -> int:
        return self.inserted + self.updated + self.unchanged


def _escape_like(text: str) -> str:
    return (
        text.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", f"{_LIKE_ESCAPE}%")
        .replace("_", f"{_LIKE_ESCAPE}_")
    )


def _utcnow() -> datetime:
    # TIMESTAMP columns hold naive UTC
    return datetime.now(UTC).replace(tzinfo=None)


class RegistryStore:
    """Explicit store handle shared by all categories of a run.

    Writes go through :meth:`upsert_batch`, which applies one batch in one
    transaction. The read helpers are the interface offered to downstream
    services.
    """

    def __init__(
        self,
        conn: DuckDBPyConnection,
        specs: dict[Category, CategorySpec] | None = None,
    ) -> None:
        self._conn = conn
        specs = specs or default_specs()
        self._tables: dict[Category, TableSchema] = {
            category: registry_table(spec.table_name) for category, spec in specs.items()
        }
        self._closed = False

    @classmethod
    def open(
        cls,
        config: StoreConfig | None = None,
        specs: dict[Category, CategorySpec] | None = None,
    ) -> RegistryStore:
        factory_config = (
            DuckDBFactoryConfig.from_store_config(config) if config is not None else DuckDBFactoryConfig()
        )
        factory = RegistryDuckDBFactory(factory_config)
        try:
            conn = factory.create_connection()
        except duckdb.Error as exc:
            raise StoreError(
                f"cannot open database {factory_config.database}: {exc}",
                details={"database": str(factory_config.database)},
            ) from exc
        store = cls(conn, specs)
        if not factory_config.read_only:
            store.ensure_schema()
        return store

    @property
    def connection(self) -> DuckDBPyConnection:
        return self._conn

    def __enter__(self) -> RegistryStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if not self._closed:
            self._conn.close()
            self._closed = True

    def ensure_schema(self) -> None:
        for table in self._tables.values():
            table.ensure(self._conn)

    def table_for(self, category: Category) -> TableSchema:
        try:
            return self._tables[category]
        except KeyError as exc:
            raise StoreError(f"no table configured for category {category.value}") from exc

    def interrupt(self) -> None:
        """Abort the statement currently running on the connection."""

        self._conn.interrupt()

    # -- writes -----------------------------------------------------------

    def upsert_batch(
        self,
        category: Category,
        entities: Sequence[ParsedEntity],
        *,
        diff_mode: bool = False,
    ) -> UpsertResult:
        """Insert or overwrite every entity keyed by (category, natural_key).

        The whole batch runs in one transaction; any exception rolls it back
        and is re-raised, so no partial batch is ever visible. ``id`` and
        ``first_imported_at`` of existing rows are left untouched. With
        ``diff_mode`` rows whose content hash did not change are skipped.
        """

        table = self.table_for(category)
        for entity in entities:
            if entity.category is not category:
                raise ValueError(
                    f"entity {entity.natural_key} is {entity.category.value}, expected {category.value}"
                )
        if not entities:
            return UpsertResult()

        now = _utcnow()
        inserted = updated = unchanged = 0
        self._conn.execute("BEGIN TRANSACTION")
        try:
            # last occurrence of a repeated key wins
            latest = {entity.natural_key: entity for entity in entities}
            known = self._existing_hashes(table, category, list(latest))
            rows: list[tuple[ParsedEntity, str]] = []
            for key, entity in latest.items():
                digest = entity.content_hash()
                if key in known:
                    if diff_mode and known[key] == digest:
                        unchanged += 1
                        continue
                    updated += 1
                else:
                    inserted += 1
                rows.append((entity, digest))
            if rows:
                self._write_rows(table, category, rows, now)
            self._conn.execute("COMMIT")
        except BaseException:
            self._rollback()
            raise
        return UpsertResult(inserted=inserted, updated=updated, unchanged=unchanged)

    def _existing_hashes(self, table: TableSchema, category: Category, keys: list[str]) -> dict[str, str | None]:
        rows = self._conn.execute(
            f"SELECT natural_key, content_hash FROM {table.name} "
            "WHERE category = ? AND list_contains(?, natural_key)",
            [category.value, keys],
        ).fetchall()
        return {key: digest for key, digest in rows}

    def _write_rows(
        self,
        table: TableSchema,
        category: Category,
        rows: list[tuple[ParsedEntity, str]],
        now: datetime,
    ) -> None:
        """Upsert all rows with one set-based statement."""

        self._conn.execute(
            f"""
            INSERT INTO {table.name}
                (category, natural_key, name, status, payload, content_hash,
                 first_imported_at, last_imported_at)
            SELECT ?, natural_key, name, status, CAST(payload AS JSON), content_hash, ?, ?
            FROM (
                SELECT
                    unnest(CAST(? AS VARCHAR[])) AS natural_key,
                    unnest(CAST(? AS VARCHAR[])) AS name,
                    unnest(CAST(? AS VARCHAR[])) AS status,
                    unnest(CAST(? AS VARCHAR[])) AS payload,
                    unnest(CAST(? AS VARCHAR[])) AS content_hash
            )
            ON CONFLICT (category, natural_key) DO UPDATE SET
                name = excluded.name,
                status = excluded.status,
                payload = excluded.payload,
                content_hash = excluded.content_hash,
                last_imported_at = excluded.last_imported_at
            """,
            [
                category.value,
                now,
                now,
                [entity.natural_key for entity, _ in rows],
                [entity.name for entity, _ in rows],
                [entity.status for entity, _ in rows],
                [json.dumps(entity.payload(), ensure_ascii=False, sort_keys=True) for entity, _ in rows],
                [digest for _, digest in rows],
            ],
        )

    def _rollback(self) -> None:
        try:
            self._conn.execute("ROLLBACK")
        except duckdb.Error as exc:
            # the failed statement may already have aborted the transaction
            logger.bind(error_code="STORE_ERROR").warning(f"Rollback reported an error: {exc}")

    # -- reads ------------------------------------------------------------

    def get(self, category: Category, natural_key: str) -> dict[str, Any] | None:
        table = self.table_for(category)
        rows = self._select(
            f"SELECT {', '.join(_READ_COLUMNS)} FROM {table.name} WHERE category = ? AND natural_key = ?",
            [category.value, natural_key],
        )
        return rows[0] if rows else None

    def search_by_name(
        self,
        category: Category,
        text: str,
        *,
        mode: str = "substring",
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Case-insensitive name lookup, ordered by name then natural key."""

        if mode not in SEARCH_MODES:
            raise ValueError(f"unknown search mode '{mode}', expected one of {SEARCH_MODES}")
        if limit < 1 or offset < 0:
            raise ValueError("limit must be positive and offset non-negative")

        table = self.table_for(category)
        escaped = _escape_like(text.strip().lower())
        pattern = f"{escaped}%" if mode == "prefix" else f"%{escaped}%"
        return self._select(
            f"SELECT {', '.join(_READ_COLUMNS)} FROM {table.name} "
            f"WHERE category = ? AND lower(name) LIKE ? ESCAPE '{_LIKE_ESCAPE}' "
            "ORDER BY name, natural_key LIMIT ? OFFSET ?",
            [category.value, pattern, limit, offset],
        )

    def count(self, category: Category, status: str | None = None) -> int:
        table = self.table_for(category)
        sql = f"SELECT count(*) FROM {table.name} WHERE category = ?"
        params: list[Any] = [category.value]
        if status is not None:
            sql += " AND status = ?"
            params.append(status)
        row = self._conn.execute(sql, params).fetchone()
        return int(row[0]) if row else 0

    def stats(self) -> dict[str, int]:
        return {category.value: self.count(category) for category in self._tables}

    def _select(self, sql: str, params: list[Any]) -> list[dict[str, Any]]:
        cursor = self._conn.execute(sql, params)
        columns = [description[0] for description in cursor.description]
        results = []
        for row in cursor.fetchall():
            record = dict(zip(columns, row, strict=True))
            if isinstance(record.get("payload"), str):
                record["payload"] = json.loads(record["payload"])
            results.append(record)
        return results


__all__ = ["RegistryStore", "SEARCH_MODES", "UpsertResult"]
