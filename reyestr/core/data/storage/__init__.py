"""DuckDB storage for imported registry records."""

from reyestr.core.data.storage.duckdb_factory import DuckDBFactoryConfig, RegistryDuckDBFactory
from reyestr.core.data.storage.schema import ColumnDef, TableSchema, registry_table
from reyestr.core.data.storage.store import SEARCH_MODES, RegistryStore, UpsertResult

__all__ = [
    "ColumnDef",
    "DuckDBFactoryConfig",
    "RegistryDuckDBFactory",
    "RegistryStore",
    "SEARCH_MODES",
    "TableSchema",
    "UpsertResult",
    "registry_table",
]
