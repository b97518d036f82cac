"""reyestr - streaming ingestion of business registry snapshots.

Loads the legal entity, sole proprietor and public association XML dumps of
a registry snapshot archive into DuckDB, idempotently and in bounded memory.
"""

from reyestr.core.config import ReyestrConfig, load_config
from reyestr.core.data.ingestion import IngestionOrchestrator
from reyestr.core.data.storage import RegistryStore
from reyestr.core.models import Category, CategoryState, RunReport

__version__ = "0.1.0"

__all__ = [
    "Category",
    "CategoryState",
    "IngestionOrchestrator",
    "RegistryStore",
    "ReyestrConfig",
    "RunReport",
    "__version__",
    "load_config",
]
