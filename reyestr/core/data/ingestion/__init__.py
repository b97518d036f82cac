"""Streaming ingestion of registry snapshot archives."""

from reyestr.core.data.ingestion.archive import RegistryArchive, resolve_archive_path
from reyestr.core.data.ingestion.batcher import Batcher
from reyestr.core.data.ingestion.importer import BatchOutcome, DatabaseImporter
from reyestr.core.data.ingestion.orchestrator import IngestionOrchestrator
from reyestr.core.data.ingestion.parser import iter_records, parse_stream
from reyestr.core.data.ingestion.validator import (
    REQUIRED_FIELDS,
    VALIDATORS,
    InvalidReason,
    ValidationResult,
    validate,
)

__all__ = [
    "BatchOutcome",
    "Batcher",
    "DatabaseImporter",
    "IngestionOrchestrator",
    "InvalidReason",
    "REQUIRED_FIELDS",
    "RegistryArchive",
    "VALIDATORS",
    "ValidationResult",
    "iter_records",
    "parse_stream",
    "resolve_archive_path",
    "validate",
]
