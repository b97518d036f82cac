"""Exception handling module."""

from reyestr.core.exceptions.base import (
    ArchiveError,
    BatchImportError,
    CategoryAbortedError,
    ConfigError,
    InvalidStateTransitionError,
    MalformedXMLError,
    ReyestrError,
    StoreError,
    StoreTimeoutError,
    TransientStoreError,
)

__all__ = [
    "ReyestrError",
    "ConfigError",
    "ArchiveError",
    "MalformedXMLError",
    "StoreError",
    "TransientStoreError",
    "StoreTimeoutError",
    "BatchImportError",
    "CategoryAbortedError",
    "InvalidStateTransitionError",
]
