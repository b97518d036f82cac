"""Tests for the reyestr error hierarchy."""

from __future__ import annotations

import pytest

from reyestr.core.exceptions import (
    ArchiveError,
    BatchImportError,
    CategoryAbortedError,
    ConfigError,
    MalformedXMLError,
    ReyestrError,
    StoreError,
    StoreTimeoutError,
    TransientStoreError,
)


@pytest.mark.parametrize(
    "error, code",
    [
        (ConfigError("bad"), "CONFIG_ERROR"),
        (ArchiveError("gone", archive_path="a.zip"), "ARCHIVE_ERROR"),
        (MalformedXMLError("broken", line=3, column=9), "MALFORMED_XML"),
        (StoreError("down"), "STORE_ERROR"),
        (TransientStoreError("busy"), "STORE_TRANSIENT"),
        (StoreTimeoutError("slow", timeout=2.0), "STORE_TIMEOUT"),
        (BatchImportError("lost", sequence=1, size=500, attempts=3), "BATCH_IMPORT_FAILED"),
        (CategoryAbortedError("stop", category="legal_entities"), "CATEGORY_ABORTED"),
    ],
)
def test_error_codes(error: ReyestrError, code: str) -> None:
    assert isinstance(error, ReyestrError)
    assert error.error_code == code
    assert str(error) == error.message


def test_structured_details() -> None:
    assert MalformedXMLError("broken", line=3, column=9).details == {"line": 3, "column": 9}
    assert ArchiveError("gone", archive_path="a.zip").details == {"archive_path": "a.zip"}
    assert BatchImportError("lost", sequence=1, size=500, attempts=3).details == {
        "sequence": 1,
        "size": 500,
        "attempts": 3,
    }


def test_timeouts_are_transient_store_errors() -> None:
    assert issubclass(StoreTimeoutError, TransientStoreError)
    assert issubclass(TransientStoreError, StoreError)
