"""Core exception hierarchy for registry ingestion."""

from typing import Any


class ReyestrError(Exception):
    """Base class for all reyestr errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        """Initialise the error.

        Args:
            message: Human readable message
            error_code: Stable machine readable code
            details: Extra structured context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ConfigError(ReyestrError):
    """Invalid configuration values."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, "CONFIG_ERROR", details)


class ArchiveError(ReyestrError):
    """The registry archive is missing, unreadable or not a zip file."""

    def __init__(
        self,
        message: str,
        archive_path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if archive_path is not None:
            super_details["archive_path"] = archive_path
        super().__init__(message, "ARCHIVE_ERROR", super_details)
        self.archive_path = archive_path


class MalformedXMLError(ReyestrError):
    """Tag-structure level XML error; fatal for one category stream."""

    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if line is not None:
            super_details["line"] = line
        if column is not None:
            super_details["column"] = column
        super().__init__(message, "MALFORMED_XML", super_details)
        self.line = line
        self.column = column


class StoreError(ReyestrError):
    """Storage level failure."""

    def __init__(
        self,
        message: str,
        error_code: str = "STORE_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)


class TransientStoreError(StoreError):
    """Storage failure worth retrying (connection loss, conflict, timeout)."""

    def __init__(
        self,
        message: str,
        error_code: str = "STORE_TRANSIENT",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)


class StoreTimeoutError(TransientStoreError):
    """A write attempt exceeded its time budget."""

    def __init__(self, message: str, timeout: float, details: dict[str, Any] | None = None):
        super_details = details or {}
        super_details["timeout"] = timeout
        super().__init__(message, "STORE_TIMEOUT", super_details)
        self.timeout = timeout


class BatchImportError(ReyestrError):
    """A batch could not be applied after exhausting its retries."""

    def __init__(
        self,
        message: str,
        sequence: int,
        size: int,
        attempts: int,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details.update({"sequence": sequence, "size": size, "attempts": attempts})
        super().__init__(message, "BATCH_IMPORT_FAILED", super_details)
        self.sequence = sequence
        self.size = size
        self.attempts = attempts


class CategoryAbortedError(ReyestrError):
    """A category run was aborted and marked FAILED."""

    def __init__(self, message: str, category: str, details: dict[str, Any] | None = None):
        super_details = details or {}
        super_details["category"] = category
        super().__init__(message, "CATEGORY_ABORTED", super_details)
        self.category = category


class InvalidStateTransitionError(ReyestrError):
    """An ImportRun was moved along an edge its state machine does not have."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"illegal transition {current} -> {target}",
            "INVALID_STATE_TRANSITION",
            {"current": current, "target": target},
        )
        self.current = current
        self.target = target
