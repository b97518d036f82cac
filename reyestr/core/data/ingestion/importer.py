"""Idempotent, retried batch writes into the registry store."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from time import perf_counter

import duckdb

from reyestr.core.data.storage import RegistryStore, UpsertResult
from reyestr.core.exceptions import BatchImportError, ReyestrError, StoreTimeoutError, TransientStoreError
from reyestr.core.logging import get_logger
from reyestr.core.models import ImportBatch
from reyestr.core.patterns import ExponentialBackoffRetry, RetryConfig

logger = get_logger(__name__)

TRANSIENT_DUCKDB_ERRORS: tuple[type[Exception], ...] = (
    duckdb.IOException,
    duckdb.ConnectionException,
    duckdb.TransactionException,
    duckdb.InterruptException,
)


@dataclass(slots=True, frozen=True)
class BatchOutcome:
    """Result of one successfully applied batch."""

    imported: int
    inserted: int
    updated: int
    unchanged: int
    attempts: int
    duration_ms: float


class DatabaseImporter:
    """Applies each batch as one upsert transaction, retrying transient failures.

    The transaction runs in a worker thread. Each attempt is bounded by
    ``write_timeout``; on expiry the running statement is interrupted and the
    importer waits for the rollback before the next attempt starts, so two
    attempts of the same batch never overlap.
    """

    def __init__(
        self,
        store: RegistryStore,
        *,
        retry: RetryConfig | None = None,
        write_timeout: float = 30.0,
        diff_mode: bool = False,
    ) -> None:
        if write_timeout <= 0:
            raise ValueError("write_timeout must be positive")
        self.store = store
        self.retry_config = retry or RetryConfig()
        self.write_timeout = write_timeout
        self.diff_mode = diff_mode

    async def import_batch(self, batch: ImportBatch) -> BatchOutcome:
        """Upsert ``batch``.

        Raises:
            BatchImportError: The batch was rejected, either by a permanent
                error or after the retry budget ran out. Nothing of the batch
                is visible in the store in that case.
        """

        start = perf_counter()
        retry = ExponentialBackoffRetry(
            self.retry_config,
            on_retry=lambda attempt, exc, delay: self._log_retry(batch, attempt, exc, delay),
        )
        try:
            result = await retry.execute(self._attempt, batch)
        except Exception as exc:
            raise BatchImportError(
                f"batch {batch.sequence} of {batch.category.value} failed after "
                f"{retry.attempt_count} attempt(s): {exc}",
                sequence=batch.sequence,
                size=len(batch),
                attempts=retry.attempt_count,
                details={
                    "category": batch.category.value,
                    "cause": exc.error_code if isinstance(exc, ReyestrError) else type(exc).__name__,
                },
            ) from exc

        return BatchOutcome(
            imported=result.imported,
            inserted=result.inserted,
            updated=result.updated,
            unchanged=result.unchanged,
            attempts=retry.attempt_count,
            duration_ms=(perf_counter() - start) * 1000,
        )

    async def _attempt(self, batch: ImportBatch) -> UpsertResult:
        task = asyncio.create_task(asyncio.to_thread(self._write, batch))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.write_timeout)
        except TimeoutError:
            self.store.interrupt()
            await asyncio.wait({task})
            error = task.exception()
            if error is None:
                # committed before the interrupt landed
                return task.result()
            raise StoreTimeoutError(
                f"batch {batch.sequence} write exceeded {self.write_timeout}s",
                timeout=self.write_timeout,
            ) from error
        except asyncio.CancelledError:
            # the transaction finishes or rolls back before cancellation proceeds
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                logger.bind(category=batch.category.value).warning(
                    f"Batch {batch.sequence} rolled back during cancellation: {task.exception()}"
                )
            raise

    def _write(self, batch: ImportBatch) -> UpsertResult:
        try:
            return self.store.upsert_batch(batch.category, batch.entities, diff_mode=self.diff_mode)
        except TRANSIENT_DUCKDB_ERRORS as exc:
            raise TransientStoreError(
                f"transient store failure: {exc}",
                details={"sequence": batch.sequence, "duckdb_error": type(exc).__name__},
            ) from exc

    def _log_retry(self, batch: ImportBatch, attempt: int, exc: Exception, delay: float) -> None:
        error_code = exc.error_code if isinstance(exc, ReyestrError) else None
        logger.bind(category=batch.category.value, error_code=error_code).warning(
            f"Batch {batch.sequence} attempt {attempt}/{self.retry_config.max_attempts} failed: {exc}; "
            f"retrying in {delay:.2f}s"
        )


__all__ = ["BatchOutcome", "DatabaseImporter", "TRANSIENT_DUCKDB_ERRORS"]
