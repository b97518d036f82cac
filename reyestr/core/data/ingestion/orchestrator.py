"""Drives the per-category pipeline: archive, parser, validator, batcher, importer."""

from __future__ import annotations

import asyncio
import zipfile
import zlib
from collections.abc import Iterable
from datetime import date
from pathlib import Path

from reyestr.core.config import ReyestrConfig
from reyestr.core.data.ingestion.archive import RegistryArchive
from reyestr.core.data.ingestion.batcher import Batcher
from reyestr.core.data.ingestion.importer import DatabaseImporter
from reyestr.core.data.ingestion.parser import parse_stream
from reyestr.core.data.ingestion.validator import validate
from reyestr.core.data.storage import RegistryStore
from reyestr.core.exceptions import (
    ArchiveError,
    BatchImportError,
    CategoryAbortedError,
    MalformedXMLError,
    ReyestrError,
)
from reyestr.core.logging import get_logger, log_context
from reyestr.core.models import (
    Category,
    CategorySpec,
    CategoryState,
    ImportBatch,
    ImportRun,
    RawRecord,
    RunReport,
)
from reyestr.core.monitoring import IngestionMetrics
from reyestr.core.patterns import RetryConfig

logger = get_logger(__name__)

_STREAM_READ_ERRORS = (zipfile.BadZipFile, zlib.error, OSError)


class IngestionOrchestrator:
    """Runs the categories of one archive one after another.

    Every category gets a fresh parser, validator and batcher; only the
    store handle is shared. A category failure never stops the following
    categories, it only shows up in the report.
    """

    def __init__(
        self,
        store: RegistryStore,
        config: ReyestrConfig | None = None,
        *,
        metrics: IngestionMetrics | None = None,
        importer: DatabaseImporter | None = None,
        reference_date: date | None = None,
    ) -> None:
        self.store = store
        self.config = config or ReyestrConfig()
        self.metrics = metrics or IngestionMetrics()
        self.reference_date = reference_date
        self.last_report: RunReport | None = None
        self.specs = self.config.category_specs()
        pipeline = self.config.pipeline
        self.importer = importer or DatabaseImporter(
            store,
            retry=RetryConfig(
                max_attempts=pipeline.max_attempts,
                base_delay=pipeline.base_delay,
                max_delay=pipeline.max_delay,
            ),
            write_timeout=pipeline.write_timeout,
            diff_mode=pipeline.diff_mode,
        )

    def _select(self, categories: Iterable[str | Category] | None) -> list[Category]:
        if not categories:
            return list(self.specs)
        wanted = {Category.parse(category) for category in categories}
        return [category for category in self.specs if category in wanted]

    async def run(
        self,
        archive_path: str | Path,
        categories: Iterable[str | Category] | None = None,
    ) -> RunReport:
        """Ingest ``archive_path`` and return the per-category report.

        The report is also kept in ``last_report`` so a cancelled run can
        still be summarised.

        Raises:
            ArchiveError: The archive itself cannot be opened.
        """

        selected = self._select(categories)
        with RegistryArchive(archive_path) as archive, log_context(archive=str(archive.path)) as trace_id:
            report = RunReport(archive_path=str(archive.path), trace_id=trace_id)
            self.last_report = report
            logger.info(
                f"Ingestion run started for {archive.path.name} "
                f"({', '.join(category.value for category in selected)})"
            )
            for category in selected:
                run = ImportRun(category=category)
                report.runs[category] = run
                with log_context(trace_id=trace_id, category=category.value):
                    await self._run_category(archive, self.specs[category], run)

            logger.info(
                f"Ingestion run finished: {len(report.runs) - len(report.failed)} ok, {len(report.failed)} failed"
            )
        return report

    def _transition(self, run: ImportRun, target: CategoryState) -> None:
        previous = run.state
        run.transition(target)
        logger.debug(f"Category state {previous.value} -> {target.value}")

    def _abort(self, run: ImportRun, exc: ReyestrError) -> None:
        previous = run.state
        run.fail(exc.message)
        logger.debug(f"Category state {previous.value} -> {run.state.value}")
        self.metrics.set_category_failed(run.category.value, True)
        logger.bind(error_code=exc.error_code).error(f"Category {run.category.value} aborted: {exc.message}")

    async def _run_category(self, archive: RegistryArchive, spec: CategorySpec, run: ImportRun) -> None:
        member = archive.find_member(spec.member_name)
        if member is None:
            if spec.mandatory:
                self._abort(
                    run,
                    ArchiveError(
                        f"mandatory member {spec.member_name} is missing",
                        archive_path=str(archive.path),
                    ),
                )
            else:
                self._transition(run, CategoryState.SKIPPED)
                logger.warning(f"Member {spec.member_name} not in archive; skipping {spec.category.value}")
            return

        pipeline = self.config.pipeline
        consecutive_failures = 0

        async def flush(batch: ImportBatch) -> None:
            nonlocal consecutive_failures
            run.batches += 1
            try:
                outcome = await self.importer.import_batch(batch)
            except BatchImportError as exc:
                run.failed_batches += 1
                consecutive_failures += 1
                self.metrics.increment_batch_failure(spec.category.value)
                logger.bind(error_code=exc.error_code).error(
                    f"Batch {batch.sequence} ({len(batch)} records) failed after {exc.attempts} attempt(s)"
                )
                if consecutive_failures > pipeline.max_consecutive_failures:
                    raise CategoryAbortedError(
                        f"{consecutive_failures} consecutive batch failures",
                        category=spec.category.value,
                    ) from exc
                return

            consecutive_failures = 0
            run.imported += outcome.imported
            run.inserted += outcome.inserted
            run.updated += outcome.updated
            run.unchanged += outcome.unchanged
            self.metrics.observe_batch(
                spec.category.value, outcome.duration_ms / 1000, imported=outcome.imported
            )

        batcher = Batcher(spec.category, pipeline.batch_size, flush)

        async def handle(record: RawRecord) -> None:
            run.parsed += 1
            self.metrics.record_parsed(spec.category.value)
            result = validate(
                record,
                spec.category,
                key_field=spec.key_field,
                reference_date=self.reference_date,
            )
            if result.warnings:
                run.warnings += len(result.warnings)
                logger.debug(f"Record {record.index}: {'; '.join(result.warnings)}")
            if not result.ok:
                assert result.reason is not None
                run.skipped_invalid += 1
                run.skip_reasons[result.reason.value] += 1
                self.metrics.record_skipped(spec.category.value, result.reason.value)
                logger.debug(f"Record {record.index} skipped ({result.reason.value}): {result.detail}")
                return
            await batcher.add(result.entity)

        self._transition(run, CategoryState.STREAMING)
        try:
            with archive.open_member(member) as stream:
                await parse_stream(
                    stream,
                    spec,
                    handle,
                    chunk_size=pipeline.chunk_size,
                    max_depth=pipeline.max_depth,
                    encoding=pipeline.encoding,
                )
            self._transition(run, CategoryState.FLUSHING_FINAL_BATCH)
            await batcher.close()
        except (MalformedXMLError, CategoryAbortedError, ArchiveError) as exc:
            self._abort(run, exc)
            return
        except _STREAM_READ_ERRORS as exc:
            self._abort(run, ArchiveError(f"cannot read {member}: {exc}", archive_path=str(archive.path)))
            return
        except asyncio.CancelledError:
            self._abort(run, CategoryAbortedError("run cancelled", category=spec.category.value))
            raise
        except Exception as exc:
            self._abort(run, CategoryAbortedError(f"unexpected error: {exc}", category=spec.category.value))
            raise

        self._transition(run, CategoryState.DONE)
        self.metrics.set_category_failed(spec.category.value, False)
        logger.info(
            f"Category {spec.category.value} done: parsed={run.parsed} imported={run.imported} "
            f"skipped={run.skipped_invalid} failed_batches={run.failed_batches} "
            f"in {run.elapsed_seconds:.1f}s"
        )


__all__ = ["IngestionOrchestrator"]
