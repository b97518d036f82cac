"""Per-category run state and the end-of-run report."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from reyestr.core.exceptions import InvalidStateTransitionError
from reyestr.core.models.categories import Category


class CategoryState(str, Enum):
    """Lifecycle of one category within a run."""

    NOT_STARTED = "not_started"
    STREAMING = "streaming"
    FLUSHING_FINAL_BATCH = "flushing_final_batch"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES

    def can_transition_to(self, target: CategoryState) -> bool:
        return target in _TRANSITIONS[self]


_TERMINAL_STATES = frozenset({CategoryState.DONE, CategoryState.FAILED, CategoryState.SKIPPED})

_TRANSITIONS: dict[CategoryState, frozenset[CategoryState]] = {
    CategoryState.NOT_STARTED: frozenset(
        {CategoryState.STREAMING, CategoryState.SKIPPED, CategoryState.FAILED}
    ),
    CategoryState.STREAMING: frozenset({CategoryState.FLUSHING_FINAL_BATCH, CategoryState.FAILED}),
    CategoryState.FLUSHING_FINAL_BATCH: frozenset({CategoryState.DONE, CategoryState.FAILED}),
    CategoryState.DONE: frozenset(),
    CategoryState.FAILED: frozenset(),
    CategoryState.SKIPPED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ImportRun:
    """Mutable counters for one category in one execution."""

    category: Category
    state: CategoryState = CategoryState.NOT_STARTED
    parsed: int = 0
    imported: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped_invalid: int = 0
    skip_reasons: Counter[str] = field(default_factory=Counter)
    warnings: int = 0
    failed_batches: int = 0
    batches: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error: str | None = None

    def transition(self, target: CategoryState) -> None:
        if not self.state.can_transition_to(target):
            raise InvalidStateTransitionError(self.state.value, target.value)
        if self.state is CategoryState.NOT_STARTED:
            self.started_at = _utcnow()
        self.state = target
        if target.is_terminal:
            self.finished_at = _utcnow()

    def fail(self, error: str) -> None:
        self.error = error
        self.transition(CategoryState.FAILED)

    @property
    def elapsed_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at or _utcnow()
        return (end - self.started_at).total_seconds()

    def as_row(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "state": self.state.value,
            "parsed": self.parsed,
            "imported": self.imported,
            "inserted": self.inserted,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "skipped_invalid": self.skipped_invalid,
            "failed_batches": self.failed_batches,
            "elapsed_s": round(self.elapsed_seconds, 3),
            "error": self.error or "",
        }


@dataclass
class RunReport:
    """Outcome of one ingestion run across categories."""

    archive_path: str
    trace_id: str
    runs: dict[Category, ImportRun] = field(default_factory=dict)

    @property
    def failed(self) -> list[ImportRun]:
        return [run for run in self.runs.values() if run.state is CategoryState.FAILED]

    @property
    def succeeded(self) -> bool:
        return not self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def as_rows(self) -> list[dict[str, Any]]:
        return [run.as_row() for run in self.runs.values()]


__all__ = ["CategoryState", "ImportRun", "RunReport"]
