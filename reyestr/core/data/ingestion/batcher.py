"""Fixed-size batching of validated entities."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from reyestr.core.models import Category, ImportBatch, ParsedEntity

FlushCallback = Callable[[ImportBatch], Awaitable[Any]]


class Batcher:
    """Accumulates entities of one category and hands out full windows.

    ``add`` awaits ``flush`` whenever the window reaches ``batch_size``, so
    the producer is paused until the batch has been written. ``close``
    flushes whatever is left exactly once.
    """

    def __init__(self, category: Category, batch_size: int, flush: FlushCallback) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.category = category
        self.batch_size = batch_size
        self._flush = flush
        self._pending: list[ParsedEntity] = []
        self._sequence = 0
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def flushed_batches(self) -> int:
        return self._sequence

    @property
    def closed(self) -> bool:
        return self._closed

    async def add(self, entity: ParsedEntity) -> None:
        if self._closed:
            raise RuntimeError(f"batcher for {self.category.value} is closed")
        if entity.category is not self.category:
            raise ValueError(
                f"cannot batch {entity.category.value} entity into {self.category.value} batches"
            )
        self._pending.append(entity)
        if len(self._pending) >= self.batch_size:
            await self._emit()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._pending:
            await self._emit()

    async def _emit(self) -> None:
        batch = ImportBatch(
            category=self.category,
            sequence=self._sequence,
            entities=tuple(self._pending),
        )
        self._pending = []
        self._sequence += 1
        await self._flush(batch)


__all__ = ["Batcher", "FlushCallback"]
