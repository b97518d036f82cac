"""Prometheus metrics for registry ingestion runs."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

_ALLOWED_SKIP_REASONS = {
    "missing_key",
    "missing_name",
    "malformed_field",
}


class IngestionMetrics:
    """Collects per-category ingestion counters on a private registry."""

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.records_parsed_total = Counter(
            "reyestr_records_parsed_total",
            "Records read from the XML stream.",
            ("category",),
            registry=self.registry,
        )
        self.records_imported_total = Counter(
            "reyestr_records_imported_total",
            "Records written to the store, inserts and updates alike.",
            ("category",),
            registry=self.registry,
        )
        self.records_skipped_total = Counter(
            "reyestr_records_skipped_total",
            "Records rejected by validation, grouped by reason.",
            ("category", "reason"),
            registry=self.registry,
        )
        self.batch_failures_total = Counter(
            "reyestr_batch_failures_total",
            "Batches rejected after exhausting their retries.",
            ("category",),
            registry=self.registry,
        )
        self.batch_write_seconds = Histogram(
            "reyestr_batch_write_seconds",
            "Latency of one batch upsert including retries.",
            ("category",),
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, float("inf")),
            registry=self.registry,
        )
        self.category_failed = Gauge(
            "reyestr_category_failed",
            "1 when the category's last run ended FAILED.",
            ("category",),
            registry=self.registry,
        )

    def record_parsed(self, category: str, count: int = 1) -> None:
        self.records_parsed_total.labels(category=category).inc(count)

    def record_skipped(self, category: str, reason: str) -> None:
        """Track a validation skip with a constrained reason label."""

        label = reason if reason in _ALLOWED_SKIP_REASONS else "__other__"
        self.records_skipped_total.labels(category=category, reason=label).inc()

    def observe_batch(self, category: str, latency_seconds: float, *, imported: int) -> None:
        self.batch_write_seconds.labels(category=category).observe(latency_seconds)
        self.records_imported_total.labels(category=category).inc(imported)

    def increment_batch_failure(self, category: str) -> None:
        self.batch_failures_total.labels(category=category).inc()

    def set_category_failed(self, category: str, failed: bool) -> None:
        self.category_failed.labels(category=category).set(1 if failed else 0)

    def sample(self, name: str, **labels: str) -> float:
        """Current value of one sample, 0.0 when it was never touched."""

        value = self.registry.get_sample_value(name, labels)
        return value or 0.0

    def render(self) -> bytes:
        """Render metrics in Prometheus exposition format."""

        return generate_latest(self.registry)


__all__ = ["IngestionMetrics"]
