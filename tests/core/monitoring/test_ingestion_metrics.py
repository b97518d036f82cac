"""Tests for the ingestion Prometheus metrics."""

from prometheus_client import CollectorRegistry

from reyestr.core.monitoring import IngestionMetrics


def test_counters_are_labelled_by_category() -> None:
    registry = CollectorRegistry()
    metrics = IngestionMetrics(registry=registry)

    metrics.record_parsed("legal_entities")
    metrics.record_parsed("legal_entities", count=4)
    metrics.observe_batch("legal_entities", 0.2, imported=5)
    metrics.observe_batch("legal_entities", 0.3, imported=2)

    assert registry.get_sample_value("reyestr_records_parsed_total", {"category": "legal_entities"}) == 5.0
    assert registry.get_sample_value("reyestr_records_imported_total", {"category": "legal_entities"}) == 7.0
    assert registry.get_sample_value("reyestr_batch_write_seconds_count", {"category": "legal_entities"}) == 2.0
    assert metrics.sample("reyestr_records_parsed_total", category="sole_proprietors") == 0.0


def test_skip_reasons_are_constrained() -> None:
    metrics = IngestionMetrics(registry=CollectorRegistry())

    metrics.record_skipped("sole_proprietors", "missing_key")
    metrics.record_skipped("sole_proprietors", "something new")

    assert metrics.sample("reyestr_records_skipped_total", category="sole_proprietors", reason="missing_key") == 1.0
    assert metrics.sample("reyestr_records_skipped_total", category="sole_proprietors", reason="__other__") == 1.0


def test_failures_and_failed_gauge() -> None:
    metrics = IngestionMetrics(registry=CollectorRegistry())

    metrics.increment_batch_failure("public_associations")
    metrics.set_category_failed("public_associations", True)
    assert metrics.sample("reyestr_category_failed", category="public_associations") == 1.0

    metrics.set_category_failed("public_associations", False)

    assert metrics.sample("reyestr_category_failed", category="public_associations") == 0.0
    assert metrics.sample("reyestr_batch_failures_total", category="public_associations") == 1.0
    assert b"reyestr_batch_failures_total" in metrics.render()
