from reyestr.core.monitoring.metrics import IngestionMetrics

__all__ = ["IngestionMetrics"]
