"""Observability layer - logging and metrics."""

from hubrelay.observability.logging import setup_logging
from hubrelay.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
