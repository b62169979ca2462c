"""
Prometheus metrics for the relay pipeline.

Defines and exposes metrics for:
- Webhook deliveries and enqueue results
- Job outcomes and per-stage latency
- Notification sends
- Subscription handshakes
- Queue reclaim and dead-lettering

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    start_http_server,
)

from hubrelay.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class MetricsCollector:
    """
    Prometheus metrics collector for hub-relay.

    Usage:
        metrics = get_metrics()
        metrics.jobs_processed.labels(outcome="accepted").inc()
    """

    def __init__(self):
        self.webhook_deliveries = Counter(
            "hub_relay_webhook_deliveries_total",
            "Inbound hub deliveries by result",
            ["result"],  # accepted, rejected, unparsable
        )

        self.jobs_enqueued = Counter(
            "hub_relay_jobs_enqueued_total",
            "Enqueue attempts by result",
            ["result"],  # enqueued, duplicate, skipped, error
        )

        self.jobs_processed = Counter(
            "hub_relay_jobs_processed_total",
            "Jobs processed by outcome",
            ["outcome"],  # accepted, skip:duplicate, skip:filtered, error
        )

        self.stage_latency = Histogram(
            "hub_relay_stage_latency_seconds",
            "Time spent in a pipeline stage",
            ["stage"],
            buckets=LATENCY_BUCKETS,
        )

        self.dispatch_sends = Counter(
            "hub_relay_dispatch_sends_total",
            "Per-target notification sends",
            ["result"],  # ok, failed
        )

        self.subscription_attempts = Counter(
            "hub_relay_subscription_attempts_total",
            "Hub subscribe handshakes by result",
            ["result"],  # active, retry, failed
        )

        self.pending_reclaimed = Counter(
            "hub_relay_queue_pending_reclaimed_total",
            "Total messages reclaimed from pending state",
            ["queue"],
        )

        self.dlq_max_retries = Counter(
            "hub_relay_queue_dlq_total",
            "Total jobs moved to the failed stream",
            ["queue", "reason"],  # stalled, attempts_exhausted, unparsable
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    def record_stage_latency(self, stage: str, latency: float) -> None:
        """Record time spent in a pipeline stage."""
        self.stage_latency.labels(stage=stage).observe(latency)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
