"""Prometheus metrics collection for cartridge-history."""

from typing import Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server

from ..core.config import PrometheusConfig

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """Collects and exposes Prometheus metrics for schema history."""

    def __init__(self, prometheus_config: Optional[PrometheusConfig] = None):
        """Initialize metrics collector."""
        self.config = prometheus_config or PrometheusConfig()
        self.registry = CollectorRegistry()
        self._server = None
        self._server_thread = None

        self._init_metrics()

    def _init_metrics(self):
        """Initialize Prometheus metrics."""
        # Recording metrics
        self.records_recorded_total = Counter(
            "cartridge_history_records_recorded_total",
            "Total number of history records appended",
            ["history"],
            registry=self.registry,
        )

        self.records_filtered_total = Counter(
            "cartridge_history_records_filtered_total",
            "Total number of DDL statements not recorded",
            ["history", "reason"],
            registry=self.registry,
        )

        self.record_failures_total = Counter(
            "cartridge_history_record_failures_total",
            "Total number of failed appends",
            ["history"],
            registry=self.registry,
        )

        # Recovery metrics
        self.records_recovered_total = Counter(
            "cartridge_history_records_recovered_total",
            "Total number of history records replayed during recovery",
            ["history"],
            registry=self.registry,
        )

        self.unparseable_skipped_total = Counter(
            "cartridge_history_unparseable_skipped_total",
            "Total number of unparseable DDL statements skipped during recovery",
            ["history"],
            registry=self.registry,
        )

        self.recovery_duration = Histogram(
            "cartridge_history_recovery_duration_seconds",
            "Time spent recovering schema from history",
            ["history"],
            registry=self.registry,
        )

    async def start_server(self):
        """Start the Prometheus metrics server."""
        if not self.config.enabled or self._server is not None:
            return

        logger.info("Starting Prometheus metrics server", port=self.config.port)
        self._server, self._server_thread = start_http_server(
            self.config.port, registry=self.registry
        )

    async def stop_server(self):
        """Stop the Prometheus metrics server."""
        if self._server is None:
            return

        logger.info("Stopping Prometheus metrics server")
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._server_thread = None

    def record_appended(self, history: str):
        self.records_recorded_total.labels(history=history).inc()

    def record_filtered(self, history: str, reason: str):
        self.records_filtered_total.labels(history=history, reason=reason).inc()

    def record_failure(self, history: str):
        self.record_failures_total.labels(history=history).inc()

    def record_recovery(
        self, history: str, applied: int, skipped: int, duration_seconds: float
    ):
        """Record the outcome of one recovery."""
        self.records_recovered_total.labels(history=history).inc(applied)
        self.unparseable_skipped_total.labels(history=history).inc(skipped)
        self.recovery_duration.labels(history=history).observe(duration_seconds)

    def get_value(self, name: str, **labels) -> float:
        """Read a sample from this collector's registry (0.0 if absent)."""
        return self.registry.get_sample_value(name, labels) or 0.0


__all__ = ["MetricsCollector"]
