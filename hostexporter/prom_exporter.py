"""Prometheus pull exporter using prometheus_client."""
from typing import Optional
from prometheus_client import (
    Counter, Gauge, Histogram,
    CollectorRegistry, generate_latest, start_http_server
)
import logging

from hostexporter.config import PrometheusExporterConfig
from hostexporter.registry import MetricRegistry

logger = logging.getLogger(__name__)


class PrometheusExporter:
    """Serves the metric registry over HTTP."""

    def __init__(self, config: PrometheusExporterConfig, metric_registry: Optional[MetricRegistry] = None):
        self.config = config
        # Use a custom registry to avoid exporting default Python/process metrics
        self.registry = CollectorRegistry()

        self.metric_registry = metric_registry or MetricRegistry(prefix=config.prefix)
        self.registry.register(self.metric_registry)
        logger.info(
            f"Registered {len(self.metric_registry.specs)} host metrics "
            f"with prefix '{config.prefix}'"
        )

        self.server = None
        self.server_thread = None

        # Start HTTP server
        if config.enabled:
            self._start_server()

    def _start_server(self):
        """Start Prometheus HTTP server."""
        try:
            result = start_http_server(
                self.config.port,
                addr=self.config.bind_address,
                registry=self.registry
            )
            # Newer prometheus_client versions return (server, thread)
            if result is not None:
                self.server, self.server_thread = result
            logger.info(
                f"Prometheus exporter listening on "
                f"{self.config.bind_address}:{self.config.port}/metrics"
            )
        except Exception as e:
            logger.error(f"Failed to start Prometheus HTTP server: {e}")
            raise

    def render(self) -> bytes:
        """Current exposition text, as served on /metrics."""
        return generate_latest(self.registry)

    def shutdown(self):
        """Stop the HTTP server if this exporter started one."""
        if self.server is not None:
            self.server.shutdown()
            self.server.server_close()
            logger.info("Prometheus exporter stopped")
            self.server = None


class SelfMetrics:
    """Self-monitoring metrics for the collector."""

    def __init__(self, registry=None, prefix="hostexporter_"):
        if registry is None:
            registry = CollectorRegistry()

        self.cycles_total = Counter(
            f"{prefix}cycles_total",
            "Total number of completed collection cycles",
            registry=registry
        )

        self.source_failures_total = Counter(
            f"{prefix}source_failures_total",
            "Total number of failed source reads",
            ["source"],
            registry=registry
        )

        self.cycle_duration_seconds = Histogram(
            f"{prefix}cycle_duration_seconds",
            "Duration of each collection cycle in seconds",
            buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry
        )

        self.last_cycle_timestamp = Gauge(
            f"{prefix}last_cycle_timestamp_seconds",
            "Unix time at which the last collection cycle started",
            registry=registry
        )

    def record_cycle(self, started_at: float, duration: float):
        """Record a completed cycle."""
        self.cycles_total.inc()
        self.cycle_duration_seconds.observe(duration)
        self.last_cycle_timestamp.set(started_at)

    def record_source_failure(self, source: str):
        """Record failed source read."""
        self.source_failures_total.labels(source=source).inc()
