"""Host metrics exporter: system counters exposed to Prometheus."""

__version__ = "0.1.0"
