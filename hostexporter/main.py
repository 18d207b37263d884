"""Main entry point for the host metrics exporter."""
import argparse
import json
import logging
import sys
import threading
import signal

from hostexporter.config import load_config
from hostexporter.engine import CollectionEngine, run_engine_thread
from hostexporter.control_api import ControlAPI
from hostexporter.prom_exporter import PrometheusExporter, SelfMetrics

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class JsonLogFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(log_level: str, log_format: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=TEXT_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    if log_format == "json":
        for handler in logging.getLogger().handlers:
            handler.setFormatter(JsonLogFormatter())

    # Reduce noise from some libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description="Host metrics exporter - expose system counters to Prometheus"
    )
    parser.add_argument(
        "--config",
        "-c",
        help="Path to configuration YAML file (defaults are used when omitted)"
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config.global_.log_level, config.global_.log_format)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("Host Metrics Exporter")
    logger.info("=" * 60)
    logger.info(f"Configuration loaded from: {args.config or 'defaults'}")
    logger.info(f"Collection interval: {config.global_.collect_interval_s}s")
    logger.info(f"Rate mode: {config.collection.rate_mode}")

    try:
        exporter = PrometheusExporter(config.exporters.prometheus)
        self_metrics = None
        if config.exporters.prometheus.self_metrics:
            self_metrics = SelfMetrics(registry=exporter.registry)
        engine = CollectionEngine(config, exporter.metric_registry, self_metrics=self_metrics)
    except Exception as e:
        logger.error(f"Failed to initialize exporter: {e}", exc_info=True)
        sys.exit(1)

    # Start engine in separate thread
    engine_thread = threading.Thread(
        target=run_engine_thread,
        args=(engine,),
        daemon=True
    )
    engine_thread.start()
    logger.info("Collection engine started")

    # Setup signal handlers
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        engine.stop()
        exporter.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if not config.global_.control_api_enabled:
        while engine_thread.is_alive():
            engine_thread.join(timeout=1.0)
        return

    # Run control API (blocking)
    control_api = ControlAPI(engine)
    logger.info(f"Starting control API on port {config.global_.control_api_port}")
    try:
        control_api.run(
            host="0.0.0.0",
            port=config.global_.control_api_port
        )
    except Exception as e:
        logger.error(f"Control API error: {e}", exc_info=True)
        engine.stop()
        sys.exit(1)


if __name__ == "__main__":
    main()
