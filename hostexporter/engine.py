"""Collection engine and scheduler."""
import enum
import threading
import time
import logging
from typing import Dict, List, Optional

from hostexporter.builder import SampleBuilder
from hostexporter.config import Config
from hostexporter.prom_exporter import SelfMetrics
from hostexporter.readers import ReaderSet
from hostexporter.registry import MetricRegistry

logger = logging.getLogger(__name__)


class EngineState(str, enum.Enum):
    IDLE = "idle"
    COLLECTING = "collecting"


class CollectionEngine:
    """Runs collection cycles: readers, then builder, then registry.

    One cycle runs at a time. ``tick()`` may be called from the loop thread
    or the control API; both go through the same lock.
    """

    def __init__(
        self,
        config: Config,
        registry: MetricRegistry,
        readers: Optional[ReaderSet] = None,
        self_metrics: Optional[SelfMetrics] = None,
    ):
        self.config = config
        self.registry = registry
        self.readers = readers or ReaderSet.from_config(config.sources)
        self.builder = SampleBuilder(config.collection.rate_mode)
        self.self_metrics = self_metrics

        self.state = EngineState.IDLE
        self.running = False
        self.tick_count = 0
        self.start_time = time.time()
        self.last_cycle_started: Optional[float] = None
        self.last_cycle_duration: Optional[float] = None
        self.last_failures: Dict[str, str] = {}

        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()

        logger.info(
            f"Collection engine initialized with sources: {', '.join(self.readers.names)}"
        )

    def tick(self):
        """Execute one collection cycle."""
        with self._cycle_lock:
            self.state = EngineState.COLLECTING
            cycle_start = time.time()
            try:
                readings = self.readers.read_all()
                samples = self.builder.build(readings, cycle_start)
                self.registry.apply(samples)
            finally:
                self.state = EngineState.IDLE

            duration = time.time() - cycle_start
            failures = readings.failures()
            self.last_failures = {source: str(err) for source, err in failures.items()}
            self.last_cycle_started = cycle_start
            self.last_cycle_duration = duration
            self.tick_count += 1

            if self.self_metrics:
                for source in failures:
                    self.self_metrics.record_source_failure(source)
                self.self_metrics.record_cycle(cycle_start, duration)

            logger.debug(
                f"Cycle {self.tick_count}: {len(samples.metric_names())} metrics updated, "
                f"{len(failures)} sources failed, {duration:.3f}s"
            )
            if self.tick_count % 60 == 0:  # Log every 60 cycles
                logger.info(
                    f"Cycle {self.tick_count}: {self.registry.series_count()} series "
                    f"in {duration:.3f}s"
                )

    def failed_sources(self) -> List[str]:
        return sorted(self.last_failures)

    def run(self):
        """Run collection cycles until stopped."""
        self.running = True
        self.start_time = time.time()

        interval = self.config.global_.collect_interval_s
        logger.info(f"Starting collection engine, interval {interval}s")

        while self.running and not self._stop_event.is_set():
            tick_start = time.time()

            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in collection cycle: {e}", exc_info=True)

            # Sleep for remaining time in the interval
            tick_duration = time.time() - tick_start
            sleep_time = max(0, interval - tick_duration)

            if sleep_time > 0:
                self._stop_event.wait(sleep_time)
            else:
                logger.warning(
                    f"Cycle took {tick_duration:.3f}s, longer than interval {interval}s"
                )

    def stop(self):
        """Stop the collection loop."""
        logger.info("Stopping collection engine")
        self.running = False
        self._stop_event.set()


def run_engine_thread(engine: CollectionEngine):
    """Run engine in a separate thread."""
    try:
        engine.run()
    except Exception as e:
        logger.error(f"Engine thread error: {e}", exc_info=True)
        engine.stop()
