"""Status and control API using FastAPI."""
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
import logging
import time

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogLevelRequest(BaseModel):
    """Request to change log level."""
    level: str


class ControlAPI:
    """FastAPI-based API exposing collector status."""

    def __init__(self, engine):
        """
        Initialize control API.

        Args:
            engine: Reference to the collection engine
        """
        self.engine = engine
        self.app = FastAPI(title="Host Exporter Control API")

        # Setup routes
        self._setup_routes()

    def _status(self) -> dict:
        engine = self.engine
        return {
            "state": engine.state.value,
            "uptime_seconds": time.time() - engine.start_time,
            "cycle_count": engine.tick_count,
            "last_cycle_started": engine.last_cycle_started,
            "last_cycle_duration_s": engine.last_cycle_duration,
            "failed_sources": engine.last_failures,
            "series_count": engine.registry.series_count(),
            "config": {
                "collect_interval_s": engine.config.global_.collect_interval_s,
                "rate_mode": engine.config.collection.rate_mode,
            },
        }

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get("/healthz")
        def healthz():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": time.time()}

        @self.app.get("/status")
        def status():
            """Get current collector status."""
            return self._status()

        @self.app.post("/control/collect")
        def collect_now():
            """Run one collection cycle immediately."""
            try:
                self.engine.tick()
            except Exception as e:
                logger.error(f"Error in on-demand collection: {e}", exc_info=True)
                raise HTTPException(status_code=500, detail=str(e))

            return {
                "status": "collected",
                "cycle_count": self.engine.tick_count,
                "failed_sources": self.engine.failed_sources(),
                "timestamp": time.time()
            }

        @self.app.post("/control/loglevel")
        def set_log_level(request: LogLevelRequest):
            """Change log level at runtime."""
            level = request.level.upper()

            if level not in LOG_LEVELS:
                raise HTTPException(
                    status_code=400,
                    detail=f"Invalid log level: {level}"
                )

            logging.getLogger().setLevel(getattr(logging, level))
            logger.info(f"Log level changed to: {level}")

            return {
                "status": "log_level_changed",
                "level": level,
                "timestamp": time.time()
            }

    def run(self, host: str = "0.0.0.0", port: int = 9109):
        """Run the API server."""
        import uvicorn
        uvicorn.run(self.app, host=host, port=port, log_level="info")
