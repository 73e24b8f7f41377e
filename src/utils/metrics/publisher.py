"""
Prometheus exporter for the sync process.

``MetricsPublisher`` owns the /metrics HTTP server thread;
``ApplicationInfo`` publishes the build and an uptime gauge that is
computed at scrape time.
"""

import logging
import time
from threading import Thread
from wsgiref.simple_server import WSGIServer

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Gauge,
    Info,
    start_http_server,
)

logger = logging.getLogger(__name__)


class MetricsPublisher:
    """
    Serves every metric in ``registry`` on ``http://<addr>:<port>/metrics``.
    """

    def __init__(
        self,
        port: int = 9091,
        addr: str = "0.0.0.0",
        registry: CollectorRegistry | None = None,
    ):
        self.port = port
        self.addr = addr
        self.registry = registry or REGISTRY
        self._server: WSGIServer | None = None
        self._thread: Thread | None = None

    def start(self) -> None:
        """
        Start the exporter thread.

        Raises:
            RuntimeError: If the port is taken
            OSError: For any other bind failure
        """
        if self._server is not None:
            logger.warning(f"Metrics server already running on port {self.port}")
            return

        try:
            self._server, self._thread = start_http_server(
                self.port, addr=self.addr, registry=self.registry
            )
        except OSError as e:
            if "Address already in use" in str(e):
                raise RuntimeError(
                    f"Metrics server port {self.port} is already in use. "
                    f"Stop the conflicting process or set METRICS_PORT to another port."
                ) from e
            raise

        logger.info(f"Metrics server started on port {self.port}")

    def stop(self) -> None:
        """Shut the exporter down; a no-op if it never started."""
        if self._server is None:
            return

        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None
        logger.info("Metrics server stopped")

    def is_started(self) -> bool:
        return self._server is not None


class ApplicationInfo:
    """Build metadata and process uptime."""

    def __init__(
        self,
        app_name: str = "pii-mirror-sync",
        version: str = "1.0.0",
        registry: CollectorRegistry | None = None,
    ):
        registry = registry or REGISTRY
        self._start_time = time.time()

        self.info = Info("mirror_application", "Application metadata", registry=registry)
        self.info.info({"name": app_name, "version": version})

        self.uptime_seconds = Gauge(
            "mirror_application_uptime_seconds",
            "Seconds since the sync process started",
            registry=registry,
        )
        self.uptime_seconds.set_function(self.get_uptime)

    def get_uptime(self) -> float:
        return time.time() - self._start_time
