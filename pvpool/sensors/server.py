"""HTTP server exposing Prometheus metrics.

The built-in prometheus_client HTTP server runs in a background daemon thread
so it never blocks the operator event loop. The port is read from the
METRICS_PORT environment variable (default 8000).
"""

import os
import logging
from threading import Thread
from prometheus_client import start_http_server

logger = logging.getLogger(__name__)


def start_metrics_server(port: int = 8000) -> None:
    """Start the Prometheus metrics HTTP server on `port`."""
    try:
        start_http_server(port)
        logger.info(f"Metrics available at http://0.0.0.0:{port}/metrics")
    except OSError as e:
        logger.error(f"Failed to start metrics server on port {port}: {e}")
        raise


def init_metrics_server() -> Thread:
    """Start the metrics server in a daemon thread using METRICS_PORT."""
    port = int(os.environ.get('METRICS_PORT', '8000'))

    thread = Thread(target=start_metrics_server, args=(port,), daemon=True)
    thread.start()

    logger.info(f"Metrics server initialization complete (port: {port})")
    return thread
