"""PvPool operator sensor framework.

Hook-based instrumentation of operator lifecycle events.

Key components:
- OperatorSensor: Base class defining lifecycle hooks for operator events
- SensorDelegate: Fan-out of events to multiple sensor backends
- PrometheusMonitor: Prometheus metrics exporter

Usage:
    from pvpool.sensors import SensorDelegate, PrometheusMonitor

    delegate = SensorDelegate()
    delegate.add(PrometheusMonitor())
"""

from pvpool.sensors.base import OperatorSensor
from pvpool.sensors.delegate import SensorDelegate
from pvpool.sensors.prometheus import PrometheusMonitor
from pvpool.sensors.server import init_metrics_server

__all__ = [
    'OperatorSensor',
    'SensorDelegate',
    'PrometheusMonitor',
    'init_metrics_server',
]
