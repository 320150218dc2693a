"""Sensor delegation for fan-out pattern.

SensorDelegate routes sensor events to multiple monitoring backends.
Each backend receives the same events and keeps independent state.
"""

from typing import Set, Dict, Optional, Any
import logging

from pvpool.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class SensorDelegate(OperatorSensor):
    """Delegate sensor that fans out events to multiple backends.

    Errors raised by a backend are logged and never reach the caller.

    Example:
        delegate = SensorDelegate()
        delegate.add(PrometheusMonitor())

        state = delegate.on_reconcile_start("my-pool", "default", "timer")
        delegate.on_reconcile_complete("my-pool", "default", state, True)
    """

    def __init__(self) -> None:
        self._sensors: Set[OperatorSensor] = set()

    def add(self, sensor: OperatorSensor) -> None:
        logger.info(f"Adding sensor: {sensor.__class__.__name__}")
        self._sensors.add(sensor)

    def remove(self, sensor: OperatorSensor) -> None:
        logger.info(f"Removing sensor: {sensor.__class__.__name__}")
        self._sensors.discard(sensor)

    def clear(self) -> None:
        self._sensors.clear()

    def __len__(self) -> int:
        return len(self._sensors)

    def _start(self, hook: str, *args: Any) -> Optional[Dict[OperatorSensor, Any]]:
        states = {}
        for sensor in self._sensors:
            try:
                state = getattr(sensor, hook)(*args)
                if state is not None:
                    states[sensor] = state
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )
        return states if states else None

    def _notify(self, hook: str, *args: Any, **kwargs: Any) -> None:
        for sensor in self._sensors:
            try:
                getattr(sensor, hook)(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        pool_name: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[OperatorSensor, Any]]:
        """Delegate reconcile_start to all sensors.

        Returns:
            Dict mapping each sensor to its returned state, or None if no sensor returned state
        """
        return self._start("on_reconcile_start", pool_name, namespace, trigger_source)

    def on_reconcile_complete(
        self,
        pool_name: str,
        namespace: str,
        state: Optional[Dict[OperatorSensor, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Delegate reconcile_complete to all sensors with their specific state."""
        for sensor in self._sensors:
            try:
                sensor_state = state.get(sensor) if state else None
                sensor.on_reconcile_complete(pool_name, namespace, sensor_state, success, error)
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_reconcile_complete: {e}",
                    exc_info=True,
                )

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self,
        pool_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> Optional[Dict[OperatorSensor, Any]]:
        return self._start(
            "on_resource_sync_start", pool_name, resource_name, namespace, resource_type
        )

    def on_resource_sync_complete(
        self,
        pool_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[OperatorSensor, Any]],
        operation: str,
        success: bool,
    ) -> None:
        for sensor in self._sensors:
            try:
                sensor_state = state.get(sensor) if state else None
                sensor.on_resource_sync_complete(
                    pool_name,
                    resource_name,
                    namespace,
                    resource_type,
                    sensor_state,
                    operation,
                    success,
                )
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_resource_sync_complete: {e}",
                    exc_info=True,
                )

    def on_resource_drift_detected(
        self,
        pool_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> None:
        self._notify(
            "on_resource_drift_detected", pool_name, resource_name, namespace, resource_type
        )

    # =============================================================================
    # Pool State Hooks
    # =============================================================================

    def on_pool_state(
        self,
        pool_name: str,
        namespace: str,
        count_by_state: Dict[str, int],
        used_percent: int,
    ) -> None:
        self._notify("on_pool_state", pool_name, namespace, count_by_state, used_percent)

    def on_scaling_action(
        self,
        pool_name: str,
        namespace: str,
        action: str,
        desired_replicas: int,
        current_replicas: int,
    ) -> None:
        self._notify(
            "on_scaling_action",
            pool_name,
            namespace,
            action,
            desired_replicas,
            current_replicas,
        )

    def on_decommission(
        self,
        pool_name: str,
        namespace: str,
        pod_name: str,
        success: bool,
    ) -> None:
        self._notify("on_decommission", pool_name, namespace, pod_name, success)

    def on_status_update(
        self,
        pool_name: str,
        namespace: str,
        phase: str,
    ) -> None:
        self._notify("on_status_update", pool_name, namespace, phase)
