"""Prometheus monitoring backend for the PvPool operator.

PrometheusMonitor turns operator lifecycle events into Prometheus metrics:

1. Reconciliation loop health - duration, throughput, errors
2. Pool state - pods per state, utilization, scaling and decommission activity
3. Kubernetes resource sync - operation counts, latency, drift detection
"""

from typing import Dict, Optional, Any
import time
import logging

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, Gauge

from pvpool.sensors.base import OperatorSensor
from pvpool.types.models.pvpool_status import PodState

logger = logging.getLogger(__name__)


class PrometheusMonitor(OperatorSensor):
    """Prometheus metrics monitor for the PvPool operator.

    Metrics are prefixed with `pvpoolop_` and labelled by pool and namespace.

    Example:
        monitor = PrometheusMonitor()
        state = monitor.on_reconcile_start("my-pool", "default", "timer")
        monitor.on_reconcile_complete("my-pool", "default", state, True)
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        super().__init__()

        # =============================================================================
        # Reconciliation Loop Metrics
        # =============================================================================

        self.reconcile_duration = Histogram(
            'pvpoolop_reconcile_duration_seconds',
            'Time spent in a reconciliation pass',
            labelnames=['pool_name', 'namespace', 'trigger_source', 'result'],
            buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=registry,
        )

        self.reconcile_total = Counter(
            'pvpoolop_reconcile_total',
            'Total number of reconciliation passes',
            labelnames=['pool_name', 'namespace', 'trigger_source', 'result'],
            registry=registry,
        )

        self.reconcile_errors = Counter(
            'pvpoolop_reconcile_errors_total',
            'Total number of failed reconciliation passes',
            labelnames=['pool_name', 'namespace', 'error_type'],
            registry=registry,
        )

        # =============================================================================
        # Pool State Metrics
        # =============================================================================

        self.pool_pods = Gauge(
            'pvpoolop_pool_pods',
            'Number of pool pods per reported state',
            labelnames=['pool_name', 'namespace', 'state'],
            registry=registry,
        )

        self.pool_used_percent = Gauge(
            'pvpoolop_pool_used_percent',
            'Pool storage utilization in percent',
            labelnames=['pool_name', 'namespace'],
            registry=registry,
        )

        self.scaling_actions = Counter(
            'pvpoolop_scaling_actions_total',
            'Total number of scaling decisions per action',
            labelnames=['pool_name', 'namespace', 'action'],
            registry=registry,
        )

        self.decommissions = Counter(
            'pvpoolop_decommissions_total',
            'Total number of decommission signals sent to storage agents',
            labelnames=['pool_name', 'namespace', 'result'],
            registry=registry,
        )

        # =============================================================================
        # Kubernetes Resource Sync Metrics
        # =============================================================================

        self.resource_sync_duration = Histogram(
            'pvpoolop_resource_sync_duration_seconds',
            'Time spent syncing Kubernetes resources',
            labelnames=['pool_name', 'namespace', 'resource_type', 'operation', 'result'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry,
        )

        self.resource_sync_total = Counter(
            'pvpoolop_resource_sync_total',
            'Total number of resource sync operations',
            labelnames=['pool_name', 'namespace', 'resource_type', 'operation', 'result'],
            registry=registry,
        )

        self.resource_drift_detected = Counter(
            'pvpoolop_resource_drift_detected_total',
            'Total number of resource drift detections',
            labelnames=['pool_name', 'namespace', 'resource_type'],
            registry=registry,
        )

        self.status_updates = Counter(
            'pvpoolop_status_updates_total',
            'Total number of status subresource writes',
            labelnames=['pool_name', 'namespace', 'phase'],
            registry=registry,
        )

        logger.info("PrometheusMonitor initialized with all metrics")

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        pool_name: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Record reconciliation start time."""
        return {
            'start_time': time.time(),
            'trigger_source': trigger_source,
        }

    def on_reconcile_complete(
        self,
        pool_name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record reconciliation duration and result."""
        if state:
            duration = time.time() - state['start_time']
            trigger_source = state['trigger_source']
            result = 'success' if success else 'failure'

            self.reconcile_duration.labels(
                pool_name=pool_name,
                namespace=namespace,
                trigger_source=trigger_source,
                result=result,
            ).observe(duration)

            self.reconcile_total.labels(
                pool_name=pool_name,
                namespace=namespace,
                trigger_source=trigger_source,
                result=result,
            ).inc()

        if error:
            self.reconcile_errors.labels(
                pool_name=pool_name,
                namespace=namespace,
                error_type=error.__class__.__name__,
            ).inc()

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self,
        pool_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> Optional[Dict[str, Any]]:
        """Record resource sync start time."""
        return {'start_time': time.time()}

    def on_resource_sync_complete(
        self,
        pool_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[str, Any]],
        operation: str,
        success: bool,
    ) -> None:
        """Record resource sync duration and result."""
        result = 'success' if success else 'failure'
        if state:
            self.resource_sync_duration.labels(
                pool_name=pool_name,
                namespace=namespace,
                resource_type=resource_type,
                operation=operation,
                result=result,
            ).observe(time.time() - state['start_time'])

        self.resource_sync_total.labels(
            pool_name=pool_name,
            namespace=namespace,
            resource_type=resource_type,
            operation=operation,
            result=result,
        ).inc()

    def on_resource_drift_detected(
        self,
        pool_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> None:
        self.resource_drift_detected.labels(
            pool_name=pool_name,
            namespace=namespace,
            resource_type=resource_type,
        ).inc()

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
        """Record pods per state and utilization.

        Every known state gets a sample so that states no pod reports any
        more drop back to zero.
        """
        for pod_state in PodState:
            self.pool_pods.labels(
                pool_name=pool_name,
                namespace=namespace,
                state=pod_state.value,
            ).set(count_by_state.get(pod_state.value, 0))

        self.pool_used_percent.labels(
            pool_name=pool_name,
            namespace=namespace,
        ).set(used_percent)

    def on_scaling_action(
        self,
        pool_name: str,
        namespace: str,
        action: str,
        desired_replicas: int,
        current_replicas: int,
    ) -> None:
        self.scaling_actions.labels(
            pool_name=pool_name,
            namespace=namespace,
            action=action,
        ).inc()

    def on_decommission(
        self,
        pool_name: str,
        namespace: str,
        pod_name: str,
        success: bool,
    ) -> None:
        self.decommissions.labels(
            pool_name=pool_name,
            namespace=namespace,
            result='success' if success else 'failure',
        ).inc()

    def on_status_update(
        self,
        pool_name: str,
        namespace: str,
        phase: str,
    ) -> None:
        self.status_updates.labels(
            pool_name=pool_name,
            namespace=namespace,
            phase=phase,
        ).inc()
