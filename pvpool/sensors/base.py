"""Base sensor classes for operator monitoring.

This module defines the base OperatorSensor class that provides lifecycle hooks
for monitoring operator events. All hooks are no-ops by default, allowing
subclasses to override only the events they care about.

Hook conventions:
- Timed operations come in pairs: on_X_start() and on_X_complete()
- Start hooks return an optional state dict for tracking the operation
- Complete hooks receive the state dict from their corresponding start hook
"""

from typing import Dict, Optional, Any
import logging

logger = logging.getLogger(__name__)


class OperatorSensor:
    """Base sensor class for PvPool operator monitoring.

    Hooks fall into three categories:
    1. Reconciliation lifecycle (one full pass over a pool)
    2. Resource operations (service and statefulset sync)
    3. Pool state (pod states, utilization, scaling and decommission)

    All methods are no-ops by default.
    """

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        pool_name: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Called when a reconciliation pass begins.

        Args:
            pool_name: PvPool resource name
            namespace: Kubernetes namespace
            trigger_source: What triggered the pass (event, timer, manual)

        Returns:
            Optional state dict passed to on_reconcile_complete
        """
        pass

    def on_reconcile_complete(
        self,
        pool_name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Called when a reconciliation pass completes.

        Args:
            pool_name: PvPool resource name
            namespace: Kubernetes namespace
            state: State dict returned from on_reconcile_start
            success: Whether the pass succeeded
            error: Exception if the pass failed
        """
        pass

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
        """Called before an owned resource is created or patched."""
        pass

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
        """Called after an owned resource was created or patched.

        Args:
            operation: Operation performed (create, scale)
        """
        pass

    def on_resource_drift_detected(
        self,
        pool_name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> None:
        """Called when an owned resource no longer matches the pool spec it was created from."""
        pass

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
        """Called after pod states were collected for a pool.

        Args:
            count_by_state: Number of pods per pod state
            used_percent: Pool storage utilization percentage
        """
        pass

    def on_scaling_action(
        self,
        pool_name: str,
        namespace: str,
        action: str,
        desired_replicas: int,
        current_replicas: int,
    ) -> None:
        """Called when the scaling engine decided what to do with the statefulset."""
        pass

    def on_decommission(
        self,
        pool_name: str,
        namespace: str,
        pod_name: str,
        success: bool,
    ) -> None:
        """Called after a decommission signal was sent to a storage agent."""
        pass

    def on_status_update(
        self,
        pool_name: str,
        namespace: str,
        phase: str,
    ) -> None:
        """Called after the pool status subresource was written."""
        pass
