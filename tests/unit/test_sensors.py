"""Unit tests for operator sensors."""

import pytest
from unittest.mock import Mock
from prometheus_client import CollectorRegistry
from pvpool.sensors import OperatorSensor, PrometheusMonitor, SensorDelegate

POOL = "pool"
NAMESPACE = "test-namespace"


class RecordingSensor(OperatorSensor):
    def __init__(self):
        self.events = []

    def on_reconcile_start(self, pool_name, namespace, trigger_source):
        self.events.append(("start", trigger_source))
        return {"token": id(self)}

    def on_reconcile_complete(self, pool_name, namespace, state, success, error=None):
        self.events.append(("complete", state, success))


class BrokenSensor(OperatorSensor):
    def on_reconcile_start(self, pool_name, namespace, trigger_source):
        raise RuntimeError("boom")

    def on_decommission(self, pool_name, namespace, pod_name, success):
        raise RuntimeError("boom")


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def monitor(registry):
    return PrometheusMonitor(registry=registry)


class TestSensorDelegate:
    """Tests for SensorDelegate fan-out."""

    def test_state_routed_per_sensor(self):
        first, second = RecordingSensor(), RecordingSensor()
        delegate = SensorDelegate()
        delegate.add(first)
        delegate.add(second)

        state = delegate.on_reconcile_start(POOL, NAMESPACE, "timer")
        delegate.on_reconcile_complete(POOL, NAMESPACE, state, True)

        assert first.events == [("start", "timer"), ("complete", {"token": id(first)}, True)]
        assert second.events == [("start", "timer"), ("complete", {"token": id(second)}, True)]

    def test_no_state(self):
        delegate = SensorDelegate()
        delegate.add(OperatorSensor())
        assert delegate.on_reconcile_start(POOL, NAMESPACE, "event") is None

    def test_errors_contained(self):
        recording = RecordingSensor()
        delegate = SensorDelegate()
        delegate.add(BrokenSensor())
        delegate.add(recording)

        state = delegate.on_reconcile_start(POOL, NAMESPACE, "timer")
        delegate.on_decommission(POOL, NAMESPACE, "pool-sts-1", True)

        assert list(state) == [recording]

    def test_add_remove(self):
        sensor = Mock(spec=OperatorSensor)
        delegate = SensorDelegate()
        delegate.add(sensor)
        assert len(delegate) == 1

        delegate.on_scaling_action(POOL, NAMESPACE, "ScaleUp", 3, 1)
        sensor.on_scaling_action.assert_called_once_with(POOL, NAMESPACE, "ScaleUp", 3, 1)

        delegate.remove(sensor)
        assert len(delegate) == 0


class TestPrometheusMonitor:
    """Tests for PrometheusMonitor metrics."""

    def test_reconcile(self, monitor, registry):
        state = monitor.on_reconcile_start(POOL, NAMESPACE, "timer")
        monitor.on_reconcile_complete(POOL, NAMESPACE, state, False, ValueError("x"))

        labels = {"pool_name": POOL, "namespace": NAMESPACE}
        assert registry.get_sample_value(
            "pvpoolop_reconcile_total",
            {**labels, "trigger_source": "timer", "result": "failure"},
        ) == 1
        assert registry.get_sample_value(
            "pvpoolop_reconcile_errors_total", {**labels, "error_type": "ValueError"}
        ) == 1

    def test_pool_state(self, monitor, registry):
        monitor.on_pool_state(POOL, NAMESPACE, {"Ready": 3, "Decommissioning": 1}, 42)
        monitor.on_pool_state(POOL, NAMESPACE, {"Ready": 2}, 40)

        labels = {"pool_name": POOL, "namespace": NAMESPACE}
        assert registry.get_sample_value("pvpoolop_pool_pods", {**labels, "state": "Ready"}) == 2
        assert registry.get_sample_value(
            "pvpoolop_pool_pods", {**labels, "state": "Decommissioning"}
        ) == 0
        assert registry.get_sample_value("pvpoolop_pool_used_percent", labels) == 40

    def test_resource_sync(self, monitor, registry):
        state = monitor.on_resource_sync_start(POOL, "pool-sts", NAMESPACE, "statefulset")
        monitor.on_resource_sync_complete(
            POOL, "pool-sts", NAMESPACE, "statefulset", state, "scale", True
        )
        monitor.on_resource_drift_detected(POOL, "pool-srv", NAMESPACE, "service")

        labels = {"pool_name": POOL, "namespace": NAMESPACE}
        assert registry.get_sample_value(
            "pvpoolop_resource_sync_total",
            {**labels, "resource_type": "statefulset", "operation": "scale", "result": "success"},
        ) == 1
        assert registry.get_sample_value(
            "pvpoolop_resource_drift_detected_total", {**labels, "resource_type": "service"}
        ) == 1

    def test_engine_events(self, monitor, registry):
        monitor.on_scaling_action(POOL, NAMESPACE, "ScaleDown", 2, 4)
        monitor.on_decommission(POOL, NAMESPACE, "pool-sts-3", True)
        monitor.on_decommission(POOL, NAMESPACE, "pool-sts-2", False)
        monitor.on_status_update(POOL, NAMESPACE, "Scaling")

        labels = {"pool_name": POOL, "namespace": NAMESPACE}
        assert registry.get_sample_value(
            "pvpoolop_scaling_actions_total", {**labels, "action": "ScaleDown"}
        ) == 1
        assert registry.get_sample_value(
            "pvpoolop_decommissions_total", {**labels, "result": "failure"}
        ) == 1
        assert registry.get_sample_value(
            "pvpoolop_status_updates_total", {**labels, "phase": "Scaling"}
        ) == 1
