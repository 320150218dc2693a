"""Unit tests for PvPool models, schemas and resource naming."""

import pytest
from marshmallow import ValidationError
from pvpool.types.models import (
    PodState,
    PoolPhase,
    PvPoolResources,
    PvPoolStatus,
)
from pvpool.types.schemas import (
    PvPoolSpecSchema,
    PvPoolStatusSchema,
    StorageAgentStatusSchema,
)
from pvpool.utils.errors import MalformedPodIdentity


class TestPvPoolSpecSchema:
    """Tests for loading the pool spec."""

    def test_load(self):
        spec = PvPoolSpecSchema().load(
            {"image": "storage-agent:1", "numPVs": 4, "pvSizeGB": 5, "storageClass": "fast"}
        )
        assert spec.image == "storage-agent:1"
        assert spec.num_pvs == 4
        assert spec.pv_size_gb == 5
        assert spec.storage_class == "fast"

    def test_storage_class_is_optional(self):
        spec = PvPoolSpecSchema().load({"image": "a", "numPVs": 0, "pvSizeGB": 1})
        assert spec.storage_class is None
        assert spec.num_pvs == 0

    @pytest.mark.parametrize(
        "data",
        [
            {"numPVs": 1, "pvSizeGB": 1},
            {"image": "a", "numPVs": -1, "pvSizeGB": 1},
            {"image": "a", "numPVs": 1, "pvSizeGB": 0},
            {"image": "a", "numPVs": "many", "pvSizeGB": 1},
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(ValidationError):
            PvPoolSpecSchema().load(data)


class TestStorageAgentStatusSchema:
    """Tests for loading agent status responses."""

    def test_load(self):
        status = StorageAgentStatusSchema().load(
            {"name": "agent", "total": 100, "used": 25, "state": "Ready"}
        )
        assert status.total == 100
        assert status.used == 25
        assert status.state == PodState.READY

    def test_unknown_state(self):
        status = StorageAgentStatusSchema().load(
            {"total": 100, "used": 25, "state": "Exploded"}
        )
        assert status.state == PodState.UNKNOWN

    def test_missing_fields(self):
        with pytest.raises(ValidationError):
            StorageAgentStatusSchema().load({"state": "Ready"})


class TestPvPoolStatus:
    """Tests for the pool status model."""

    def test_initial(self):
        status = PvPoolStatus.initial()
        assert status.phase == PoolPhase.UNKNOWN
        assert status.count_by_state == {}
        assert status.pods_info == []
        assert status.used == 0

    def test_add_pod_tallies(self):
        status = PvPoolStatus.initial()
        status.add_pod("p-sts-0", PodState.READY)
        status.add_pod("p-sts-1", PodState.READY)
        status.add_pod("p-sts-2", PodState.DECOMMISSIONING)
        assert status.count(PodState.READY) == 2
        assert status.count(PodState.DECOMMISSIONING) == 1
        assert status.ready_count == 2
        assert sum(status.count_by_state.values()) == len(status.pods_info)

    def test_set_pod_state_retallies(self):
        status = PvPoolStatus.initial()
        status.add_pod("p-sts-0", PodState.READY)
        status.add_pod("p-sts-1", PodState.READY)
        status.set_pod_state(status.index_of("p-sts-1"), PodState.DECOMMISSIONED)
        assert status.count_by_state == {PodState.READY: 1, PodState.DECOMMISSIONED: 1}
        assert status.pods_info[1].pod_state == PodState.DECOMMISSIONED

    def test_index_of_missing(self):
        assert PvPoolStatus.initial().index_of("nope") is None

    def test_dump(self):
        status = PvPoolStatus.initial()
        status.phase = PoolPhase.SCALING
        status.add_pod("p-sts-0", PodState.READY)
        status.used = 42
        data = PvPoolStatusSchema().dump(status)
        assert dict(data) == {
            "phase": "Scaling",
            "countByState": {"Ready": 1},
            "podsInfo": [{"podName": "p-sts-0", "podStatus": "Ready"}],
            "used": 42,
        }

    def test_load(self):
        status = PvPoolStatusSchema().load(
            {
                "phase": "Ready",
                "countByState": {"Ready": 1},
                "podsInfo": [{"podName": "p-sts-0", "podStatus": "Ready"}],
            }
        )
        assert status.phase == PoolPhase.READY
        assert status.count_by_state == {PodState.READY: 1}
        assert status.pods_info[0].pod_name == "p-sts-0"
        assert status.used == 0


class TestPvPoolResources:
    """Tests for resource naming."""

    def test_names(self):
        assert PvPoolResources.service_name("pool") == "pool-srv"
        assert PvPoolResources.stateful_set_name("pool") == "pool-sts"
        assert PvPoolResources.pod_name("pool", 3) == "pool-sts-3"

    def test_pod_ordinal(self):
        assert PvPoolResources.pod_ordinal("pool-sts-0", "pool-sts") == 0
        assert PvPoolResources.pod_ordinal("pool-sts-12", "pool-sts") == 12

    @pytest.mark.parametrize(
        "pod_name", ["pool-sts-", "pool-sts-x", "other-sts-1", "pool-sts-1-a", "pool-sts--1"]
    )
    def test_malformed_pod_ordinal(self, pod_name):
        with pytest.raises(MalformedPodIdentity):
            PvPoolResources.pod_ordinal(pod_name, "pool-sts")

    def test_pod_url(self):
        url = PvPoolResources.pod_url("pool-sts-0", "pool-srv", "ns", 8080)
        assert url == "http://pool-sts-0.pool-srv.ns.svc:8080"
