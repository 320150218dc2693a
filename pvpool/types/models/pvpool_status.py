from enum import Enum
from typing import Dict, List, Optional
from pvpool.types.base import BaseModel


class PoolPhase(Enum):
    UNKNOWN = "Unknown"
    SCALING = "Scaling"
    READY = "Ready"


class PodState(Enum):
    UNKNOWN = "Unknown"
    READY = "Ready"
    DECOMMISSIONING = "Decommissioning"
    DECOMMISSIONED = "Decommissioned"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PodState":
        """Map a state reported by a storage agent, unrecognized values become UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class PodInfo(BaseModel):
    """State of a single pool pod."""

    pod_name: str
    pod_state: PodState


class PvPoolStatus(BaseModel):
    """Observed state of a PvPool, rebuilt on every reconciliation pass."""

    phase: PoolPhase
    count_by_state: Dict[PodState, int]
    pods_info: List[PodInfo]
    used: int

    @classmethod
    def initial(cls) -> "PvPoolStatus":
        return cls(
            phase=PoolPhase.UNKNOWN,
            count_by_state={},
            pods_info=[],
            used=0,
        )

    def add_pod(self, pod_name: str, pod_state: PodState) -> None:
        self.pods_info.append(PodInfo(pod_name=pod_name, pod_state=pod_state))
        self.count_by_state[pod_state] = self.count_by_state.get(pod_state, 0) + 1

    def index_of(self, pod_name: str) -> Optional[int]:
        for idx, info in enumerate(self.pods_info):
            if info.pod_name == pod_name:
                return idx
        return None

    def set_pod_state(self, index: int, pod_state: PodState) -> None:
        """Overwrite the state of the pod at `index` and re-tally states."""
        self.pods_info[index].pod_state = pod_state
        self.tally()

    def tally(self) -> Dict[PodState, int]:
        counts: Dict[PodState, int] = {}
        for info in self.pods_info:
            counts[info.pod_state] = counts.get(info.pod_state, 0) + 1
        self.count_by_state = counts
        return counts

    def count(self, pod_state: PodState) -> int:
        return self.count_by_state.get(pod_state, 0)

    @property
    def ready_count(self) -> int:
        return self.count(PodState.READY)
