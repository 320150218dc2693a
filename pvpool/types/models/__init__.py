from .pvpool_spec import PvPoolSpec
from .pvpool_status import PoolPhase, PodState, PodInfo, PvPoolStatus
from .agent_status import StorageAgentStatus
from .pvpool_resources import PvPoolResources

__all__ = [
    "PvPoolSpec",
    "PoolPhase",
    "PodState",
    "PodInfo",
    "PvPoolStatus",
    "StorageAgentStatus",
    "PvPoolResources",
]
