from .pvpool_spec import PvPoolSpecSchema
from .pvpool_status import PodInfoSchema, PvPoolStatusSchema
from .agent_status import StorageAgentStatusSchema

__all__ = [
    "PvPoolSpecSchema",
    "PodInfoSchema",
    "PvPoolStatusSchema",
    "StorageAgentStatusSchema",
]
