from pvpool.types.base import BaseModel
from pvpool.types.models.pvpool_status import PodState


class StorageAgentStatus(BaseModel):
    """Status reported by a storage agent on `GET /status`."""

    name: str
    total: int
    used: int
    state: PodState
