from typing import Optional
from pvpool.types.base import BaseModel


class PvPoolSpec(BaseModel):
    """PvPool CRD spec"""

    image: str
    num_pvs: int
    pv_size_gb: int
    storage_class: Optional[str]
