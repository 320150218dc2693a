from marshmallow import fields
from pvpool.types.base import BaseSchema
from pvpool.types.models.pvpool_status import (
    PodInfo,
    PodState,
    PoolPhase,
    PvPoolStatus,
)


class PodInfoSchema(BaseSchema):
    __model__ = PodInfo

    pod_name = fields.Str(data_key="podName", required=True)
    pod_state = fields.Enum(PodState, by_value=True, data_key="podStatus", required=True)


class PvPoolStatusSchema(BaseSchema):
    """Serializes the status subresource of a PvPool."""

    __model__ = PvPoolStatus

    phase = fields.Enum(PoolPhase, by_value=True, data_key="phase", required=True)
    count_by_state = fields.Dict(
        keys=fields.Enum(PodState, by_value=True),
        values=fields.Int(),
        data_key="countByState",
        required=True,
    )
    pods_info = fields.List(
        fields.Nested(PodInfoSchema()), data_key="podsInfo", required=True
    )
    used = fields.Int(data_key="used", load_default=0)
