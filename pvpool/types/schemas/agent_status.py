from marshmallow import fields
from pvpool.types.base import BaseSchema
from pvpool.types.models.agent_status import StorageAgentStatus
from pvpool.types.models.pvpool_status import PodState


class StorageAgentStatusSchema(BaseSchema):
    __model__ = StorageAgentStatus

    name = fields.Str(data_key="name", allow_none=True, load_default=None)
    total = fields.Int(data_key="total", required=True)
    used = fields.Int(data_key="used", required=True)
    state = fields.Function(
        deserialize=PodState.parse, data_key="state", required=True
    )
