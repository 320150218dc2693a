"""Storage agent HTTP client."""
from typing import Any, Union
from yarl import URL
from pvpool.types.models.agent_status import StorageAgentStatus
from pvpool.types.schemas.agent_status import StorageAgentStatusSchema
from .session import SessionManager

STATUS_URL = "/status"
DECOMMISSION_URL = "/manage-agent/decommission"


class StorageAgentClient(SessionManager):
    """Client for the storage agent status/management API."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def get_status(self, endpoint: Union[str, URL]) -> StorageAgentStatus:
        """Get the capacity and lifecycle state of a storage agent."""
        url = URL(endpoint).with_path(STATUS_URL)
        return await self.get(url, schema=StorageAgentStatusSchema())

    async def decommission(self, endpoint: Union[str, URL]) -> None:
        """Ask a storage agent to start relinquishing its volume.

        The call is fire-and-forget: any HTTP response means the signal was
        delivered, only transport failures raise.
        """
        url = URL(endpoint).with_path(DECOMMISSION_URL)
        await self.put(url, raise_errors=False)
