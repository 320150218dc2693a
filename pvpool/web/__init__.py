from .client import StorageAgentClient
from .error import AgentError, AgentUnreachable, AgentProtocolError

__all__ = [
    "StorageAgentClient",
    "AgentError",
    "AgentUnreachable",
    "AgentProtocolError",
]
