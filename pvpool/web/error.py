class AgentError(Exception):
    """Storage agent call failed."""
    pass


class AgentUnreachable(AgentError):
    """Connection to the storage agent could not be established or timed out."""
    pass


class AgentProtocolError(AgentError):
    """Storage agent returned an unexpected status code or a malformed body."""
    pass
