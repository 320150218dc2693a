import os
from typing import Any

_TRUE, _FALSE = {"True", "true", "yes", "1"}, {"False", "false", "no", "0"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Port the storage agent listens on inside each pool pod
STORAGE_AGENT_PORT = int(_getenv("STORAGE_AGENT_PORT", 8080))

#: Timeout in seconds for status and decommission calls to a storage agent
AGENT_REQUEST_TIMEOUT_SECONDS = float(_getenv("AGENT_REQUEST_TIMEOUT_SECONDS", 2.0))

#: Seconds to wait before the next pass while the pool is not Ready, or after an error
REQUEUE_DELAY_SECONDS = float(_getenv("REQUEUE_DELAY_SECONDS", 3))

#: Seconds to wait before re-checking a pool that reached the Ready phase
READY_REQUEUE_DELAY_SECONDS = float(_getenv("READY_REQUEUE_DELAY_SECONDS", 60))

#: CPU request and limit of the storage agent container
STORAGE_AGENT_CPU = str(_getenv("STORAGE_AGENT_CPU", "100m"))

#: Memory request and limit of the storage agent container
STORAGE_AGENT_MEMORY = str(_getenv("STORAGE_AGENT_MEMORY", "100M"))

#: Maximum number of pools kopf processes concurrently
WORKER_LIMIT = int(_getenv("WORKER_LIMIT", 5))


class Settings:
    """Operator settings"""

    storage_agent_port: int = STORAGE_AGENT_PORT
    agent_request_timeout_seconds: float = AGENT_REQUEST_TIMEOUT_SECONDS
    requeue_delay_seconds: float = REQUEUE_DELAY_SECONDS
    ready_requeue_delay_seconds: float = READY_REQUEUE_DELAY_SECONDS
    storage_agent_cpu: str = STORAGE_AGENT_CPU
    storage_agent_memory: str = STORAGE_AGENT_MEMORY
    worker_limit: int = WORKER_LIMIT

    def __init__(
        self,
        *args,
        storage_agent_port: int = None,
        agent_request_timeout_seconds: float = None,
        requeue_delay_seconds: float = None,
        ready_requeue_delay_seconds: float = None,
        storage_agent_cpu: str = None,
        storage_agent_memory: str = None,
        worker_limit: int = None,
        **kwargs,
    ):
        if storage_agent_port is not None:
            self.storage_agent_port = storage_agent_port

        if agent_request_timeout_seconds is not None:
            self.agent_request_timeout_seconds = agent_request_timeout_seconds

        if requeue_delay_seconds is not None:
            self.requeue_delay_seconds = requeue_delay_seconds

        if ready_requeue_delay_seconds is not None:
            self.ready_requeue_delay_seconds = ready_requeue_delay_seconds

        if storage_agent_cpu is not None:
            self.storage_agent_cpu = storage_agent_cpu

        if storage_agent_memory is not None:
            self.storage_agent_memory = storage_agent_memory

        if worker_limit is not None:
            self.worker_limit = worker_limit
