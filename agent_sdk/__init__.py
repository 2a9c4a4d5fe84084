from .client import ControllerClient
from .runner import AgentConfig, AgentRunner, SyncListener
from .state import LocalJobState, SyncChanges

__all__ = [
    "AgentConfig",
    "AgentRunner",
    "ControllerClient",
    "LocalJobState",
    "SyncChanges",
    "SyncListener",
]
