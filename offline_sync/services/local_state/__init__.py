"""
Local State Store

Author: Khalil Bannouri
Version: 1.0.0
"""

from offline_sync.services.local_state.base import BaseLocalStateStore
from offline_sync.services.local_state.memory import InMemoryLocalState


def create_local_state() -> BaseLocalStateStore:
    """Build the local state store used by the engine."""
    return InMemoryLocalState()


__all__ = [
    "create_local_state",
    "BaseLocalStateStore",
    "InMemoryLocalState",
]
