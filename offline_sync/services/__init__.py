"""
                        Services Module

Collaborators of the sync engine, each behind an abstract base class with
a development and a production implementation chosen by a factory.

Services:
    - transport: Replays queued Actions against the API server
    - connectivity: Online/offline detection and the reconnect trigger
    - storage: Write-through persistence of the queue and conflicts
    - local_state: Client-side view of orders, profile and cart
    - auth: Access token source
"""

from offline_sync.services.auth import create_credential_provider
from offline_sync.services.connectivity import create_connectivity_monitor
from offline_sync.services.local_state import create_local_state
from offline_sync.services.storage import create_sync_storage
from offline_sync.services.transport import create_transport

__all__ = [
    "create_credential_provider",
    "create_connectivity_monitor",
    "create_local_state",
    "create_sync_storage",
    "create_transport",
]
