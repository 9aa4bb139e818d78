"""
Local State Store Abstract Base Class

The client's own view of orders, the user profile and the cart. The sync
engine reads it to capture the local side of a conflict and writes to it
when the server's version wins or when a locally created order receives
its server id.

Author: Khalil Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from offline_sync.schemas import EntityKind


class BaseLocalStateStore(ABC):
    """Abstract base class for the client-side entity store."""

    @abstractmethod
    async def get_entity(self, kind: EntityKind, entity_id: Optional[str]) -> Optional[dict[str, Any]]:
        """
        Return the local view of an entity.

        Args:
            kind: Entity kind
            entity_id: Server or local id (ignored for singletons)

        Returns:
            Copy of the entity, or None when it is not known locally
        """
        pass

    @abstractmethod
    async def apply_server_entity(self, kind: EntityKind, data: dict[str, Any]) -> None:
        """Overwrite the local view with the server's version."""
        pass

    @abstractmethod
    async def reconcile_local_id(self, local_id: str, server_data: dict[str, Any]) -> None:
        """
        Replace a locally created order with the server's record.

        The order stops being pending and its local id is dropped.
        """
        pass
