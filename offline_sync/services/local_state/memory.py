"""
In-Memory Local State

Dictionary-backed local view used by the control API and tests. Orders
created offline carry a `localId` and `isPendingSync=True` until the
server assigns them an id.

Author: Khalil Bannouri
Version: 1.0.0
"""

import copy
import logging
from typing import Any, Optional

from offline_sync.schemas import EntityKind
from offline_sync.services.local_state.base import BaseLocalStateStore

logger = logging.getLogger(__name__)


class InMemoryLocalState(BaseLocalStateStore):
    """
    Local view of orders, profile and cart.

    Attributes:
        orders: Orders in creation order
        profile: Current user profile
        cart: Current cart document
    """

    def __init__(
        self,
        orders: Optional[list[dict[str, Any]]] = None,
        profile: Optional[dict[str, Any]] = None,
        cart: Optional[dict[str, Any]] = None,
    ):
        self.orders: list[dict[str, Any]] = [dict(o) for o in orders or []]
        self.profile: Optional[dict[str, Any]] = dict(profile) if profile else None
        self.cart: Optional[dict[str, Any]] = dict(cart) if cart else None

    def _find_order_index(self, order_id: Optional[str]) -> Optional[int]:
        if order_id is None:
            return None
        for index, order in enumerate(self.orders):
            if str(order.get("id")) == order_id or order.get("localId") == order_id:
                return index
        return None

    def add_local_order(self, order: dict[str, Any]) -> dict[str, Any]:
        """Record an order created while offline."""
        local = dict(order)
        local.setdefault("localId", local.get("id"))
        local["isPendingSync"] = True
        index = self._find_order_index(local.get("localId"))
        if index is None:
            self.orders.append(local)
        else:
            self.orders[index] = local
        return copy.deepcopy(local)

    async def get_entity(self, kind: EntityKind, entity_id: Optional[str]) -> Optional[dict[str, Any]]:
        if kind == EntityKind.ORDER:
            index = self._find_order_index(entity_id)
            return copy.deepcopy(self.orders[index]) if index is not None else None
        if kind == EntityKind.PROFILE:
            return copy.deepcopy(self.profile)
        return copy.deepcopy(self.cart)

    async def apply_server_entity(self, kind: EntityKind, data: dict[str, Any]) -> None:
        if kind == EntityKind.ORDER:
            server = dict(data)
            server["isPendingSync"] = False
            index = self._find_order_index(str(server["id"]) if server.get("id") is not None else None)
            if index is None:
                self.orders.append(server)
            else:
                self.orders[index] = server
        elif kind == EntityKind.PROFILE:
            self.profile = dict(data)
        else:
            self.cart = dict(data)

    async def reconcile_local_id(self, local_id: str, server_data: dict[str, Any]) -> None:
        server = dict(server_data)
        server.pop("localId", None)
        server["isPendingSync"] = False

        index = self._find_order_index(local_id)
        if index is None:
            logger.debug(f"Local order {local_id} not found; adding server order")
            self.orders.append(server)
            return

        self.orders[index] = server
        logger.info(f"Reconciled local order {local_id} -> {server.get('id')}")
