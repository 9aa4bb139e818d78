"""
Mock Transport Implementation

Simulates the food truck API server without making real HTTP calls.
Used in development mode (ENV_MODE=development) to:
    - Exercise the full offline/replay flow locally
    - Demonstrate conflicts by editing entities "on the server"
    - Run chaos simulations without a backend

Behavior:
    - Simulates response times (50-250ms by default)
    - Randomly fails a share of calls transiently (network hiccups)
    - Keeps an in-memory copy of orders and the profile with updatedAt
    - Generates server-style ids for created orders

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import random
import uuid
import logging
from datetime import datetime
from typing import Any, Optional

from offline_sync.schemas import Action, ActionType, EntityKind, utc_now
from offline_sync.services.transport.base import BaseTransport, TransportResult

logger = logging.getLogger(__name__)


class MockTransport(BaseTransport):
    """
    Mock implementation of the transport.

    Attributes:
        failure_rate: Probability of a simulated transient failure (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds
        valid_tokens: Tokens accepted; None accepts any non-empty token

    Example:
        >>> transport = MockTransport(failure_rate=0.0, max_latency=0)
        >>> result = await transport.perform(action, "token")
        >>> print(result.succeeded)
        True
    """

    TRANSIENT_ERRORS = [
        "Connection reset by peer",
        "Gateway timeout",
        "Service temporarily unavailable",
    ]

    def __init__(
        self,
        failure_rate: float = 0.10,
        min_latency: float = 0.05,
        max_latency: float = 0.25,
        valid_tokens: Optional[set[str]] = None,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.valid_tokens = valid_tokens

        self.orders: dict[str, dict[str, Any]] = {}
        self.profile: dict[str, Any] = {"id": "user_mock", "updatedAt": utc_now().isoformat()}
        self.cart: dict[str, Any] = {"items": []}
        self.calls: list[tuple[str, str]] = []

        logger.info(
            f"MockTransport initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    def _generate_order_id(self) -> str:
        return f"ord_mock_{uuid.uuid4().hex[:16]}"

    async def _simulate_latency(self) -> float:
        latency = random.uniform(self.min_latency, self.max_latency)
        if latency > 0:
            await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    def _authorized(self, access_token: str) -> bool:
        if not access_token:
            return False
        return self.valid_tokens is None or access_token in self.valid_tokens

    # =========================================================================
    # SIMULATED SERVER-SIDE EDITS
    # =========================================================================

    def touch_entity(
        self,
        kind: EntityKind,
        entity_id: Optional[str] = None,
        changes: Optional[dict[str, Any]] = None,
        at: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Simulate another client editing an entity on the server.

        Returns:
            dict: The entity after the edit
        """
        stamp = (at or utc_now()).isoformat()
        if kind == EntityKind.ORDER:
            order = self.orders.setdefault(entity_id or self._generate_order_id(), {"id": entity_id})
            order.update(changes or {})
            order["updatedAt"] = stamp
            return dict(order)
        if kind == EntityKind.PROFILE:
            self.profile.update(changes or {})
            self.profile["updatedAt"] = stamp
            return dict(self.profile)
        self.cart.update(changes or {})
        return dict(self.cart)

    # =========================================================================
    # TRANSPORT INTERFACE
    # =========================================================================

    async def perform(self, action: Action, access_token: str) -> TransportResult:
        """Simulate replaying an Action."""
        self.calls.append(("perform", action.id))
        latency_ms = await self._simulate_latency()

        if not self._authorized(access_token):
            return TransportResult.auth_failure(response_time_ms=latency_ms, status_code=401)

        if self._should_fail():
            message = random.choice(self.TRANSIENT_ERRORS)
            logger.debug(f"Mock: {action.type.value} failed - {message}")
            return TransportResult.transient(message, response_time_ms=latency_ms, status_code=503)

        now = utc_now().isoformat()

        if action.type == ActionType.CREATE_ORDER:
            items = action.payload.get("items")
            if not items:
                return TransportResult.rejected(
                    "Order must contain at least one item",
                    status_code=400,
                    response_time_ms=latency_ms,
                )
            order_id = self._generate_order_id()
            order = {
                **action.payload,
                "id": order_id,
                "status": "pending",
                "createdAt": now,
                "updatedAt": now,
            }
            if action.local_order_id:
                order["localId"] = action.local_order_id
            self.orders[order_id] = order
            logger.info(f"Mock: Order created - {order_id}")
            return TransportResult.success(dict(order), status_code=201, response_time_ms=latency_ms)

        if action.type == ActionType.UPDATE_ORDER:
            order_id = action.entity_id
            if order_id not in self.orders:
                return TransportResult.rejected(
                    f"Order {order_id} not found",
                    status_code=404,
                    response_time_ms=latency_ms,
                )
            order = self.orders[order_id]
            order.update({k: v for k, v in action.payload.items() if k != "id"})
            order["updatedAt"] = now
            return TransportResult.success(dict(order), status_code=200, response_time_ms=latency_ms)

        if action.type == ActionType.UPDATE_PROFILE:
            self.profile.update(action.payload)
            self.profile["updatedAt"] = now
            return TransportResult.success(dict(self.profile), status_code=200, response_time_ms=latency_ms)

        if action.type == ActionType.ADD_TO_CART:
            self.cart.setdefault("items", []).append(dict(action.payload))
        elif action.type == ActionType.UPDATE_CART:
            self.cart.update(action.payload)
        elif action.type == ActionType.CLEAR_CART:
            self.cart = {"items": []}

        return TransportResult.success(dict(self.cart), status_code=200, response_time_ms=latency_ms)

    async def fetch_entity(self, action: Action, access_token: str) -> TransportResult:
        """Return the simulated server copy of the target entity."""
        self.calls.append(("fetch", action.id))
        latency_ms = await self._simulate_latency()

        if not self._authorized(access_token):
            return TransportResult.auth_failure(response_time_ms=latency_ms, status_code=401)

        kind = action.type.entity_kind
        if kind == EntityKind.ORDER:
            order = self.orders.get(action.entity_id or "")
            if order is None:
                return TransportResult.rejected("Order not found", status_code=404, response_time_ms=latency_ms)
            return TransportResult.success(dict(order), status_code=200, response_time_ms=latency_ms)
        if kind == EntityKind.PROFILE:
            return TransportResult.success(dict(self.profile), status_code=200, response_time_ms=latency_ms)
        return TransportResult.success(dict(self.cart), status_code=200, response_time_ms=latency_ms)

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        return True
