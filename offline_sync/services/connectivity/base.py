"""
Connectivity Monitor Abstract Base Class

Observes network reachability and notifies subscribers of transitions.
The sync engine reads `is_online` as a drain precondition and subscribes
to transitions so it can drain as soon as the connection comes back.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional

from offline_sync.schemas import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectivityState:
    """
    Snapshot of network reachability.

    Attributes:
        is_connected: A network interface is up
        is_internet_reachable: The API server answered
        type: Connection type reported by the host (wifi, cellular, ...)
        last_checked: When this state was observed
    """
    is_connected: bool = False
    is_internet_reachable: bool = False
    type: Optional[str] = None
    last_checked: Optional[datetime] = None

    @property
    def is_online(self) -> bool:
        return self.is_connected and self.is_internet_reachable

    def to_dict(self) -> dict:
        return {
            "is_connected": self.is_connected,
            "is_internet_reachable": self.is_internet_reachable,
            "is_online": self.is_online,
            "type": self.type,
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
        }


ConnectivityListener = Callable[[ConnectivityState, ConnectivityState], None]


class BaseConnectivityMonitor(ABC):
    """
    Abstract base class for connectivity monitors.

    Listeners receive `(previous, current)` on every state update.
    """

    def __init__(self, initial: Optional[ConnectivityState] = None):
        self._state = initial or ConnectivityState()
        self._listeners: list[ConnectivityListener] = []

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the monitor name (e.g., "manual", "http_probe")."""
        pass

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state.is_online

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Register a transition listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, state: ConnectivityState) -> None:
        previous = self._state
        self._state = replace(state, last_checked=state.last_checked or utc_now())

        if previous.is_online != self._state.is_online:
            logger.info(
                f"Connectivity changed: "
                f"{'online' if self._state.is_online else 'offline'} "
                f"(type={self._state.type})"
            )

        for listener in list(self._listeners):
            try:
                listener(previous, self._state)
            except Exception:
                logger.exception("Connectivity listener failed")

    async def start(self) -> None:
        """Begin observing (no-op for push-based monitors)."""
        return None

    async def stop(self) -> None:
        """Stop observing."""
        return None
