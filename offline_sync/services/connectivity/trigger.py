"""
Reconnect Sync Trigger

Subscribes to a connectivity monitor and launches one immediate drain
pass whenever the client goes from offline to online. Going offline
leaves the queue untouched; enqueueing keeps working while disconnected.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from offline_sync.services.connectivity.base import (
    BaseConnectivityMonitor,
    ConnectivityState,
)

logger = logging.getLogger(__name__)


class ReconnectSyncTrigger:
    """
    Connectivity listener that schedules `sync()` on reconnection.

    Args:
        monitor: Monitor to subscribe to
        sync: Coroutine function starting a drain pass
    """

    def __init__(
        self,
        monitor: BaseConnectivityMonitor,
        sync: Callable[[], Awaitable[Any]],
    ):
        self._monitor = monitor
        self._sync = sync
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    @property
    def pending(self) -> set[asyncio.Task]:
        return {task for task in self._tasks if not task.done()}

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._monitor.subscribe(self._on_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, previous: ConnectivityState, current: ConnectivityState) -> None:
        if previous.is_online or not current.is_online:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Connection restored outside an event loop; sync deferred to auto-sync")
            return

        logger.info("Connection restored, syncing queued actions...")
        task = loop.create_task(self._sync())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
