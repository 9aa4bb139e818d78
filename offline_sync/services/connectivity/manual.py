"""
Manual Connectivity Monitor

Push-based monitor: the host application (or the control API) reports
connectivity changes. Used in development and wherever the operating
system already delivers reachability events.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from offline_sync.services.connectivity.base import (
    BaseConnectivityMonitor,
    ConnectivityState,
)

logger = logging.getLogger(__name__)


class ManualConnectivityMonitor(BaseConnectivityMonitor):
    """
    Connectivity monitor driven by explicit reports.

    Example:
        >>> monitor = ManualConnectivityMonitor()
        >>> monitor.set_connected(True)
        >>> monitor.is_online
        True
    """

    def __init__(self, online: bool = False):
        super().__init__(
            ConnectivityState(is_connected=online, is_internet_reachable=online)
        )

    @property
    def provider_name(self) -> str:
        return "manual"

    def set_connected(
        self,
        is_connected: bool,
        is_internet_reachable: Optional[bool] = None,
        connection_type: Optional[str] = None,
    ) -> ConnectivityState:
        """
        Report a new connectivity state.

        Args:
            is_connected: A network interface is up
            is_internet_reachable: Server reachable (defaults to is_connected)
            connection_type: wifi, cellular, ...

        Returns:
            ConnectivityState: The state now in effect
        """
        reachable = is_connected if is_internet_reachable is None else is_internet_reachable
        self._update(
            ConnectivityState(
                is_connected=is_connected,
                is_internet_reachable=reachable,
                type=connection_type,
            )
        )
        return self.state
