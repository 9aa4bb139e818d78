"""
Connectivity Monitor Factory

Returns the manual (push-based) monitor in development and the HTTP
reachability probe in staging/production.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from offline_sync.core.config import Settings, get_settings
from offline_sync.services.connectivity.base import (
    BaseConnectivityMonitor,
    ConnectivityListener,
    ConnectivityState,
)
from offline_sync.services.connectivity.manual import ManualConnectivityMonitor
from offline_sync.services.connectivity.probe import HttpConnectivityProbe
from offline_sync.services.connectivity.trigger import ReconnectSyncTrigger

logger = logging.getLogger(__name__)


def create_connectivity_monitor(settings: Optional[Settings] = None) -> BaseConnectivityMonitor:
    """Build the configured connectivity monitor."""
    settings = settings or get_settings()

    if settings.is_development:
        logger.info("Connectivity: Using ManualConnectivityMonitor (development mode)")
        return ManualConnectivityMonitor(online=settings.start_online)

    logger.info(f"Connectivity: Using HttpConnectivityProbe ({settings.env_mode.value} mode)")
    return HttpConnectivityProbe(settings)


__all__ = [
    "create_connectivity_monitor",
    "BaseConnectivityMonitor",
    "ConnectivityListener",
    "ConnectivityState",
    "ManualConnectivityMonitor",
    "HttpConnectivityProbe",
    "ReconnectSyncTrigger",
]
