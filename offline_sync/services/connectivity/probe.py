"""
HTTP Connectivity Probe

Polls the API server's health endpoint with httpx and publishes
reachability transitions. Used in staging/production for headless
clients where no OS-level reachability signal is available.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
from typing import Optional

import httpx

from offline_sync.core.config import Settings, get_settings
from offline_sync.services.connectivity.base import (
    BaseConnectivityMonitor,
    ConnectivityState,
)

logger = logging.getLogger(__name__)


class HttpConnectivityProbe(BaseConnectivityMonitor):
    """
    Reachability monitor that probes `{api_base_url}{health_path}`.

    A response below 500 counts as reachable; a network error means the
    client is disconnected.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__()
        self._settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._settings.api_base_url,
            timeout=min(self._settings.request_timeout_seconds, 5.0),
        )
        self._interval = self._settings.connectivity_poll_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def provider_name(self) -> str:
        return "http_probe"

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check_now(self) -> ConnectivityState:
        """Probe once and publish the result."""
        try:
            response = await self._client.get(self._settings.health_path)
            state = ConnectivityState(
                is_connected=True,
                is_internet_reachable=response.status_code < 500,
                type="http",
            )
        except httpx.HTTPError as e:
            logger.debug(f"Connectivity probe failed: {e}")
            state = ConnectivityState(is_connected=False, is_internet_reachable=False, type="http")

        self._update(state)
        return self.state

    async def _poll(self) -> None:
        while True:
            await self.check_now()
            await asyncio.sleep(self._interval)

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._poll())
        logger.info(f"Connectivity probe started (every {self._interval}s)")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._owns_client:
            await self._client.aclose()
