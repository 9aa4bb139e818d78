"""Pytest configuration and fixtures."""

import os
import random
from collections import deque
from typing import Optional

import pytest

# Keep tests independent of a developer's .env
os.environ.setdefault("ENV_MODE", "development")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("AUTO_SYNC_ON_STARTUP", "false")

from offline_sync.core.config import Settings
from offline_sync.engine import SyncEngine
from offline_sync.events import SyncEventBus
from offline_sync.schemas import Action
from offline_sync.services.auth import StaticCredentialProvider
from offline_sync.services.connectivity import ManualConnectivityMonitor
from offline_sync.services.local_state import InMemoryLocalState
from offline_sync.services.storage import MemorySyncStorage
from offline_sync.services.transport import BaseTransport, TransportResult


class ScriptedTransport(BaseTransport):
    """
    Transport that replays queued results in order.

    When a script runs out, `perform` succeeds with the payload echoed
    back and `fetch_entity` succeeds with an empty body (no conflict).
    """

    def __init__(self):
        self.perform_script: deque = deque()
        self.fetch_script: deque = deque()
        self.performed: list[Action] = []
        self.fetched: list[Action] = []
        self.healthy = True
        self.closed = False

    @property
    def provider_name(self) -> str:
        return "scripted"

    def script(self, *results) -> None:
        """Queue results (TransportResult or Exception) for perform()."""
        self.perform_script.extend(results)

    def script_fetch(self, *results) -> None:
        self.fetch_script.extend(results)

    async def perform(self, action: Action, access_token: str) -> TransportResult:
        self.performed.append(action)
        if self.perform_script:
            result = self.perform_script.popleft()
            if isinstance(result, Exception):
                raise result
            return result
        return TransportResult.success({"id": f"srv_{len(self.performed)}", **action.payload})

    async def fetch_entity(self, action: Action, access_token: str) -> TransportResult:
        self.fetched.append(action)
        if self.fetch_script:
            return self.fetch_script.popleft()
        return TransportResult.success({})

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    """Backoff sleep that returns immediately and records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []
        self.on_sleep = None

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.on_sleep is not None:
            await self.on_sleep()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        env_mode="development",
        storage_backend="memory",
        backoff_jitter_ms=0,
        auto_sync_on_startup=False,
    )


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def monitor() -> ManualConnectivityMonitor:
    # Online from the start so no reconnect pass races the test
    return ManualConnectivityMonitor(online=True)


@pytest.fixture
def storage() -> MemorySyncStorage:
    return MemorySyncStorage()


@pytest.fixture
def local_state() -> InMemoryLocalState:
    return InMemoryLocalState()


@pytest.fixture
def credentials() -> StaticCredentialProvider:
    return StaticCredentialProvider("test-token")


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_engine(settings, transport, monitor, storage, local_state, credentials, sleep):
    """Factory building engines over the shared fixtures."""

    def _make(
        monitor_override: Optional[ManualConnectivityMonitor] = None,
        **overrides,
    ) -> SyncEngine:
        kwargs = dict(
            transport=transport,
            connectivity=monitor_override or monitor,
            storage=storage,
            local_state=local_state,
            credentials=credentials,
            settings=settings,
            sleep=sleep,
            rng=random.Random(0),
            events=SyncEventBus(settings.event_history_size),
        )
        kwargs.update(overrides)
        return SyncEngine(**kwargs)

    return _make


@pytest.fixture
def engine(make_engine) -> SyncEngine:
    return make_engine()
