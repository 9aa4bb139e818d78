"""
Transport Factory

Provides a single entry point for obtaining the transport used to replay
queued Actions. The rest of the sync engine stays agnostic about which
implementation is active.

Environment Switching:
    - ENV_MODE=development → MockTransport (no server needed)
    - ENV_MODE=staging → HttpTransport (staging API)
    - ENV_MODE=production → HttpTransport (live API)

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from offline_sync.core.config import Settings, get_settings
from offline_sync.services.transport.base import (
    BaseTransport,
    TransportOutcome,
    TransportResult,
)
from offline_sync.services.transport.mock import MockTransport
from offline_sync.services.transport.http import HttpTransport

logger = logging.getLogger(__name__)


def create_transport(settings: Optional[Settings] = None) -> BaseTransport:
    """
    Build the configured transport.

    Returns:
        BaseTransport: MockTransport in development, HttpTransport otherwise
    """
    settings = settings or get_settings()

    if settings.is_development:
        logger.info("Transport: Using MockTransport (development mode)")
        return MockTransport(failure_rate=0.10)

    logger.info(f"Transport: Using HttpTransport ({settings.env_mode.value} mode)")
    return HttpTransport(settings)


__all__ = [
    "create_transport",
    "BaseTransport",
    "TransportOutcome",
    "TransportResult",
    "MockTransport",
    "HttpTransport",
]
