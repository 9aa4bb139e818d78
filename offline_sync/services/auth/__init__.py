"""
Credential Provider Factory

Development mode falls back to a fixed demo token so the mock transport
accepts replays without a sign-in flow.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from offline_sync.core.config import Settings, get_settings
from offline_sync.services.auth.base import BaseCredentialProvider
from offline_sync.services.auth.static import StaticCredentialProvider

logger = logging.getLogger(__name__)

DEMO_ACCESS_TOKEN = "dev-token"


def create_credential_provider(settings: Optional[Settings] = None) -> BaseCredentialProvider:
    """Build the credential provider from ACCESS_TOKEN."""
    settings = settings or get_settings()

    token = settings.access_token
    if not token and settings.is_development:
        logger.info("Credentials: No ACCESS_TOKEN set, using demo token (development mode)")
        token = DEMO_ACCESS_TOKEN
    elif not token:
        logger.warning("Credentials: No ACCESS_TOKEN set; queued actions will be dropped as AUTH_REQUIRED")

    return StaticCredentialProvider(token)


__all__ = [
    "create_credential_provider",
    "BaseCredentialProvider",
    "StaticCredentialProvider",
    "DEMO_ACCESS_TOKEN",
]
