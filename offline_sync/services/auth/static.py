"""
Static Credential Provider

Holds a single token in memory. The host application (or the control
API at startup) sets it after sign-in and clears it on sign-out.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from offline_sync.services.auth.base import BaseCredentialProvider

logger = logging.getLogger(__name__)


class StaticCredentialProvider(BaseCredentialProvider):

    def __init__(self, token: Optional[str] = None):
        self._token = token or None

    async def get_access_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token or None
        logger.info("Access token updated" if self._token else "Access token cleared")

    def clear(self) -> None:
        self.set_token(None)
