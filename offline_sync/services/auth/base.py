"""
Credential Provider Abstract Base Class

Author: Khalil Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Optional


class BaseCredentialProvider(ABC):
    """Supplies the bearer token used to replay queued Actions."""

    @abstractmethod
    async def get_access_token(self) -> Optional[str]:
        """
        Return the current access token.

        Returns:
            The token, or None when the user is signed out
        """
        pass
