"""
Transport Abstract Base Class

Defines the interface contract for replaying queued Actions against the
food truck API server. The sync engine never knows how a request is made;
it only sees a TransportResult.

Design Pattern: Strategy Pattern
    - MockTransport for development and demos
    - HttpTransport (httpx) for staging/production

Author: Khalil Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from offline_sync.schemas import Action


class TransportOutcome(str, Enum):
    """Classification of a single server call."""
    SUCCESS = "success"
    AUTH_FAILURE = "auth_failure"
    CONFLICT = "conflict"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_REJECTION = "permanent_rejection"


@dataclass
class TransportResult:
    """
    Standardized result from a server call.

    Both Mock and HTTP implementations return this same structure.

    Attributes:
        outcome: How the call ended
        data: Server payload on success (or the fetched entity)
        server_snapshot: Authoritative entity when the outcome is a conflict
        error_message: Error description if the call failed
        status_code: HTTP status, when there was a response
        response_time_ms: Time taken by the call
    """
    outcome: TransportOutcome
    data: Optional[dict[str, Any]] = None
    server_snapshot: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    status_code: Optional[int] = None
    response_time_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.outcome == TransportOutcome.SUCCESS

    @classmethod
    def success(cls, data: Optional[dict[str, Any]] = None, **kwargs: Any) -> "TransportResult":
        return cls(outcome=TransportOutcome.SUCCESS, data=data, **kwargs)

    @classmethod
    def auth_failure(cls, message: str = "Not authenticated", **kwargs: Any) -> "TransportResult":
        return cls(outcome=TransportOutcome.AUTH_FAILURE, error_message=message, **kwargs)

    @classmethod
    def conflict(cls, server_snapshot: dict[str, Any], **kwargs: Any) -> "TransportResult":
        return cls(
            outcome=TransportOutcome.CONFLICT,
            server_snapshot=server_snapshot,
            error_message=kwargs.pop("error_message", "Server version is newer"),
            **kwargs,
        )

    @classmethod
    def transient(cls, message: str, **kwargs: Any) -> "TransportResult":
        return cls(outcome=TransportOutcome.TRANSIENT_FAILURE, error_message=message, **kwargs)

    @classmethod
    def rejected(cls, message: str, **kwargs: Any) -> "TransportResult":
        return cls(outcome=TransportOutcome.PERMANENT_REJECTION, error_message=message, **kwargs)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "outcome": self.outcome.value,
            "data": self.data,
            "server_snapshot": self.server_snapshot,
            "error_message": self.error_message,
            "status_code": self.status_code,
            "response_time_ms": self.response_time_ms,
        }


class BaseTransport(ABC):
    """
    Abstract base class for Action transports.

    Implementations must never raise for ordinary server or network
    failures; those are classified into a TransportResult.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the transport.

        Returns:
            str: Provider name (e.g., "mock", "http")
        """
        pass

    @abstractmethod
    async def perform(self, action: Action, access_token: str) -> TransportResult:
        """
        Replay a queued Action against the server.

        Args:
            action: The Action to apply
            access_token: Bearer token for the request

        Returns:
            TransportResult: SUCCESS carries the server's view of the entity
        """
        pass

    @abstractmethod
    async def fetch_entity(self, action: Action, access_token: str) -> TransportResult:
        """
        Fetch the authoritative state of the entity an update targets.

        Args:
            action: An update-style Action
            access_token: Bearer token for the request

        Returns:
            TransportResult: SUCCESS carries the entity in `data`
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the server.

        Returns:
            bool: True if the server is reachable
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None
