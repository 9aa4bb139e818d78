"""
HTTP Transport Implementation

Production transport that replays queued Actions against the food truck
API server with httpx. Used when ENV_MODE=production or ENV_MODE=staging.

Endpoints:
    CREATE_ORDER    POST   /api/orders
    UPDATE_ORDER    PUT    /api/orders/{id}/status   (fetch: GET /api/orders/{id})
    UPDATE_PROFILE  PUT    /api/auth/profile         (fetch: GET /api/auth/profile)
    ADD_TO_CART     POST   {cart_path}/items
    UPDATE_CART     PUT    {cart_path}
    CLEAR_CART      DELETE {cart_path}

Response classification:
    2xx with success != false   -> SUCCESS
    401 / 403                   -> AUTH_FAILURE
    409                         -> CONFLICT (body data is the server snapshot)
    408 / 425 / 429 / 5xx       -> TRANSIENT_FAILURE
    other 4xx or success=false  -> PERMANENT_REJECTION
    network errors / timeouts   -> TRANSIENT_FAILURE

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
import time
from typing import Any, Optional

import httpx

from offline_sync.core.config import Settings, get_settings
from offline_sync.schemas import Action, ActionType
from offline_sync.services.transport.base import BaseTransport, TransportResult

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429})


class HttpTransport(BaseTransport):
    """
    Production httpx transport.

    Example:
        >>> transport = HttpTransport()
        >>> result = await transport.perform(action, access_token)
        >>> print(result.outcome)
        TransportOutcome.SUCCESS
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the transport.

        Args:
            settings: Application settings (defaults to cached settings)
            client: Preconfigured httpx client (tests inject a MockTransport)
        """
        self._settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._settings.api_base_url,
            timeout=self._settings.request_timeout_seconds,
        )
        cart_path = self._settings.cart_path
        self._routes: dict[ActionType, tuple[str, str]] = {
            ActionType.CREATE_ORDER: ("POST", "/api/orders"),
            ActionType.UPDATE_ORDER: ("PUT", "/api/orders/{id}/status"),
            ActionType.UPDATE_PROFILE: ("PUT", "/api/auth/profile"),
            ActionType.ADD_TO_CART: ("POST", f"{cart_path}/items"),
            ActionType.UPDATE_CART: ("PUT", cart_path),
            ActionType.CLEAR_CART: ("DELETE", cart_path),
        }
        self._fetch_routes: dict[ActionType, str] = {
            ActionType.UPDATE_ORDER: "/api/orders/{id}",
            ActionType.UPDATE_PROFILE: "/api/auth/profile",
        }

        logger.info(f"HttpTransport initialized ({self._settings.api_base_url})")

    @property
    def provider_name(self) -> str:
        return "http"

    # =========================================================================
    # REQUEST BUILDING
    # =========================================================================

    @staticmethod
    def _headers(access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _body_for(action: Action) -> Optional[dict[str, Any]]:
        if action.type == ActionType.UPDATE_ORDER:
            return {"status": action.payload.get("status")}
        if action.type == ActionType.CLEAR_CART:
            return None
        return action.payload

    @staticmethod
    def _format_path(template: str, action: Action) -> str:
        if "{id}" not in template:
            return template
        entity_id = action.entity_id
        if entity_id is None:
            raise ValueError(f"{action.type.value} payload has no 'id'")
        return template.replace("{id}", entity_id)

    # =========================================================================
    # RESPONSE CLASSIFICATION
    # =========================================================================

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"data": body}

    def _classify(self, response: httpx.Response, elapsed_ms: float) -> TransportResult:
        body = self._parse_body(response)
        status = response.status_code
        message = body.get("message") or body.get("error") or response.reason_phrase
        data = body.get("data") if isinstance(body.get("data"), dict) else None

        if response.is_success:
            if body.get("success") is False:
                return TransportResult.rejected(
                    message or "Request rejected",
                    status_code=status,
                    response_time_ms=elapsed_ms,
                )
            return TransportResult.success(
                data if data is not None else body,
                status_code=status,
                response_time_ms=elapsed_ms,
            )

        if status in (401, 403):
            return TransportResult.auth_failure(message, status_code=status, response_time_ms=elapsed_ms)

        if status == 409:
            return TransportResult.conflict(
                data or body,
                error_message=message,
                status_code=status,
                response_time_ms=elapsed_ms,
            )

        if status in RETRYABLE_STATUS_CODES or response.is_server_error:
            return TransportResult.transient(
                f"HTTP {status}: {message}",
                status_code=status,
                response_time_ms=elapsed_ms,
            )

        return TransportResult.rejected(
            f"HTTP {status}: {message}",
            status_code=status,
            response_time_ms=elapsed_ms,
        )

    async def _send(
        self,
        method: str,
        path: str,
        access_token: str,
        body: Optional[dict[str, Any]] = None,
    ) -> TransportResult:
        start_time = time.perf_counter()
        try:
            response = await self._client.request(
                method,
                path,
                json=body,
                headers=self._headers(access_token),
            )
        except httpx.TimeoutException as e:
            elapsed = (time.perf_counter() - start_time) * 1000
            logger.warning(f"Timeout on {method} {path}: {e}")
            return TransportResult.transient(f"Timeout: {e}", response_time_ms=elapsed)
        except httpx.TransportError as e:
            elapsed = (time.perf_counter() - start_time) * 1000
            logger.warning(f"Network error on {method} {path}: {e}")
            return TransportResult.transient(f"Network error: {e}", response_time_ms=elapsed)

        elapsed = (time.perf_counter() - start_time) * 1000
        logger.debug(f"{method} {path} -> {response.status_code} ({elapsed:.0f}ms)")
        return self._classify(response, elapsed)

    # =========================================================================
    # TRANSPORT INTERFACE
    # =========================================================================

    async def perform(self, action: Action, access_token: str) -> TransportResult:
        """Replay an Action with the route registered for its type."""
        method, template = self._routes[action.type]
        try:
            path = self._format_path(template, action)
        except ValueError as e:
            return TransportResult.rejected(str(e))
        return await self._send(method, path, access_token, self._body_for(action))

    async def fetch_entity(self, action: Action, access_token: str) -> TransportResult:
        """GET the authoritative entity for an update-style Action."""
        template = self._fetch_routes.get(action.type)
        if template is None:
            return TransportResult.rejected(f"{action.type.value} has no fetchable entity")
        try:
            path = self._format_path(template, action)
        except ValueError as e:
            return TransportResult.rejected(str(e))
        return await self._send("GET", path, access_token)

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(self._settings.health_path)
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.debug(f"Health check failed: {e}")
            return False

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
