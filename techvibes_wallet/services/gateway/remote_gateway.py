"""
Remote Account Gateway

Stateless request/response wrapper around the backend's account,
history and device-mapping endpoints.

The backend speaks JSON over POST and wraps every answer in an envelope:
    {"status": "success" | "error", "data": ..., "message": ...}

This service handles:
1. Posting JSON payloads (with retries for transport-level failures)
2. Collapsing every failure mode into GatewayResult(success=False, error=...)
3. Unwrapping the envelope on success

CRITICAL: Nothing raises past `call`. This component does not interpret
domain fields; it only unwraps the envelope.
"""

from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from techvibes_wallet.audit import AuditLogger, get_logger
from techvibes_wallet.config import get_settings
from techvibes_wallet.errors import ApplicationError, DataShapeError, TransportError
from techvibes_wallet.models.gateway import GatewayResult

logger = get_logger(__name__)

NETWORK_ERROR_MESSAGE = "Network error or unable to connect to server."
INVALID_JSON_MESSAGE = "Invalid JSON response from server."
UNEXPECTED_SHAPE_MESSAGE = "Unexpected response shape from server."
APPLICATION_ERROR_MESSAGE = "API reported an error."


class RemoteAccountGateway:
    """
    Backend gateway.

    IMPORTANT BOUNDARIES:
    1. Only transport failures are retried; HTTP and application
       failures are returned immediately
    2. `data` on success is the backend payload as-is
    3. The full envelope is kept in `raw` for sibling fields
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = get_settings().api
        self.base_url = base_url or self._settings.base_url
        self.timeout = timeout if timeout is not None else self._settings.timeout_seconds
        self._max_retries = max_retries or self._settings.max_retries
        self._retry_backoff = (
            retry_backoff if retry_backoff is not None
            else self._settings.retry_backoff_seconds
        )
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Accept": "application/json"},
        )
        self._audit_logger = audit_logger

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "RemoteAccountGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Core request path
    # ------------------------------------------------------------------

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> httpx.Response:
        """
        POST with retries on transport errors.

        Raises:
            TransportError: When every attempt failed to get a response
        """
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(self._max_retries),
                wait=wait_exponential(
                    multiplier=self._retry_backoff,
                    min=0,
                    max=self._retry_backoff * 10,
                ),
                reraise=True,
            ):
                with attempt:
                    logger.debug("gateway_request", endpoint=endpoint)
                    return await self._client.post(endpoint, json=payload)
        except httpx.TransportError as e:
            raise TransportError(str(e) or e.__class__.__name__) from e

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        """
        Decode the envelope.

        Raises:
            ApplicationError: Non-2xx status
            DataShapeError: Body is not a JSON object
        """
        if not response.is_success:
            message = f"API call failed with status {response.status_code}."
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                message = body.get("message") or body.get("error") or message
            raise ApplicationError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise DataShapeError(INVALID_JSON_MESSAGE) from e

        if not isinstance(body, dict):
            raise DataShapeError(UNEXPECTED_SHAPE_MESSAGE)
        return body

    @staticmethod
    def _is_success(body: dict[str, Any]) -> bool:
        status = body.get("status")
        if status is not None:
            return str(status).lower() == "success"
        return body.get("success") is True

    async def call(self, endpoint: str, payload: dict[str, Any]) -> GatewayResult:
        """
        Send one request and normalise the outcome.

        Args:
            endpoint: Path relative to base_url, or an absolute URL
            payload: JSON body

        Returns:
            GatewayResult; never raises
        """
        status_code = None
        try:
            response = await self._post(endpoint, payload)
            status_code = response.status_code
            body = self._decode(response)
        except TransportError as e:
            return await self._failure(endpoint, NETWORK_ERROR_MESSAGE, detail=str(e))
        except (ApplicationError, DataShapeError) as e:
            return await self._failure(
                endpoint,
                str(e),
                status_code=getattr(e, "status_code", None) or status_code,
            )
        except Exception as e:
            return await self._failure(endpoint, NETWORK_ERROR_MESSAGE, detail=repr(e))

        if not self._is_success(body):
            message = body.get("message") or body.get("error") or APPLICATION_ERROR_MESSAGE
            return await self._failure(endpoint, message, raw=body, status_code=status_code)

        data = body.get("data")
        return GatewayResult.ok(
            data=body if data is None else data,
            message=body.get("message"),
            raw=body,
            status_code=status_code,
        )

    async def _failure(
        self,
        endpoint: str,
        error: str,
        detail: Optional[str] = None,
        raw: Optional[dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ) -> GatewayResult:
        logger.warning(
            "gateway_call_failed",
            endpoint=endpoint,
            error=error,
            detail=detail,
            status_code=status_code,
        )
        if self._audit_logger:
            await self._audit_logger.log_gateway_error(endpoint, detail or error)
        return GatewayResult.fail(error, raw=raw, status_code=status_code)

    # ------------------------------------------------------------------
    # Endpoint helpers
    # ------------------------------------------------------------------

    async def query_account(self, checks: list[dict[str, Any]] | dict[str, Any]) -> GatewayResult:
        """
        Resolve a user-entered identifier (username, account number,
        techvibes id) to an account.

        Args:
            checks: One or more {"field": ..., "value": ...} checks
        """
        if isinstance(checks, dict):
            checks = [checks]
        return await self.call(
            self._settings.account_endpoint,
            {"action": "query_account", "checks": list(checks)},
        )

    async def get_accounts_by_techvibes_id(self, techvibes_id: Optional[str]) -> GatewayResult:
        """
        Fetch the account list for a profile.

        On success `data` is the list of raw account dicts.
        """
        if not techvibes_id:
            return GatewayResult.fail("Techvibes ID is missing.")

        result = await self.call(
            self._settings.account_endpoint,
            {"action": "get_accounts_by_techvibes_id", "techvibes_id": techvibes_id},
        )
        if not result.success:
            return result

        data = result.data
        accounts = data.get("accounts") if isinstance(data, dict) else data
        if not isinstance(accounts, list):
            return GatewayResult.fail(
                "Failed to retrieve linked accounts or none found.",
                raw=result.raw,
                status_code=result.status_code,
            )
        return result.model_copy(update={"data": accounts})

    async def get_history(self, payload: dict[str, Any]) -> GatewayResult:
        """Query the transaction history endpoint."""
        return await self.call(self._settings.history_endpoint, payload)

    async def device_mapping(self, payload: dict[str, Any]) -> GatewayResult:
        """Call the device-mapping endpoint (create/upsert or check)."""
        return await self.call(self._settings.device_mapping_endpoint, payload)
