"""
Tests for the Remote Account Gateway.

The backend is simulated with httpx.MockTransport; no sockets are opened.
"""

import httpx
import pytest
from unittest.mock import AsyncMock

from techvibes_wallet.services.gateway import NETWORK_ERROR_MESSAGE


class TestEnvelope:
    """Tests for envelope decoding in `call`."""

    @pytest.mark.asyncio
    async def test_success_unwraps_data(self, make_gateway):
        """Test data is returned as-is on success."""
        gateway = make_gateway(
            lambda endpoint, body: httpx.Response(
                200, json={"status": "success", "data": [{"id": 1}], "message": "ok"}
            )
        )
        result = await gateway.call("anything.php", {"a": 1})
        assert result.success is True
        assert result.data == [{"id": 1}]
        assert result.message == "ok"
        assert result.raw["status"] == "success"

    @pytest.mark.asyncio
    async def test_success_without_data_returns_envelope(self, make_gateway):
        """Test sibling fields stay reachable when there is no data key."""
        gateway = make_gateway(
            lambda endpoint, body: httpx.Response(
                200, json={"status": "success", "isMapped": True}
            )
        )
        result = await gateway.call("device.php", {})
        assert result.success is True
        assert result.data["isMapped"] is True

    @pytest.mark.asyncio
    async def test_application_error_passes_message(self, make_gateway):
        """Test backend error messages are surfaced verbatim."""
        gateway = make_gateway(
            lambda endpoint, body: httpx.Response(
                200, json={"status": "error", "message": "Account not found"}
            )
        )
        result = await gateway.call("account.php", {})
        assert result.success is False
        assert result.error == "Account not found"
        assert result.raw == {"status": "error", "message": "Account not found"}

    @pytest.mark.asyncio
    async def test_application_error_without_message(self, make_gateway):
        """Test the generic message when the backend gives none."""
        gateway = make_gateway(lambda endpoint, body: httpx.Response(200, json={"status": "failed"}))
        result = await gateway.call("account.php", {})
        assert result.error == "API reported an error."

    @pytest.mark.asyncio
    async def test_success_flag_without_status(self, make_gateway):
        """Test envelopes using a boolean success flag."""
        gateway = make_gateway(
            lambda endpoint, body: httpx.Response(200, json={"success": True, "data": {"x": 1}})
        )
        result = await gateway.call("account.php", {})
        assert result.success is True
        assert result.data == {"x": 1}

    @pytest.mark.asyncio
    async def test_http_error_status(self, make_gateway):
        """Test non-2xx responses with a non-JSON body."""
        gateway = make_gateway(lambda endpoint, body: httpx.Response(500, text="<html>oops</html>"))
        result = await gateway.call("account.php", {})
        assert result.success is False
        assert result.error == "API call failed with status 500."
        assert result.status_code == 500

    @pytest.mark.asyncio
    async def test_http_error_status_with_json_message(self, make_gateway):
        """Test non-2xx responses that carry a message."""
        gateway = make_gateway(
            lambda endpoint, body: httpx.Response(404, json={"message": "No such customer"})
        )
        result = await gateway.call("account.php", {})
        assert result.error == "No such customer"
        assert result.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_json(self, make_gateway):
        """Test a 200 with a non-JSON body is a data shape failure."""
        gateway = make_gateway(lambda endpoint, body: httpx.Response(200, text="not json"))
        result = await gateway.call("account.php", {})
        assert result.success is False
        assert result.error == "Invalid JSON response from server."

    @pytest.mark.asyncio
    async def test_non_object_json(self, make_gateway):
        """Test a JSON array envelope is rejected."""
        gateway = make_gateway(lambda endpoint, body: httpx.Response(200, json=[1, 2]))
        result = await gateway.call("account.php", {})
        assert result.error == "Unexpected response shape from server."


class TestTransportFailures:
    """Tests for retries on transport errors."""

    @pytest.mark.asyncio
    async def test_network_error_after_retries(self, make_gateway):
        """Test connection failures are retried then reported."""
        attempts = []

        def handler(endpoint, body):
            attempts.append(endpoint)
            raise httpx.ConnectError("connection refused")

        gateway = make_gateway(handler, max_retries=3)
        result = await gateway.call("account.php", {})
        assert result.success is False
        assert result.error == NETWORK_ERROR_MESSAGE
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, make_gateway):
        """Test a retry that succeeds returns the response."""
        attempts = []

        def handler(endpoint, body):
            attempts.append(endpoint)
            if len(attempts) == 1:
                raise httpx.ReadTimeout("slow")
            return httpx.Response(200, json={"status": "success", "data": []})

        gateway = make_gateway(handler, max_retries=3)
        result = await gateway.call("account.php", {})
        assert result.success is True
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_http_errors_are_not_retried(self, make_gateway):
        """Test status failures return immediately."""
        attempts = []

        def handler(endpoint, body):
            attempts.append(endpoint)
            return httpx.Response(503)

        gateway = make_gateway(handler, max_retries=3)
        await gateway.call("account.php", {})
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_failures_are_audited(self, make_gateway):
        """Test the audit logger hears about failures."""
        audit_logger = AsyncMock()

        def handler(endpoint, body):
            raise httpx.ConnectError("down")

        gateway = make_gateway(handler, max_retries=1, audit_logger=audit_logger)
        await gateway.call("account.php", {})
        audit_logger.log_gateway_error.assert_awaited_once()


class TestEndpointHelpers:
    """Tests for the endpoint-specific helpers."""

    @pytest.mark.asyncio
    async def test_accounts_by_techvibes_id(self, make_gateway):
        """Test the accounts list is pulled out of data.accounts."""
        seen = {}

        def handler(endpoint, body):
            seen["endpoint"] = endpoint
            seen["body"] = body
            return httpx.Response(200, json={
                "status": "success",
                "data": {"accounts": [{"account_number": "001"}, {"account_number": "002"}]},
            })

        gateway = make_gateway(handler)
        result = await gateway.get_accounts_by_techvibes_id("TV-1")
        assert result.success is True
        assert [a["account_number"] for a in result.data] == ["001", "002"]
        assert seen["endpoint"] == "access_account_general_local_api.php"
        assert seen["body"] == {"action": "get_accounts_by_techvibes_id", "techvibes_id": "TV-1"}

    @pytest.mark.asyncio
    async def test_accounts_by_techvibes_id_missing_list(self, make_gateway):
        """Test a success envelope without an accounts list is a failure."""
        gateway = make_gateway(
            lambda endpoint, body: httpx.Response(200, json={"status": "success", "data": {"x": 1}})
        )
        result = await gateway.get_accounts_by_techvibes_id("TV-1")
        assert result.success is False
        assert result.error == "Failed to retrieve linked accounts or none found."

    @pytest.mark.asyncio
    async def test_accounts_by_missing_id_skips_network(self, make_gateway):
        """Test no request is made without an identity."""
        calls = []
        gateway = make_gateway(lambda endpoint, body: calls.append(endpoint))
        result = await gateway.get_accounts_by_techvibes_id(None)
        assert result.error == "Techvibes ID is missing."
        assert calls == []

    @pytest.mark.asyncio
    async def test_query_account_wraps_single_check(self, make_gateway):
        """Test a single check dict is sent as a list."""
        seen = {}

        def handler(endpoint, body):
            seen.update(body)
            return httpx.Response(200, json={"status": "success", "data": {"account_number": "001"}})

        gateway = make_gateway(handler)
        result = await gateway.query_account({"field": "username", "value": "ada"})
        assert result.data == {"account_number": "001"}
        assert seen == {
            "action": "query_account",
            "checks": [{"field": "username", "value": "ada"}],
        }

    @pytest.mark.asyncio
    async def test_history_payload_forwarded_verbatim(self, make_gateway):
        """Test history requests go to the history endpoint unchanged."""
        seen = {}

        def handler(endpoint, body):
            seen["endpoint"] = endpoint
            seen["body"] = body
            return httpx.Response(200, json={"status": "success", "data": []})

        gateway = make_gateway(handler)
        payload = {"limit": 50, "offset": 20, "customer_id": "C-1"}
        await gateway.get_history(payload)
        assert seen["endpoint"] == "access_history_general_local_api.php"
        assert seen["body"] == payload

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self, make_gateway):
        """Test the HTTP client is closed on exit."""
        gateway = make_gateway(lambda endpoint, body: httpx.Response(200, json={}))
        async with gateway:
            pass
        assert gateway._client.is_closed


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
