"""Builders for backend payloads used across the test modules."""

from typing import Any, Optional

from techvibes_wallet.models.gateway import GatewayResult


def account_payload(
    account_number: str,
    customer_id: Optional[str] = "C-1",
    fintech: Optional[str] = "techvibes",
    **extra: Any,
) -> dict[str, Any]:
    payload = {
        "account_number": account_number,
        "customer_id": customer_id,
        "fintech": fintech,
        "customer_first_name": "Ada",
        "customer_last_name": "Obi",
    }
    payload.update(extra)
    return payload


def history_response(records: list[dict[str, Any]], current_balance: Any = None) -> GatewayResult:
    """A successful history envelope as the gateway returns it."""
    body: dict[str, Any] = {"status": "success", "data": records}
    if current_balance is not None:
        body["current_balance"] = current_balance
    return GatewayResult.ok(data=records, raw=body, status_code=200)


def accounts_response(accounts: list[dict[str, Any]]) -> GatewayResult:
    body = {"status": "success", "data": {"accounts": accounts}}
    return GatewayResult.ok(data=accounts, raw=body, status_code=200)


def ten_record_history() -> list[dict[str, Any]]:
    """Ten records, every third one an airtime purchase."""
    records = []
    for i in range(10):
        note = f"Airtime NGN{(i + 1) * 100}" if i % 3 == 0 else f"Transfer to vendor {i}"
        records.append({
            "history_id": 100 - i,
            "amount": f"{(i + 1) * 100}.00",
            "note": note,
            "status": "success",
            "transactionDate": f"2024-01-{10 - i:02d}T10:00:00Z",
        })
    return records
