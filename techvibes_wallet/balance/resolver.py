"""
Balance Resolver

Computes the displayed balance for an account from a limit=1 history
query. Fallback chain, in priority order:

1. current_balance returned alongside the history query, if numeric
2. the latest record's post-transaction balance (see
   BALANCE_AFTER_FIELD_ALIASES for the accepted field names)
3. "0.00"

as_of is the client clock at the moment a numeric value was obtained,
not a backend timestamp. The caller never sees an exception: anything
that goes wrong degrades to ("0.00", "Never").
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from techvibes_wallet.audit import AuditLogger, get_logger
from techvibes_wallet.errors import DataShapeError
from techvibes_wallet.history import TransactionHistoryFetcher
from techvibes_wallet.models.account import Account
from techvibes_wallet.models.audit import AuditEventBuilder
from techvibes_wallet.models.transaction import (
    HistoryResult,
    ResolvedBalance,
    format_amount,
    to_decimal,
)

logger = get_logger(__name__)


def pick_balance_value(result: HistoryResult) -> Optional[Decimal]:
    """Apply the fallback chain to a history result; None if no value."""
    if not result.success:
        return None
    current = to_decimal(result.current_balance)
    if current is not None:
        return current
    latest = result.latest
    if latest is not None:
        return latest.balance_after()
    return None


def _local_now() -> datetime:
    return datetime.now()


class BalanceResolver:
    """
    Resolves balances; holds no per-account state.
    """

    def __init__(
        self,
        history_fetcher: TransactionHistoryFetcher,
        clock: Optional[Callable[[], datetime]] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._history = history_fetcher
        self._clock = clock or _local_now
        self._audit_logger = audit_logger

    async def resolve_balance(self, account: Optional[Account | dict[str, Any]]) -> ResolvedBalance:
        """
        Resolve the displayed balance for `account`.

        Accounts without a customer id resolve to ("0.00", "Never")
        without any network call.
        """
        if isinstance(account, dict):
            try:
                account = Account.from_payload(account)
            except DataShapeError:
                return ResolvedBalance.never()
        if account is None or not account.is_usable:
            return ResolvedBalance.never(account.account_number if account else None)

        try:
            result = await self._history.fetch_latest(account.customer_id, account.account_number)
            value = pick_balance_value(result)
        except Exception as e:
            logger.error("balance_fetch_failed", account_number=account.account_number, error=repr(e))
            await self._audit(AuditEventBuilder.balance_failed(account.account_number, repr(e)))
            return ResolvedBalance.never(account.account_number)

        if value is None:
            await self._audit(
                AuditEventBuilder.balance_failed(
                    account.account_number,
                    result.error or "no numeric balance in response",
                )
            )
            return ResolvedBalance.never(account.account_number)

        resolved = ResolvedBalance(
            value=format_amount(value),
            as_of=self._clock(),
            account_number=account.account_number,
        )
        await self._audit(AuditEventBuilder.balance_resolved(account.account_number, resolved.value))
        return resolved

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)
