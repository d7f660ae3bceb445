"""
Transaction History Fetcher

Retrieves transaction records for a customer/account and derives
filtered views from them.

IMPORTANT: Records are returned in backend order. The backend is the
sole authority on ordering; there is deliberately no client-side date
sort here. Re-adding one could hide backend ordering defects, so any
change to that needs the backend contract confirmed first.

Filtering is a pure, non-mutating pass over a fetched result. It never
triggers a second request and never changes current_balance.
"""

from decimal import Decimal
from typing import Any, Iterable, Optional

from techvibes_wallet.audit import AuditLogger, get_logger
from techvibes_wallet.config import get_settings
from techvibes_wallet.errors import DataShapeError
from techvibes_wallet.models.account import Account
from techvibes_wallet.models.audit import AuditEventBuilder
from techvibes_wallet.models.transaction import (
    HistoryOptions,
    HistoryResult,
    TransactionRecord,
)
from techvibes_wallet.services.gateway import RemoteAccountGateway

logger = get_logger(__name__)

MISSING_CUSTOMER_ID_MESSAGE = "Customer ID is missing. Cannot fetch transactions."
NO_TRANSACTIONS_MESSAGE = "No transactions found"


def filter_by_note(
    transactions: Iterable[TransactionRecord],
    term: str,
) -> tuple[TransactionRecord, ...]:
    """Records whose note contains `term`, case-insensitively, in order."""
    return tuple(record for record in transactions if record.matches_text(term))


def exclude_charges(
    transactions: Iterable[TransactionRecord],
) -> tuple[TransactionRecord, ...]:
    """Drop fee/charge rows, keeping order."""
    return tuple(record for record in transactions if not record.is_charge())


def _scalar_balance(value: Any) -> Optional[Any]:
    if isinstance(value, (str, int, float, Decimal)) and not isinstance(value, bool):
        return value
    return None


class TransactionHistoryFetcher:
    """
    History queries against the backend.

    limit and offset are forwarded verbatim; callers must not assume the
    number of returned records equals limit.
    """

    def __init__(
        self,
        gateway: RemoteAccountGateway,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._gateway = gateway
        self._audit_logger = audit_logger

    async def fetch_history(
        self,
        options: Optional[HistoryOptions] = None,
        **kwargs: Any,
    ) -> HistoryResult:
        """
        Fetch history for a customer (and optionally one account).

        Args:
            options: Query options; alternatively pass the same fields
                as keyword arguments

        Returns:
            HistoryResult; failures are reported, not raised
        """
        if options is None:
            options = HistoryOptions(**kwargs)

        if not options.customer_id:
            return HistoryResult.failure(MISSING_CUSTOMER_ID_MESSAGE)

        result = await self._gateway.get_history(options.to_payload())
        if not result.success:
            error = result.error or NO_TRANSACTIONS_MESSAGE
            await self._audit(
                AuditEventBuilder.history_failed(options.customer_id, options.account_no, error)
            )
            return HistoryResult.failure(error)

        body = result.raw or {}
        try:
            records = self._parse_records(body.get("data"))
        except DataShapeError as e:
            await self._audit(
                AuditEventBuilder.history_failed(options.customer_id, options.account_no, str(e))
            )
            return HistoryResult.failure(str(e))

        await self._audit(
            AuditEventBuilder.history_fetched(options.customer_id, options.account_no, len(records))
        )
        return HistoryResult(
            success=True,
            transactions=records,
            current_balance=_scalar_balance(body.get("current_balance")),
        )

    @staticmethod
    def _parse_records(data: Any) -> tuple[TransactionRecord, ...]:
        """
        The backend sends a list, a single object, or nothing.

        Raises:
            DataShapeError: If data is some other shape or a record is invalid
        """
        if data is None:
            return ()
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise DataShapeError(
                f"History data must be a list or object, got {type(data).__name__}"
            )
        return tuple(TransactionRecord.from_payload(item) for item in data)

    async def fetch_latest(
        self,
        customer_id: Optional[str],
        account_no: Optional[str] = None,
    ) -> HistoryResult:
        """The single most recent record (limit=1)."""
        return await self.fetch_history(
            HistoryOptions(customer_id=customer_id, account_no=account_no, limit=1)
        )

    async def fetch_for_account(
        self,
        account: Account,
        limit: Optional[int] = None,
        offset: int = 0,
        **filters: Any,
    ) -> HistoryResult:
        """History for an Account's (customer_id, account_number)."""
        return await self.fetch_history(
            HistoryOptions(
                customer_id=account.customer_id,
                account_no=account.account_number,
                limit=limit or get_settings().app.history_page_size,
                offset=offset,
                **filters,
            )
        )

    async def fetch_filtered(
        self,
        options: HistoryOptions,
        term: str,
    ) -> HistoryResult:
        """
        One fetch, then keep records whose note contains `term`.

        current_balance is that of the unfiltered response.
        """
        result = await self.fetch_history(options)
        return result.only_containing(term)

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)
