"""
History View

Holds the history currently shown for one account-bearing screen.

A screen may be pointed at a new account while a fetch for the previous
one is still in flight. Each load carries a relevance token; a result
is committed only if no newer load (or close) happened meanwhile.
"""

from typing import Optional

from techvibes_wallet.audit import get_logger
from techvibes_wallet.config import get_settings
from techvibes_wallet.history.fetcher import MISSING_CUSTOMER_ID_MESSAGE, TransactionHistoryFetcher
from techvibes_wallet.models.account import Account
from techvibes_wallet.models.transaction import HistoryOptions, HistoryResult
from techvibes_wallet.intents import IntentCounter

logger = get_logger(__name__)


class HistoryView:
    """
    History state for one screen.

    Usage:
        view = HistoryView(fetcher, contains="airtime")
        await view.show(account)
        view.result.transactions
    """

    def __init__(
        self,
        fetcher: TransactionHistoryFetcher,
        limit: Optional[int] = None,
        contains: Optional[str] = None,
        hide_charges: bool = False,
    ):
        self._fetcher = fetcher
        self._limit = limit or get_settings().app.history_page_size
        self._contains = contains
        self._hide_charges = hide_charges
        self._loads = IntentCounter()
        self.account_number: Optional[str] = None
        self.result: HistoryResult = HistoryResult(success=False)
        self.loading = False
        self.closed = False

    async def show(self, account: Optional[Account]) -> bool:
        """
        Load history for `account` and commit it if still relevant.

        Returns:
            True if the result was committed, False if it was discarded
        """
        token = self._loads.issue()
        self.account_number = account.account_number if account else None
        self.loading = True

        if account is None or not account.is_usable:
            result = HistoryResult.failure(MISSING_CUSTOMER_ID_MESSAGE)
        else:
            result = await self._fetcher.fetch_history(
                HistoryOptions(
                    customer_id=account.customer_id,
                    account_no=account.account_number,
                    limit=self._limit,
                )
            )

        if self.closed or not token.is_current():
            logger.debug("history_result_discarded", intent=token.intent)
            return False

        if self._hide_charges:
            result = result.without_charges()
        if self._contains:
            result = result.only_containing(self._contains)
        self.result = result
        self.loading = False
        return True

    def close(self) -> None:
        """Stop accepting results (the screen went away)."""
        self.closed = True
        self.loading = False
        self._loads.issue()
