"""Transaction history package."""

from techvibes_wallet.history.fetcher import (
    MISSING_CUSTOMER_ID_MESSAGE,
    TransactionHistoryFetcher,
    exclude_charges,
    filter_by_note,
)
from techvibes_wallet.history.view import HistoryView

__all__ = [
    "MISSING_CUSTOMER_ID_MESSAGE",
    "HistoryView",
    "TransactionHistoryFetcher",
    "exclude_charges",
    "filter_by_note",
]
