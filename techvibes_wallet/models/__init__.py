"""
Data Models Package

All Pydantic models used by the wallet session layer. Raw backend
payloads are converted into these types at a single boundary.
"""

from techvibes_wallet.models.account import (
    Account,
    LastChosenAccount,
    Profile,
)
from techvibes_wallet.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from techvibes_wallet.models.gateway import (
    DeviceRegistration,
    GatewayResult,
)
from techvibes_wallet.models.transaction import (
    BALANCE_AFTER_FIELD_ALIASES,
    NEVER,
    HistoryOptions,
    HistoryResult,
    ResolvedBalance,
    TransactionIndicator,
    TransactionRecord,
    format_amount,
    format_transaction_date,
    to_decimal,
)

__all__ = [
    # Account models
    "Account",
    "LastChosenAccount",
    "Profile",
    # Transaction models
    "BALANCE_AFTER_FIELD_ALIASES",
    "NEVER",
    "HistoryOptions",
    "HistoryResult",
    "ResolvedBalance",
    "TransactionIndicator",
    "TransactionRecord",
    "format_amount",
    "format_transaction_date",
    "to_decimal",
    # Gateway models
    "DeviceRegistration",
    "GatewayResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
