"""
Transaction, History and Balance Models

DESIGN DECISION: The backend has used several names for "balance after
this transaction" over time. They are listed once, in priority order, in
BALANCE_AFTER_FIELD_ALIASES and folded into TransactionRecord.balance when
a record is parsed. Consumers only ever read `balance`.

Transaction order is whatever the backend returned. Nothing in this
module sorts records.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from techvibes_wallet.errors import DataShapeError


# Consulted in order; the first present, non-empty value wins.
BALANCE_AFTER_FIELD_ALIASES = (
    "cumulative_internal_balAfter",
    "cumulative_internal_balafter",
    "internal_balAfter",
    "balance",
)

NEVER = "Never"
NOT_AVAILABLE = "N/A"
ZERO_BALANCE = "0.00"

CHARGE_TYPES = frozenset({"charges", "internalfees"})


# =============================================================================
# VALUE HELPERS
# =============================================================================

def to_decimal(value: Any) -> Optional[Decimal]:
    """Safely convert a backend value to Decimal; None if not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def format_amount(value: Any) -> str:
    """
    Format a numeric amount with thousands separators and two decimals.

    Non-numeric input is returned as text unchanged; None becomes "".
    """
    if value is None or value == "":
        return ""
    number = to_decimal(value)
    if number is None:
        return str(value)
    number = number.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{number:,.2f}"


def parse_transaction_date(value: Any) -> Optional[datetime]:
    """Parse an ISO-ish backend timestamp; None when unparseable."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_transaction_date(value: Any) -> str:
    """Render a transaction timestamp, e.g. 'Jan 1, 2024, 10:00:00'."""
    parsed = parse_transaction_date(value)
    if parsed is None:
        return NOT_AVAILABLE
    return f"{parsed:%b} {parsed.day}, {parsed.year}, {parsed:%H:%M:%S}"


def _to_text(v: Any) -> Any:
    if isinstance(v, bool):
        return str(v).lower()
    if isinstance(v, (int, float, Decimal)):
        return str(v)
    return v


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionIndicator(str, Enum):
    """How a record is flagged in lists."""
    CREDIT = "credit"
    SUCCESS = "success"
    FAILED = "failed"
    NEUTRAL = "neutral"


class TransactionRecord(BaseModel):
    """
    A single history entry, immutable once returned from the backend.

    Only `history_id` can serve as a stable list key, and it is not
    always present; see `list_key`.
    """
    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
    )

    history_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("history_id", "historyId"),
    )
    transaction_date: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("transactionDate", "transaction_date"),
        description="Raw backend timestamp; may be unparseable"
    )
    type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("type", "transaction_type"),
    )
    status: Optional[str] = None
    amount: Optional[str] = None
    internal_fees_amount: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("internalFeesAmount", "internal_fees_amount"),
    )
    balance: Optional[str] = Field(
        default=None,
        description="Account balance as of this transaction"
    )
    note: Optional[str] = None
    narration: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("narration", "transaction_description", "description"),
    )
    reference: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def fold_balance_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        for field_name in BALANCE_AFTER_FIELD_ALIASES:
            value = data.get(field_name)
            if value is not None and value != "":
                data = dict(data)
                data["balance"] = value
                break
        return data

    @field_validator(
        'history_id', 'transaction_date', 'type', 'status', 'amount',
        'internal_fees_amount', 'balance', 'note', 'narration', 'reference',
        mode='before',
    )
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return _to_text(v)

    @classmethod
    def from_payload(cls, payload: Any) -> "TransactionRecord":
        """
        Build a record from a raw backend dict.

        Raises:
            DataShapeError: If the payload is not an object or has
                wrongly-typed fields
        """
        if isinstance(payload, TransactionRecord):
            return payload
        if not isinstance(payload, dict):
            raise DataShapeError(
                f"Transaction payload must be an object, got {type(payload).__name__}"
            )
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise DataShapeError(f"Invalid transaction payload: {e.errors()[0]['msg']}") from e

    def balance_after(self) -> Optional[Decimal]:
        return to_decimal(self.balance)

    def list_key(self, index: int) -> str:
        """History id when present, else the display index."""
        return self.history_id if self.history_id else str(index)

    def display_date(self) -> str:
        return format_transaction_date(self.transaction_date)

    def display_amount(self) -> str:
        return format_amount(self.amount) if self.amount is not None else NOT_AVAILABLE

    def status_indicator(self) -> TransactionIndicator:
        if self.type and self.type.lower() == "dedicated_account":
            return TransactionIndicator.CREDIT
        status = (self.status or "").lower()
        if status == "success":
            return TransactionIndicator.SUCCESS
        if status == "failed":
            return TransactionIndicator.FAILED
        return TransactionIndicator.NEUTRAL

    @property
    def free_text(self) -> str:
        return self.note or self.narration or ""

    def matches_text(self, term: str) -> bool:
        """Case-insensitive substring match on the note (or narration)."""
        return term.lower() in self.free_text.lower()

    def is_charge(self) -> bool:
        return (self.type or "").lower() in CHARGE_TYPES


TransactionPredicate = Callable[[TransactionRecord], bool]


class HistoryOptions(BaseModel):
    """
    Request parameters for a history query.

    limit and offset are forwarded as-is; the backend is free to return
    fewer (or more) records than asked for.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    customer_id: Optional[str] = None
    account_no: Optional[str] = None
    limit: int = Field(default=10, ge=0)
    offset: int = Field(default=0, ge=0)
    from_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    to_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    reference: Optional[str] = None
    name: Optional[str] = None

    @field_validator('customer_id', 'account_no', mode='before')
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _to_text(v)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"limit": self.limit, "offset": self.offset}
        if self.customer_id:
            payload["customer_id"] = self.customer_id
        if self.account_no:
            payload["account_number"] = self.account_no
        if self.from_date:
            payload["from_date"] = self.from_date
        if self.to_date:
            payload["to_date"] = self.to_date
        if self.reference:
            payload["reference"] = self.reference
        if self.name:
            payload["name"] = self.name
        return payload


class HistoryResult(BaseModel):
    """
    Outcome of a history query.

    Derived views (filter, only_containing, without_charges) are new
    results; current_balance always belongs to the unfiltered query.
    """
    model_config = ConfigDict(frozen=True)

    success: bool
    transactions: tuple[TransactionRecord, ...] = ()
    current_balance: Optional[str] = None
    error: Optional[str] = None

    @field_validator('current_balance', mode='before')
    @classmethod
    def coerce_balance(cls, v: Any) -> Any:
        return _to_text(v)

    @classmethod
    def failure(cls, error: str) -> "HistoryResult":
        return cls(success=False, error=error)

    @property
    def latest(self) -> Optional[TransactionRecord]:
        """The leading record as returned by the backend."""
        return self.transactions[0] if self.transactions else None

    def filter(self, predicate: TransactionPredicate) -> "HistoryResult":
        return self.model_copy(
            update={"transactions": tuple(t for t in self.transactions if predicate(t))}
        )

    def only_containing(self, term: str) -> "HistoryResult":
        return self.filter(lambda record: record.matches_text(term))

    def without_charges(self) -> "HistoryResult":
        return self.filter(lambda record: not record.is_charge())


# =============================================================================
# BALANCE
# =============================================================================

class ResolvedBalance(BaseModel):
    """
    The client's best current estimate of an account balance.

    as_of is local time of the last successful resolution, or "Never".
    """
    model_config = ConfigDict(frozen=True)

    value: str = ZERO_BALANCE
    as_of: Union[datetime, Literal["Never"]] = NEVER
    account_number: Optional[str] = None

    @classmethod
    def never(cls, account_number: Optional[str] = None) -> "ResolvedBalance":
        return cls(value=ZERO_BALANCE, as_of=NEVER, account_number=account_number)

    @property
    def is_resolved(self) -> bool:
        return self.as_of != NEVER

    def display_as_of(self) -> str:
        if not self.is_resolved:
            return NEVER
        return f"{self.as_of:%d %b %Y, %H:%M}"
