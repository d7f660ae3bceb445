"""
Account and Profile Models

The backend returns accounts as loosely-typed dicts whose field names have
drifted over time (account_number / accountNumber, email / customer_email,
numeric vs string customer ids). These models are the single boundary
where such payloads become typed objects; nothing downstream should look
at raw account dicts.

DESIGN DECISION: Unknown backend fields are kept (extra="allow") so the
UI can show passthrough data without the model having to know about it.
"""

from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from techvibes_wallet.errors import DataShapeError


def _coerce_identifier(v: Any) -> Any:
    """Backends send ids as ints or strings; we always keep strings."""
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, str):
        return v.strip()
    return v


class Account(BaseModel):
    """
    A single bank/fintech-scoped account.

    (account_number, fintech) identifies an account inside a profile;
    the account number alone is only unique within one fintech.
    """
    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    account_number: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("account_number", "accountNumber"),
        description="Account number, unique within its fintech"
    )
    fintech: Optional[str] = Field(
        default=None,
        description="Backend / banking partner tag"
    )
    customer_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("customer_id", "customerId"),
        description="Backend-scoped id used for history and balance queries"
    )
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    email: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("email", "customer_email"),
    )
    source: Optional[str] = Field(
        default=None,
        description="Provenance tag, e.g. 'primary' or 'linked'"
    )
    techvibes_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("techvibes_id", "techvibesId"),
        description="Cross-fintech identity this account belongs to"
    )

    @field_validator('account_number', 'customer_id', 'techvibes_id', mode='before')
    @classmethod
    def coerce_identifiers(cls, v: Any) -> Any:
        return _coerce_identifier(v)

    @field_validator('customer_id', 'techvibes_id', 'fintech')
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @classmethod
    def from_payload(cls, payload: Any) -> "Account":
        """
        Build an Account from a raw backend dict.

        Raises:
            DataShapeError: If the payload is not a dict or has no account number
        """
        if isinstance(payload, Account):
            return payload
        if not isinstance(payload, dict):
            raise DataShapeError(f"Account payload must be an object, got {type(payload).__name__}")
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise DataShapeError(f"Invalid account payload: {e.errors()[0]['msg']}") from e

    @property
    def key(self) -> tuple[str, Optional[str]]:
        return (self.account_number, self.fintech)

    @property
    def is_usable(self) -> bool:
        """Balance and history lookups need a customer id."""
        return bool(self.customer_id)

    @property
    def full_name(self) -> str:
        if self.customer_first_name or self.customer_last_name:
            return f"{self.customer_first_name or ''} {self.customer_last_name or ''}".strip()
        extras = self.model_extra or {}
        return extras.get("full_name") or extras.get("fullName") or ""

    @property
    def display_name(self) -> str:
        extras = self.model_extra or {}
        return self.full_name or extras.get("username") or self.account_number

    def same_account(self, other: "Account | LastChosenAccount") -> bool:
        """
        Match on account number, and on fintech when both sides know it.
        """
        if other is None or self.account_number != other.account_number:
            return False
        if self.fintech and other.fintech:
            return self.fintech == other.fintech
        return True


class Profile(BaseModel):
    """
    One cross-fintech identity and the accounts discovered for it.

    Account order is discovery order; it carries no meaning beyond
    "first account" being the default selection.
    """

    techvibes_id: str = Field(
        ...,
        min_length=1,
        description="Stable cross-fintech identifier (primary key)"
    )
    accounts: list[Account] = Field(default_factory=list)

    @field_validator('techvibes_id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _coerce_identifier(v)

    def find(self, account_number: str, fintech: Optional[str] = None) -> Optional[Account]:
        for account in self.accounts:
            if account.account_number != account_number:
                continue
            if fintech and account.fintech and account.fintech != fintech:
                continue
            return account
        return None


class LastChosenAccount(BaseModel):
    """
    The account the user explicitly selected in a prior session.

    Only account_number is needed to find it again; everything else is
    best effort and may be missing when the caller passed a partial
    account.
    """
    model_config = ConfigDict(populate_by_name=True)

    account_number: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("account_number", "accountNumber"),
    )
    fintech: Optional[str] = None
    customer_id: Optional[str] = None
    techvibes_id: Optional[str] = None
    account: Optional[Account] = Field(
        default=None,
        description="Snapshot of the full account at selection time"
    )

    @field_validator('account_number', 'customer_id', 'techvibes_id', mode='before')
    @classmethod
    def coerce_identifiers(cls, v: Any) -> Any:
        return _coerce_identifier(v)

    @classmethod
    def from_account(
        cls,
        account: "Account | LastChosenAccount | dict",
        techvibes_id: Optional[str] = None,
    ) -> "LastChosenAccount":
        """
        Build a reference from a full or partial account.

        Raises:
            DataShapeError: If no account number can be found
        """
        if isinstance(account, LastChosenAccount):
            if techvibes_id and not account.techvibes_id:
                return account.model_copy(update={"techvibes_id": techvibes_id})
            return account

        if isinstance(account, dict):
            # Partial dicts are fine as long as they name the account
            try:
                account = Account.model_validate(account)
            except ValidationError as e:
                raise DataShapeError("Last chosen account needs an account number") from e

        return cls(
            account_number=account.account_number,
            fintech=account.fintech,
            customer_id=account.customer_id,
            techvibes_id=account.techvibes_id or techvibes_id,
            account=account,
        )
