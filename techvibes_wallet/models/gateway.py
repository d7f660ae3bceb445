"""
Gateway Result Models

Every backend call resolves to a GatewayResult, whatever went wrong on
the way. Callers branch on `success` and never catch exceptions.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class GatewayResult(BaseModel):
    """Normalised outcome of one request/response exchange."""

    success: bool
    data: Any = None
    error: Optional[str] = Field(
        default=None,
        description="Human-readable failure message"
    )
    message: Optional[str] = Field(
        default=None,
        description="Backend message on success, if any"
    )
    status_code: Optional[int] = None
    raw: Optional[dict[str, Any]] = Field(
        default=None,
        description="Full decoded envelope, for sibling fields like current_balance"
    )

    @classmethod
    def ok(
        cls,
        data: Any,
        message: Optional[str] = None,
        raw: Optional[dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ) -> "GatewayResult":
        return cls(success=True, data=data, message=message, raw=raw, status_code=status_code)

    @classmethod
    def fail(
        cls,
        error: str,
        raw: Optional[dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ) -> "GatewayResult":
        return cls(success=False, error=error, raw=raw, status_code=status_code)


class DeviceRegistration(BaseModel):
    """Whether the backend already maps this device to any users."""

    success: bool
    mapped: bool = False
    mapped_users: list[dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
