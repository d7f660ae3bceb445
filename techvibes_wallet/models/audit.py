"""
Audit Models for Techvibes Wallet

Every significant session action is logged for audit purposes.
This provides:
1. Traceability of account switches and which intent won
2. Debugging information when the backend misbehaves
3. A record of when balances were last resolved

DESIGN DECISION: Audit events are append-only structured records.
Account numbers are the entity ids; customer ids never appear in full.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Device identity
    DEVICE_ID_REUSED = "device_id_reused"
    DEVICE_ID_CREATED = "device_id_created"
    DEVICE_ID_UNAVAILABLE = "device_id_unavailable"
    DEVICE_MAPPED = "device_mapped"
    DEVICE_MAPPING_FAILED = "device_mapping_failed"

    # Account directory
    ACCOUNTS_FETCHED = "accounts_fetched"
    ACCOUNTS_FETCH_FAILED = "accounts_fetch_failed"
    RESOLUTION_COMPLETED = "resolution_completed"
    RESOLUTION_SUPERSEDED = "resolution_superseded"
    NO_ACCOUNT_AVAILABLE = "no_account_available"
    ACCOUNT_SELECTED = "account_selected"

    # Balance and history
    BALANCE_RESOLVED = "balance_resolved"
    BALANCE_FAILED = "balance_failed"
    HISTORY_FETCHED = "history_fetched"
    HISTORY_FAILED = "history_failed"

    # System events
    STORAGE_ERROR = "storage_error"
    GATEWAY_ERROR = "gateway_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def mask_identifier(value: Optional[str]) -> Optional[str]:
    """Keep the first six characters of an identifier for logs."""
    if not value:
        return value
    return value[:6] + "..." if len(value) > 6 else value


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'profile', 'device')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Account number, techvibes id or masked fingerprint"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one resolution run)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_selected("0012345678", "X", intent=4)
        event = AuditEventBuilder.balance_failed("0012345678", "timeout")
    """

    @staticmethod
    def device_id_resolved(fingerprint: str, created: bool) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.DEVICE_ID_CREATED if created
                else AuditEventType.DEVICE_ID_REUSED
            ),
            entity_type="device",
            entity_id=mask_identifier(fingerprint),
            description="Generated new device fingerprint" if created
            else "Reusing existing device fingerprint",
        )

    @staticmethod
    def device_id_unavailable(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEVICE_ID_UNAVAILABLE,
            severity=AuditSeverity.WARNING,
            entity_type="device",
            description="Device fingerprinting unavailable",
            error_message=error_message,
        )

    @staticmethod
    def device_mapping(
        fingerprint: Optional[str],
        success: bool,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.DEVICE_MAPPED if success
                else AuditEventType.DEVICE_MAPPING_FAILED
            ),
            severity=AuditSeverity.INFO if success else AuditSeverity.WARNING,
            entity_type="device",
            entity_id=mask_identifier(fingerprint),
            description="Device mapped" if success else "Device mapping failed",
            error_message=error_message,
        )

    @staticmethod
    def accounts_fetched(
        techvibes_id: str,
        fintech: Optional[str],
        account_numbers: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNTS_FETCHED,
            entity_type="profile",
            entity_id=techvibes_id,
            correlation_id=correlation_id,
            description=f"Fetched {len(account_numbers)} accounts",
            details={
                "fintech": fintech,
                "account_numbers": account_numbers,
            },
        )

    @staticmethod
    def accounts_fetch_failed(
        techvibes_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNTS_FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="profile",
            entity_id=techvibes_id,
            correlation_id=correlation_id,
            description="Account fetch failed; cache left untouched",
            error_message=error_message,
        )

    @staticmethod
    def resolution_completed(
        account_number: Optional[str],
        account_count: int,
        intent: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        if account_number is None:
            return AuditEvent(
                event_type=AuditEventType.NO_ACCOUNT_AVAILABLE,
                severity=AuditSeverity.WARNING,
                entity_type="account",
                correlation_id=correlation_id,
                description="Account resolution found no selectable account",
                details={"intent": intent},
            )
        return AuditEvent(
            event_type=AuditEventType.RESOLUTION_COMPLETED,
            entity_type="account",
            entity_id=account_number,
            correlation_id=correlation_id,
            description=f"Resolved current account from {account_count} candidates",
            details={"intent": intent, "account_count": account_count},
        )

    @staticmethod
    def resolution_superseded(
        intent: int,
        current_intent: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESOLUTION_SUPERSEDED,
            severity=AuditSeverity.DEBUG,
            entity_type="account",
            correlation_id=correlation_id,
            description="Discarded stale result; a newer intent exists",
            details={"intent": intent, "current_intent": current_intent},
        )

    @staticmethod
    def account_selected(
        account_number: str,
        fintech: Optional[str],
        intent: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_SELECTED,
            entity_type="account",
            entity_id=account_number,
            description=f"User switched to account {account_number}",
            details={"fintech": fintech, "intent": intent},
            is_user_action=True,
        )

    @staticmethod
    def balance_resolved(account_number: str, value: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_RESOLVED,
            entity_type="account",
            entity_id=account_number,
            description="Balance resolved",
            details={"value": value},
        )

    @staticmethod
    def balance_failed(account_number: Optional[str], error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_number,
            description="Balance could not be resolved; showing 0.00",
            error_message=error_message,
        )

    @staticmethod
    def history_fetched(
        customer_id: str,
        account_number: Optional[str],
        count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HISTORY_FETCHED,
            severity=AuditSeverity.DEBUG,
            entity_type="account",
            entity_id=account_number,
            description=f"History returned {count} records",
            details={"customer_id": mask_identifier(customer_id), "count": count},
        )

    @staticmethod
    def history_failed(
        customer_id: Optional[str],
        account_number: Optional[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HISTORY_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_number,
            description="History fetch failed",
            details={"customer_id": mask_identifier(customer_id)},
            error_message=error_message,
        )

    @staticmethod
    def storage_error(key: str, operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Local storage {operation} failed for {key}",
            error_message=error_message,
            details={"key": key, "operation": operation},
        )

    @staticmethod
    def gateway_error(endpoint: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GATEWAY_ERROR,
            severity=AuditSeverity.WARNING,
            description=f"Backend call failed: {endpoint}",
            error_message=error_message,
            details={"endpoint": endpoint},
        )
