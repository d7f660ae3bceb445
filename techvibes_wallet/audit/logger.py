"""
Audit Logger

DESIGN DECISION: Every significant session action is logged through
structlog as a structured event. The audit logger:
- Is async so components can await it inline
- Never raises (a broken log sink must not break balance display)
- Supports correlation IDs to trace one resolution run end to end
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from techvibes_wallet.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def get_logger(name: Optional[str] = None):
    """Module logger, configured like the audit logger."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.

    Components take an optional AuditLogger; without one they only write
    their own debug lines.
    """

    def __init__(self, logger=None):
        self._logger = logger or structlog.get_logger("techvibes_wallet.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event at its severity.

        Returns False if the log sink failed, True otherwise.
        """
        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False
        return True

    async def log_account_selected(
        self,
        account_number: str,
        fintech: Optional[str],
        intent: int,
    ) -> None:
        """Log an explicit account switch."""
        await self.log(AuditEventBuilder.account_selected(account_number, fintech, intent))

    async def log_resolution_superseded(
        self,
        intent: int,
        current_intent: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a stale completion being dropped."""
        await self.log(
            AuditEventBuilder.resolution_superseded(intent, current_intent, correlation_id)
        )

    async def log_storage_error(self, key: str, operation: str, error_message: str) -> None:
        """Log a local storage failure."""
        await self.log(AuditEventBuilder.storage_error(key, operation, error_message))

    async def log_gateway_error(self, endpoint: str, error_message: str) -> None:
        """Log a failed backend call."""
        await self.log(AuditEventBuilder.gateway_error(endpoint, error_message))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a resolution run or an account switch.
    """
    return uuid4()
