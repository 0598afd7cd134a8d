"""
Audit Logger

DESIGN DECISION: Every change to a trip and every settle-up is logged.
This provides:
1. Traceability in a shared trip
2. Debugging capability when balances look wrong
3. A record of data-entry problems reported by validation

The audit logger:
- Is async, like the storage it writes to
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from trip_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from trip_ledger.services.storage import AuditStorageInterface


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


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("trip_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_trip_created(
        self,
        trip_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log trip creation."""
        await self.log(AuditEventBuilder.trip_created(
            trip_id=trip_id,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_member_changed(
        self,
        trip_id: str,
        member_id: str,
        name: str,
        added: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a member joining or leaving the trip."""
        await self.log(AuditEventBuilder.member_changed(
            trip_id=trip_id,
            member_id=member_id,
            name=name,
            added=added,
            correlation_id=correlation_id,
        ))

    async def log_expense_changed(
        self,
        trip_id: str,
        event_type: AuditEventType,
        expense_id: str,
        title: str,
        amount: Decimal,
        currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an expense being recorded, updated or deleted."""
        await self.log(AuditEventBuilder.expense_changed(
            trip_id=trip_id,
            event_type=event_type,
            expense_id=expense_id,
            title=title,
            amount=str(amount),
            currency=currency,
            correlation_id=correlation_id,
        ))

    async def log_exchange_rate_updated(
        self,
        trip_id: str,
        old_rate: Decimal,
        new_rate: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.exchange_rate_updated(
            trip_id=trip_id,
            old_rate=str(old_rate),
            new_rate=str(new_rate),
            correlation_id=correlation_id,
        ))

    async def log_exchange_rate_rejected(
        self,
        trip_id: str,
        rate: object,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.exchange_rate_rejected(
            trip_id=trip_id,
            rate=str(rate),
            correlation_id=correlation_id,
        ))

    async def log_budget_item_changed(
        self,
        trip_id: str,
        event_type: AuditEventType,
        item_id: str,
        title: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.budget_item_changed(
            trip_id=trip_id,
            event_type=event_type,
            item_id=item_id,
            title=title,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        trip_id: str,
        stage: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log validation problems found before a settle-up."""
        await self.log(AuditEventBuilder.validation_failed(
            trip_id=trip_id,
            stage=stage,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_settlement_computed(
        self,
        trip_id: str,
        member_count: int,
        expense_count: int,
        transfer_count: int,
        transfer_total: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a completed settle-up computation."""
        await self.log(AuditEventBuilder.settlement_computed(
            trip_id=trip_id,
            member_count=member_count,
            expense_count=expense_count,
            transfer_count=transfer_count,
            transfer_total=transfer_total,
            correlation_id=correlation_id,
        ))

    async def log_settlement_invariant_violated(
        self,
        trip_id: str,
        residuals: dict[str, Decimal],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log members left unsettled after the transfers."""
        await self.log(AuditEventBuilder.settlement_invariant_violated(
            trip_id=trip_id,
            residuals={member_id: str(net) for member_id, net in residuals.items()},
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        trip_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            trip_id=trip_id,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., opening settle-up).
    Pass it through all subsequent operations.
    """
    return uuid4()
