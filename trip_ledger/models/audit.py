"""
Audit Models for Trip Ledger

Every change to a trip's ledger inputs and every settle-up computation
is logged for audit purposes. This provides:
1. Traceability of who changed what in a shared trip
2. Debugging information when balances look wrong
3. A record of data-entry problems validation reported

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Trip editing
    TRIP_CREATED = "trip_created"
    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"
    EXPENSE_RECORDED = "expense_recorded"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    EXCHANGE_RATE_UPDATED = "exchange_rate_updated"
    EXCHANGE_RATE_REJECTED = "exchange_rate_rejected"
    BUDGET_ITEM_ADDED = "budget_item_added"
    BUDGET_ITEM_UPDATED = "budget_item_updated"
    BUDGET_ITEM_REMOVED = "budget_item_removed"

    # Validation
    SCHEMA_VALIDATION_FAILED = "schema_validation_failed"
    SEMANTIC_VALIDATION_FAILED = "semantic_validation_failed"

    # Settlement
    SETTLEMENT_COMPUTED = "settlement_computed"
    SETTLEMENT_INVARIANT_VIOLATED = "settlement_invariant_violated"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
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
    trip_id: Optional[str] = Field(
        default=None,
        description="Trip the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'member', 'settlement')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one settle-up run)"
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

    # Error information (if applicable)
    error_code: Optional[str] = None
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
            "trip_id": self.trip_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json_line(self) -> str:
        """Serialize as one line of a JSON-lines audit file."""
        return json.dumps(self.model_dump(mode="json"), ensure_ascii=False)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_changed(
            trip_id, AuditEventType.EXPENSE_RECORDED, expense_id, title, amount, currency
        )
        event = AuditEventBuilder.settlement_computed(trip_id, ...)
    """

    @staticmethod
    def trip_created(
        trip_id: str,
        name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRIP_CREATED,
            trip_id=trip_id,
            entity_type="trip",
            entity_id=trip_id,
            correlation_id=correlation_id,
            description=f"Trip created: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def member_changed(
        trip_id: str,
        member_id: str,
        name: str,
        added: bool,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.MEMBER_ADDED if added
                else AuditEventType.MEMBER_REMOVED
            ),
            trip_id=trip_id,
            entity_type="member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=f"Member {'added' if added else 'removed'}: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def expense_changed(
        trip_id: str,
        event_type: AuditEventType,
        expense_id: str,
        title: str,
        amount: str,
        currency: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            trip_id=trip_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense {verb}: {title} ({amount} {currency})",
            details={
                "title": title,
                "amount": amount,
                "currency": currency,
            },
            is_user_action=True,
        )

    @staticmethod
    def exchange_rate_updated(
        trip_id: str,
        old_rate: str,
        new_rate: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXCHANGE_RATE_UPDATED,
            trip_id=trip_id,
            entity_type="trip",
            entity_id=trip_id,
            correlation_id=correlation_id,
            description=f"Exchange rate changed from {old_rate} to {new_rate}",
            details={
                "old_rate": old_rate,
                "new_rate": new_rate,
            },
            is_user_action=True,
        )

    @staticmethod
    def exchange_rate_rejected(
        trip_id: str,
        rate: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXCHANGE_RATE_REJECTED,
            severity=AuditSeverity.WARNING,
            trip_id=trip_id,
            entity_type="trip",
            entity_id=trip_id,
            correlation_id=correlation_id,
            description=f"Rejected exchange rate: {rate}",
            details={"rate": rate},
            is_user_action=True,
        )

    @staticmethod
    def budget_item_changed(
        trip_id: str,
        event_type: AuditEventType,
        item_id: str,
        title: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        verb = event_type.value.rsplit("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            trip_id=trip_id,
            entity_type="budget_item",
            entity_id=item_id,
            correlation_id=correlation_id,
            description=f"Budget item {verb}: {title}",
            details={"title": title},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        trip_id: str,
        stage: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        event_type = (
            AuditEventType.SCHEMA_VALIDATION_FAILED
            if stage == "schema"
            else AuditEventType.SEMANTIC_VALIDATION_FAILED
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            trip_id=trip_id,
            entity_type="ledger",
            entity_id=trip_id,
            correlation_id=correlation_id,
            description=f"{stage.capitalize()} validation reported {len(issues)} issues",
            details={
                "stage": stage,
                "issues": issues,
            },
        )

    @staticmethod
    def settlement_computed(
        trip_id: str,
        member_count: int,
        expense_count: int,
        transfer_count: int,
        transfer_total: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_COMPUTED,
            trip_id=trip_id,
            entity_type="settlement",
            entity_id=trip_id,
            correlation_id=correlation_id,
            description=(
                f"Settlement computed: {transfer_count} transfers "
                f"for {member_count} members"
            ),
            details={
                "member_count": member_count,
                "expense_count": expense_count,
                "transfer_count": transfer_count,
                "transfer_total": transfer_total,
            },
        )

    @staticmethod
    def settlement_invariant_violated(
        trip_id: str,
        residuals: dict[str, str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_INVARIANT_VIOLATED,
            severity=AuditSeverity.ERROR,
            trip_id=trip_id,
            entity_type="settlement",
            entity_id=trip_id,
            correlation_id=correlation_id,
            description=f"{len(residuals)} members remain unsettled after transfers",
            error_code="residual_balance",
            details={"residuals": residuals},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        trip_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            trip_id=trip_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
