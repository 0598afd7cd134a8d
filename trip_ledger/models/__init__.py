"""
Data Models Package

This package contains all Pydantic models used in the Trip Ledger system.
All data flowing through the ledger must conform to these schemas.
"""

from trip_ledger.models.ledger import (
    Balance,
    BudgetItem,
    BudgetSummary,
    CurrencyKind,
    Expense,
    LedgerSnapshot,
    Member,
    SettlementReport,
    Transfer,
    TransferInstruction,
    Trip,
    ValidationIssue,
    ValidationResult,
    round_to_unit,
)
from trip_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Balance",
    "BudgetItem",
    "BudgetSummary",
    "CurrencyKind",
    "Expense",
    "LedgerSnapshot",
    "Member",
    "SettlementReport",
    "Transfer",
    "TransferInstruction",
    "Trip",
    "ValidationIssue",
    "ValidationResult",
    "round_to_unit",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
