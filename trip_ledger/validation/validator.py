"""
Two-Stage Ledger Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Exchange rate is a finite positive number
- Member and expense ids are unique
- Every expense is split across at least one member

STAGE 2 - SEMANTIC VALIDATION (skipped only when the rate is unusable):
- Payer and split members refer to current members
- Net balances sum to zero within tolerance

IMPORTANT: Validation NEVER silently fixes issues.
An expense split across nobody or across a removed member is computed
exactly as recorded; the issue is reported so the user can correct it.
"""

from collections import Counter
from decimal import Decimal
from typing import Optional

from trip_ledger.config import LedgerSettings, get_settings
from trip_ledger.ledger import compute_balances, net_total
from trip_ledger.models.ledger import (
    LedgerSnapshot,
    ValidationIssue,
    ValidationResult,
)


def is_valid_rate(rate: Decimal) -> bool:
    """A usable exchange rate is finite and strictly positive."""
    return rate.is_finite() and rate > 0


class LedgerValidator:
    """
    Validates a ledger snapshot before balances are shown.

    Stage 1 problems that make computation meaningless (a bad rate) set
    can_compute to False. Everything else still lets the ledger compute.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def _validate_schema(
        self,
        snapshot: LedgerSnapshot,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not is_valid_rate(snapshot.exchange_rate):
            issues.append(ValidationIssue(
                field="exchange_rate",
                issue_type="invalid_rate",
                message=f"Exchange rate must be a positive number, got {snapshot.exchange_rate}",
                severity="error",
                suggested_fix="Enter the current rate, e.g. 165 for 1 EUR = 165 JPY",
            ))

        if not snapshot.members:
            issues.append(ValidationIssue(
                field="members",
                issue_type="missing",
                message="The trip has no members yet",
                severity="warning",
                suggested_fix="Add the people travelling together",
            ))

        member_counts = Counter(member.id for member in snapshot.members)
        for member_id, count in member_counts.items():
            if count > 1:
                issues.append(ValidationIssue(
                    field="members",
                    issue_type="duplicate",
                    message=f"Member id {member_id} is used {count} times",
                    severity="error",
                    entity_id=member_id,
                ))

        expense_counts = Counter(expense.id for expense in snapshot.expenses)
        for expense_id, count in expense_counts.items():
            if count > 1:
                issues.append(ValidationIssue(
                    field="expenses",
                    issue_type="duplicate",
                    message=f"Expense id {expense_id} is used {count} times",
                    severity="error",
                    entity_id=expense_id,
                ))

        for expense in snapshot.expenses:
            if not expense.split_with:
                issues.append(ValidationIssue(
                    field="split_with",
                    issue_type="empty_split",
                    message=(
                        f"'{expense.title}' is not split with anyone, "
                        "so nobody owes the payer for it"
                    ),
                    severity="error",
                    entity_id=expense.id,
                    suggested_fix="Choose who shares this expense",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_semantic(
        self,
        snapshot: LedgerSnapshot,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        member_ids = {member.id for member in snapshot.members}

        for expense in snapshot.expenses:
            if expense.paid_by not in member_ids:
                issues.append(ValidationIssue(
                    field="paid_by",
                    issue_type="unknown_member",
                    message=(
                        f"'{expense.title}' was paid by a member who is no longer "
                        "in the trip; the payment is ignored"
                    ),
                    severity="warning",
                    stage="semantic",
                    entity_id=expense.id,
                    suggested_fix="Edit the expense and pick a current member as payer",
                ))

            unknown = [m for m in expense.split_with if m not in member_ids]
            if unknown:
                issues.append(ValidationIssue(
                    field="split_with",
                    issue_type="unknown_member",
                    message=(
                        f"'{expense.title}' is split with {len(unknown)} removed "
                        f"member(s); their part of the cost is owed by nobody"
                    ),
                    severity="warning",
                    stage="semantic",
                    entity_id=expense.id,
                    suggested_fix="Edit the expense and update who shares it",
                ))

        drift = net_total(compute_balances(
            snapshot.members,
            snapshot.expenses,
            snapshot.exchange_rate,
        ))
        if abs(drift) > self._settings.zero_sum_tolerance:
            issues.append(ValidationIssue(
                field="balances",
                issue_type="zero_sum_drift",
                message=f"Balances do not add up to zero (off by {drift:.2f})",
                severity="warning",
                stage="semantic",
                suggested_fix="Check expenses paid by or split with removed members",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def validate(self, snapshot: LedgerSnapshot) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Stage 2 runs whenever the exchange rate is usable, so stage 1
        errors on one expense do not hide reference problems on another.
        """
        all_issues = []
        can_compute = is_valid_rate(snapshot.exchange_rate)

        schema_valid, schema_issues = self._validate_schema(snapshot)
        all_issues.extend(schema_issues)

        semantic_valid = False
        if can_compute:
            semantic_valid, semantic_issues = self._validate_semantic(snapshot)
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            trip_id=snapshot.trip_id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            can_compute=can_compute,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "✅ All expenses check out."

        lines = []

        if result.has_errors:
            lines.append("❌ Some expenses need fixing:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please double-check:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        lines.append("")
        if result.can_compute:
            lines.append("Balances below use the expenses exactly as recorded.")
        else:
            lines.append("Balances can't be shown until the exchange rate is fixed.")

        return "\n".join(lines)
