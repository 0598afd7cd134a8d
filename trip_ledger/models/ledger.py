"""
Core Data Models for Trip Ledger

These models define the strict schemas for all data flowing through the ledger.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Be immutable, so a computation always sees one consistent snapshot

DESIGN DECISION: Records handed to the ledger are frozen Pydantic v2 models.
Editing a trip builds a new Trip instead of mutating lists in place.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


def round_to_unit(amount: Decimal) -> Decimal:
    """Round a BASE amount half-up to a whole currency unit."""
    return amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


# =============================================================================
# ENUMS
# =============================================================================

class CurrencyKind(str, Enum):
    """
    Which of the trip's two currencies an amount is expressed in.

    A trip settles in its BASE currency. Exactly one FOREIGN currency
    is supported, converted with a single static rate.
    """
    BASE = "base"
    FOREIGN = "foreign"


# =============================================================================
# LEDGER INPUT RECORDS
# =============================================================================

class Member(BaseModel):
    """A trip member. The ledger only ever reads membership."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=_new_id,
        min_length=1,
        description="Unique, immutable member id"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )


class Expense(BaseModel):
    """
    A shared expense.

    split_with may omit the payer and may be empty; an empty split is a
    data-entry problem that validation reports rather than fixes.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=_new_id,
        min_length=1,
        description="Unique expense id"
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was spent on"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount in the expense's own currency"
    )
    currency: CurrencyKind = Field(
        default=CurrencyKind.BASE,
        description="Currency the amount is expressed in"
    )
    paid_by: str = Field(
        ...,
        min_length=1,
        description="Member id of the payer"
    )
    split_with: tuple[str, ...] = Field(
        default=(),
        description="Member ids sharing this expense equally"
    )
    expense_date: Optional[date] = Field(
        default=None,
        description="Day the expense happened"
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="Creation time, used for default ordering"
    )

    @field_validator('split_with')
    @classmethod
    def reject_duplicate_split_members(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """A member can only appear once in a split."""
        seen = set()
        for member_id in v:
            if member_id in seen:
                raise ValueError(f"Member {member_id} appears twice in split_with")
            seen.add(member_id)
        return v


class BudgetItem(BaseModel):
    """A planned trip cost, ticked off once paid."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id, min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    currency: CurrencyKind = CurrencyKind.BASE
    paid: bool = False


# =============================================================================
# DERIVED RESULTS
# =============================================================================

class Balance(BaseModel):
    """
    One member's position, in BASE currency.

    Values keep full precision; the display_* properties round for the UI.
    """
    model_config = ConfigDict(frozen=True)

    member_id: str
    member_name: str
    paid: Decimal = Field(allow_inf_nan=True, description="Total this member paid")
    share: Decimal = Field(allow_inf_nan=True, description="Total this member owes")
    net: Decimal = Field(
        allow_inf_nan=True,
        description="paid - share; positive means owed money"
    )

    @property
    def display_paid(self) -> Decimal:
        return round_to_unit(self.paid)

    @property
    def display_share(self) -> Decimal:
        return round_to_unit(self.share)

    @property
    def display_net(self) -> Decimal:
        return round_to_unit(self.net)


class Transfer(BaseModel):
    """
    A suggested payment: from_member_id pays to_member_id.

    amount is rounded to a whole BASE unit for display and execution.
    exact_amount is what the settlement loop actually consumed.
    """
    model_config = ConfigDict(frozen=True)

    from_member_id: str
    to_member_id: str
    amount: int = Field(..., gt=0)
    exact_amount: Decimal = Field(..., gt=0)

    @model_validator(mode='after')
    def reject_self_transfer(self) -> 'Transfer':
        if self.from_member_id == self.to_member_id:
            raise ValueError("A member cannot pay themselves")
        return self


class TransferInstruction(BaseModel):
    """A Transfer with the display names the UI shows."""
    model_config = ConfigDict(frozen=True)

    from_member_id: str
    from_name: str
    to_member_id: str
    to_name: str
    amount: int = Field(..., gt=0)


class BudgetSummary(BaseModel):
    """Totals of a trip's budget list, in BASE currency."""
    model_config = ConfigDict(frozen=True)

    total: Decimal
    paid: Decimal
    outstanding: Decimal
    item_count: int = Field(ge=0)
    paid_count: int = Field(ge=0)


# =============================================================================
# TRIP AGGREGATE
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    Immutable copy of everything one ledger computation reads.

    The exchange rate is not range-checked here; validation reports a bad
    rate instead of refusing to build the snapshot.
    """
    model_config = ConfigDict(frozen=True)

    trip_id: str
    members: tuple[Member, ...] = ()
    expenses: tuple[Expense, ...] = ()
    exchange_rate: Decimal = Field(..., allow_inf_nan=True)
    taken_at: datetime = Field(default_factory=_utcnow)


class Trip(BaseModel):
    """
    A trip and its ledger inputs, persisted keyed by id.

    CRITICAL: Trips are never edited in place. Flows build a new Trip
    with model_copy(update=...) and save it whole.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id, min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    base_currency: str = Field(default="JPY", min_length=3, max_length=3)
    foreign_currency: str = Field(default="EUR", min_length=3, max_length=3)
    exchange_rate: Decimal = Field(
        default=Decimal("165"),
        gt=0,
        description="1 FOREIGN = rate x BASE"
    )

    members: tuple[Member, ...] = ()
    expenses: tuple[Expense, ...] = ()
    budget_items: tuple[BudgetItem, ...] = ()

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode='after')
    def validate_unique_ids(self) -> 'Trip':
        """Member, expense and budget item ids are unique within a trip."""
        for label, records in (
            ("member", self.members),
            ("expense", self.expenses),
            ("budget item", self.budget_items),
        ):
            ids = [record.id for record in records]
            if len(ids) != len(set(ids)):
                raise ValueError(f"Duplicate {label} id in trip {self.id}")
        return self

    def member_names(self) -> dict[str, str]:
        return {member.id: member.name for member in self.members}

    def expenses_in_order(self) -> list[Expense]:
        """Expenses oldest first, the default display order."""
        return sorted(self.expenses, key=lambda e: e.created_at)

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            trip_id=self.id,
            members=self.members,
            expenses=self.expenses,
            exchange_rate=self.exchange_rate,
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in ledger input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'empty_split', 'unknown_member')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    stage: str = Field(
        default="schema",
        pattern="^(schema|semantic)$",
        description="Validation stage that reported the issue"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Expense or member the issue is about"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage ledger validation.

    Stage 1: Schema validation (rate, split sets)
    Stage 2: Semantic validation (references, zero-sum)
    """

    trip_id: str
    validated_at: datetime = Field(default_factory=_utcnow)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool
    can_compute: bool = Field(
        ...,
        description="Can balances be computed without propagating NaN/Infinity?"
    )

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# SETTLEMENT REPORT
# =============================================================================

class SettlementReport(BaseModel):
    """
    Everything the settle-up screen shows for one trip.

    residuals lists members still unsettled after the transfers; it is
    only non-empty when the input breaks the zero-sum invariant.
    """

    trip_id: str
    computed_at: datetime = Field(default_factory=_utcnow)
    snapshot_taken_at: datetime
    base_currency: str
    foreign_currency: str
    exchange_rate: Decimal = Field(..., allow_inf_nan=True)

    balances: list[Balance] = Field(default_factory=list)
    transfers: list[TransferInstruction] = Field(default_factory=list)
    validation: ValidationResult

    net_total: Decimal = Decimal("0")
    residuals: dict[str, Decimal] = Field(default_factory=dict)

    @property
    def is_settled(self) -> bool:
        return not self.residuals

    @property
    def transfer_total(self) -> int:
        return sum(t.amount for t in self.transfers)
