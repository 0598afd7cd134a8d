"""
Main Orchestrator for Trip Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Trip editing (load → build a new trip → save → audit)
2. Settle-up (snapshot → validate → balances → transfers → report)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Stored trips are never mutated in place (copy-on-write)
- A settle-up computes from one immutable snapshot (copy-on-read)
- A bad exchange rate is rejected here, before the converter sees it
- Every step is audited

The ledger computations themselves are pure functions in trip_ledger.ledger.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import structlog

from trip_ledger.audit import AuditLogger, create_correlation_id
from trip_ledger.config import LedgerSettings, get_settings
from trip_ledger.ledger import compute_balances, net_total, settle, summarize_budget, to_decimal
from trip_ledger.models.audit import AuditEventType
from trip_ledger.models.ledger import (
    BudgetItem,
    BudgetSummary,
    CurrencyKind,
    Expense,
    Member,
    SettlementReport,
    TransferInstruction,
    Trip,
)
from trip_ledger.services.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryTripStorage,
    JsonFileTripStorage,
    JsonLinesAuditStorage,
    NotFoundError,
    StorageError,
    TripStorageInterface,
)
from trip_ledger.validation import LedgerValidator, is_valid_rate


logger = structlog.get_logger(__name__)


class InvalidExchangeRateError(ValueError):
    """Exchange rate is zero, negative, not finite or not a number."""

    def __init__(self, rate: object):
        self.rate = rate
        super().__init__(f"Exchange rate must be a finite positive number, got {rate!r}")


def parse_exchange_rate(rate: object) -> Decimal:
    """
    Turn user input into a usable rate or raise InvalidExchangeRateError.

    This is the boundary check the currency converter relies on.
    """
    try:
        value = to_decimal(rate)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidExchangeRateError(rate) from None
    if not is_valid_rate(value):
        raise InvalidExchangeRateError(rate)
    return value


class TripEditFlow:
    """
    Edits a trip's members, expenses, rate and budget list.

    Each operation loads the stored trip, builds a new Trip with
    model_copy(update=...) and saves it whole.
    """

    def __init__(
        self,
        storage: TripStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().ledger

    async def _load(self, trip_id: str) -> Trip:
        trip = await self._storage.get_trip(trip_id)
        if trip is None:
            raise NotFoundError(f"Trip not found: {trip_id}")
        return trip

    async def _save(self, trip: Trip, **changes) -> Trip:
        changes["updated_at"] = datetime.now(timezone.utc)
        updated = trip.model_copy(update=changes)
        try:
            await self._storage.save_trip(updated)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="save_trip",
                    error_message=str(e),
                    trip_id=trip.id,
                )
            raise
        return updated

    async def create_trip(
        self,
        name: str,
        member_names: Optional[list[str]] = None,
        exchange_rate: Optional[object] = None,
        base_currency: Optional[str] = None,
        foreign_currency: Optional[str] = None,
        trip_id: Optional[str] = None,
    ) -> Trip:
        """Create and save a new trip, optionally with its first members."""
        rate = (
            parse_exchange_rate(exchange_rate)
            if exchange_rate is not None
            else self._settings.default_exchange_rate
        )
        fields = dict(
            name=name,
            base_currency=base_currency or self._settings.base_currency,
            foreign_currency=foreign_currency or self._settings.foreign_currency,
            exchange_rate=rate,
            members=tuple(Member(name=n) for n in member_names or []),
        )
        if trip_id is not None:
            if await self._storage.get_trip(trip_id) is not None:
                raise DuplicateError(f"Trip already exists: {trip_id}")
            fields["id"] = trip_id

        trip = Trip(**fields)
        await self._storage.save_trip(trip)

        if self._audit_logger:
            await self._audit_logger.log_trip_created(trip_id=trip.id, name=trip.name)
            for member in trip.members:
                await self._audit_logger.log_member_changed(
                    trip_id=trip.id,
                    member_id=member.id,
                    name=member.name,
                    added=True,
                )
        return trip

    async def add_member(
        self,
        trip_id: str,
        name: str,
        member_id: Optional[str] = None,
    ) -> Member:
        trip = await self._load(trip_id)
        member = Member(name=name) if member_id is None else Member(id=member_id, name=name)
        if any(m.id == member.id for m in trip.members):
            raise DuplicateError(f"Member already in trip: {member.id}")

        await self._save(trip, members=trip.members + (member,))

        if self._audit_logger:
            await self._audit_logger.log_member_changed(
                trip_id=trip_id,
                member_id=member.id,
                name=member.name,
                added=True,
            )
        return member

    async def remove_member(self, trip_id: str, member_id: str) -> Trip:
        """
        Remove a member.

        Expenses that reference the member are kept as recorded;
        settle-up reports them as referring to an unknown member.
        """
        trip = await self._load(trip_id)
        removed = next((m for m in trip.members if m.id == member_id), None)
        if removed is None:
            raise NotFoundError(f"Member not found: {member_id}")

        updated = await self._save(
            trip,
            members=tuple(m for m in trip.members if m.id != member_id),
        )

        if self._audit_logger:
            await self._audit_logger.log_member_changed(
                trip_id=trip_id,
                member_id=member_id,
                name=removed.name,
                added=False,
            )
        return updated

    async def record_expense(self, trip_id: str, expense: Expense) -> Trip:
        trip = await self._load(trip_id)
        if any(e.id == expense.id for e in trip.expenses):
            raise DuplicateError(f"Expense already recorded: {expense.id}")

        updated = await self._save(trip, expenses=trip.expenses + (expense,))
        await self._log_expense(trip, AuditEventType.EXPENSE_RECORDED, expense)
        return updated

    async def update_expense(self, trip_id: str, expense: Expense) -> Trip:
        trip = await self._load(trip_id)
        if not any(e.id == expense.id for e in trip.expenses):
            raise NotFoundError(f"Expense not found: {expense.id}")

        updated = await self._save(
            trip,
            expenses=tuple(expense if e.id == expense.id else e for e in trip.expenses),
        )
        await self._log_expense(trip, AuditEventType.EXPENSE_UPDATED, expense)
        return updated

    async def delete_expense(self, trip_id: str, expense_id: str) -> Trip:
        trip = await self._load(trip_id)
        expense = next((e for e in trip.expenses if e.id == expense_id), None)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        updated = await self._save(
            trip,
            expenses=tuple(e for e in trip.expenses if e.id != expense_id),
        )
        await self._log_expense(trip, AuditEventType.EXPENSE_DELETED, expense)
        return updated

    async def _log_expense(
        self,
        trip: Trip,
        event_type: AuditEventType,
        expense: Expense,
    ) -> None:
        if not self._audit_logger:
            return
        currency = (
            trip.base_currency if expense.currency == CurrencyKind.BASE
            else trip.foreign_currency
        )
        await self._audit_logger.log_expense_changed(
            trip_id=trip.id,
            event_type=event_type,
            expense_id=expense.id,
            title=expense.title,
            amount=expense.amount,
            currency=currency,
        )

    async def set_exchange_rate(self, trip_id: str, rate: object) -> Trip:
        """
        Change the trip's FOREIGN → BASE rate.

        Raises InvalidExchangeRateError for zero, negative, NaN,
        infinite or non-numeric input.
        """
        trip = await self._load(trip_id)
        try:
            new_rate = parse_exchange_rate(rate)
        except InvalidExchangeRateError:
            if self._audit_logger:
                await self._audit_logger.log_exchange_rate_rejected(
                    trip_id=trip_id,
                    rate=rate,
                )
            raise

        updated = await self._save(trip, exchange_rate=new_rate)

        if self._audit_logger:
            await self._audit_logger.log_exchange_rate_updated(
                trip_id=trip_id,
                old_rate=trip.exchange_rate,
                new_rate=new_rate,
            )
        return updated

    async def add_budget_item(self, trip_id: str, item: BudgetItem) -> Trip:
        trip = await self._load(trip_id)
        if any(i.id == item.id for i in trip.budget_items):
            raise DuplicateError(f"Budget item already exists: {item.id}")

        updated = await self._save(trip, budget_items=trip.budget_items + (item,))

        if self._audit_logger:
            await self._audit_logger.log_budget_item_changed(
                trip_id=trip_id,
                event_type=AuditEventType.BUDGET_ITEM_ADDED,
                item_id=item.id,
                title=item.title,
            )
        return updated

    async def set_budget_item_paid(self, trip_id: str, item_id: str, paid: bool) -> Trip:
        trip = await self._load(trip_id)
        item = next((i for i in trip.budget_items if i.id == item_id), None)
        if item is None:
            raise NotFoundError(f"Budget item not found: {item_id}")

        changed = item.model_copy(update={"paid": paid})
        updated = await self._save(
            trip,
            budget_items=tuple(changed if i.id == item_id else i for i in trip.budget_items),
        )

        if self._audit_logger:
            await self._audit_logger.log_budget_item_changed(
                trip_id=trip_id,
                event_type=AuditEventType.BUDGET_ITEM_UPDATED,
                item_id=item_id,
                title=item.title,
            )
        return updated

    async def remove_budget_item(self, trip_id: str, item_id: str) -> Trip:
        trip = await self._load(trip_id)
        item = next((i for i in trip.budget_items if i.id == item_id), None)
        if item is None:
            raise NotFoundError(f"Budget item not found: {item_id}")

        updated = await self._save(
            trip,
            budget_items=tuple(i for i in trip.budget_items if i.id != item_id),
        )

        if self._audit_logger:
            await self._audit_logger.log_budget_item_changed(
                trip_id=trip_id,
                event_type=AuditEventType.BUDGET_ITEM_REMOVED,
                item_id=item_id,
                title=item.title,
            )
        return updated


class SettlementFlow:
    """
    Orchestrates the settle-up computation.

    Flow:
    1. Snapshot → copy the trip's members, expenses and rate
    2. Validate → report data-entry problems, never fix them
    3. Balances → paid / share / net per member
    4. Settle → greedy transfers
    5. Report → balances and named transfers for the UI

    Problems degrade the report rather than raising: a bad rate yields
    a report without balances, inconsistent input yields residuals.
    """

    def __init__(
        self,
        storage: TripStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger
        self._validator = validator or LedgerValidator(self._settings)
        self._audit_logger = audit_logger

    async def _load(self, trip_id: str) -> Trip:
        trip = await self._storage.get_trip(trip_id)
        if trip is None:
            raise NotFoundError(f"Trip not found: {trip_id}")
        return trip

    async def settle_up(
        self,
        trip_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementReport:
        """
        Compute balances and transfers for a stored trip.
        """
        correlation_id = correlation_id or create_correlation_id()
        trip = await self._load(trip_id)
        return await self.report_for(trip, correlation_id=correlation_id)

    async def report_for(
        self,
        trip: Trip,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementReport:
        """
        Compute the settlement report for an in-hand trip.
        """
        correlation_id = correlation_id or create_correlation_id()
        snapshot = trip.snapshot()

        validation = self._validator.validate(snapshot)
        if self._audit_logger:
            for stage in ("schema", "semantic"):
                issues = [i for i in validation.issues if i.stage == stage]
                if issues:
                    await self._audit_logger.log_validation_failed(
                        trip_id=trip.id,
                        stage=stage,
                        issues=[issue.model_dump(mode="json") for issue in issues],
                        correlation_id=correlation_id,
                    )

        report = SettlementReport(
            trip_id=trip.id,
            snapshot_taken_at=snapshot.taken_at,
            base_currency=trip.base_currency,
            foreign_currency=trip.foreign_currency,
            exchange_rate=snapshot.exchange_rate,
            validation=validation,
        )
        if not validation.can_compute:
            logger.warning(
                "settlement_skipped",
                trip_id=trip.id,
                reason="invalid_exchange_rate",
            )
            return report

        balances = compute_balances(
            snapshot.members,
            snapshot.expenses,
            snapshot.exchange_rate,
        )
        plan = settle(balances, self._settings.settlement_epsilon)

        names = {member.id: member.name for member in snapshot.members}
        transfers = [
            TransferInstruction(
                from_member_id=t.from_member_id,
                from_name=names[t.from_member_id],
                to_member_id=t.to_member_id,
                to_name=names[t.to_member_id],
                amount=t.amount,
            )
            for t in plan.transfers
        ]

        report = report.model_copy(update={
            "balances": balances,
            "transfers": transfers,
            "net_total": net_total(balances),
            "residuals": plan.residuals,
        })

        if self._audit_logger:
            if plan.residuals:
                await self._audit_logger.log_settlement_invariant_violated(
                    trip_id=trip.id,
                    residuals=plan.residuals,
                    correlation_id=correlation_id,
                )
            await self._audit_logger.log_settlement_computed(
                trip_id=trip.id,
                member_count=len(snapshot.members),
                expense_count=len(snapshot.expenses),
                transfer_count=len(transfers),
                transfer_total=report.transfer_total,
                correlation_id=correlation_id,
            )

        return report

    async def budget_summary(self, trip_id: str) -> BudgetSummary:
        trip = await self._load(trip_id)
        return summarize_budget(trip.budget_items, trip.exchange_rate)


def create_app_components(
    use_storage: bool = True,
) -> tuple[TripEditFlow, SettlementFlow, TripStorageInterface]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured storage backend.
                    Set to False for in-memory storage.

    Returns:
        (trip_edit_flow, settlement_flow, trip_storage)
    """
    settings = get_settings()
    trip_storage: TripStorageInterface
    audit_storage = None

    if use_storage and settings.storage.backend == "json":
        try:
            trip_storage = JsonFileTripStorage(settings.storage.data_dir)
            audit_storage = JsonLinesAuditStorage(settings.storage.data_dir)
        except OSError as e:
            # Data directory unusable - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            trip_storage = InMemoryTripStorage()
            audit_storage = InMemoryAuditStorage()
    else:
        trip_storage = InMemoryTripStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    ledger_settings = settings.ledger

    trip_edit_flow = TripEditFlow(
        storage=trip_storage,
        audit_logger=audit_logger,
        settings=ledger_settings,
    )
    settlement_flow = SettlementFlow(
        storage=trip_storage,
        audit_logger=audit_logger,
        settings=ledger_settings,
    )

    return trip_edit_flow, settlement_flow, trip_storage
