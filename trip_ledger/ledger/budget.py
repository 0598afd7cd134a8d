"""Budget list totals in BASE currency."""

from decimal import Decimal
from typing import Iterable

from trip_ledger.ledger.currency import Number, to_base
from trip_ledger.models.ledger import BudgetItem, BudgetSummary


def summarize_budget(items: Iterable[BudgetItem], rate: Number) -> BudgetSummary:
    total = paid = Decimal("0")
    item_count = paid_count = 0

    for item in items:
        converted = to_base(item.amount, item.currency, rate)
        total += converted
        item_count += 1
        if item.paid:
            paid += converted
            paid_count += 1

    return BudgetSummary(
        total=total,
        paid=paid,
        outstanding=total - paid,
        item_count=item_count,
        paid_count=paid_count,
    )
