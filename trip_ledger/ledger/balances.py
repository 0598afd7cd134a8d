"""
Balance computation.

Every member's paid, share and net are recomputed from scratch on each
call. Shares are exact Decimal quotients; only the settlement transfers
are rounded to whole units.
"""

from decimal import Decimal
from typing import Iterable, Sequence

from trip_ledger.ledger.currency import Number, to_base
from trip_ledger.models.ledger import Balance, Expense, Member

ZERO = Decimal("0")


def compute_balances(
    members: Sequence[Member],
    expenses: Iterable[Expense],
    rate: Number,
) -> list[Balance]:
    """
    Compute one Balance per member, in the order of `members`.

    References to ids that are not members are skipped. The split
    denominator is len(split_with) including such unknown ids, so their
    portion of the cost is owed by nobody. An empty split_with leaves the
    whole amount paid but unowed.
    """
    paid = {member.id: ZERO for member in members}
    share = {member.id: ZERO for member in members}

    for expense in expenses:
        converted = to_base(expense.amount, expense.currency, rate)

        if expense.paid_by in paid:
            paid[expense.paid_by] += converted

        n = len(expense.split_with)
        if n > 0:
            per_person = converted / n
            for member_id in expense.split_with:
                if member_id in share:
                    share[member_id] += per_person

    return [
        Balance(
            member_id=member.id,
            member_name=member.name,
            paid=paid[member.id],
            share=share[member.id],
            net=paid[member.id] - share[member.id],
        )
        for member in members
    ]


def net_total(balances: Iterable[Balance]) -> Decimal:
    """Sum of every member's net; zero for consistent input."""
    return sum((balance.net for balance in balances), ZERO)
