"""
Settlement: turn net balances into who-pays-whom transfers.

Greedy matching of the largest debt against the largest credit. It is not
guaranteed to find the fewest possible transfers, but it is deterministic:

- debtors are ordered most negative first, creditors largest first
- ties keep the original member order (Python's sort is stable)

Another tie-break gives a different, equally valid set of transfers,
so callers should fix member order rather than rely on a pairing.

The matching loop works on unrounded amounts; only the amount shown
on each Transfer is rounded to a whole BASE unit. A matched piece that
rounds to zero is not emitted; the members it would have settled are
returned in SettlementPlan.residuals.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Sequence

from trip_ledger.models.ledger import Balance, Transfer, round_to_unit

DEFAULT_EPSILON = Decimal("0.01")


class SettlementInvariantError(Exception):
    """Balances remain unsettled after applying the computed transfers."""

    def __init__(self, unsettled: dict[str, Decimal]):
        self.unsettled = unsettled
        summary = ", ".join(f"{member_id}={amount}" for member_id, amount in unsettled.items())
        super().__init__(f"Balances left unsettled: {summary}")


@dataclass
class SettlementPlan:
    """Transfers plus whatever the matching loop could not place."""
    transfers: list[Transfer] = field(default_factory=list)
    residuals: dict[str, Decimal] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return not self.residuals


def settle(
    balances: Sequence[Balance],
    epsilon: Decimal = DEFAULT_EPSILON,
) -> SettlementPlan:
    """
    Match debtors to creditors greedily.

    Residuals hold the signed net each member still has after the emitted
    transfers are paid at their exact amounts, the same check
    assert_settled makes. They are empty unless the nets do not sum to zero
    or a sub-unit piece had to be dropped.
    """
    debtors = sorted(
        (b for b in balances if b.net < -epsilon),
        key=lambda b: b.net,
    )
    creditors = sorted(
        (b for b in balances if b.net > epsilon),
        key=lambda b: -b.net,
    )

    # [member_id, remaining magnitude]
    owing = [[b.member_id, -b.net] for b in debtors]
    owed = [[b.member_id, b.net] for b in creditors]

    transfers = []
    i = j = 0
    while i < len(owing) and j < len(owed):
        debtor_id, debt = owing[i]
        creditor_id, credit = owed[j]

        amount = min(debt, credit)
        rounded = int(round_to_unit(amount))
        if rounded > 0:
            transfers.append(Transfer(
                from_member_id=debtor_id,
                to_member_id=creditor_id,
                amount=rounded,
                exact_amount=amount,
            ))

        owing[i][1] = debt - amount
        owed[j][1] = credit - amount

        if owing[i][1] <= epsilon:
            i += 1
        if owed[j][1] <= epsilon:
            j += 1

    # Pieces too small to emit stay with their members, alongside anything
    # left over when one side runs out first.
    residuals = {
        member_id: net
        for member_id, net in apply_transfers(balances, transfers).items()
        if abs(net) > epsilon
    }

    return SettlementPlan(transfers=transfers, residuals=residuals)


def compute_settlements(
    balances: Sequence[Balance],
    epsilon: Decimal = DEFAULT_EPSILON,
) -> list[Transfer]:
    """Ordered transfers that settle `balances`."""
    return settle(balances, epsilon).transfers


def apply_transfers(
    balances: Sequence[Balance],
    transfers: Sequence[Transfer],
) -> dict[str, Decimal]:
    """Net per member after every transfer is paid at its exact amount."""
    after = {balance.member_id: balance.net for balance in balances}
    for transfer in transfers:
        after[transfer.from_member_id] += transfer.exact_amount
        after[transfer.to_member_id] -= transfer.exact_amount
    return after


def assert_settled(
    balances: Sequence[Balance],
    transfers: Sequence[Transfer],
    epsilon: Decimal = DEFAULT_EPSILON,
) -> None:
    """
    Raise SettlementInvariantError if any member is left beyond epsilon.

    Sub-unit debts (under half a unit) are not emitted as transfers,
    so they show up here as unsettled.
    """
    unsettled = {
        member_id: net
        for member_id, net in apply_transfers(balances, transfers).items()
        if abs(net) > epsilon
    }
    if unsettled:
        raise SettlementInvariantError(unsettled)
