"""
Tests for the ledger computations: currency, balances, settlement, budget.
"""

import random
from decimal import Decimal

import pytest

from trip_ledger.ledger import (
    SettlementInvariantError,
    apply_transfers,
    assert_settled,
    compute_balances,
    compute_settlements,
    net_total,
    settle,
    summarize_budget,
    to_base,
    to_decimal,
)
from trip_ledger.models.ledger import (
    Balance,
    BudgetItem,
    CurrencyKind,
    Expense,
    Member,
)


def expense(amount, paid_by, split_with, currency=CurrencyKind.BASE, **kwargs):
    return Expense(
        title=kwargs.pop("title", "Expense"),
        amount=Decimal(str(amount)),
        currency=currency,
        paid_by=paid_by,
        split_with=split_with,
        **kwargs,
    )


def balances_with(nets: dict) -> list[Balance]:
    """Balances with the given nets, in dict order."""
    return [
        Balance(
            member_id=member_id,
            member_name=member_id.upper(),
            paid=Decimal("0"),
            share=Decimal("0"),
            net=Decimal(str(net)),
        )
        for member_id, net in nets.items()
    ]


def as_tuples(transfers):
    return [(t.from_member_id, t.to_member_id, t.amount) for t in transfers]


class TestCurrency:
    """Tests for conversion to BASE currency."""

    def test_base_amount_is_unchanged(self):
        for rate in (Decimal("165"), Decimal("0.5"), Decimal("0")):
            assert to_base(Decimal("1000"), CurrencyKind.BASE, rate) == Decimal("1000")

    def test_foreign_amount_is_multiplied(self):
        assert to_base(Decimal("10"), CurrencyKind.FOREIGN, Decimal("165")) == Decimal("1650")
        assert to_base(Decimal("12.34"), CurrencyKind.FOREIGN, Decimal("161.7")) == Decimal("1995.378")

    def test_accepts_plain_numbers(self):
        """Floats go through str() so 0.1 stays 0.1."""
        assert to_base(0.1, CurrencyKind.FOREIGN, 3) == Decimal("0.3")
        assert to_decimal(0.1) == Decimal("0.1")

    def test_bad_rate_propagates(self):
        """The converter does not validate the rate."""
        assert to_base(Decimal("10"), CurrencyKind.FOREIGN, Decimal("NaN")).is_nan()
        assert to_base(Decimal("10"), CurrencyKind.FOREIGN, Decimal("Infinity")).is_infinite()
        assert to_base(Decimal("10"), CurrencyKind.FOREIGN, Decimal("-2")) == Decimal("-20")


class TestBalances:
    """Tests for compute_balances."""

    def test_two_members_even_split(self, alice, bob):
        balances = compute_balances(
            [alice, bob],
            [expense(1000, "a", ["a", "b"])],
            Decimal("165"),
        )
        assert [b.member_id for b in balances] == ["a", "b"]
        assert balances[0].paid == Decimal("1000")
        assert balances[0].share == Decimal("500")
        assert balances[0].net == Decimal("500")
        assert balances[1].net == Decimal("-500")

    def test_three_way_split(self, alice, bob, carol):
        balances = compute_balances(
            [alice, bob, carol],
            [expense(300, "a", ["a", "b", "c"])],
            Decimal("165"),
        )
        assert [b.share for b in balances] == [Decimal("100")] * 3
        assert [b.net for b in balances] == [Decimal("200"), Decimal("-100"), Decimal("-100")]

    def test_foreign_expense_uses_rate(self, alice, bob):
        balances = compute_balances(
            [alice, bob],
            [expense(10, "b", ["a", "b"], currency=CurrencyKind.FOREIGN)],
            Decimal("165"),
        )
        assert balances[1].paid == Decimal("1650")
        assert balances[1].net == Decimal("825")
        assert balances[0].net == Decimal("-825")

    def test_payer_need_not_be_in_split(self, alice, bob, carol):
        balances = compute_balances(
            [alice, bob, carol],
            [expense(600, "a", ["b", "c"])],
            Decimal("1"),
        )
        assert [b.net for b in balances] == [Decimal("600"), Decimal("-300"), Decimal("-300")]

    def test_shares_are_not_rounded(self, alice, bob, carol):
        balances = compute_balances(
            [alice, bob, carol],
            [expense(1000, "a", ["a", "b", "c"])],
            Decimal("1"),
        )
        assert balances[1].share == Decimal("1000") / 3
        assert balances[1].display_share == Decimal("333")

    def test_unknown_split_member_still_counts_in_denominator(self, alice, bob):
        """A removed member's part of the cost is owed by nobody."""
        balances = compute_balances(
            [alice, bob],
            [expense(900, "a", ["a", "b", "gone"])],
            Decimal("1"),
        )
        assert balances[0].share == Decimal("300")
        assert balances[1].share == Decimal("300")
        assert balances[0].net == Decimal("600")
        assert net_total(balances) == Decimal("300")

    def test_unknown_payer_is_skipped(self, alice, bob):
        balances = compute_balances(
            [alice, bob],
            [expense(100, "gone", ["a", "b"])],
            Decimal("1"),
        )
        assert [b.paid for b in balances] == [Decimal("0"), Decimal("0")]
        assert [b.net for b in balances] == [Decimal("-50"), Decimal("-50")]

    def test_empty_split_is_paid_but_owed_by_nobody(self, alice, bob):
        balances = compute_balances(
            [alice, bob],
            [expense(400, "a", [])],
            Decimal("1"),
        )
        assert balances[0].paid == Decimal("400")
        assert balances[0].share == Decimal("0")
        assert balances[1].net == Decimal("0")

    def test_no_expenses(self, alice, bob):
        balances = compute_balances([alice, bob], [], Decimal("165"))
        assert all(b.net == 0 and b.paid == 0 and b.share == 0 for b in balances)

    def test_split_order_does_not_matter(self, alice, bob, carol):
        members = [alice, bob, carol]
        forward = compute_balances(members, [expense(100, "a", ["a", "b", "c"], id="e")], 1)
        backward = compute_balances(members, [expense(100, "a", ["c", "b", "a"], id="e")], 1)
        assert [b.share for b in forward] == [b.share for b in backward]

    def test_expense_order_does_not_matter(self, alice, bob, carol):
        members = [alice, bob, carol]
        expenses = [
            expense(300, "a", ["a", "b", "c"]),
            expense(45, "b", ["a", "b"], currency=CurrencyKind.FOREIGN),
            expense(1200, "c", ["a", "c"]),
        ]
        first = compute_balances(members, expenses, Decimal("160"))
        second = compute_balances(members, list(reversed(expenses)), Decimal("160"))
        assert [b.net for b in first] == [b.net for b in second]

    def test_zero_sum_for_consistent_input(self, alice, bob, carol):
        rng = random.Random(7)
        members = [alice, bob, carol]
        ids = [m.id for m in members]
        expenses = [
            expense(
                rng.randint(1, 50000),
                rng.choice(ids),
                rng.sample(ids, rng.randint(1, 3)),
                currency=rng.choice(list(CurrencyKind)),
            )
            for _ in range(40)
        ]
        balances = compute_balances(members, expenses, Decimal("163.25"))
        assert abs(net_total(balances)) <= Decimal("1")


class TestSettlement:
    """Tests for the greedy settlement solver."""

    def test_single_debt(self):
        transfers = compute_settlements(balances_with({"a": 500, "b": -500}))
        assert as_tuples(transfers) == [("b", "a", 500)]

    def test_two_equal_debtors_keep_member_order(self):
        transfers = compute_settlements(balances_with({"a": 200, "b": -100, "c": -100}))
        assert as_tuples(transfers) == [("b", "a", 100), ("c", "a", 100)]

    def test_equal_debtors_in_other_order(self):
        """Ties follow member order, not member id."""
        transfers = compute_settlements(balances_with({"c": -100, "a": 200, "b": -100}))
        assert as_tuples(transfers) == [("c", "a", 100), ("b", "a", 100)]

    def test_three_debtors_one_creditor(self):
        transfers = compute_settlements(balances_with({"w": -30, "x": 100, "y": -50, "z": -20}))
        assert as_tuples(transfers) == [("y", "x", 50), ("w", "x", 30), ("z", "x", 20)]

    def test_largest_debt_meets_largest_credit(self):
        transfers = compute_settlements(
            balances_with({"a": 70, "b": 30, "c": -60, "d": -40})
        )
        assert as_tuples(transfers) == [("c", "a", 60), ("d", "a", 10), ("d", "b", 30)]

    def test_both_cursors_advance_on_exact_match(self):
        transfers = compute_settlements(balances_with({"a": 50, "b": 50, "c": -50, "d": -50}))
        assert as_tuples(transfers) == [("c", "a", 50), ("d", "b", 50)]

    def test_noise_below_epsilon_is_ignored(self):
        transfers = compute_settlements(balances_with({"a": "0.004", "b": "-0.004"}))
        assert transfers == []

    def test_all_settled(self):
        assert compute_settlements(balances_with({"a": 0, "b": 0})) == []

    def test_amounts_rounded_but_matching_uses_exact_values(self, alice, bob, carol):
        balances = compute_balances(
            [alice, bob, carol],
            [expense(1000, "a", ["a", "b", "c"])],
            Decimal("1"),
        )
        transfers = compute_settlements(balances)
        assert as_tuples(transfers) == [("b", "a", 333), ("c", "a", 333)]
        assert transfers[0].exact_amount == Decimal("1000") / 3
        assert_settled(balances, transfers)

    def test_rounding_half_up(self):
        transfers = compute_settlements(balances_with({"a": "10.5", "b": "-10.5"}))
        assert as_tuples(transfers) == [("b", "a", 11)]
        assert transfers[0].exact_amount == Decimal("10.5")

    def test_no_self_transfer_and_settles_random_trips(self):
        rng = random.Random(42)
        members = [Member(id=f"m{i}", name=f"M{i}") for i in range(6)]
        ids = [m.id for m in members]
        for _ in range(25):
            # Multiples of 60 split evenly across up to 6 people
            expenses = [
                expense(
                    rng.randint(1, 1500) * 60,
                    rng.choice(ids),
                    rng.sample(ids, rng.randint(1, len(ids))),
                    currency=rng.choice(list(CurrencyKind)),
                )
                for _ in range(rng.randint(1, 15))
            ]
            balances = compute_balances(members, expenses, Decimal("165"))
            plan = settle(balances)

            assert plan.is_complete
            assert all(t.from_member_id != t.to_member_id for t in plan.transfers)
            assert len(plan.transfers) < len(members)
            after = apply_transfers(balances, plan.transfers)
            assert all(abs(net) <= Decimal("0.01") for net in after.values())

    def test_deterministic(self, alice, bob, carol):
        members = [alice, bob, carol]
        expenses = [
            expense(300, "a", ["a", "b", "c"]),
            expense(20, "c", ["a", "b"], currency=CurrencyKind.FOREIGN),
        ]
        first = compute_settlements(compute_balances(members, expenses, Decimal("165")))
        second = compute_settlements(compute_balances(members, expenses, Decimal("165")))
        assert first == second

    def test_inconsistent_input_leaves_residuals(self, alice, bob):
        """An empty split breaks zero-sum; the leftover is reported."""
        balances = compute_balances(
            [alice, bob],
            [expense(400, "a", []), expense(100, "b", ["a", "b"])],
            Decimal("1"),
        )
        plan = settle(balances)

        assert as_tuples(plan.transfers) == []
        assert plan.residuals == {"a": Decimal("350"), "b": Decimal("50")}
        assert not plan.is_complete

    def test_assert_settled_raises_on_residuals(self):
        balances = balances_with({"a": 400, "b": -100})
        transfers = compute_settlements(balances)
        with pytest.raises(SettlementInvariantError) as exc_info:
            assert_settled(balances, transfers)
        assert exc_info.value.unsettled == {"a": Decimal("300")}

    def test_sub_unit_piece_is_reported_not_lost(self):
        """A piece rounding to zero is kept as a residual on both members."""
        members = [Member(id=m, name=m.upper()) for m in ("a", "b", "x", "y")]
        balances = compute_balances(
            members,
            [
                expense(200, "a", ["a", "x"]),
                expense("99.4", "b", ["b", "y"]),
                expense("0.3", "a", ["y"]),
            ],
            Decimal("1"),
        )
        assert [b.net for b in balances] == [
            Decimal("100.3"), Decimal("49.7"), Decimal("-100"), Decimal("-50"),
        ]

        plan = settle(balances)

        assert as_tuples(plan.transfers) == [("x", "a", 100), ("y", "b", 50)]
        assert plan.residuals == {"a": Decimal("0.3"), "y": Decimal("-0.3")}
        assert not plan.is_complete
        with pytest.raises(SettlementInvariantError) as exc_info:
            assert_settled(balances, plan.transfers)
        assert exc_info.value.unsettled == plan.residuals


class TestBudget:
    """Tests for budget totals."""

    def test_summary_converts_and_splits_paid(self):
        items = [
            BudgetItem(title="Flights", amount=Decimal("230000"), paid=True),
            BudgetItem(title="Hotels", amount=Decimal("120000")),
            BudgetItem(title="Spending money", amount=Decimal("500"), currency=CurrencyKind.FOREIGN),
        ]
        summary = summarize_budget(items, Decimal("160"))

        assert summary.total == Decimal("430000")
        assert summary.paid == Decimal("230000")
        assert summary.outstanding == Decimal("200000")
        assert summary.item_count == 3
        assert summary.paid_count == 1

    def test_empty_budget(self):
        summary = summarize_budget([], Decimal("165"))
        assert summary.total == 0
        assert summary.item_count == 0
