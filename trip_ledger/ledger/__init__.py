"""
Ledger Package

Pure, synchronous computations over a trip's ledger inputs:
currency conversion, balances, settlement and budget totals.
"""

from trip_ledger.ledger.balances import compute_balances, net_total
from trip_ledger.ledger.budget import summarize_budget
from trip_ledger.ledger.currency import to_base, to_decimal
from trip_ledger.ledger.settlement import (
    DEFAULT_EPSILON,
    SettlementInvariantError,
    SettlementPlan,
    apply_transfers,
    assert_settled,
    compute_settlements,
    settle,
)

__all__ = [
    "DEFAULT_EPSILON",
    "SettlementInvariantError",
    "SettlementPlan",
    "apply_transfers",
    "assert_settled",
    "compute_balances",
    "compute_settlements",
    "net_total",
    "settle",
    "summarize_budget",
    "to_base",
    "to_decimal",
]
