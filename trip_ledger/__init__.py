"""
Trip Ledger - Source Package

Shared-expense ledger and settle-up engine for a group trip.

DESIGN PRINCIPLES:
1. Balances are recomputed from scratch, never stored
2. Ledger computations are pure functions over immutable snapshots
3. No silent corrections: bad input is reported, not fixed
4. Every change and every settle-up is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Trip Ledger Team"
