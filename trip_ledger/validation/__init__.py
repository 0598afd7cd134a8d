"""Ledger validation package."""

from trip_ledger.validation.validator import LedgerValidator, is_valid_rate

__all__ = ["LedgerValidator", "is_valid_rate"]
