"""Shared fixtures for Trip Ledger tests."""

import pytest

from trip_ledger.models.ledger import Member


@pytest.fixture
def alice():
    return Member(id="a", name="Alice")


@pytest.fixture
def bob():
    return Member(id="b", name="Bob")


@pytest.fixture
def carol():
    return Member(id="c", name="Carol")
