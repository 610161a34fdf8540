"""
conftest.py - Shared pytest fixtures for lunchfund tests

Provides common fixtures used across unit, functional and conformance tests:
- A deterministic ticking clock
- Empty and populated ledgers
"""

import pytest

from lunchfund import Ledger

from helpers import TickingClock, trio_ledger


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def ledger(clock):
    """Empty ledger driven by the ticking clock."""
    return Ledger("test", clock=clock)


@pytest.fixture
def trio(clock):
    """Ledger with alice, bob and carol, all at zero."""
    return trio_ledger(clock=clock)


@pytest.fixture
def busy(trio):
    """Ledger with a few lunches and a transfer on top of the trio."""
    trio.lunch("alice", 3000, ["alice", "bob", "carol"], remarks="ramen")
    trio.lunch("bob", 1200, ["bob", "carol"])
    trio.transfer("carol", "alice", 1000, remarks="settling up")
    trio.lunch("carol", 100, ["alice", "bob", "carol"])
    return trio
