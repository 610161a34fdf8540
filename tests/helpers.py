"""
helpers.py - Test helpers for lunchfund tests

Plain functions and classes shared by fixtures and by hypothesis tests
(which cannot use function-scoped fixtures).
"""

from typing import Dict

from lunchfund import Ledger


# 2023-11-14T22:13:20Z
BASE_MILLIS = 1_700_000_000_000


class TickingClock:
    """Clock returning strictly increasing epoch milliseconds, one step per call."""

    def __init__(self, start: int = BASE_MILLIS, step: int = 60_000):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


def balances(ledger: Ledger) -> Dict[str, int]:
    """Snapshot of name -> balance."""
    return {p.name: p.balance for p in ledger.list_people()}


def emails(ledger: Ledger) -> Dict[str, str]:
    """Snapshot of name -> email."""
    return {p.name: p.email for p in ledger.list_people()}


def trio_ledger(name: str = "test", clock=None) -> Ledger:
    """Ledger with alice, bob and carol, all at zero."""
    ledger = Ledger(name, clock=clock or TickingClock())
    ledger.add_person("alice", "alice@example.com")
    ledger.add_person("bob", "bob@example.com")
    ledger.add_person("carol", "carol@example.com")
    return ledger
