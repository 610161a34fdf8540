"""
Core types for the lunch fund ledger.

This module provides the foundational data structures shared by every other module:
1. Constants: remark sentinel, scoring decay, export framing bytes
2. Enums: ExecuteResult, ErrorKind, SortMode
3. Exceptions: LedgerError and its domain-specific subclasses
4. Records: Person, Outcome
5. Helpers: current time in epoch milliseconds, money formatting

Nothing in this module mutates a ledger.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import time


# ============================================================================
# CONSTANTS
# ============================================================================

# Remarks sentinel. Empty remarks are stored as this word and never described.
NO_REMARKS = "nothing"

# Each lunch further back in history is worth this fraction of the next one
# when ranking people by lunch frequency.
LUNCH_SCORE_DECAY = 0.9

# Export framing. "L0" carries the payload as-is, "Lz" gzips everything after
# the magic.
MAGIC_PLAIN = b"L0"
MAGIC_GZIP = b"Lz"

# num_unexported travels as an unsigned 16-bit field.
MAX_UNEXPORTED = 0xFFFF

# Date rendering used by describe().
DATE_FORMAT = "%b %d, %Y"


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a ledger mutation attempt.

    APPLIED: The operation was validated and applied.
    REJECTED: Validation failed; the ledger is unchanged.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


class ErrorKind(str, Enum):
    """Every way an engine operation can fail."""
    # Validation
    DUPLICATE_PERSON = "duplicate_person"
    UNKNOWN_PERSON = "unknown_person"
    INVALID_PARAMETER = "invalid_parameter"
    NONZERO_BALANCE = "nonzero_balance"
    EMAIL_MISMATCH = "email_mismatch"
    # Format
    INVALID_LINE = "invalid_line"
    UNKNOWN_TRANSACTION_KIND = "unknown_transaction_kind"
    INVALID_FORMAT = "invalid_format"
    # Protocol
    NEED_MORE_CONTEXT = "need_more_context"
    CONFLICT_OR_CORRUPT = "conflict_or_corrupt"
    INVALID_REMOTE_LOG = "invalid_remote_log"
    DATE_ORDER_VIOLATION = "date_order_violation"
    REMOTE_DATE_ORDER_VIOLATION = "remote_date_order_violation"
    DATE_CONFLICT = "date_conflict"
    NOTHING_NEW = "nothing_new"
    INVALID_MERGED_LOG = "invalid_merged_log"
    # State
    EMPTY_HISTORY = "empty_history"
    EMPTY_REDO = "empty_redo"


class SortMode(Enum):
    """Orderings offered by Ledger.list_people()."""
    NAME = 1
    BALANCE = 2
    LUNCH_FREQUENCY = 3


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    kind: ErrorKind = ErrorKind.INVALID_PARAMETER

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class InvalidTransaction(LedgerError):
    """Raised when a transaction's parameters or preconditions are violated."""
    pass


class UnknownPerson(InvalidTransaction):
    """Raised when a transaction or query names a person who does not exist."""
    kind = ErrorKind.UNKNOWN_PERSON


class FormatError(LedgerError):
    """Raised when a history line cannot be parsed."""
    kind = ErrorKind.INVALID_LINE


class UnknownTransactionKind(FormatError):
    """Raised when a history line carries a kind tag we do not recognise."""
    kind = ErrorKind.UNKNOWN_TRANSACTION_KIND


class StateError(LedgerError):
    """Raised when an operation is not possible in the ledger's current state."""
    pass


class EmptyHistory(StateError):
    """Raised by undo() when there is nothing to undo."""
    kind = ErrorKind.EMPTY_HISTORY


class EmptyRedo(StateError):
    """Raised by redo() when there is nothing to redo."""
    kind = ErrorKind.EMPTY_REDO


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(slots=True)
class Person:
    """
    One member of the lunch fund.

    Attributes:
        name: Unique key; never changes once the person is added.
        email: Contact address; changed only through ChangeEmail.
        balance: Minor currency units owed to this person (negative = owes the fund).
    """
    name: str
    email: str
    balance: int = 0

    def label(self) -> str:
        """Short "name: $x" label used by people lists."""
        return f"{self.name}: {format_money(self.balance)}"


@dataclass(frozen=True, slots=True)
class Outcome:
    """
    Result of apply(), undo() or redo().

    Attributes:
        result: APPLIED or REJECTED
        error: Why the operation was rejected (None when applied)
        reason: Human-readable rejection reason (empty when applied)
    """
    result: ExecuteResult
    error: Optional[ErrorKind] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.result == ExecuteResult.APPLIED

    @classmethod
    def applied(cls) -> Outcome:
        return cls(ExecuteResult.APPLIED)

    @classmethod
    def rejected(cls, exc: LedgerError) -> Outcome:
        return cls(ExecuteResult.REJECTED, exc.kind, str(exc))


# ============================================================================
# HELPERS
# ============================================================================

def now_millis() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def format_money(cents: int) -> str:
    """
    Render minor units as a dollar amount.

    Examples:
        format_money(150)  -> "$1.50"
        format_money(-5)   -> "-$0.05"
    """
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}${whole}.{frac:02d}"
