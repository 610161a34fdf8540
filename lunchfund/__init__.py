"""
lunchfund - Shared Lunch Fund Ledger

An append-only ledger of who paid for lunch and who owes whom, with undo/redo,
a line-oriented history format and a checksum-guarded merge protocol that lets
two copies of the ledger reconcile without a server.

Usage:
    from lunchfund import Ledger

    phone = Ledger("phone")
    phone.add_person("alice", "alice@example.com")
    phone.add_person("bob", "bob@example.com")
    phone.lunch("alice", 1000, ["alice", "bob"], remarks="noodles")

    laptop = Ledger.load(phone.save(), name="laptop")
    laptop.transfer("bob", "alice", 500)

    result = phone.merge(laptop.export(1))
    if result.ok:
        print(result.message)
        phone = result.ledger
"""

__version__ = "1.0.0"

# Core types
from .core import (
    Person,
    Outcome,
    ExecuteResult,
    ErrorKind,
    SortMode,
    LedgerError,
    InvalidTransaction,
    UnknownPerson,
    FormatError,
    UnknownTransactionKind,
    StateError,
    EmptyHistory,
    EmptyRedo,
    NO_REMARKS,
    LUNCH_SCORE_DECAY,
    MAGIC_PLAIN,
    MAGIC_GZIP,
    MAX_UNEXPORTED,
    format_money,
    now_millis,
)

# Transactions
from .transactions import (
    Transaction,
    Add,
    Delete,
    Transfer,
    Lunch,
    ChangeEmail,
    apply_transaction,
    undo_transaction,
    describe,
    effect_on_person,
    round_half_up_div,
)

# Codec
from .codec import (
    serialize,
    parse,
    dump_history,
    load_history,
)

# Ledger
from .ledger import Ledger

# Export / merge
from .exchange import (
    ExportHeader,
    MergeResult,
    export_tail,
    export_choices,
    decode_frame,
    merge,
)

__all__ = [
    # Core
    "Person", "Outcome", "ExecuteResult", "ErrorKind", "SortMode",
    "LedgerError", "InvalidTransaction", "UnknownPerson",
    "FormatError", "UnknownTransactionKind",
    "StateError", "EmptyHistory", "EmptyRedo",
    "NO_REMARKS", "LUNCH_SCORE_DECAY", "MAGIC_PLAIN", "MAGIC_GZIP", "MAX_UNEXPORTED",
    "format_money", "now_millis",
    # Transactions
    "Transaction", "Add", "Delete", "Transfer", "Lunch", "ChangeEmail",
    "apply_transaction", "undo_transaction", "describe", "effect_on_person",
    "round_half_up_div",
    # Codec
    "serialize", "parse", "dump_history", "load_history",
    # Ledger
    "Ledger",
    # Export / merge
    "ExportHeader", "MergeResult", "export_tail", "export_choices", "decode_frame", "merge",
]
