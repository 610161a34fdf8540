"""
codec.py - Line codec for the persisted history

One transaction per line, tab-separated, date first and kind second:

    <dateMillis>\\tadd\\t<name>\\t<email>
    <dateMillis>\\tdelete\\t<name>\\t<email>
    <dateMillis>\\ttransfer\\t<from>\\t<to>\\t<amountCents>\\t<remarks>
    <dateMillis>\\tlunch\\t<payer>\\t<amountCents>\\t<remarks>\\t<eater1>\\t<eater2>...
    <dateMillis>\\tchemail\\t<name>\\t<oldEmail>\\t<newEmail>

Fields are not escaped. A tab or newline inside a name, email or remark will
misalign the fields of that line when it is read back.
"""

from __future__ import annotations
from typing import Iterable, List

from .core import FormatError, UnknownTransactionKind
from .transactions import (
    Add, Delete, Transfer, Lunch, ChangeEmail, Transaction,
)


FIELD_SEPARATOR = "\t"
LINE_TERMINATOR = "\n"


def serialize(tx: Transaction) -> str:
    """Encode tx as a single line (without terminator)."""
    match tx:
        case Add(name=name, email=email) | Delete(name=name, email=email):
            fields = [name, email]
        case Transfer(source=source, dest=dest, amount=amount, remarks=remarks):
            fields = [source, dest, str(amount), remarks]
        case Lunch(payer=payer, amount=amount, remarks=remarks, eaters=eaters):
            fields = [payer, str(amount), remarks, *eaters]
        case ChangeEmail(name=name, old_email=old_email, new_email=new_email):
            fields = [name, old_email, new_email]
        case _:
            raise TypeError(f"not a transaction: {tx!r}")
    return FIELD_SEPARATOR.join([str(tx.date), tx.KIND, *fields])


def _int_field(value: str, what: str, line: str) -> int:
    """Read a canonical decimal integer, the exact form serialize() writes."""
    try:
        number = int(value)
    except ValueError:
        number = None
    # int() also takes "+5", " 5", "1_000", "007" and non-ASCII digits
    if number is None or str(number) != value:
        raise FormatError(f"bad {what} {value!r} in line {line!r}")
    return number


def _require_fields(arr: List[str], count: int, line: str) -> None:
    if len(arr) < count:
        raise FormatError(f"expected at least {count} fields, got {len(arr)}: {line!r}")


def parse(line: str) -> Transaction:
    """
    Decode one history line.

    Trailing emails or a trailing remark may be missing entirely (they read back as empty).

    Raises:
        UnknownTransactionKind: the kind tag is not one of the five kinds
        FormatError: wrong field count or a non-numeric date/amount
        InvalidTransaction: the fields decode but describe an invalid transaction
    """
    arr = line.split(FIELD_SEPARATOR)
    _require_fields(arr, 3, line)
    date = _int_field(arr[0], "date", line)
    kind = arr[1]

    if kind == Add.KIND:
        return Add(arr[2], arr[3] if len(arr) > 3 else "", date=date)
    if kind == Delete.KIND:
        return Delete(arr[2], arr[3] if len(arr) > 3 else "", date=date)
    if kind == Transfer.KIND:
        _require_fields(arr, 5, line)
        return Transfer(
            arr[2], arr[3], _int_field(arr[4], "amount", line),
            arr[5] if len(arr) > 5 else "",
            date=date,
        )
    if kind == Lunch.KIND:
        _require_fields(arr, 6, line)
        return Lunch(
            arr[2], _int_field(arr[3], "amount", line),
            eaters=tuple(arr[5:]),
            remarks=arr[4],
            date=date,
        )
    if kind == ChangeEmail.KIND:
        return ChangeEmail(
            arr[2],
            arr[3] if len(arr) > 3 else "",
            arr[4] if len(arr) > 4 else "",
            date=date,
        )
    raise UnknownTransactionKind(f"unknown transaction {kind}")


def dump_history(history: Iterable[Transaction]) -> str:
    """Serialize every transaction, each line newline-terminated."""
    return "".join(serialize(tx) + LINE_TERMINATOR for tx in history)


def load_history(text: str) -> List[Transaction]:
    """
    Parse a history document.

    Lines are split on LINE_TERMINATOR only and otherwise kept byte for byte,
    so whitespace at either end of a name, email or remark survives a reload.
    Lines holding nothing but whitespace are skipped.
    """
    history = []
    for line in text.split(LINE_TERMINATOR):
        if not line.strip():
            continue
        history.append(parse(line))
    return history
