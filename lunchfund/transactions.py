"""
transactions.py - The five lunch fund transaction kinds

A transaction is an immutable, dated, self-validating fact. The set of kinds is
closed, so a transaction is modelled as a union of frozen dataclasses and every
behaviour is a plain function that dispatches on the variant with ``match``:

    apply_transaction(tx, people)   validate, then mutate the person table
    undo_transaction(tx, people)    exact arithmetic inverse of apply
    describe(tx)                    one-line human summary
    effect_on_person(tx, name)      signed balance delta caused to one person

Serialization lives in codec.py.

Balance convention: a person's balance is what the fund owes them. Paying for
lunch or giving money raises it, eating or receiving money lowers it.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Dict, Tuple, Union

from .core import (
    Person,
    NO_REMARKS, DATE_FORMAT,
    ErrorKind, InvalidTransaction, UnknownPerson,
    format_money, now_millis,
)


PeopleTable = Dict[str, Person]


# ============================================================================
# VARIANTS
# ============================================================================

def _stamp(tx, date: int) -> None:
    """Resolve the "0 means now" date convention on a frozen instance."""
    if not isinstance(date, int) or date < 0:
        raise InvalidTransaction(f"{tx.KIND}: invalid date {date!r}")
    if date == 0:
        object.__setattr__(tx, "date", now_millis())


def _require_name(kind: str, name: str) -> None:
    if not name or not name.strip():
        raise InvalidTransaction(f"{kind}: person name cannot be empty")


def _require_amount(kind: str, amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidTransaction(f"{kind}: amount must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidTransaction(f"{kind}: amount must be positive, got {amount}")


@dataclass(frozen=True, slots=True)
class Add:
    """Create a person with a zero balance."""
    KIND: ClassVar[str] = "add"
    name: str
    email: str = ""
    date: int = 0

    def __post_init__(self):
        _require_name(self.KIND, self.name)
        _stamp(self, self.date)


@dataclass(frozen=True, slots=True)
class Delete:
    """
    Remove a person whose balance is exactly zero.

    email must match the email on file, otherwise apply_transaction() rejects
    the delete with EMAIL_MISMATCH. Undo restores the person with exactly this
    email.
    """
    KIND: ClassVar[str] = "delete"
    name: str
    email: str = ""
    date: int = 0

    def __post_init__(self):
        _require_name(self.KIND, self.name)
        _stamp(self, self.date)


@dataclass(frozen=True, slots=True)
class Transfer:
    """
    Money handed from one person to another.

    Attributes:
        source: Person who gave the money (balance goes up)
        dest: Person who received it (balance goes down)
        amount: Minor units, strictly positive
        remarks: Free text; empty is stored as "nothing"
    """
    KIND: ClassVar[str] = "transfer"
    source: str
    dest: str
    amount: int
    remarks: str = ""
    date: int = 0

    def __post_init__(self):
        _require_name(self.KIND, self.source)
        _require_name(self.KIND, self.dest)
        if self.source == self.dest:
            raise InvalidTransaction(f"transfer: {self.source} cannot transfer to themselves")
        _require_amount(self.KIND, self.amount)
        if not self.remarks:
            object.__setattr__(self, "remarks", NO_REMARKS)
        _stamp(self, self.date)


@dataclass(frozen=True, slots=True)
class Lunch:
    """
    A lunch bill paid by one person and split evenly among the eaters.

    The per-eater split is rounded half up and the payer is credited
    split * len(eaters), which can differ from amount by the rounding drift.

    Attributes:
        payer: Person who paid the bill (need not be an eater)
        amount: Bill total in minor units, strictly positive
        eaters: Ordered, duplicate-free, non-empty tuple of names
        remarks: Free text; empty is stored as "nothing"
    """
    KIND: ClassVar[str] = "lunch"
    payer: str
    amount: int
    eaters: Tuple[str, ...]
    remarks: str = ""
    date: int = 0

    def __post_init__(self):
        _require_name(self.KIND, self.payer)
        _require_amount(self.KIND, self.amount)
        eaters = tuple(self.eaters)
        if not eaters:
            raise InvalidTransaction("lunch: at least one eater is required")
        for eater in eaters:
            _require_name(self.KIND, eater)
        if len(set(eaters)) != len(eaters):
            raise InvalidTransaction(f"lunch: duplicate eaters in {list(eaters)}")
        object.__setattr__(self, "eaters", eaters)
        if not self.remarks:
            object.__setattr__(self, "remarks", NO_REMARKS)
        _stamp(self, self.date)

    @property
    def split(self) -> int:
        """Per-eater share, rounded half up."""
        return round_half_up_div(self.amount, len(self.eaters))

    @property
    def credit(self) -> int:
        """What the payer is credited: split times the number of eaters."""
        return self.split * len(self.eaters)


@dataclass(frozen=True, slots=True)
class ChangeEmail:
    """Compare-and-swap of a person's email; applies only if old_email is current."""
    KIND: ClassVar[str] = "chemail"
    name: str
    old_email: str
    new_email: str
    date: int = 0

    def __post_init__(self):
        _require_name(self.KIND, self.name)
        _stamp(self, self.date)


Transaction = Union[Add, Delete, Transfer, Lunch, ChangeEmail]


def round_half_up_div(dividend: int, divisor: int) -> int:
    """Integer division of non-negative values, rounding halves up."""
    return (dividend + divisor // 2) // divisor


# ============================================================================
# APPLY / UNDO
# ============================================================================

def _person(people: PeopleTable, name: str) -> Person:
    person = people.get(name)
    if person is None:
        raise UnknownPerson(f"{name} does not exist")
    return person


def apply_transaction(tx: Transaction, people: PeopleTable) -> None:
    """
    Validate tx against the person table, then apply it.

    Every precondition is checked before the first write, so a raised
    InvalidTransaction leaves the table untouched.

    Raises:
        InvalidTransaction: duplicate person, nonzero-balance delete, email mismatch
        UnknownPerson: tx names someone who is not in the table
    """
    match tx:
        case Add(name=name, email=email):
            if name in people:
                raise InvalidTransaction(f"{name} already exists", ErrorKind.DUPLICATE_PERSON)
            people[name] = Person(name, email, 0)

        case Delete(name=name, email=email):
            person = _person(people, name)
            if person.balance != 0:
                raise InvalidTransaction(
                    f"{name} still has a balance of {format_money(person.balance)}",
                    ErrorKind.NONZERO_BALANCE,
                )
            if person.email != email:
                raise InvalidTransaction(
                    f'expecting "{email}", but got {name}:"{person.email}"',
                    ErrorKind.EMAIL_MISMATCH,
                )
            del people[name]

        case Transfer(source=source, dest=dest, amount=amount):
            giver = _person(people, source)
            receiver = _person(people, dest)
            giver.balance += amount
            receiver.balance -= amount

        case Lunch(payer=payer, eaters=eaters):
            paid_by = _person(people, payer)
            diners = [_person(people, eater) for eater in eaters]
            split = tx.split
            for diner in diners:
                diner.balance -= split
            paid_by.balance += split * len(diners)

        case ChangeEmail(name=name, old_email=old_email, new_email=new_email):
            person = _person(people, name)
            if person.email != old_email:
                raise InvalidTransaction(
                    f'expecting "{old_email}", but got {name}:"{person.email}"',
                    ErrorKind.EMAIL_MISMATCH,
                )
            person.email = new_email

        case _:
            raise TypeError(f"not a transaction: {tx!r}")


def undo_transaction(tx: Transaction, people: PeopleTable) -> None:
    """
    Reverse tx. Only valid on the table exactly as tx left it.

    Only the existence of the people involved is checked.
    """
    match tx:
        case Add(name=name):
            _person(people, name)
            del people[name]

        case Delete(name=name, email=email):
            if name in people:
                raise InvalidTransaction(f"{name} already exists", ErrorKind.DUPLICATE_PERSON)
            people[name] = Person(name, email, 0)

        case Transfer(source=source, dest=dest, amount=amount):
            giver = _person(people, source)
            receiver = _person(people, dest)
            giver.balance -= amount
            receiver.balance += amount

        case Lunch(payer=payer, eaters=eaters):
            paid_by = _person(people, payer)
            diners = [_person(people, eater) for eater in eaters]
            split = tx.split
            for diner in diners:
                diner.balance += split
            paid_by.balance -= split * len(diners)

        case ChangeEmail(name=name, old_email=old_email):
            _person(people, name).email = old_email

        case _:
            raise TypeError(f"not a transaction: {tx!r}")


# ============================================================================
# QUERIES
# ============================================================================

def _on(date: int) -> str:
    return datetime.fromtimestamp(date / 1000).strftime(DATE_FORMAT)


def _remarks_suffix(remarks: str) -> str:
    return "" if remarks == NO_REMARKS else f" ({remarks})"


def _join_names(names: Tuple[str, ...]) -> str:
    """"A", "A and B", "A, B and C"."""
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + " and " + names[-1]


def describe(tx: Transaction) -> str:
    """One-line summary for history views and merge reports."""
    match tx:
        case Add(name=name, email=email):
            return f"add {name} <{email}>"
        case Delete(name=name, email=email):
            return f"delete {name} <{email}>"
        case Transfer(source=source, dest=dest, amount=amount, remarks=remarks, date=date):
            return (f"{source} gave {format_money(amount)} to {dest} on {_on(date)}"
                    f"{_remarks_suffix(remarks)}")
        case Lunch(payer=payer, amount=amount, eaters=eaters, remarks=remarks, date=date):
            return (f"{payer} paid {format_money(amount)} for {_join_names(eaters)} on {_on(date)}"
                    f"{_remarks_suffix(remarks)}")
        case ChangeEmail(name=name, new_email=new_email, date=date):
            return f"{name}'s new email: {new_email} on {_on(date)}"
        case _:
            raise TypeError(f"not a transaction: {tx!r}")


def effect_on_person(tx: Transaction, name: str) -> int:
    """Signed balance delta tx causes to name (0 if uninvolved)."""
    match tx:
        case Transfer(source=source, dest=dest, amount=amount):
            if name == source:
                return amount
            if name == dest:
                return -amount
            return 0
        case Lunch(payer=payer, eaters=eaters):
            delta = -tx.split if name in eaters else 0
            if name == payer:
                delta += tx.credit
            return delta
        case Add() | Delete() | ChangeEmail():
            return 0
        case _:
            raise TypeError(f"not a transaction: {tx!r}")
