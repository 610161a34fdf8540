"""
ledger.py - Stateful lunch fund ledger

The Ledger class is the central state manager. It is the only module that
mutates state, and it does so only through apply(), undo() and redo().

Key responsibilities:
    - Owns the person table, the applied history and the redo stack
    - Validates every transaction before any balance is written
    - Renders people lists and history views for the user interface
    - Loads and saves the line-oriented history document
    - Delegates export and merge to exchange.py (merge never mutates self)
"""

from __future__ import annotations
from dataclasses import replace
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Union

from .core import (
    Person, Outcome, SortMode,
    LUNCH_SCORE_DECAY,
    LedgerError, UnknownPerson, EmptyHistory, EmptyRedo,
    format_money, now_millis,
)
from .transactions import (
    Transaction, Add, Delete, Transfer, Lunch, ChangeEmail,
    apply_transaction, undo_transaction, describe, effect_on_person,
)
from . import codec

if TYPE_CHECKING:
    from .exchange import MergeResult


class Ledger:
    """
    Single-writer lunch fund ledger with undo/redo and a replayable history.

    Invariants:
        - The balances of all people always sum to zero.
        - Names are unique; a person is deleted only at a zero balance.
        - Applying a new transaction invalidates the redo stack.
        - A rejected operation leaves every field untouched.

    Thread Safety:
        Not thread-safe. One caller owns a Ledger at a time.

    Example:
        ledger = Ledger("phone")
        ledger.add_person("alice", "alice@example.com")
        ledger.add_person("bob", "bob@example.com")
        ledger.lunch("alice", 1000, ["alice", "bob"])
        ledger.get_person("bob").balance   # -500
    """

    def __init__(
        self,
        name: str = "lunchfund",
        verbose: bool = False,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Create an empty ledger.

        Args:
            name: Label used in verbose output (e.g. the device name)
            verbose: Print one line per applied, rejected, undone or redone transaction
            clock: Zero-argument callable returning epoch milliseconds (default: wall clock)
        """
        self.name = name
        self.verbose = verbose
        self.clock: Callable[[], int] = clock or now_millis
        self.people: Dict[str, Person] = {}
        self.history: List[Transaction] = []
        self.redo_stack: List[Transaction] = []
        self.modified = False

    # ========================================================================
    # PERSISTENCE
    # ========================================================================

    @classmethod
    def load(
        cls,
        text: str,
        name: str = "lunchfund",
        verbose: bool = False,
        clock: Optional[Callable[[], int]] = None,
    ) -> Ledger:
        """
        Build a ledger by replaying a saved history document.

        The whole document is parsed before anything is applied; the first
        failure aborts the load and no ledger is returned.

        Args:
            text: History document as produced by save()
            name, verbose, clock: Passed to the new Ledger

        Returns:
            A ledger whose history is exactly the document's transactions,
            with the modified flag cleared

        Raises:
            FormatError: A line is malformed or has an unknown kind
            InvalidTransaction: A transaction cannot be applied in sequence
        """
        ledger = cls(name=name, verbose=verbose, clock=clock)
        for index, tx in enumerate(codec.load_history(text), start=1):
            try:
                apply_transaction(tx, ledger.people)
            except LedgerError as e:
                raise type(e)(f"transaction {index}: {e}", e.kind) from e
            ledger.history.append(tx)
        if verbose:
            print(f"📝 Loaded {len(ledger.history)} transactions into {name}")
        return ledger

    def save(self) -> str:
        """Serialize the applied history, one newline-terminated line per transaction."""
        return codec.dump_history(self.history)

    @property
    def is_modified(self) -> bool:
        """True if the ledger changed since it was loaded or last cleared."""
        return self.modified

    def clear_modified(self) -> None:
        self.modified = False

    # ========================================================================
    # MUTATION
    # ========================================================================

    def apply(self, tx: Transaction) -> Outcome:
        """
        Validate and apply a transaction.

        On success the redo stack is cleared, tx is pushed onto the history and
        the ledger is marked modified. On rejection nothing changes.

        Returns:
            Outcome.ok if applied; otherwise the ErrorKind and reason
        """
        try:
            apply_transaction(tx, self.people)
        except LedgerError as e:
            if self.verbose:
                print(f"✗ REJECTED: {e}")
            return Outcome.rejected(e)
        self.redo_stack.clear()
        self.history.append(tx)
        self.modified = True
        if self.verbose:
            print(f"✓ APPLIED: {describe(tx)}")
        return Outcome.applied()

    def undo(self) -> Outcome:
        """Reverse the most recent transaction and move it onto the redo stack."""
        if not self.history:
            return self._state_error(EmptyHistory("undo while history is empty"))
        tx = self.history.pop()
        undo_transaction(tx, self.people)
        self.redo_stack.append(tx)
        self.modified = True
        if self.verbose:
            print(f"✓ UNDONE: {describe(tx)}")
        return Outcome.applied()

    def redo(self) -> Outcome:
        """Re-apply the most recently undone transaction."""
        if not self.redo_stack:
            return self._state_error(EmptyRedo("redo while redo history is empty"))
        tx = self.redo_stack[-1]
        try:
            apply_transaction(tx, self.people)
        except LedgerError as e:
            if self.verbose:
                print(f"✗ REJECTED: {e}")
            return Outcome.rejected(e)
        self.redo_stack.pop()
        self.history.append(tx)
        self.modified = True
        if self.verbose:
            print(f"✓ REDONE: {describe(tx)}")
        return Outcome.applied()

    def _state_error(self, exc: LedgerError) -> Outcome:
        if self.verbose:
            print(f"⚠️  {exc}")
        return Outcome.rejected(exc)

    # ========================================================================
    # CONVENIENCE OPERATIONS (dated by the ledger clock)
    # ========================================================================

    def _next_date(self) -> int:
        """Clock time, bumped past the last history entry so dates stay strictly increasing."""
        now = self.clock()
        if self.history:
            now = max(now, self.history[-1].date + 1)
        return now

    def _perform(self, build: Callable[[int], Transaction]) -> Outcome:
        try:
            tx = build(self._next_date())
        except LedgerError as e:
            if self.verbose:
                print(f"✗ REJECTED: {e}")
            return Outcome.rejected(e)
        return self.apply(tx)

    def _current_email(self, name: str) -> str:
        person = self.people.get(name)
        if person is None:
            raise UnknownPerson(f"{name} does not exist")
        return person.email

    def add_person(self, name: str, email: str) -> Outcome:
        return self._perform(lambda date: Add(name, email, date=date))

    def delete_person(self, name: str) -> Outcome:
        return self._perform(lambda date: Delete(name, self._current_email(name), date=date))

    def transfer(self, source: str, dest: str, amount: int, remarks: str = "") -> Outcome:
        """Record that source handed amount to dest."""
        return self._perform(lambda date: Transfer(source, dest, amount, remarks, date=date))

    def lunch(self, payer: str, amount: int, eaters: Iterable[str], remarks: str = "") -> Outcome:
        """Record that payer paid amount for a lunch shared by eaters."""
        eaters = tuple(eaters)
        return self._perform(lambda date: Lunch(payer, amount, eaters, remarks, date=date))

    def change_email(self, name: str, new_email: str) -> Outcome:
        """Swap name's email, guarded by the email currently on file."""
        return self._perform(
            lambda date: ChangeEmail(name, self._current_email(name), new_email, date=date)
        )

    # ========================================================================
    # QUERIES
    # ========================================================================

    def has_history(self) -> bool:
        return bool(self.history)

    def has_redo_history(self) -> bool:
        return bool(self.redo_stack)

    def history_size(self) -> int:
        return len(self.history)

    def get_person(self, name: str) -> Optional[Person]:
        """Return a copy of the named person, or None if there is no such person."""
        person = self.people.get(name)
        return replace(person) if person is not None else None

    def list_people_names(self) -> List[str]:
        return sorted(self.people)

    def total_balance(self) -> int:
        """Sum of every balance. Always zero for a consistent ledger."""
        return sum(person.balance for person in self.people.values())

    def list_people(self, sort_mode: Union[SortMode, int] = SortMode.NAME) -> List[Person]:
        """
        List copies of every person in the requested order.

        Args:
            sort_mode: SortMode (or its integer value)
                NAME: name ascending
                BALANCE: balance ascending, ties by name
                LUNCH_FREQUENCY: recent frequent eaters first; each lunch is
                    worth LUNCH_SCORE_DECAY times the lunch after it

        Returns:
            A new list on every call
        """
        sort_mode = SortMode(sort_mode)
        people = [replace(self.people[name]) for name in sorted(self.people)]
        if sort_mode == SortMode.BALANCE:
            people.sort(key=lambda p: p.balance)
        elif sort_mode == SortMode.LUNCH_FREQUENCY:
            scores = self.lunch_scores()
            people.sort(key=lambda p: -scores.get(p.name, 0.0))
        return people

    def lunch_scores(self) -> Dict[str, float]:
        """Decaying lunch-attendance score per current person, newest lunches weigh most."""
        scores = {name: 0.0 for name in self.people}
        score = 1.0
        for tx in reversed(self.history):
            if isinstance(tx, Lunch):
                for eater in tx.eaters:
                    if eater in scores:
                        scores[eater] += score
                score *= LUNCH_SCORE_DECAY
        return scores

    def emails_for(self, names: Iterable[str]) -> List[str]:
        """Email addresses of the named people, in the given order."""
        return [self._current_email(name) for name in names]

    # ========================================================================
    # HISTORY VIEWS
    # ========================================================================

    def show_history(
        self,
        reverse: bool = False,
        who: Union[None, str, Iterable[str]] = None,
    ) -> str:
        """
        Render history as text, one description per line.

        Args:
            reverse: Newest first
            who: None for the whole ledger, a name for one person's history
                 with running balances, or a collection of names for a group

        Raises:
            UnknownPerson: A group member does not exist
        """
        if who is None:
            return self._show_all(reverse)
        if isinstance(who, str):
            return self._show_person(reverse, who)
        return self._show_group(reverse, who)

    def _show_all(self, reverse: bool) -> str:
        history = reversed(self.history) if reverse else self.history
        return "".join(describe(tx) + "\n" for tx in history)

    def _show_person(self, reverse: bool, name: str) -> str:
        entries = []
        balance = 0
        for tx in self.history:
            delta = effect_on_person(tx, name)
            if delta == 0:
                continue
            balance += delta
            entries.append((describe(tx) + "\n", f"Balance: {format_money(balance)}\n"))
        if reverse:
            # newest first, each balance line above its transaction
            return "".join(total + line for line, total in reversed(entries))
        return "".join(line + total for line, total in entries)

    def _show_group(self, reverse: bool, names: Iterable[str]) -> str:
        selected = list(dict.fromkeys(names))
        summary = "Balance:\n" + "".join(
            f"{self._group_member(name).label()}\n" for name in selected
        )
        lines = [
            describe(tx) + "\n"
            for tx in self.history
            if any(effect_on_person(tx, name) != 0 for name in selected)
        ]
        if reverse:
            return summary + "".join(reversed(lines))
        return "".join(lines) + summary

    def _group_member(self, name: str) -> Person:
        person = self.people.get(name)
        if person is None:
            raise UnknownPerson(f"{name} does not exist")
        return person

    # ========================================================================
    # EXPORT / MERGE
    # ========================================================================

    def export(self, num_exported: int) -> str:
        """
        Encode the newest num_exported transactions for a peer.

        See exchange.export_tail().
        """
        from .exchange import export_tail
        return export_tail(self, num_exported)

    def merge(self, blob: str) -> MergeResult:
        """
        Reconcile a peer's export with this ledger without mutating it.

        Returns:
            exchange.MergeResult; its ledger is None when the merge failed

        See exchange.merge().
        """
        from .exchange import merge
        return merge(self, blob)
