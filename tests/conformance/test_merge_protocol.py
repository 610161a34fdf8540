"""
Merge Protocol Conformance Tests

INVARIANTS:
    merge(L, export(L, n)) fails with NOTHING_NEW for every n
    Any corruption of an exported tail is caught by the CRC32 check
    A successful merge contains every transaction of both sides, in strictly
    increasing date order, and merging in either direction gives the same log
    merge never mutates the receiving ledger
"""

import base64

from hypothesis import given, settings, assume, note
from hypothesis import strategies as st

from lunchfund import Ledger, ErrorKind, decode_frame, serialize

from helpers import BASE_MILLIS, TickingClock
from .strategies import ops, setup_ops, perform_all, state


def _fork(base_ops, phone_ops, laptop_ops):
    """
    Build a phone ledger from base_ops, copy it to a laptop, then let both
    diverge. The two clocks are offset by half a tick so their dates never collide.
    """
    phone = Ledger("phone", clock=TickingClock())
    perform_all(phone, base_ops)
    base_size = phone.history_size()
    laptop = Ledger.load(phone.save(), name="laptop", clock=TickingClock(start=BASE_MILLIS + 30_000))
    perform_all(phone, phone_ops)
    perform_all(laptop, laptop_ops)
    return phone, laptop, base_size


class TestSelfMerge:
    """Property-based tests for merging a ledger's own export."""

    @given(setup_ops, st.data())
    @settings(max_examples=50, deadline=None)
    def test_own_export_is_nothing_new(self, op_list, data):
        ledger = Ledger("test", clock=TickingClock())
        perform_all(ledger, op_list)
        n = data.draw(st.integers(min_value=1, max_value=ledger.history_size()))
        result = ledger.merge(ledger.export(n))
        assert result.error == ErrorKind.NOTHING_NEW
        assert result.ledger is None


class TestCorruptionDetection:
    """Property-based tests for the CRC32 guard."""

    @given(setup_ops, st.data())
    @settings(max_examples=100, deadline=None)
    def test_any_tail_byte_flip_is_detected(self, op_list, data):
        """
        PROPERTY: Changing any single byte of the tail yields CONFLICT_OR_CORRUPT.
        """
        ledger = Ledger("test", clock=TickingClock())
        perform_all(ledger, op_list)
        n = data.draw(st.integers(min_value=1, max_value=ledger.history_size()))
        frame = bytearray(decode_frame(ledger.export(n)))

        position = data.draw(st.integers(min_value=8, max_value=len(frame) - 1))
        mask = data.draw(st.integers(min_value=1, max_value=255))
        frame[position] ^= mask
        note(f"byte {position} ^= {mask:#04x}")

        before = state(ledger)
        result = ledger.merge(base64.b64encode(bytes(frame)).decode("ascii"))
        assert result.error == ErrorKind.CONFLICT_OR_CORRUPT
        assert state(ledger) == before


class TestDivergentMerge:
    """Property-based tests for merging two diverged copies."""

    @given(setup_ops, st.lists(ops, max_size=10), st.lists(ops, max_size=10))
    @settings(max_examples=100, deadline=None)
    def test_union_of_both_sides(self, base_ops, phone_ops, laptop_ops):
        """
        PROPERTY: Exporting everything the laptop added since the fork either
        merges into the union of both histories, reports NOTHING_NEW when the
        laptop added nothing, or fails replay with INVALID_MERGED_LOG.
        """
        phone, laptop, base_size = _fork(base_ops, phone_ops, laptop_ops)
        assume(laptop.history_size() > 0)
        n = max(laptop.history_size() - base_size, 1)

        before = state(phone)
        result = phone.merge(laptop.export(n))
        assert state(phone) == before
        note(f"{result.error}: {result.message}")

        if laptop.history_size() == base_size:
            assert result.error == ErrorKind.NOTHING_NEW
            return
        if result.error == ErrorKind.INVALID_MERGED_LOG:
            return
        assert result.ok

        merged = result.ledger
        merged_lines = set(merged.save().split("\n"))
        assert set(phone.save().split("\n")) <= merged_lines
        assert set(laptop.save().split("\n")) <= merged_lines
        dates = [tx.date for tx in merged.history]
        assert dates == sorted(set(dates))
        assert merged.total_balance() == 0
        assert list(result.new_transactions) == laptop.history[base_size:]

    @given(setup_ops, st.lists(ops, min_size=1, max_size=8), st.lists(ops, min_size=1, max_size=8))
    @settings(max_examples=100, deadline=None)
    def test_merge_is_symmetric(self, base_ops, phone_ops, laptop_ops):
        """
        PROPERTY: When both directions succeed they produce the same log.
        """
        phone, laptop, base_size = _fork(base_ops, phone_ops, laptop_ops)
        assume(phone.history_size() > base_size and laptop.history_size() > base_size)

        on_phone = phone.merge(laptop.export(laptop.history_size() - base_size))
        on_laptop = laptop.merge(phone.export(phone.history_size() - base_size))
        assume(on_phone.ok and on_laptop.ok)
        assert on_phone.ledger.save() == on_laptop.ledger.save()
        assert state(on_phone.ledger)[:2] == state(on_laptop.ledger)[:2]

    @given(setup_ops, st.lists(ops, min_size=1, max_size=8), st.lists(ops, min_size=2, max_size=8))
    @settings(max_examples=50, deadline=None)
    def test_short_export_never_merges_wrongly(self, base_ops, phone_ops, laptop_ops):
        """
        PROPERTY: Exporting fewer transactions than the laptop added since the
        fork never yields a merged ledger while the phone has diverged.
        """
        phone, laptop, base_size = _fork(base_ops, phone_ops, laptop_ops)
        added = laptop.history_size() - base_size
        assume(added >= 2 and phone.history_size() > base_size)

        result = phone.merge(laptop.export(added - 1))
        assert result.error in (ErrorKind.CONFLICT_OR_CORRUPT, ErrorKind.NEED_MORE_CONTEXT)


class TestMergeExamples:
    """Concrete divergent merge."""

    def test_laptop_tail_lands_between_phone_transactions(self):
        phone = Ledger("phone", clock=TickingClock())
        phone.add_person("alice", "a@x.com")
        phone.add_person("bob", "b@x.com")
        laptop = Ledger.load(phone.save(), clock=TickingClock(start=BASE_MILLIS + 30_000))

        phone.lunch("alice", 1000, ["alice", "bob"])       # date base + 3 ticks
        laptop.transfer("bob", "alice", 100)               # date base + 2 ticks + 1
        result = phone.merge(laptop.export(1))

        assert [serialize(tx).split("\t")[1] for tx in result.ledger.history] == [
            "add", "add", "transfer", "lunch",
        ]
