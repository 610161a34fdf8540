#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Lunch Fund Step by Step

This is a pedagogical demonstration of the lunch fund ledger and its
two-device merge protocol. Each step builds on the previous one. Press Enter
to advance.

WHAT YOU'LL LEARN:
  1-4:   Foundation      - People, lunches, the zero-sum rule, rejections
  5-7:   History         - Undo/redo, history views, sorting people
  8-9:   Persistence     - The history document and replaying it
  10-13: Two Devices     - Export, merge, conflicts, and retrying with more context

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime
import sys

from lunchfund import (
    Ledger, SortMode,
    export_choices, decode_frame, ExportHeader,
    format_money,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    # Timing (one simulated hour per transaction)
    start_time: datetime = datetime(2025, 3, 3, 12, 0, 0)
    tick_millis: int = 60 * 60 * 1000

    # Lunches, in cents
    ramen_bill: int = 4200
    pizza_bill: int = 1000
    tacos_bill: int = 3300


CONFIG = DemoConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv


class DemoClock:
    """Deterministic clock: each call returns the next simulated hour."""

    def __init__(self, offset_millis: int = 0):
        self.now = int(CONFIG.start_time.timestamp() * 1000) + offset_millis

    def __call__(self) -> int:
        self.now += CONFIG.tick_millis
        return self.now


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def print_people(ledger: Ledger, sort_mode: SortMode = SortMode.NAME):
    for person in ledger.list_people(sort_mode):
        print(f"    {person.label()}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-4)
# ============================================================================

def step_01_people():
    """Create a ledger and add the team."""
    step_header(1, "The Team",
        "A ledger starts empty; people join with a zero balance.")

    print("""
    Every change to the fund is a TRANSACTION. Five kinds exist:

        add, delete, transfer, lunch, chemail

    Each one is dated (epoch milliseconds) and appended to the history.
    We use verbose=True so the ledger reports every change.
    """)

    wait_for_enter()

    print(">>> phone = Ledger('phone', verbose=True)")
    phone = Ledger("phone", verbose=True, clock=DemoClock())
    for name in ("ana", "ben", "chloe"):
        print(f">>> phone.add_person({name!r}, '{name}@office.example')")
        phone.add_person(name, f"{name}@office.example")

    section_header("People")
    print_people(phone)
    return phone


def step_02_first_lunch(phone: Ledger):
    """Record a lunch split three ways."""
    step_header(2, "The First Lunch",
        "A lunch credits the payer and debits every eater an equal share.")

    print(f">>> phone.lunch('ana', {CONFIG.ramen_bill}, ['ana', 'ben', 'chloe'], remarks='ramen')")
    phone.lunch("ana", CONFIG.ramen_bill, ["ana", "ben", "chloe"], remarks="ramen")

    section_header("Balances")
    print_people(phone)

    section_header("Key Insight")
    print("""
    A positive balance means the fund owes you; negative means you owe it.
    Ana paid the whole bill and ate a third of it.
    """)
    return phone


def step_03_zero_sum(phone: Ledger):
    """Show the zero-sum rule, including rounding drift."""
    step_header(3, "Nothing Created, Nothing Lost",
        "All balances always sum to zero, even when a split does not divide evenly.")

    print(f">>> phone.lunch('ben', {CONFIG.pizza_bill}, ['ana', 'ben', 'chloe'], remarks='pizza')")
    phone.lunch("ben", CONFIG.pizza_bill, ["ana", "ben", "chloe"], remarks="pizza")

    tx = phone.history[-1]
    section_header("Rounding")
    print(f"Bill:           {format_money(tx.amount)}")
    print(f"Each eater:     {format_money(tx.split)} (rounded half up)")
    print(f"Payer credited: {format_money(tx.credit)}")
    print(f"Sum of balances: {format_money(phone.total_balance())}")
    return phone


def step_04_rejections(phone: Ledger):
    """Invalid operations are rejected and change nothing."""
    step_header(4, "Rejected Operations",
        "A rejected operation returns an Outcome with an error kind; the ledger is untouched.")

    print(">>> phone.transfer('ben', 'dave', 500)")
    outcome = phone.transfer("ben", "dave", 500)
    print(f"    ok={outcome.ok}, error={outcome.error.value}")

    print(">>> phone.delete_person('ana')")
    outcome = phone.delete_person("ana")
    print(f"    ok={outcome.ok}, error={outcome.error.value}")

    print(">>> phone.add_person('ben', 'other@example.com')")
    outcome = phone.add_person("ben", "other@example.com")
    print(f"    ok={outcome.ok}, error={outcome.error.value}")

    section_header("Key Insight")
    print("""
    Every precondition is checked before the first balance is written, so
    there is never a half-applied transaction to clean up.
    """)
    return phone


# ============================================================================
# PHASE 2: HISTORY (Steps 5-7)
# ============================================================================

def step_05_undo_redo(phone: Ledger):
    """Undo and redo move transactions between the history and the redo stack."""
    step_header(5, "Undo and Redo",
        "Undo is the exact inverse of apply; a new transaction clears redo.")

    print(">>> phone.undo()")
    phone.undo()
    print_people(phone)
    print(">>> phone.redo()")
    phone.redo()
    print_people(phone)
    print(">>> phone.redo()   # nothing left to redo")
    phone.redo()
    return phone


def step_06_history_views(phone: Ledger):
    """Render the history three ways."""
    step_header(6, "History Views",
        "The same history can be shown whole, per person, or per group.")

    section_header("Whole ledger, newest first")
    print(phone.show_history(reverse=True))

    section_header("Chloe, with running balance")
    print(phone.show_history(who="chloe"))

    section_header("Ana and Ben")
    print(phone.show_history(who=["ana", "ben"]))
    return phone


def step_07_sorting(phone: Ledger):
    """List people by name, balance and lunch frequency."""
    step_header(7, "Sorting People",
        "Lunch frequency favours people who ate recently.")

    for mode in SortMode:
        section_header(mode.name)
        print_people(phone, mode)
    return phone


# ============================================================================
# PHASE 3: PERSISTENCE (Steps 8-9)
# ============================================================================

def step_08_document(phone: Ledger):
    """Show the saved history document."""
    step_header(8, "The History Document",
        "The history is persisted as one tab-separated line per transaction.")

    text = phone.save()
    print(text.replace("\t", " ⇥ "))
    return text


def step_09_replay(text: str):
    """Rebuild a ledger from its document."""
    step_header(9, "Replay",
        "Loading replays every line; the result is indistinguishable from the phone.")

    print(">>> laptop = Ledger.load(text, name='laptop')")
    laptop = Ledger.load(text, name="laptop", verbose=True, clock=DemoClock(CONFIG.tick_millis // 2))
    print_people(laptop)
    print(f"\nModified since load: {laptop.is_modified}")
    return laptop


# ============================================================================
# PHASE 4: TWO DEVICES (Steps 10-13)
# ============================================================================

def step_10_diverge(phone: Ledger, laptop: Ledger):
    """Both devices record transactions independently."""
    step_header(10, "Going Separate Ways",
        "Two copies of the fund diverge while offline.")

    section_header("On the phone")
    phone.transfer("chloe", "ana", 1000, remarks="cash")
    section_header("On the laptop")
    laptop.add_person("dev", "dev@office.example")
    laptop.lunch("chloe", CONFIG.tacos_bill, ["ben", "chloe", "dev"], remarks="tacos")
    return phone, laptop


def step_11_export(laptop: Ledger):
    """Encode the laptop's newest transactions."""
    step_header(11, "Export",
        "An export carries the newest N lines plus a checksum of the sender's whole log.")

    print(f"Choices offered: {[label for label, _ in export_choices(laptop.history_size())]}")
    blob = laptop.export(2)
    header = ExportHeader.unpack(decode_frame(blob))
    print(f"\nBlob:           {blob[:60]}...")
    print(f"Unexported:     {header.num_unexported}")
    print(f"CRC32 of log:   {header.crc:#010x}")
    return blob


def step_12_too_little_context(phone: Ledger, laptop: Ledger):
    """A one-transaction export is not enough here."""
    step_header(12, "Not Enough Context",
        "If the receiver's prefix differs from the sender's, the checksum fails.")

    result = phone.merge(laptop.export(1))
    print(f"ok={result.ok}, error={result.error.value}")
    print(f"message: {result.message}")

    section_header("Key Insight")
    print("""
    The laptop's first new transaction is not on the phone, so the phone
    cannot rebuild the laptop's log. The fix is to export more.
    """)


def step_13_merge(phone: Ledger, blob: str):
    """Merge the two histories."""
    step_header(13, "Merge",
        "Both histories are unioned by date and replayed into a NEW ledger.")

    result = phone.merge(blob)
    print(result.message)
    merged = result.ledger

    section_header("Merged balances")
    print_people(merged)
    print(f"\nSum of balances: {format_money(merged.total_balance())}")

    section_header("Merging again")
    print(f"{merged.merge(blob).message}")
    return merged


# ============================================================================
# MAIN
# ============================================================================

def main():
    print("=" * 70)
    print("       LUNCH FUND TUTORIAL")
    print("=" * 70)

    phone = step_01_people()
    wait_for_enter()
    phone = step_02_first_lunch(phone)
    wait_for_enter()
    phone = step_03_zero_sum(phone)
    wait_for_enter()
    phone = step_04_rejections(phone)
    wait_for_enter()

    phone = step_05_undo_redo(phone)
    wait_for_enter()
    phone = step_06_history_views(phone)
    wait_for_enter()
    phone = step_07_sorting(phone)
    wait_for_enter()

    text = step_08_document(phone)
    wait_for_enter()
    laptop = step_09_replay(text)
    wait_for_enter()

    phone, laptop = step_10_diverge(phone, laptop)
    wait_for_enter()
    blob = step_11_export(laptop)
    wait_for_enter()
    step_12_too_little_context(phone, laptop)
    wait_for_enter()
    step_13_merge(phone, blob)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:

    FOUNDATION
      - Balances always sum to zero
      - Rejected operations change nothing

    HISTORY
      - Undo/redo walk the history exactly
      - History can be viewed per person or per group

    TWO DEVICES
      - Exports are checksummed tails of the log
      - Merges union both sides by date into a new ledger

    Next steps:
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
