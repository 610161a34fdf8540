"""
exchange.py - Checksum-guarded partial-log export and merge

Two copies of a ledger (say a phone and a laptop) reconcile by passing an
opaque text blob, without a shared server:

1. export_tail() frames the newest N transactions with a header carrying the
   number of older, unexported transactions and the CRC32 of the sender's
   FULL log, gzips the frame when that makes it smaller, and base64-encodes it.
2. merge() rebuilds the sender's full log from the receiver's own prefix plus
   the exported tail. A matching CRC32 proves both sides share that prefix.
   The two histories are then unioned by date and replayed into a NEW ledger.

Wire format (before base64):

    magic(2B: "L0" | "Lz") | num_unexported(u16 BE) | crc32(u32 BE) | tail bytes

With magic "Lz" everything after the magic is a gzip stream of the rest of
the "L0" frame.

Merge failures are ordinary outcomes (stale data, nothing new, a genuine
conflict) and are returned in a MergeResult rather than raised.
"""

from __future__ import annotations
from dataclasses import dataclass
from itertools import chain
from typing import Dict, List, Optional, Sequence, Tuple
import base64
import binascii
import gzip
import struct
import zlib

from .core import (
    MAGIC_PLAIN, MAGIC_GZIP, MAX_UNEXPORTED,
    ErrorKind, FormatError, LedgerError,
)
from .transactions import Transaction, describe
from .ledger import Ledger
from . import codec


# ============================================================================
# HEADER
# ============================================================================

@dataclass(frozen=True, slots=True)
class ExportHeader:
    """
    Fixed-layout frame header.

    Attributes:
        magic: MAGIC_PLAIN once any compression has been undone
        num_unexported: How many of the sender's oldest transactions were left out
        crc: CRC32 of the sender's complete serialized history
    """
    magic: bytes
    num_unexported: int
    crc: int

    LAYOUT = struct.Struct(">2sHI")

    def pack(self) -> bytes:
        return self.LAYOUT.pack(self.magic, self.num_unexported, self.crc)

    @classmethod
    def unpack(cls, frame: bytes) -> ExportHeader:
        """
        Read the header at the start of frame.

        Raises:
            FormatError: frame is shorter than the header
        """
        if len(frame) < cls.LAYOUT.size:
            raise FormatError(f"frame too short: {len(frame)} bytes", ErrorKind.INVALID_FORMAT)
        magic, num_unexported, crc = cls.LAYOUT.unpack_from(frame)
        return cls(magic, num_unexported, crc)


HEADER_SIZE = ExportHeader.LAYOUT.size


# ============================================================================
# EXPORT
# ============================================================================

def _tail_offset(log: bytes, num_lines: int) -> int:
    """Byte offset just past the first num_lines newline-terminated lines."""
    offset = 0
    for _ in range(num_lines):
        offset = log.index(b"\n", offset) + 1
    return offset


def export_choices(history_size: int) -> List[Tuple[str, int]]:
    """
    Export sizes to offer the user: 1, 2, 4, ... and finally the whole history.

    Example:
        export_choices(5) -> [("1", 1), ("2", 2), ("4", 4), ("5 (All)", 5)]
    """
    choices = []
    n = 1
    while n <= history_size:
        choices.append((str(n), n))
        n *= 2
    if not choices:
        return choices
    if choices[-1][1] == history_size:
        choices[-1] = (f"{history_size} (All)", history_size)
    else:
        choices.append((f"{history_size} (All)", history_size))
    return choices


def export_tail(ledger: Ledger, num_exported: int) -> str:
    """
    Encode the newest num_exported transactions of ledger.

    Args:
        ledger: Sender's ledger (not modified)
        num_exported: 1 <= num_exported <= ledger.history_size()

    Returns:
        Base64 text of the "L0" or (if smaller) "Lz" frame

    Raises:
        ValueError: num_exported is out of range, or too many transactions
            would be left out for the 16-bit count field
    """
    size = ledger.history_size()
    if num_exported <= 0 or num_exported > size:
        raise ValueError(f"num_exported={num_exported}, history={size}")
    num_unexported = size - num_exported
    if num_unexported > MAX_UNEXPORTED:
        raise ValueError(
            f"{num_unexported} unexported transactions exceed {MAX_UNEXPORTED}; export more"
        )

    log = ledger.save().encode("utf-8")
    header = ExportHeader(MAGIC_PLAIN, num_unexported, zlib.crc32(log))
    frame = header.pack() + log[_tail_offset(log, num_unexported):]

    # mtime=0 keeps the output deterministic
    compressed = MAGIC_GZIP + gzip.compress(frame[len(MAGIC_PLAIN):], mtime=0)
    if len(compressed) < len(frame):
        frame = compressed

    if ledger.verbose:
        print(f"📤 Exported {num_exported} of {size} transactions ({len(frame)} bytes)")
    return base64.b64encode(frame).decode("ascii")


# ============================================================================
# MERGE
# ============================================================================

@dataclass(frozen=True)
class MergeResult:
    """
    Outcome of merge().

    Attributes:
        ledger: The merged ledger, or None if the merge failed
        message: "New Transactions:" report on success, reason on failure
        error: Why the merge failed (None on success)
        new_transactions: Transactions the merged ledger has and the local one lacks,
            in ascending date order
    """
    ledger: Optional[Ledger]
    message: str
    error: Optional[ErrorKind] = None
    new_transactions: Tuple[Transaction, ...] = ()

    @property
    def ok(self) -> bool:
        return self.ledger is not None


def _rejected(local: Ledger, kind: ErrorKind, message: str) -> MergeResult:
    if local.verbose:
        print(f"✗ MERGE REJECTED: {message}")
    return MergeResult(None, message, kind)


def _strictly_increasing(history: Sequence[Transaction]) -> bool:
    return all(a.date < b.date for a, b in zip(history, history[1:]))


def decode_frame(blob: str) -> bytes:
    """
    Base64-decode blob and undo any gzip layer.

    Returns:
        The "L0" frame: header followed by tail bytes

    Raises:
        FormatError: bad base64, unknown magic, corrupt gzip stream or short frame
    """
    try:
        frame = base64.b64decode(blob)
    except (binascii.Error, ValueError) as e:
        raise FormatError(f"Invalid Data Format {e}", ErrorKind.INVALID_FORMAT) from None

    magic = frame[:len(MAGIC_PLAIN)]
    if magic == MAGIC_GZIP:
        try:
            frame = MAGIC_PLAIN + gzip.decompress(frame[len(MAGIC_GZIP):])
        except (OSError, EOFError, zlib.error) as e:
            raise FormatError(f"Invalid Data Format {e}", ErrorKind.INVALID_FORMAT) from None
    elif magic != MAGIC_PLAIN:
        raise FormatError("Invalid Data Format", ErrorKind.INVALID_FORMAT)

    ExportHeader.unpack(frame)
    return frame


def merge(local: Ledger, blob: str) -> MergeResult:
    """
    Merge a peer's export into a copy of local.

    Steps:
        1. Decode the frame (INVALID_FORMAT)
        2. Require our history to cover the sender's unexported prefix (NEED_MORE_CONTEXT)
        3. Rebuild the sender's full log from our prefix and their tail and
           check it against their CRC32 (CONFLICT_OR_CORRUPT)
        4. Replay it as the remote ledger (INVALID_REMOTE_LOG)
        5. Both histories must have strictly increasing dates
           (DATE_ORDER_VIOLATION, REMOTE_DATE_ORDER_VIOLATION)
        6. Union by date; one date carrying two different transactions is
           irreconcilable (DATE_CONFLICT)
        7. The union must add something (NOTHING_NEW)
        8. Replay the date-ordered union into a fresh ledger (INVALID_MERGED_LOG)

    Args:
        local: Receiver's ledger (never mutated)
        blob: Text produced by export_tail() on the peer

    Returns:
        MergeResult. The caller decides whether to adopt result.ledger.
    """
    try:
        frame = decode_frame(blob)
    except FormatError as e:
        return _rejected(local, e.kind, str(e))
    header = ExportHeader.unpack(frame)

    if header.num_unexported > local.history_size():
        return _rejected(local, ErrorKind.NEED_MORE_CONTEXT,
                         "Need to export more transactions to merge")

    prefix = codec.dump_history(local.history[:header.num_unexported]).encode("utf-8")
    reconstructed = prefix + frame[HEADER_SIZE:]
    if zlib.crc32(reconstructed) != header.crc:
        return _rejected(local, ErrorKind.CONFLICT_OR_CORRUPT,
                         "Conflict or Corrupt data. Try again with more transactions")

    try:
        remote = Ledger.load(reconstructed.decode("utf-8"), name=f"{local.name}_remote")
    except (UnicodeDecodeError, LedgerError) as e:
        return _rejected(local, ErrorKind.INVALID_REMOTE_LOG, f"Invalid Remote Log: {e}")

    if not _strictly_increasing(local.history):
        return _rejected(local, ErrorKind.DATE_ORDER_VIOLATION, "this date goes backwards")
    if not _strictly_increasing(remote.history):
        return _rejected(local, ErrorKind.REMOTE_DATE_ORDER_VIOLATION, "remote date goes backwards")

    union: Dict[int, Transaction] = {}
    for tx in chain(local.history, remote.history):
        existing = union.setdefault(tx.date, tx)
        if codec.serialize(existing) != codec.serialize(tx):
            return _rejected(local, ErrorKind.DATE_CONFLICT, "date conflict")

    if len(union) == local.history_size():
        return _rejected(local, ErrorKind.NOTHING_NEW, "Nothing new")

    merged_log = codec.dump_history(union[date] for date in sorted(union))
    try:
        merged = Ledger.load(merged_log, name=local.name, verbose=local.verbose, clock=local.clock)
    except LedgerError as e:
        return _rejected(local, ErrorKind.INVALID_MERGED_LOG, f"Invalid Merged Log: {e}")
    merged.modified = True

    local_dates = {tx.date for tx in local.history}
    new_transactions = tuple(tx for tx in merged.history if tx.date not in local_dates)
    message = "New Transactions:\n" + "".join(describe(tx) + "\n" for tx in new_transactions)
    if local.verbose:
        print(f"✓ MERGED: {len(new_transactions)} new transactions")
    return MergeResult(merged, message, None, new_transactions)
