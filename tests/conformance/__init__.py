"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lunch fund ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Balances always sum to zero and match the history
2. undo_redo.py - Undo is the exact inverse of apply; rejections change nothing
3. roundtrip.py - A saved history replays to the same ledger
4. merge_protocol.py - Export/merge detects corruption and unions histories

These tests use hypothesis for property-based testing.
"""
