"""
Receipt Ledger

Scan receipts into structured records, keep them in a local snapshot, and
synchronize them to an optional remote relational store.
"""

__version__ = "1.0.0"
__author__ = "Receipt Ledger Contributors"

from receipt_ledger.core.models import LineItem, Record

__all__ = ["LineItem", "Record"]
