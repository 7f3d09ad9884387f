from typing import Dict, List, Optional, Set

import pytest

from receipt_ledger.core.errors import RemoteError, RemoteUnavailable
from receipt_ledger.core.models import LineItem, Record


def make_record(id: str, date: str = "2024-01-01", synced: bool = False, **overrides) -> Record:
    fields = dict(
        id=id,
        merchant_name=f"Merchant {id}",
        transaction_date=date,
        currency="$",
        total_amount=10.0,
        category="Food",
        confidence_score=90,
        items=(LineItem("Coffee", 2, 3.5), LineItem("Bagel", 1, 3.0)),
        synced=synced,
    )
    fields.update(overrides)
    return Record(**fields)


class FakeRemote:
    """In-memory remote store that records every call."""

    def __init__(self, records: Optional[List[Record]] = None,
                 fail_insert: Optional[Set[str]] = None,
                 fail_exists: Optional[Set[str]] = None,
                 unavailable: bool = False):
        self.rows: Dict[str, Record] = {r.id: r for r in records or []}
        self.fail_insert = set(fail_insert or ())
        self.fail_exists = set(fail_exists or ())
        self.unavailable = unavailable
        self.insert_calls: List[str] = []
        self.exists_calls: List[str] = []

    def fetch_all(self) -> List[Record]:
        if self.unavailable:
            raise RemoteUnavailable("connection refused")
        return sorted(self.rows.values(), key=lambda r: r.transaction_date, reverse=True)

    def exists(self, record_id: str) -> bool:
        self.exists_calls.append(record_id)
        if record_id in self.fail_exists:
            raise RemoteError(f"exists failed for {record_id}")
        return record_id in self.rows

    def insert(self, record: Record):
        self.insert_calls.append(record.id)
        if record.id in self.fail_insert:
            raise RemoteError(f"insert failed for {record.id}")
        if record.id in self.rows:
            raise RemoteError(f"duplicate key {record.id}")
        self.rows[record.id] = record


@pytest.fixture
def fake_remote():
    return FakeRemote()
