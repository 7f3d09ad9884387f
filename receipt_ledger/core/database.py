"""
Remote relational store for receipts.

The remote tier is optional. Callers never hold a bare adapter that may be
None: they hold a remote mode, either ``Configured(adapter)`` or
``Unconfigured(reason)``, and dispatch on which one it is.
"""

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from .errors import RemoteError, RemoteUnavailable
from .models import LineItem, Record, check_amount

SCHEMA = """
CREATE TABLE IF NOT EXISTS receipts (
    id TEXT PRIMARY KEY,
    merchant_name TEXT,
    transaction_date TEXT,
    total_amount REAL,
    currency TEXT,
    category TEXT,
    confidence_score INTEGER,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS receipt_items (
    id INTEGER PRIMARY KEY,
    receipt_id TEXT NOT NULL REFERENCES receipts(id) ON DELETE CASCADE,
    description TEXT,
    qty REAL,
    price REAL
);

CREATE INDEX IF NOT EXISTS idx_receipt_items_receipt_id
ON receipt_items(receipt_id);
"""


class RemoteStore(Protocol):
    """Operations the merge and sync steps need from a remote store."""

    def fetch_all(self) -> List[Record]:
        ...

    def exists(self, record_id: str) -> bool:
        ...

    def insert(self, record: Record) -> None:
        ...


@dataclass(frozen=True)
class Configured:
    """A remote store is configured and should be used."""
    adapter: RemoteStore


@dataclass(frozen=True)
class Unconfigured:
    """No remote store; the local snapshot is the only tier."""
    reason: str = "no remote database configured"


RemoteMode = Union[Configured, Unconfigured]


def resolve_remote_mode(db_path: Optional[str]) -> RemoteMode:
    """Build the remote mode from a configured database path (or none)."""
    if not db_path:
        return Unconfigured()
    return Configured(SqliteRemoteStore(Path(db_path)))


def init_remote_db(db_path: Path):
    """
    Create the remote schema (receipts + receipt_items).

    Raises:
        RemoteError: if the database cannot be created or written.
    """
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(db_path.as_posix())
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()
    except (OSError, sqlite3.Error) as e:
        raise RemoteError(f"Could not create remote schema in {db_path}: {e}") from e


class SqliteRemoteStore:
    """
    Remote store backed by a SQLite database with a header table keyed by
    record id and an items table referencing it with cascading delete.

    The database must already exist (see :func:`init_remote_db`); a
    missing database is reported as :class:`RemoteUnavailable` instead of
    being created on the fly.
    """

    def __init__(self, db_path: Path, timeout: float = 5.0):
        self.db_path = Path(db_path)
        self.timeout = timeout

    @contextmanager
    def _conn(self):
        uri = self.db_path.resolve().as_uri() + "?mode=rw"
        try:
            con = sqlite3.connect(uri, uri=True, timeout=self.timeout)
        except sqlite3.Error as e:
            raise RemoteUnavailable(f"Cannot open remote database {self.db_path}: {e}") from e
        try:
            con.execute("PRAGMA foreign_keys = ON")
            yield con
            con.commit()
        except BaseException:
            con.rollback()
            raise
        finally:
            con.close()

    def fetch_all(self) -> List[Record]:
        """Return every record with its items, newest transaction first."""
        try:
            with self._conn() as con:
                cur = con.cursor()
                cur.execute("""
                    SELECT id, merchant_name, transaction_date, total_amount,
                           currency, category, confidence_score
                    FROM receipts
                    ORDER BY transaction_date DESC
                """)
                headers = cur.fetchall()

                cur.execute("""
                    SELECT receipt_id, description, qty, price
                    FROM receipt_items
                    ORDER BY receipt_id, id
                """)
                items_by_receipt: Dict[str, List[LineItem]] = {}
                for receipt_id, description, qty, price in cur.fetchall():
                    items_by_receipt.setdefault(receipt_id, []).append(
                        LineItem(description=description or "",
                                 qty=1 if qty is None else qty,
                                 price=check_amount(price, f"price on receipt {receipt_id}"))
                    )
            records = [self._to_record(row, items_by_receipt.get(row[0], [])) for row in headers]
        except sqlite3.Error as e:
            raise RemoteUnavailable(f"Could not read remote receipts: {e}") from e
        except ValueError as e:
            raise RemoteUnavailable(f"Remote receipts are corrupt: {e}") from e
        return records

    @staticmethod
    def _to_record(row, items: List[LineItem]) -> Record:
        return Record(
            id=row[0],
            merchant_name=row[1] or "",
            transaction_date=row[2] or "",
            total_amount=check_amount(row[3], f"total_amount of receipt {row[0]}"),
            currency=row[4] or "",
            category=row[5] or "Uncategorized",
            confidence_score=row[6] or 0,
            items=tuple(items),
            # Present remotely, so synced by definition
            synced=True,
        )

    def exists(self, record_id: str) -> bool:
        """Check whether a receipt header with this id exists."""
        try:
            with self._conn() as con:
                cur = con.execute("SELECT 1 FROM receipts WHERE id = ?", (record_id,))
                return cur.fetchone() is not None
        except sqlite3.Error as e:
            raise RemoteError(f"Existence check failed for {record_id}: {e}") from e

    def insert(self, record: Record):
        """Insert the header row, then its item rows, in one transaction."""
        try:
            with self._conn() as con:
                con.execute("""
                    INSERT INTO receipts
                    (id, merchant_name, transaction_date, total_amount, currency,
                     category, confidence_score)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (record.id, record.merchant_name, record.transaction_date,
                      record.total_amount, record.currency, record.category,
                      record.confidence_score))

                if record.items:
                    con.executemany("""
                        INSERT INTO receipt_items (receipt_id, description, qty, price)
                        VALUES (?, ?, ?, ?)
                    """, [(record.id, item.description, item.qty, item.price)
                          for item in record.items])
        except sqlite3.Error as e:
            raise RemoteError(f"Insert failed for {record.id}: {e}") from e
