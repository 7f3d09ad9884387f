"""
Synchronization of local-only records to the remote store.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .database import Configured, RemoteMode, RemoteStore, Unconfigured
from .errors import RemoteError
from .models import Record

# on_progress(done, total, record_id, ok)
ProgressCallback = Callable[[int, int, str, bool], None]


@dataclass
class SyncReport:
    """Result of one sync pass."""
    records: List[Record]
    synced_count: int = 0
    attempted: int = 0
    failures: Dict[str, str] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def pending(self) -> int:
        """Records still unsynced after this pass."""
        return sum(1 for r in self.records if not r.synced)

    def summary(self) -> str:
        text = f"{self.synced_count} of {self.attempted} synced"
        if self.failures:
            text += f", {len(self.failures)} failed"
        if self.cancelled:
            text += " (cancelled)"
        return text


def upsert_record(adapter: RemoteStore, record: Record) -> bool:
    """
    Insert a record unless the remote store already has it.

    Returns True if an insert happened, False if the record was already
    present. Raises RemoteError if either step fails.
    """
    # Existence check first, so retries after a lost acknowledgement never
    # hit a duplicate key
    if adapter.exists(record.id):
        return False
    adapter.insert(record)
    return True


class SyncCoordinator:
    """Pushes unsynced records to the remote store, one at a time."""

    def __init__(self, mode: RemoteMode,
                 on_progress: Optional[ProgressCallback] = None,
                 verbose: bool = False):
        self.mode = mode
        self.on_progress = on_progress
        self.verbose = verbose

    def run(self, records: Sequence[Record],
            should_stop: Optional[Callable[[], bool]] = None) -> SyncReport:
        """
        Sync every unsynced record in ``records``.

        Records are processed sequentially. A failure on one record is
        reported and the loop moves on. ``should_stop`` is polled between
        records: the record in flight always finishes first.

        The returned report holds the full input sequence, in input order,
        with newly synced records flagged.
        """
        records = list(records)
        if isinstance(self.mode, Unconfigured):
            return SyncReport(records=records)
        if not isinstance(self.mode, Configured):
            raise TypeError(f"Unknown remote mode: {self.mode!r}")

        adapter = self.mode.adapter
        pending = [i for i, r in enumerate(records) if not r.synced]
        report = SyncReport(records=records)
        if not pending:
            return report

        print(f"[INFO] Syncing {len(pending)} unsynced record(s)...")
        for done, index in enumerate(pending, 1):
            if should_stop is not None and should_stop():
                report.cancelled = True
                print(f"[WARN] Sync cancelled after {report.attempted} of {len(pending)} record(s)")
                break

            record = records[index]
            report.attempted += 1
            try:
                inserted = upsert_record(adapter, record)
            except RemoteError as e:
                print(f"[WARN] Failed to sync receipt {record.id}: {e}")
                report.failures[record.id] = str(e)
                ok = False
            else:
                records[index] = record.mark_synced()
                report.synced_count += 1
                ok = True
                if self.verbose:
                    action = "inserted" if inserted else "already present"
                    print(f"  [DEBUG] {record.id}: {action}")

            if self.on_progress is not None:
                self.on_progress(done, len(pending), record.id, ok)

        return report


def sync_all(records: Sequence[Record], mode: RemoteMode) -> Tuple[List[Record], int]:
    """
    Sync unsynced records and return ``(updated_records, synced_count)``.

    With nothing to sync, or no remote store, the records come back
    unchanged and the count is 0.
    """
    report = SyncCoordinator(mode).run(records)
    return report.records, report.synced_count
