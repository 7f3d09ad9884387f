"""
Merging of local and remote record sets into the canonical set.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from .database import Configured, RemoteMode, Unconfigured
from .errors import InvariantViolation, RemoteUnavailable
from .models import Record
from .store import LocalRecordStore
from .utils import transaction_sort_key


@dataclass
class LoadResult:
    """Outcome of the startup load: the canonical set and remote status."""
    records: List[Record]
    remote_available: bool
    # Remote configured but unreachable: canonical set may lag the remote
    stale: bool = False


def sort_canonical(records: Iterable[Record]) -> List[Record]:
    """Sort records newest first. Equal dates keep their input order."""
    # sorted() stays stable with reverse=True
    return sorted(records, key=transaction_sort_key, reverse=True)


def merge_records(local: Sequence[Record], remote: Sequence[Record]) -> List[Record]:
    """
    Merge local and remote snapshots into one canonical, ordered set.

    Local records go in first; remote records then overwrite any local
    record with the same id and are always flagged as synced. The result
    is sorted descending by transaction date.
    """
    by_id: Dict[str, Record] = {}
    for record in local:
        by_id[record.id] = record
    for record in remote:
        by_id[record.id] = record.mark_synced()
    return sort_canonical(by_id.values())


def check_canonical(records: Sequence[Record]):
    """Raise InvariantViolation if any id appears twice."""
    seen = set()
    for record in records:
        if record.id in seen:
            raise InvariantViolation(f"Duplicate record id in canonical set: {record.id}")
        seen.add(record.id)


def fetch_remote_snapshot(mode: RemoteMode, verbose: bool = False) -> Tuple[List[Record], bool]:
    """
    Fetch every record from the remote tier.

    Returns ``(records, available)``. An unconfigured or unreachable remote
    yields an empty list; unreachability is reported, never raised.
    """
    if isinstance(mode, Unconfigured):
        if verbose:
            print(f"  [DEBUG] Local mode: {mode.reason}")
        return [], False

    if isinstance(mode, Configured):
        try:
            remote = mode.adapter.fetch_all()
        except RemoteUnavailable as e:
            print(f"[WARN] Remote store unavailable, using local records only: {e}")
            return [], False
        if verbose:
            print(f"  [DEBUG] Fetched {len(remote)} record(s) from remote store")
        return remote, True

    raise TypeError(f"Unknown remote mode: {mode!r}")


def load_canonical(store: LocalRecordStore, mode: RemoteMode,
                   verbose: bool = False) -> LoadResult:
    """
    Startup flow: load the local snapshot, merge in the remote snapshot
    when there is one, and write the canonical set back to the local store.
    """
    local = store.load()
    remote, available = fetch_remote_snapshot(mode, verbose=verbose)
    records = merge_records(local, remote)
    check_canonical(records)
    store.save(records)

    print(f"[INFO] Loaded {len(local)} local and {len(remote)} remote record(s) "
          f"-> {len(records)} total")
    return LoadResult(
        records=records,
        remote_available=available,
        stale=isinstance(mode, Configured) and not available,
    )
