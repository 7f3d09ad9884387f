"""
Local snapshot store for the canonical record set.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, List

from .errors import SnapshotError
from .models import Record


class LocalRecordStore:
    """
    Durable whole-snapshot storage of records in a single JSON file.

    The local store is always available and is the only source of truth
    when no remote store is configured. A corrupt snapshot raises
    SnapshotError; records are never dropped on load.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> List[Record]:
        """Load the snapshot. A missing file is an empty snapshot."""
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SnapshotError(f"Could not read snapshot {self.path}: {e}") from e

        if not isinstance(data, list):
            raise SnapshotError(f"Snapshot {self.path} is not a list of records")

        records = []
        seen = set()
        for i, raw in enumerate(data):
            try:
                record = Record.from_dict(raw)
            except (AttributeError, TypeError, ValueError) as e:
                raise SnapshotError(f"Invalid record at index {i} in {self.path}: {e}") from e
            if record.id in seen:
                raise SnapshotError(f"Duplicate record id {record.id} in {self.path}")
            seen.add(record.id)
            records.append(record)
        return records

    def save(self, records: Iterable[Record]):
        """Replace the whole snapshot atomically."""
        payload = [r.to_dict() for r in records]
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write next to the target so os.replace stays on one filesystem
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp",
                                        dir=self.path.parent.as_posix())
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path.as_posix())
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
