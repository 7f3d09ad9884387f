"""
Receipt ledger: owns the canonical record set and wires OCR, structuring,
local storage, merge and sync together.
"""

import threading
from pathlib import Path
from typing import Callable, List, Optional

from .database import Configured, RemoteMode
from .errors import RemoteError
from .llm import result_summary, structure_receipt
from .merge import LoadResult, check_canonical, load_canonical, sort_canonical
from .models import Record
from .ocr import extract_text
from .reporting import build_summary_pdf, write_csv
from .store import LocalRecordStore
from .sync import ProgressCallback, SyncCoordinator, SyncReport, upsert_record


class ReceiptLedger:
    """Main entry point for scanning, storing and syncing receipts."""

    def __init__(self, store: LocalRecordStore, remote: RemoteMode,
                 extract: Optional[Callable[[bytes, str], str]] = None,
                 structure: Optional[Callable[[str], Record]] = None,
                 llm_provider: str = "openai",
                 llm_model: Optional[str] = None,
                 verbose: bool = False):
        """
        Initialize the ledger.

        Args:
            store: Local snapshot store
            remote: Remote mode (Configured or Unconfigured)
            extract: OCR function ``(data, filename) -> text`` (default: Tesseract/PyMuPDF)
            structure: Structuring function ``text -> Record`` (default: LLM)
            llm_provider: LLM provider for the default structuring function
            llm_model: LLM model name (uses provider default if not specified)
            verbose: Whether to show verbose debugging output
        """
        self.store = store
        self.remote = remote
        self.extract = extract or extract_text
        self.structure = structure or (
            lambda text: structure_receipt(text, provider=llm_provider, model=llm_model)
        )
        self.verbose = verbose

        # Guards every read-modify-write of the canonical set
        self._lock = threading.Lock()
        self._records: List[Record] = []
        self.remote_available = False

    @property
    def remote_configured(self) -> bool:
        return isinstance(self.remote, Configured)

    @property
    def records(self) -> List[Record]:
        """A copy of the canonical set, newest first."""
        with self._lock:
            return list(self._records)

    @property
    def unsynced_count(self) -> int:
        with self._lock:
            return sum(1 for r in self._records if not r.synced)

    def load(self) -> LoadResult:
        """Load the local snapshot, merge the remote one, and persist the result."""
        with self._lock:
            result = load_canonical(self.store, self.remote, verbose=self.verbose)
            self._records = result.records
            self.remote_available = result.remote_available
        return result

    def add_receipt(self, data: bytes, filename: str = "") -> Record:
        """
        Scan one receipt and add it to the canonical set.

        OCR and structuring failures propagate (OcrError, ParseError) and
        leave the canonical set untouched. When a remote store is
        configured, the new record is uploaded right away; if that fails
        the record stays local and unsynced.
        """
        label = filename or "upload"
        print(f"[INFO] Processing {label}")

        text = self.extract(data, filename)
        if self.verbose:
            print(f"  [DEBUG] OCR produced {len(text)} character(s)")

        record = self.structure(text)
        if self.verbose:
            print(f"  [DEBUG] Structured: {result_summary(record)}")

        record = self._try_upload(record)

        with self._lock:
            records = sort_canonical(self._records + [record])
            check_canonical(records)
            self.store.save(records)
            self._records = records

        status = "synced" if record.synced else "local only"
        print(f"[OK] {label}: {record.merchant_name} {record.transaction_date} ({status})")
        return record

    def add_receipt_file(self, path: Path) -> Record:
        """Scan a receipt file from disk."""
        return self.add_receipt(path.read_bytes(), filename=path.name)

    def _try_upload(self, record: Record) -> Record:
        if not isinstance(self.remote, Configured):
            return record
        try:
            upsert_record(self.remote.adapter, record)
        except RemoteError as e:
            print(f"[WARN] Receipt saved locally, run sync to upload it: {e}")
            return record
        return record.mark_synced()

    def sync(self, should_stop: Optional[Callable[[], bool]] = None,
             on_progress: Optional[ProgressCallback] = None) -> SyncReport:
        """Push every unsynced record to the remote store and persist the flags."""
        coordinator = SyncCoordinator(self.remote, on_progress=on_progress,
                                      verbose=self.verbose)
        with self._lock:
            report = coordinator.run(self._records, should_stop=should_stop)
            if report.synced_count:
                self.store.save(report.records)
            self._records = report.records
        return report

    def export_csv(self, out_csv: Path):
        write_csv(self.records, out_csv)
        print(f"[OK] Wrote {out_csv}")

    def export_summary_pdf(self, out_pdf: Path):
        build_summary_pdf(self.records, out_pdf)
        print(f"[OK] Wrote {out_pdf}")
