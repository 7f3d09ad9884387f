#!/usr/bin/env python3
"""
Main CLI entrypoint for the receipt ledger.
"""

import argparse
import os
import sys
from pathlib import Path

from receipt_ledger.core.database import Configured, init_remote_db, resolve_remote_mode
from receipt_ledger.core.errors import OcrError, ParseError, RemoteError, SnapshotError
from receipt_ledger.core.llm import PROVIDER_CHOICES
from receipt_ledger.core.processor import ReceiptLedger
from receipt_ledger.core.reporting import default_export_name
from receipt_ledger.core.store import LocalRecordStore
from receipt_ledger.core.utils import money_fmt


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="receipt-ledger",
        description="Scan receipts into structured records, keep them locally, and sync them to a remote database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scan receipts (local snapshot only)
  receipt-ledger scan ./incoming/*.jpg

  # Create the remote schema, then scan with a remote database configured
  receipt-ledger --remote-db ./remote.sqlite init-remote
  receipt-ledger --remote-db ./remote.sqlite scan receipt.pdf

  # Push records that were saved while offline
  receipt-ledger --remote-db ./remote.sqlite sync

  # Export the canonical set
  receipt-ledger export --csv ./out/receipts.csv --pdf ./out/summary.pdf
        """
    )
    parser.add_argument("--store",
                        help="Local snapshot file (default: ./receipts.json, or RECEIPT_STORE env var)")
    parser.add_argument("--remote-db",
                        help="Remote SQLite database (default: RECEIPT_REMOTE_DB env var; local mode if unset)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show detailed information for debugging")

    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="OCR and structure receipt files")
    scan.add_argument("files", nargs="+", help="Receipt images or PDFs")
    scan.add_argument("--llm-provider", choices=PROVIDER_CHOICES,
                      help="LLM provider to use (default: openai, or LLM_PROVIDER env var)")
    scan.add_argument("--llm-model",
                      help="LLM model to use (uses provider default if not specified, or LLM_MODEL env var)")

    sub.add_parser("sync", help="Upload records that exist only locally")
    sub.add_parser("list", help="List all records, newest first")

    export = sub.add_parser("export", help="Export records to CSV and/or a PDF summary")
    export.add_argument("--csv", help="CSV output path (default: ./receipts_export_<date>.csv)")
    export.add_argument("--pdf", help="Also write a PDF summary to this path")

    sub.add_parser("init-remote", help="Create the remote database schema")
    return parser


def cmd_scan(ledger: ReceiptLedger, args) -> int:
    failed = 0
    for name in args.files:
        path = Path(name)
        try:
            ledger.add_receipt_file(path)
        except (OcrError, ParseError, OSError) as e:
            print(f"[ERROR] {path.name}: {e}")
            failed += 1

    if ledger.remote_configured and ledger.unsynced_count:
        print(f"[INFO] {ledger.unsynced_count} record(s) only saved locally. Run 'sync' to upload them.")
    return 1 if failed else 0


def cmd_sync(ledger: ReceiptLedger, args) -> int:
    if not ledger.remote_configured:
        print("[WARN] No remote database configured; nothing to sync (local mode)")
        return 0

    report = ledger.sync()
    if report.failures:
        print(f"[WARN] Sync incomplete: {report.summary()}. "
              f"{report.pending} record(s) remain local; run sync again to retry.")
        return 1
    print(f"[OK] Sync complete: {report.summary()}")
    return 0


def cmd_list(ledger: ReceiptLedger, args) -> int:
    records = ledger.records
    if not records:
        print("No receipts yet.")
        return 0
    show_status = ledger.remote_configured
    for r in records:
        marker = ("[synced] " if r.synced else "[local]  ") if show_status else ""
        print(f"{marker}{r.transaction_date or '(no date)':<10}  {r.merchant_name[:32]:<32}  "
              f"{money_fmt(r.total_amount, r.currency):>12}  {r.category}")
    print(f"{len(records)} receipt(s), {ledger.unsynced_count} unsynced")
    return 0


def cmd_export(ledger: ReceiptLedger, args) -> int:
    if not ledger.records:
        print("No receipts to export.")
        return 0
    ledger.export_csv(Path(args.csv or default_export_name()))
    if args.pdf:
        ledger.export_summary_pdf(Path(args.pdf))
    return 0


COMMANDS = {
    "scan": cmd_scan,
    "sync": cmd_sync,
    "list": cmd_list,
    "export": cmd_export,
}


def main(argv=None):
    """Main CLI entrypoint."""
    args = build_parser().parse_args(argv)

    store_path = Path(args.store or os.getenv("RECEIPT_STORE", "./receipts.json"))
    remote_db = args.remote_db or os.getenv("RECEIPT_REMOTE_DB")

    if args.command == "init-remote":
        if not remote_db:
            print("[ERROR] init-remote needs --remote-db or RECEIPT_REMOTE_DB")
            return 1
        try:
            init_remote_db(Path(remote_db))
        except RemoteError as e:
            print(f"[ERROR] {e}")
            return 1
        print(f"[OK] Remote schema ready in {remote_db}")
        return 0

    llm_provider, llm_model = "openai", None
    if args.command == "scan":
        # Resolve LLM provider/model from CLI arg or environment variable
        llm_provider = args.llm_provider or os.getenv("LLM_PROVIDER", "openai")
        if llm_provider not in PROVIDER_CHOICES:
            print(f"[ERROR] Invalid LLM provider: {llm_provider}")
            print(f"[ERROR] Must be one of: {', '.join(PROVIDER_CHOICES)}")
            return 1
        llm_model = args.llm_model or os.getenv("LLM_MODEL")

    remote = resolve_remote_mode(remote_db)
    if isinstance(remote, Configured):
        print(f"[INFO] Remote database: {remote_db}")
    else:
        print(f"[INFO] Local mode: {remote.reason}")

    ledger = ReceiptLedger(
        store=LocalRecordStore(store_path),
        remote=remote,
        llm_provider=llm_provider,
        llm_model=llm_model,
        verbose=args.verbose,
    )

    try:
        result = ledger.load()
    except SnapshotError as e:
        print(f"[ERROR] {e}")
        return 1
    if result.stale:
        print("[WARN] Showing local records only; they may be missing receipts saved elsewhere.")

    return COMMANDS[args.command](ledger, args)


if __name__ == "__main__":
    sys.exit(main())
