import sqlite3

import pytest

from receipt_ledger.cli.main import main
from receipt_ledger.core.store import LocalRecordStore

from conftest import make_record


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("RECEIPT_STORE", "RECEIPT_REMOTE_DB", "LLM_PROVIDER", "LLM_MODEL"):
        monkeypatch.delenv(var, raising=False)


def test_list_in_local_mode(tmp_path, capsys):
    store = tmp_path / "receipts.json"
    LocalRecordStore(store).save([make_record("1", merchant_name="Corner Shop")])

    assert main(["--store", str(store), "list"]) == 0

    out = capsys.readouterr().out
    assert "[INFO] Local mode" in out
    assert "Corner Shop" in out
    assert "1 receipt(s), 1 unsynced" in out


def test_sync_against_remote_database(tmp_path, capsys):
    store = tmp_path / "receipts.json"
    remote_db = tmp_path / "remote.sqlite"
    LocalRecordStore(store).save([make_record("1", "2024-01-01"), make_record("2", "2024-02-01")])

    assert main(["--remote-db", str(remote_db), "init-remote"]) == 0
    assert main(["--store", str(store), "--remote-db", str(remote_db), "sync"]) == 0

    assert "[OK] Sync complete: 2 of 2 synced" in capsys.readouterr().out
    assert all(r.synced for r in LocalRecordStore(store).load())
    with sqlite3.connect(remote_db.as_posix()) as conn:
        assert conn.execute("SELECT COUNT(*) FROM receipts").fetchone()[0] == 2
    conn.close()


def test_unreachable_remote_falls_back_to_local(tmp_path, capsys, monkeypatch):
    store = tmp_path / "receipts.json"
    LocalRecordStore(store).save([make_record("1")])
    monkeypatch.setenv("RECEIPT_REMOTE_DB", str(tmp_path / "missing" / "remote.sqlite"))

    assert main(["--store", str(store), "sync"]) == 1

    out = capsys.readouterr().out
    assert "[WARN] Remote store unavailable" in out
    assert "0 of 1 synced, 1 failed" in out
    assert LocalRecordStore(store).load()[0].synced is False


def test_scan_reports_unreadable_receipt(tmp_path, capsys, monkeypatch):
    from receipt_ledger.core import ocr

    monkeypatch.setattr(ocr, "ocr_image_bytes", lambda data: "")
    receipt = tmp_path / "blank.png"
    receipt.write_bytes(b"\x89PNG blank")
    store = tmp_path / "receipts.json"

    assert main(["--store", str(store), "scan", str(receipt)]) == 1

    assert "[ERROR] blank.png: No readable text found on receipt." in capsys.readouterr().out
    assert LocalRecordStore(store).load() == []


def test_export_writes_csv(tmp_path):
    store = tmp_path / "receipts.json"
    LocalRecordStore(store).save([make_record("1")])
    out = tmp_path / "export.csv"

    assert main(["--store", str(store), "export", "--csv", str(out)]) == 0

    assert out.read_text(encoding="utf-8").splitlines()[1].startswith("1,2024-01-01,")


def test_invalid_provider_from_environment(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("LLM_PROVIDER", "gemini")

    assert main(["--store", str(tmp_path / "r.json"), "scan", str(tmp_path / "receipt.png")]) == 1
    assert "[ERROR] Invalid LLM provider: gemini" in capsys.readouterr().out


def test_provider_setting_only_matters_for_scan(tmp_path, monkeypatch, capsys):
    store = tmp_path / "receipts.json"
    LocalRecordStore(store).save([make_record("1", merchant_name="Corner Shop")])
    monkeypatch.setenv("LLM_PROVIDER", "gemini")

    assert main(["--store", str(store), "list"]) == 0

    out = capsys.readouterr().out
    assert "Invalid LLM provider" not in out
    assert "Corner Shop" in out


def test_init_remote_reports_unwritable_path(tmp_path, capsys):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")

    assert main(["--remote-db", str(blocker / "remote.sqlite"), "init-remote"]) == 1
    assert "[ERROR] Could not create remote schema" in capsys.readouterr().out


def test_corrupt_snapshot_is_reported(tmp_path, capsys):
    store = tmp_path / "receipts.json"
    store.write_text("{broken", encoding="utf-8")

    assert main(["--store", str(store), "list"]) == 1
    assert "[ERROR] Could not read snapshot" in capsys.readouterr().out
