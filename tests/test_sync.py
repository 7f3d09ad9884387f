import pytest

from receipt_ledger.core.database import Configured, Unconfigured
from receipt_ledger.core.sync import SyncCoordinator, sync_all, upsert_record

from conftest import FakeRemote, make_record


def test_sync_inserts_unsynced_record():
    remote = FakeRemote()

    records, count = sync_all([make_record("1")], Configured(remote))

    assert count == 1
    assert records[0].id == "1"
    assert records[0].synced is True
    assert remote.exists_calls == ["1"]
    assert remote.insert_calls == ["1"]


def test_second_sync_does_not_insert_again():
    remote = FakeRemote()
    original = [make_record("1"), make_record("2")]

    sync_all(original, Configured(remote))
    # Same unsynced input again, e.g. the flags were never persisted locally
    records, count = sync_all(original, Configured(remote))

    assert remote.insert_calls == ["1", "2"]
    assert count == 2
    assert all(r.synced for r in records)


def test_one_failed_insert_does_not_block_the_batch(capsys):
    remote = FakeRemote(fail_insert={"B"})
    records = [make_record("A"), make_record("B"), make_record("C")]

    updated, count = sync_all(records, Configured(remote))

    assert count == 2
    assert [r.id for r in updated] == ["A", "B", "C"]
    assert [r.synced for r in updated] == [True, False, True]
    assert "[WARN] Failed to sync receipt B" in capsys.readouterr().out


def test_failed_existence_check_counts_as_failure():
    remote = FakeRemote(fail_exists={"A"})

    updated, count = sync_all([make_record("A"), make_record("B")], Configured(remote))

    assert count == 1
    assert updated[0].synced is False
    assert remote.insert_calls == ["B"]


def test_failed_record_is_retried_on_next_sync():
    remote = FakeRemote(fail_insert={"B"})
    first, _ = sync_all([make_record("A"), make_record("B")], Configured(remote))

    remote.fail_insert.clear()
    second, count = sync_all(first, Configured(remote))

    assert count == 1
    assert all(r.synced for r in second)
    assert remote.insert_calls == ["A", "B", "B"]


def test_already_synced_records_are_left_alone():
    remote = FakeRemote()
    records = [make_record("1", synced=True), make_record("2", "2023-01-01", synced=True)]

    updated, count = sync_all(records, Configured(remote))

    assert updated == records
    assert count == 0
    assert remote.exists_calls == []


def test_unsynced_and_synced_records_keep_their_positions():
    remote = FakeRemote()
    records = [make_record("1", synced=True), make_record("2"), make_record("3", synced=True)]

    updated, count = sync_all(records, Configured(remote))

    assert [r.id for r in updated] == ["1", "2", "3"]
    assert count == 1
    assert remote.insert_calls == ["2"]


def test_sync_without_remote_is_a_noop():
    records = [make_record("1"), make_record("2")]

    updated, count = sync_all(records, Unconfigured())

    assert updated == records
    assert count == 0


def test_sync_with_empty_input():
    assert sync_all([], Configured(FakeRemote())) == ([], 0)


def test_existing_remote_record_is_not_reinserted():
    remote = FakeRemote([make_record("1")])

    assert upsert_record(remote, make_record("1")) is False
    assert remote.insert_calls == []


def test_cancel_stops_between_records():
    remote = FakeRemote()
    records = [make_record("1"), make_record("2"), make_record("3")]
    calls = []

    def should_stop():
        calls.append(1)
        return len(calls) > 1

    report = SyncCoordinator(Configured(remote)).run(records, should_stop=should_stop)

    assert report.cancelled is True
    assert report.synced_count == 1
    assert report.attempted == 1
    assert [r.synced for r in report.records] == [True, False, False]
    assert report.pending == 2


def test_progress_is_reported_per_record():
    remote = FakeRemote(fail_insert={"2"})
    seen = []
    coordinator = SyncCoordinator(Configured(remote),
                                  on_progress=lambda *args: seen.append(args))

    coordinator.run([make_record("1"), make_record("2", synced=False), make_record("3", synced=True)])

    assert seen == [(1, 2, "1", True), (2, 2, "2", False)]


def test_report_summary():
    remote = FakeRemote(fail_insert={"B"})

    report = SyncCoordinator(Configured(remote)).run(
        [make_record("A"), make_record("B"), make_record("C")]
    )

    assert report.summary() == "2 of 3 synced, 1 failed"
    assert set(report.failures) == {"B"}


def test_programming_errors_are_not_swallowed():
    class BrokenRemote(FakeRemote):
        def exists(self, record_id):
            raise KeyError(record_id)

    with pytest.raises(KeyError):
        sync_all([make_record("1")], Configured(BrokenRemote()))
