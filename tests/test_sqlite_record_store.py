from datetime import datetime, timedelta

import pytest

from kumbhaka.adapters.memory_adapters.sqlite_record_store import SqliteRecordStore
from kumbhaka.core.session_record import SessionRecord
from kumbhaka.utils.custom_exception import InvalidRecordError, RecordNotFoundError


def make_record(started_at, durations=(12.37, 8.02)):
    record = SessionRecord.begin(started_at, phase_count=len(durations))
    for number, seconds in enumerate(durations, start=1):
        record.record_duration(number, seconds)
    record.finish(started_at + timedelta(seconds=sum(durations)))
    return record


@pytest.fixture
def db(tmp_path):
    store = SqliteRecordStore(db_path=str(tmp_path / "data" / "sessions.db"))
    yield store
    store.close()


def test_insert_assigns_id_and_get_reads_back(db):
    started = datetime(2025, 1, 31, 7, 5, 9, 123456)
    record = make_record(started)

    record_id = db.insert(record)

    assert record.id == record_id
    loaded = db.get(record_id)
    assert loaded.started_at == started
    assert loaded.durations == [12.37, 8.02]
    assert loaded.ended_at == record.ended_at


def test_fetch_range_is_half_open_and_newest_first(db):
    day = datetime(2025, 1, 31)
    for hour in (0, 9, 23):
        db.insert(make_record(day.replace(hour=hour)))
    db.insert(make_record(day + timedelta(days=1)))

    today = db.fetch_range(day, day + timedelta(days=1))

    assert [r.started_at.hour for r in today] == [23, 9, 0]


def test_fetch_all_orders_by_start_descending(db):
    first = db.insert(make_record(datetime(2025, 1, 30, 8)))
    second = db.insert(make_record(datetime(2025, 1, 31, 8)))

    assert [r.id for r in db.fetch_all()] == [second, first]


def test_delete_cascades_durations(db):
    record_id = db.insert(make_record(datetime(2025, 1, 31, 8)))
    db.delete(record_id)

    assert db.get(record_id) is None
    db.cur.execute("SELECT COUNT(*) FROM PhaseDurations")
    assert db.cur.fetchone()[0] == 0


def test_delete_unknown_id_raises(db):
    with pytest.raises(RecordNotFoundError):
        db.delete(999)


def test_incomplete_record_is_rejected(db):
    record = SessionRecord.begin(datetime(2025, 1, 31, 8))
    record.record_duration(1, 3.0)
    with pytest.raises(InvalidRecordError):
        db.insert(record)


def test_three_phase_round_trip(db):
    record_id = db.insert(make_record(datetime(2025, 1, 31, 8), durations=(5.0, 10.0, 7.5)))
    assert db.get(record_id).record3_seconds == 7.5
