import base64
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from haemil.store.eventlog import EventLog, new_event_id
from haemil.store.store import open_store
from haemil.store.tenant import MissingTenantError, with_tenant_id


@pytest.fixture
def store():
    s = open_store("sqlite://:memory:")
    yield s
    s.close()


def test_append_missing_tenant(store):
    with pytest.raises(MissingTenantError):
        EventLog(store).append("t", b"{}")


def test_append_basic(store):
    log = EventLog(store)
    with with_tenant_id("acme"):
        ev = log.append("turn.completed", b'{"x":1}')
        assert ev.tenant_id == "acme"
        assert ev.type == "turn.completed"
        assert ev.payload == b'{"x":1}'
        assert len(ev.id) == 26

        rows = log.since(None, 10)
        assert len(rows) == 1
        assert rows[0].id == ev.id
        assert rows[0].payload == b'{"x":1}'


def test_tenant_isolation(store):
    log = EventLog(store)
    with with_tenant_id("tenant-A"):
        for i in range(10):
            log.append("a.evt", f'{{"i":{i}}}'.encode())
    with with_tenant_id("tenant-B"):
        for i in range(5):
            log.append("b.evt", f'{{"i":{i}}}'.encode())

    with with_tenant_id("tenant-A"):
        rows_a = log.since(None, 100)
    with with_tenant_id("tenant-B"):
        rows_b = log.since(None, 100)

    assert len(rows_a) == 10
    assert len(rows_b) == 5
    assert all(r.tenant_id == "tenant-A" and r.type == "a.evt" for r in rows_a)
    assert all(r.tenant_id == "tenant-B" for r in rows_b)
    assert log.count_all() == 15


def test_since_time_filter(store):
    log = EventLog(store)
    with with_tenant_id("t"):
        ev1 = log.append("e", b"1")
        time.sleep(0.01)
        ev2 = log.append("e", b"2")
        time.sleep(0.01)
        log.append("e", b"3")

        assert len(log.since(ev1.created_at, 10)) == 3
        after = log.since(ev2.created_at, 10)
        assert [r.payload for r in after] == [b"2", b"3"]
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        assert log.since(future, 10) == []


def test_since_limit(store):
    log = EventLog(store)
    with with_tenant_id("t"):
        for i in range(20):
            log.append("e", str(i).encode())
        assert len(log.since(None, 5)) == 5


def test_since_non_positive_limit_defaults_to_100(store):
    log = EventLog(store)
    with with_tenant_id("t"):
        for i in range(120):
            log.append("e", str(i).encode())
        assert len(log.since(None, 0)) == 100


def test_since_oldest_first(store):
    log = EventLog(store)
    with with_tenant_id("t"):
        for i in range(5):
            log.append("e", str(i).encode())
        rows = log.since()
        times = [r.created_at for r in rows]
        assert times == sorted(times)


def test_concurrent_append(tmp_path):
    store = open_store("sqlite://" + str(tmp_path / "race.db"))
    log = EventLog(store)
    errors = []
    threads_n, per_thread = 10, 10

    def worker(g):
        with with_tenant_id("racer"):
            for i in range(per_thread):
                try:
                    log.append("race", f'{{"g":{g},"i":{i}}}'.encode())
                except Exception as err:  # collected for assertion below
                    errors.append(err)
                    return

    threads = [threading.Thread(target=worker, args=(g,)) for g in range(threads_n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    try:
        assert errors == []
        assert log.count_all() == threads_n * per_thread
    finally:
        store.close()


def test_event_ids_unique():
    ids = {new_event_id() for _ in range(1000)}
    assert len(ids) == 1000


def test_event_id_carries_millisecond_prefix():
    before = time.time_ns() // 1_000_000
    event_id = new_event_id()
    after = time.time_ns() // 1_000_000
    raw = base64.b32decode(event_id + "======")
    assert len(raw) == 16
    millis = int.from_bytes(raw[:6], "big")
    assert before <= millis <= after