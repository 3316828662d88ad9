import sqlite3

import pytest

from haemil.store.eventlog import EventLog
from haemil.store.store import StoreError, open_store, parse_dsn
from haemil.store.tenant import with_tenant_id


@pytest.fixture
def memory_store():
    store = open_store("sqlite://:memory:")
    yield store
    store.close()


def test_open_and_migrate_memory(memory_store):
    (count,) = memory_store.db().execute("SELECT COUNT(*) FROM event_log").fetchone()
    assert count == 0


def test_open_rejects_unknown_scheme():
    with pytest.raises(StoreError, match="unsupported DSN"):
        open_store("mysql://ignored")


def test_open_file_persists(tmp_path):
    dsn = "sqlite://" + str(tmp_path / "persist.db")
    with with_tenant_id("tenantP"):
        first = open_store(dsn)
        EventLog(first).append("persist.test", b'{"v":1}')
        first.close()

        with open_store(dsn) as second:
            assert EventLog(second).count_all() == 1


def test_store_dialect_exposed(memory_store):
    assert memory_store.dialect().name() == "sqlite"


def test_migrate_is_idempotent(memory_store):
    memory_store.migrate()
    memory_store.migrate()
    (count,) = memory_store.db().execute("SELECT COUNT(*) FROM event_log").fetchone()
    assert count == 0


@pytest.mark.parametrize(
    "dsn, driver, path",
    [
        ("sqlite://:memory:", "sqlite", ":memory:"),
        ("sqlite:///abs/haemil.db", "sqlite", "/abs/haemil.db"),
        ("sqlite://rel.db", "sqlite", "rel.db"),
    ],
)
def test_parse_dsn_ok(dsn, driver, path):
    assert parse_dsn(dsn) == (driver, path)


@pytest.mark.parametrize("dsn", ["postgres://x", "not-a-dsn"])
def test_parse_dsn_rejects(dsn):
    with pytest.raises(StoreError):
        parse_dsn(dsn)


def test_context_manager_closes(tmp_path):
    dsn = "sqlite://" + str(tmp_path / "cm.db")
    with open_store(dsn) as store:
        conn = store.db()
        assert conn.execute("SELECT COUNT(*) FROM event_log").fetchone() == (0,)
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        conn.execute("SELECT 1")