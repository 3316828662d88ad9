"""Connection and dialect bundle with schema migrations."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from haemil.store.dialect import Dialect, new_sqlite_dialect

# Ordered, idempotent DDL applied on open. Append new statements; never
# edit existing ones.
MIGRATIONS: tuple[str, ...] = (
    """CREATE TABLE IF NOT EXISTS event_log (
        id          TEXT PRIMARY KEY,
        tenant_id   TEXT NOT NULL,
        type        TEXT NOT NULL,
        payload     BLOB NOT NULL,
        created_at  INTEGER NOT NULL
    )""",
    """CREATE INDEX IF NOT EXISTS event_log_tenant_time
        ON event_log (tenant_id, created_at DESC)""",
)

_SQLITE_PREFIX = "sqlite://"


class StoreError(Exception):
    """Raised when the store cannot be opened, migrated or queried."""


def parse_dsn(dsn: str) -> tuple[str, str]:
    """Split a ``scheme://payload`` DSN into driver name and driver path."""
    if dsn.startswith(_SQLITE_PREFIX):
        return "sqlite", dsn[len(_SQLITE_PREFIX):]
    raise StoreError(
        f"store: unsupported DSN scheme in {dsn!r} (MVP accepts sqlite:// only)"
    )


class Store:
    """A single database connection plus its SQL dialect.

    Access is serialised through one lock, so a Store may be shared
    between threads.
    """

    def __init__(self, connection: sqlite3.Connection, dialect: Dialect) -> None:
        self._conn = connection
        self._dialect = dialect
        self._lock = threading.Lock()

    def close(self) -> None:
        """Release the underlying connection."""
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error as err:
                raise StoreError(f"store: close: {err}") from err

    def dialect(self) -> Dialect:
        """The active SQL grammar."""
        return self._dialect

    def db(self) -> sqlite3.Connection:
        """The raw connection, for queries without a typed API."""
        return self._conn

    def migrate(self) -> None:
        """Apply every migration; re-running on a migrated database is a no-op."""
        with self._locked() as conn:
            for index, statement in enumerate(MIGRATIONS):
                try:
                    conn.execute(statement)
                except sqlite3.Error as err:
                    raise StoreError(f"store: migration {index}: {err}") from err

    @contextmanager
    def _locked(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            yield self._conn

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> list[tuple]:
        """Run one statement under the lock and return all fetched rows."""
        with self._locked() as conn:
            return conn.execute(sql, tuple(params)).fetchall()

    def __enter__(self) -> Store:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def open_store(dsn: str) -> Store:
    """Open, configure and migrate a store for ``dsn``.

    Accepted forms: ``sqlite://:memory:``, ``sqlite:///abs/path.db`` and
    ``sqlite://relative/path.db``.
    """
    driver, path = parse_dsn(dsn)
    try:
        conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
    except sqlite3.Error as err:
        raise StoreError(f"store: open {driver}: {err}") from err

    try:
        conn.execute("SELECT 1").fetchone()
    except sqlite3.Error as err:
        conn.close()
        raise StoreError(f"store: ping: {err}") from err

    try:
        conn.execute("PRAGMA busy_timeout = 5000")
    except sqlite3.Error as err:
        conn.close()
        raise StoreError(f"store: busy_timeout: {err}") from err

    store = Store(conn, new_sqlite_dialect())
    try:
        store.migrate()
    except StoreError as err:
        conn.close()
        raise StoreError(f"store: migrate: {err}") from err
    return store