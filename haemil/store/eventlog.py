"""Append-only, tenant-scoped log of domain events."""

from __future__ import annotations

import base64
import secrets
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from haemil.store.store import Store, StoreError
from haemil.store.tenant import tenant_id_from_context

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_DEFAULT_LIMIT = 100
_MIN_NS = -(2**63)


@dataclass(frozen=True)
class LoggedEvent:
    """One persisted event row."""

    id: str
    tenant_id: str
    type: str
    payload: bytes
    created_at: datetime


def new_event_id() -> str:
    """Return a 26-character base32 id: 6 bytes of Unix ms then 10 random bytes."""
    millis = time.time_ns() // 1_000_000
    raw = (millis & 0xFFFF_FFFF_FFFF).to_bytes(6, "big") + secrets.token_bytes(10)
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def _to_unix_ns(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return (moment - _EPOCH) // timedelta(microseconds=1) * 1000


def _from_unix_ns(ns: int) -> datetime:
    return _EPOCH + timedelta(microseconds=ns // 1000)


class EventLog:
    """Tenant-scoped reads and writes on the ``event_log`` table.

    The tenant always comes from the current context (see ``with_tenant_id``).
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    def append(self, event_type: str, payload: bytes) -> LoggedEvent:
        """Insert one event for the context tenant and return the stored row."""
        tenant_id = tenant_id_from_context()
        event_id = new_event_id()
        now_ns = time.time_ns()
        data = bytes(payload)
        try:
            self._store._execute(
                "INSERT INTO event_log (id, tenant_id, type, payload, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (event_id, tenant_id, event_type, data, now_ns),
            )
        except sqlite3.Error as err:
            raise StoreError(f"event_log.append: insert: {err}") from err
        return LoggedEvent(
            id=event_id,
            tenant_id=tenant_id,
            type=event_type,
            payload=data,
            created_at=_from_unix_ns(now_ns),
        )

    def since(self, since: datetime | None = None, limit: int = _DEFAULT_LIMIT) -> list[LoggedEvent]:
        """Events of the context tenant at or after ``since``, oldest first.

        ``since=None`` means from the beginning; ``limit <= 0`` means 100.
        """
        tenant_id = tenant_id_from_context()
        if limit <= 0:
            limit = _DEFAULT_LIMIT
        bound = _MIN_NS if since is None else _to_unix_ns(since)
        try:
            rows = self._store._execute(
                "SELECT id, tenant_id, type, payload, created_at "
                "FROM event_log "
                "WHERE tenant_id = ? AND created_at >= ? "
                "ORDER BY created_at ASC, id ASC "
                "LIMIT ?",
                (tenant_id, bound, limit),
            )
        except sqlite3.Error as err:
            raise StoreError(f"event_log.since: query: {err}") from err
        return [
            LoggedEvent(
                id=row_id,
                tenant_id=row_tenant,
                type=row_type,
                payload=bytes(row_payload),
                created_at=_from_unix_ns(created_ns),
            )
            for row_id, row_tenant, row_type, row_payload, created_ns in rows
        ]

    def count_all(self) -> int:
        """Total row count across all tenants, for audits and tests."""
        try:
            ((count,),) = self._store._execute("SELECT COUNT(*) FROM event_log")
        except sqlite3.Error as err:
            raise StoreError(f"event_log.count_all: {err}") from err
        return count