"""SQL grammar differences between database backends."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Dialect(ABC):
    """Absorbs SQL grammar differences between backends."""

    @abstractmethod
    def name(self) -> str:
        """Short backend identifier, e.g. ``"sqlite"``."""

    @abstractmethod
    def placeholder(self, n: int) -> str:
        """Parameter placeholder for 1-based position ``n``."""

    @abstractmethod
    def supports_returning(self) -> bool:
        """Whether ``INSERT ... RETURNING`` may be used."""

    @abstractmethod
    def quote_ident(self, ident: str) -> str:
        """Quote a table or column identifier."""


class SQLiteDialect(Dialect):
    """The SQLite grammar."""

    def name(self) -> str:
        return "sqlite"

    def placeholder(self, n: int) -> str:
        """Return ``?``; SQLite placeholders do not depend on position."""
        if n < 1:
            raise ValueError(f"placeholder position must be 1 or greater, got {n}")
        return "?"

    def supports_returning(self) -> bool:
        # Consumers issue a separate SELECT instead, so queries stay
        # portable to backends without RETURNING.
        return False

    def quote_ident(self, ident: str) -> str:
        return f'"{ident}"'

    def __repr__(self) -> str:
        return "SQLiteDialect()"


_SQLITE = SQLiteDialect()


def new_sqlite_dialect() -> SQLiteDialect:
    """Return the shared SQLite dialect."""
    return _SQLITE