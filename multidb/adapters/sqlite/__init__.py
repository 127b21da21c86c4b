"""SQLite adapter for MultiDb."""

from multidb.adapters.sqlite.driver import SqliteDriver, parse_sqlite_dsn

__all__ = ("SqliteDriver", "parse_sqlite_dsn")
