import sqlite3
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from multidb.driver import DriverAdapterBase
from multidb.exceptions import ImproperConfigurationError

if TYPE_CHECKING:
    from typing_extensions import Self

__all__ = ("SqliteDriver", "parse_sqlite_dsn")


def parse_sqlite_dsn(dsn: str) -> "tuple[str, bool]":
    """Extract the database path from a ``sqlite:`` DSN.

    Accepts the PDO form (``sqlite:/path/to.db``, ``sqlite::memory:``) and the URL form (``sqlite:///path/to.db``).
    ``file:`` URIs are passed through with URI mode enabled.

    Returns:
        The database argument for :func:`sqlite3.connect` and whether it is a URI.
    """
    scheme, sep, database = dsn.partition(":")
    if scheme.lower() != "sqlite" or not sep:
        msg = f"Not a sqlite DSN: {dsn!r}"
        raise ImproperConfigurationError(msg)
    if database.startswith("//"):
        database = database[2:]
    if not database:
        database = ":memory:"
    return database, database.startswith("file:")


class SqliteDriver(DriverAdapterBase):
    """SQLite driver over the standard library :mod:`sqlite3` module.

    The connection runs in autocommit mode (``isolation_level=None``) so that transactions are only ever opened by
    an explicit ``BEGIN``.
    """

    __slots__ = ()

    dialect: "ClassVar[str]" = "sqlite"
    supports_upsert: "ClassVar[bool]" = False
    error_types: "ClassVar[tuple[type[Exception], ...]]" = (sqlite3.Error,)

    @classmethod
    def connect(cls, dsn: str, user: Optional[str] = None, password: Optional[str] = None) -> "Self":
        database, uri = parse_sqlite_dsn(dsn)
        connection = sqlite3.connect(database, uri=uri, isolation_level=None, check_same_thread=False)
        return cls(connection)

    def normalize_lastrowid(self, cursor: "Any") -> Optional[int]:
        # sqlite3 reports the connection's last rowid even for statements that inserted nothing
        if not isinstance(cursor.rowcount, int) or cursor.rowcount <= 0:
            return None
        return super().normalize_lastrowid(cursor)

    def has_rowid_key(self, table: str) -> bool:
        """Tell whether ``table``'s primary key is an ``INTEGER PRIMARY KEY`` alias of the rowid."""
        schema, _, name = table.rpartition(".")
        prefix = f"{self.quote_identifier(schema)}." if schema else ""
        columns = self.execute(f"PRAGMA {prefix}table_info({self.quote_identifier(name)})").rows or []
        key_columns = [column for column in columns if column["pk"]]
        return len(key_columns) == 1 and str(key_columns[0]["type"]).upper() == "INTEGER"

    def last_insert_id(self, table: str) -> int:
        """Return the rowid of the row just inserted into ``table``.

        The rowid only identifies the row when the table's key is an alias for it; any other key yields ``0``.
        """
        last_row_id = self.last_row_id
        if not last_row_id or not self.has_rowid_key(table):
            return 0
        return last_row_id
