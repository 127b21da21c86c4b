"""MySQL driver built on PyMySQL.

PyMySQL is an optional dependency; it is imported when the first MySQL connector is opened.
Install it with ``pip install multidb[pymysql]``.
"""

from typing import TYPE_CHECKING, Any, ClassVar, Optional
from urllib.parse import unquote, urlsplit

from multidb.driver import DriverAdapterBase, convert_qmark_to_format
from multidb.exceptions import ImproperConfigurationError, MissingDependencyError

if TYPE_CHECKING:
    from typing_extensions import Self

__all__ = ("PyMysqlDriver", "parse_mysql_dsn")

_PDO_KEYS = {"host": "host", "port": "port", "dbname": "database", "charset": "charset", "unix_socket": "unix_socket"}


def parse_mysql_dsn(dsn: str) -> "dict[str, Any]":
    """Turn a ``mysql:`` DSN into PyMySQL connection arguments.

    Both the PDO form (``mysql:host=db;port=3306;dbname=Blog``) and the URL form (``mysql://db:3306/Blog``) are
    accepted.
    """
    scheme, sep, rest = dsn.partition(":")
    if scheme.lower() != "mysql" or not sep:
        msg = f"Not a mysql DSN: {dsn!r}"
        raise ImproperConfigurationError(msg)

    params: dict[str, Any] = {}
    if rest.startswith("//"):
        url = urlsplit(dsn)
        if url.hostname:
            params["host"] = url.hostname
        if url.port:
            params["port"] = url.port
        if url.path.strip("/"):
            params["database"] = unquote(url.path.strip("/"))
        return params

    for part in filter(None, (chunk.strip() for chunk in rest.split(";"))):
        key, eq, value = part.partition("=")
        key = key.strip().lower()
        if not eq or key not in _PDO_KEYS:
            msg = f"Unsupported option {part!r} in mysql DSN {dsn!r}"
            raise ImproperConfigurationError(msg)
        params[_PDO_KEYS[key]] = int(value) if key == "port" else value.strip()
    return params


class PyMysqlDriver(DriverAdapterBase):
    """MySQL / MariaDB driver.

    Connections run with ``autocommit=True``; transactions are opened explicitly with ``BEGIN``.
    """

    __slots__ = ()

    dialect: "ClassVar[str]" = "mysql"
    supports_upsert: "ClassVar[bool]" = True

    @classmethod
    def connect(cls, dsn: str, user: Optional[str], password: Optional[str]) -> "Self":
        try:
            import pymysql
        except ImportError as e:
            raise MissingDependencyError(package="pymysql") from e

        connection = pymysql.connect(user=user, password=password or "", autocommit=True, **parse_mysql_dsn(dsn))
        return cls(connection)

    @property
    def error_types(self) -> "tuple[type[Exception], ...]":  # type: ignore[override]
        import pymysql

        return (pymysql.MySQLError,)

    def prepare_sql(self, sql: str) -> str:
        return convert_qmark_to_format(sql)

    def last_insert_id(self, table: str) -> int:
        # cursor.lastrowid is the statement's insert id, 0 when it generated none
        return self.last_row_id or 0

    def session_timezone_sql(self, timezone: str) -> Optional[str]:
        return "SET time_zone = " + self.connection.escape(timezone)
