"""Common driver attributes and utilities.

A driver wraps one DB-API 2 connection for one connector. The engine only needs a handful of things from it:
identifier quoting, statement execution with bound parameters, the last generated id, and the session time zone
statement issued on first connect.
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Generator, Sequence
from contextlib import contextmanager
from typing import Any, ClassVar, Final, NamedTuple, Optional

from mypy_extensions import trait
from sqlglot import exp

from multidb.exceptions import StatementExecutionError
from multidb.utils.logging import get_logger

__all__ = ("DriverAdapterBase", "ExecutionResult", "IdentifierQuotingMixin", "convert_qmark_to_format")

logger = get_logger("driver")

_QMARK_REGEX: Final = re.compile(
    r"""
    (?P<dquote>"(?:[^"\\]|\\.)*") |
    (?P<squote>'(?:[^'\\]|\\.)*') |
    (?P<backtick>`[^`]*`) |
    (?P<line_comment>--[^\r\n]*) |
    (?P<block_comment>/\*(?:[^*]|\*(?!/))*\*/) |
    (?P<qmark>\?) |
    (?P<percent>%)
    """,
    re.VERBOSE,
)


def convert_qmark_to_format(sql: str) -> str:
    """Rewrite ``?`` placeholders as ``%s`` for ``format``-style drivers.

    Question marks inside quoted text and comments are left alone; every literal ``%`` is doubled since the driver
    runs the whole statement through ``%`` formatting.
    """

    def _replace(match: "re.Match[str]") -> str:
        if match.group("qmark"):
            return "%s"
        return match.group(0).replace("%", "%%")

    return _QMARK_REGEX.sub(_replace, sql)


class ExecutionResult(NamedTuple):
    """Outcome of one executed statement.

    Attributes:
        rowcount: Rows affected, as reported by the cursor (``-1`` when unknown).
        rows: Fetched rows as dictionaries, or ``None`` for statements that return no result set.
        column_names: Column names of the result set.
    """

    rowcount: int
    rows: "Optional[list[dict[str, Any]]]" = None
    column_names: "Optional[list[str]]" = None

    @property
    def returns_rows(self) -> bool:
        return self.rows is not None


@trait
class IdentifierQuotingMixin:
    """Quote database, table and column names for the driver's dialect."""

    __slots__ = ()
    dialect: "ClassVar[str]"

    def quote_identifier(self, name: str) -> str:
        """Quote ``name``; dotted names such as ``Database.Table`` are quoted part by part.

        Example:
            ``quote_identifier("Blog.Posts")`` is ```Blog`.`Posts``` for MySQL and ``"Blog"."Posts"`` for SQLite.
        """
        return ".".join(exp.to_identifier(part, quoted=True).sql(dialect=self.dialect) for part in name.split("."))


class DriverAdapterBase(IdentifierQuotingMixin, ABC):
    """Base class for connector drivers."""

    __slots__ = ("connection", "last_row_id")

    dialect: "ClassVar[str]"
    supports_upsert: "ClassVar[bool]" = False
    error_types: "ClassVar[tuple[type[Exception], ...]]" = (Exception,)

    def __init__(self, connection: "Any") -> None:
        self.connection = connection
        self.last_row_id: Optional[int] = None

    @classmethod
    @abstractmethod
    def connect(cls, dsn: str, user: Optional[str], password: Optional[str]) -> "DriverAdapterBase":
        """Open a connection described by ``dsn`` and wrap it in a driver."""

    @abstractmethod
    def last_insert_id(self, table: str) -> int:
        """Return the id generated by the statement that just ran, ``0`` if it generated none."""

    def normalize_lastrowid(self, cursor: "Any") -> Optional[int]:
        """Read the id generated by the statement ``cursor`` just ran.

        Returns:
            The id, or ``None`` when the cursor reports none.
        """
        last_id = getattr(cursor, "lastrowid", None)
        return last_id if isinstance(last_id, int) else None

    def session_timezone_sql(self, timezone: str) -> Optional[str]:
        """Return the statement that sets the session time zone, or ``None`` if the database has no such setting."""
        return None

    @contextmanager
    def with_cursor(self, connection: "Any") -> "Generator[Any, None, None]":
        cursor = connection.cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    @contextmanager
    def handle_database_exceptions(
        self, sql: str, parameters: "Sequence[Any]"
    ) -> "Generator[None, None, None]":
        """Wrap driver errors raised while running ``sql`` into :class:`StatementExecutionError`."""
        try:
            yield
        except self.error_types as e:
            msg = f"Query couldn't be run: {e}"
            raise StatementExecutionError(msg, sql=sql, parameters=list(parameters)) from e

    def execute(self, sql: str, parameters: "Sequence[Any]" = ()) -> ExecutionResult:
        """Execute one statement with bound parameters.

        Args:
            sql: SQL text using ``?`` placeholders.
            parameters: Values to bind, in placeholder order.

        Raises:
            StatementExecutionError: If the driver rejects the statement.

        Returns:
            Fetched rows for statements that return a result set, otherwise the affected row count.
        """
        prepared_sql = self.prepare_sql(sql)
        self.last_row_id = None
        with self.handle_database_exceptions(sql, parameters), self.with_cursor(self.connection) as cursor:
            cursor.execute(prepared_sql, tuple(parameters))
            if cursor.description:
                column_names = [col[0] for col in cursor.description]
                data = [dict(zip(column_names, row)) for row in cursor.fetchall()]
                return ExecutionResult(len(data), data, column_names)
            self.last_row_id = self.normalize_lastrowid(cursor)
            return ExecutionResult(cursor.rowcount if cursor.rowcount is not None else -1)

    def prepare_sql(self, sql: str) -> str:
        """Convert ``?`` placeholders to the driver's native parameter style."""
        return sql

    def close(self) -> None:
        self.connection.close()
