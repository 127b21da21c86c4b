"""Tests for the PyMySQL adapter, run without a MySQL server."""

import sys
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from multidb.adapters import ADAPTERS, create_driver, resolve_driver_class
from multidb.adapters.pymysql import PyMysqlDriver, parse_mysql_dsn
from multidb.adapters.sqlite import SqliteDriver
from multidb.exceptions import ImproperConfigurationError, MissingDependencyError


@pytest.mark.parametrize(
    ("dsn", "expected"),
    [
        ("mysql:host=db;dbname=Blog", {"host": "db", "database": "Blog"}),
        (
            "mysql:host=db;port=3307;dbname=Blog;charset=utf8mb4",
            {"host": "db", "port": 3307, "database": "Blog", "charset": "utf8mb4"},
        ),
        ("mysql:unix_socket=/run/mysqld.sock;dbname=Blog;", {"unix_socket": "/run/mysqld.sock", "database": "Blog"}),
        ("mysql://db:3306/Blog", {"host": "db", "port": 3306, "database": "Blog"}),
        ("mysql://db", {"host": "db"}),
    ],
    ids=["pdo", "pdo_full", "pdo_socket", "url", "url_host_only"],
)
def test_parse_mysql_dsn(dsn: str, expected: "dict[str, Any]") -> None:
    assert parse_mysql_dsn(dsn) == expected


@pytest.mark.parametrize(
    "dsn", ["pgsql:host=db", "mysql:host=db;sslmode=on", "mysql:host"], ids=["other_scheme", "unknown_key", "no_value"]
)
def test_parse_mysql_dsn_invalid(dsn: str) -> None:
    with pytest.raises(ImproperConfigurationError):
        parse_mysql_dsn(dsn)


def test_connect_uses_autocommit() -> None:
    """Test connections are opened in autocommit mode with the parsed DSN."""
    pymysql = MagicMock()
    with patch.dict(sys.modules, {"pymysql": pymysql}):
        driver = PyMysqlDriver.connect("mysql:host=db;dbname=Blog", "blog", None)

    pymysql.connect.assert_called_once_with(user="blog", password="", autocommit=True, host="db", database="Blog")
    assert driver.connection is pymysql.connect.return_value


def test_connect_without_pymysql() -> None:
    with patch.dict(sys.modules, {"pymysql": None}), pytest.raises(MissingDependencyError, match="pymysql"):
        PyMysqlDriver.connect("mysql:host=db", "blog", "secret")


def test_prepare_sql_converts_placeholders() -> None:
    driver = PyMysqlDriver(MagicMock())

    assert driver.prepare_sql("SELECT * FROM `T` WHERE `A` = ? AND `B` LIKE 'x%'") == (
        "SELECT * FROM `T` WHERE `A` = %s AND `B` LIKE 'x%%'"
    )


def test_session_timezone_sql_escapes_value() -> None:
    connection = MagicMock()
    connection.escape.return_value = "'Europe/Berlin'"

    assert PyMysqlDriver(connection).session_timezone_sql("Europe/Berlin") == "SET time_zone = 'Europe/Berlin'"
    connection.escape.assert_called_once_with("Europe/Berlin")


def test_last_insert_id() -> None:
    """Test the id comes from the statement that just ran, not from an earlier insert in the session."""
    connection = MagicMock()
    cursor = connection.cursor.return_value
    cursor.description = None
    cursor.rowcount = 1

    with patch.dict(sys.modules, {"pymysql": MagicMock(MySQLError=type("MySQLError", (Exception,), {}))}):
        driver = PyMysqlDriver(connection)
        cursor.lastrowid = 12
        driver.execute("INSERT INTO `Users` (`Email`) VALUES (?)", ["a@b.com"])
        assert driver.last_insert_id("Users") == 12

        cursor.lastrowid = 0
        driver.execute("INSERT INTO `Tags` (`Code`) VALUES (?)", ["x"])
        assert driver.last_insert_id("Tags") == 0

    assert cursor.execute.call_count == 2


@pytest.mark.parametrize(
    ("dsn", "driver_class"),
    [("sqlite::memory:", SqliteDriver), ("mysql:host=db", PyMysqlDriver), ("MySQL://db/Blog", PyMysqlDriver)],
    ids=["sqlite", "mysql", "mysql_url_mixed_case"],
)
def test_resolve_driver_class(dsn: str, driver_class: "type") -> None:
    assert resolve_driver_class(dsn) is driver_class


def test_resolve_unknown_scheme() -> None:
    with pytest.raises(ImproperConfigurationError, match="oracle"):
        resolve_driver_class("oracle:host=db")


def test_create_driver() -> None:
    driver = create_driver("sqlite::memory:", None, None)
    try:
        assert isinstance(driver, SqliteDriver)
    finally:
        driver.close()


def test_registered_adapters() -> None:
    assert set(ADAPTERS) == {"sqlite", "mysql"}
