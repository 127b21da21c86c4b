from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest

from multidb import DriverAdapterBase, ExecutionResult, MultiDb, MultiDbConfig
from multidb.exceptions import StatementExecutionError

if TYPE_CHECKING:
    from collections.abc import Callable, Generator, Sequence

pytest_plugins = ["pytester"]
here = Path(__file__).parent
root_path = here.parent

SQLITE_SCHEMA = """
CREATE TABLE "Users" (
    "ID" INTEGER PRIMARY KEY AUTOINCREMENT,
    "Email" TEXT NOT NULL,
    "Name" TEXT,
    "Flag" INTEGER
);
CREATE TABLE "Memberships" (
    "UserID" INTEGER NOT NULL,
    "GroupID" INTEGER NOT NULL,
    "Role" TEXT,
    PRIMARY KEY ("UserID", "GroupID")
);
CREATE TABLE "Tags" (
    "Code" TEXT PRIMARY KEY,
    "Label" TEXT
);
"""


def create_sqlite_database(path: Path) -> Path:
    with closing(sqlite3.connect(path)) as connection:
        connection.executescript(SQLITE_SCHEMA)
    return path


def _count_rows(path: Path, table: str, where: str = "1 = 1", parameters: Sequence[Any] = ()) -> int:
    with closing(sqlite3.connect(path)) as connection:
        return int(connection.execute(f'SELECT COUNT(*) FROM "{table}" WHERE {where}', tuple(parameters)).fetchone()[0])


class RecordingDriver(DriverAdapterBase):
    """MySQL-flavoured driver that records statements instead of running them."""

    dialect = "mysql"
    supports_upsert = True

    def __init__(self, dsn: str = "mysql:host=fake") -> None:
        super().__init__(MagicMock())
        self.dsn = dsn
        self.statements: list[tuple[str, list[Any]]] = []
        self.next_insert_id = 7
        self.select_rows: list[dict[str, Any]] = []
        self.fail_on: str | None = None

    @classmethod
    def connect(cls, dsn: str, user: str | None, password: str | None) -> RecordingDriver:
        return cls(dsn)

    def last_insert_id(self, table: str) -> int:
        return self.next_insert_id

    def session_timezone_sql(self, timezone: str) -> str | None:
        return f"SET time_zone = '{timezone}'"

    def execute(self, sql: str, parameters: Sequence[Any] = ()) -> ExecutionResult:
        self.statements.append((sql, list(parameters)))
        if self.fail_on is not None and sql.startswith(self.fail_on):
            msg = f"refusing to run {sql}"
            raise StatementExecutionError(msg, sql=sql, parameters=list(parameters))
        if sql.startswith("SELECT"):
            return ExecutionResult(len(self.select_rows), list(self.select_rows), list(self.select_rows[0]) if self.select_rows else [])
        return ExecutionResult(1)

    @property
    def sql(self) -> list[str]:
        return [statement for statement, _ in self.statements]


@pytest.fixture
def recording_drivers() -> dict[str, RecordingDriver]:
    """One recording driver per fake connector, keyed by connector name."""
    return {"Primary": RecordingDriver("mysql:host=primary"), "Secondary": RecordingDriver("mysql:host=secondary")}


@pytest.fixture
def recording_engine(recording_drivers: dict[str, RecordingDriver]) -> Generator[MultiDb, None, None]:
    by_dsn = {driver.dsn: driver for driver in recording_drivers.values()}
    config = MultiDbConfig(
        {name: {"dsn": driver.dsn, "user": "tester", "password": "secret"} for name, driver in recording_drivers.items()}
    )
    engine = MultiDb(config, driver_factory=lambda dsn, user, password: by_dsn[dsn])
    yield engine
    engine.close()


@pytest.fixture
def sqlite_paths(tmp_path: Path) -> dict[str, Path]:
    return {
        "Main": create_sqlite_database(tmp_path / "main.db"),
        "Audit": create_sqlite_database(tmp_path / "audit.db"),
    }


@pytest.fixture
def sqlite_config(sqlite_paths: dict[str, Path]) -> MultiDbConfig:
    return MultiDbConfig({name: {"dsn": f"sqlite:{path}", "user": "", "password": ""} for name, path in sqlite_paths.items()})


@pytest.fixture
def sqlite_engine(sqlite_config: MultiDbConfig) -> Generator[MultiDb, None, None]:
    engine = MultiDb(sqlite_config)
    yield engine
    engine.close()


@pytest.fixture
def count_rows() -> Callable[..., int]:
    """Count rows through a separate connection, bypassing the engine."""
    return _count_rows
