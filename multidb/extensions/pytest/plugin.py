"""pytest integration.

Registered through the ``pytest11`` entry point. Tests request the ``multidb`` fixture to get the shared engine
with the per-test lifecycle applied around them:

.. code-block:: python

    def test_signup(multidb):
        multidb.am_connected_to_db("Primary")
        multidb.have_in_db("Users", {"Email": "a@b.com"})

The configuration comes from ``--multidb-config`` (or the ``multidb_config`` ini option), a JSON file of the form
``{"connectors": {...}, "timezone": "UTC"}``. Projects that build their configuration differently override the
``multidb_config`` fixture in ``conftest.py``.
"""

import json
from collections.abc import Generator
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest

from multidb.config import MultiDbConfig
from multidb.exceptions import ImproperConfigurationError
from multidb.session import MultiDb
from multidb.utils.logging import get_logger

if TYPE_CHECKING:
    from _pytest.config.argparsing import Parser

__all__ = ("multidb", "multidb_config", "multidb_engine", "pytest_addoption", "pytest_runtest_makereport")

logger = get_logger("extensions.pytest")

ENGINE_KEY = pytest.StashKey[MultiDb]()


def pytest_addoption(parser: "Parser") -> None:
    group = parser.getgroup("multidb", "MultiDb database seeding and cleanup")
    group.addoption(
        "--multidb-config",
        action="store",
        dest="multidb_config",
        default=None,
        help="Path to the MultiDb JSON configuration file.",
    )
    parser.addini("multidb_config", help="Path to the MultiDb JSON configuration file.", default=None)


def load_config(path: "Path") -> MultiDbConfig:
    """Read a JSON configuration file.

    Raises:
        ImproperConfigurationError: If the file cannot be read or parsed.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        msg = f"Could not load MultiDb configuration from {path}: {e}"
        raise ImproperConfigurationError(msg) from e
    return MultiDbConfig.from_mapping(data)


@pytest.fixture(scope="session")
def multidb_config(pytestconfig: pytest.Config) -> MultiDbConfig:
    """The connector configuration; override this fixture to provide it from code."""
    configured = pytestconfig.getoption("multidb_config") or pytestconfig.getini("multidb_config")
    if not configured:
        msg = "No MultiDb configuration; pass --multidb-config, set the multidb_config ini option, or override the multidb_config fixture"
        raise ImproperConfigurationError(msg)
    return load_config(pytestconfig.rootpath / str(configured))


@pytest.fixture(scope="session")
def multidb_engine(multidb_config: MultiDbConfig) -> "Generator[MultiDb, None, None]":
    """The engine shared by the whole session; suite cleanup runs when the session ends."""
    engine = MultiDb(multidb_config)
    try:
        yield engine
    finally:
        try:
            engine.after_suite()
        finally:
            engine.close()


@pytest.fixture
def multidb(multidb_engine: MultiDb, request: pytest.FixtureRequest) -> "Generator[MultiDb, None, None]":
    """The engine, with leaked-transaction checks and test-scoped cleanup around the test."""
    name = request.node.nodeid
    multidb_engine.before_test(name)
    request.node.stash[ENGINE_KEY] = multidb_engine
    yield multidb_engine
    multidb_engine.after_test(name)


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: "pytest.CallInfo[Any]") -> "Generator[None, Any, None]":
    outcome = yield
    report = outcome.get_result()
    if report.when != "call" or not report.failed:
        return

    engine = item.stash.get(ENGINE_KEY, None)
    if engine is not None:
        logger.debug("Test %s failed, rolling back open transactions", item.nodeid)
        engine.on_test_failed(item.nodeid, call.excinfo.value if call.excinfo else None)
