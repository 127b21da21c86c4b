"""Tests for the pytest plugin, run in isolated pytester sessions."""

import json
from pathlib import Path
from typing import Callable

import pytest

PLUGIN = "multidb.extensions.pytest.plugin"


@pytest.fixture
def run_isolated(pytester: pytest.Pytester, monkeypatch: pytest.MonkeyPatch) -> Callable[..., pytest.RunResult]:
    """Run pytest in-process with only the MultiDb plugin loaded explicitly."""
    monkeypatch.setenv("PYTEST_DISABLE_PLUGIN_AUTOLOAD", "1")

    def run(*args: str) -> pytest.RunResult:
        return pytester.runpytest_inprocess("-p", PLUGIN, *args)

    return run


@pytest.fixture
def config_file(pytester: pytest.Pytester, sqlite_paths: "dict[str, Path]") -> Path:
    config = {"connectors": {"Main": {"dsn": f"sqlite:{sqlite_paths['Main']}", "user": "", "password": ""}}}
    path = pytester.path / "multidb.json"
    path.write_text(json.dumps(config), encoding="utf-8")
    return path


def test_lifecycle_around_tests(
    pytester: pytest.Pytester,
    run_isolated: Callable[..., pytest.RunResult],
    config_file: Path,
    sqlite_paths: "dict[str, Path]",
    count_rows: Callable[..., int],
) -> None:
    """Test seeded rows are cleaned up, leaks are reported and failed tests are rolled back quietly."""
    pytester.makepyfile(
        test_seeding="""
        import pytest

        def test_seed(multidb):
            multidb.am_connected_to_db("Main")
            multidb.have_in_db("Users", {"Email": "seed@b.com"})
            multidb.see_in_db("Users", {"Email": "seed@b.com"})

        def test_seed_was_cleaned(multidb):
            multidb.am_connected_to_db("Main")
            multidb.dont_see_in_db("Users", {"Email": "seed@b.com"})

        def test_leaks_transaction(multidb):
            multidb.am_connected_to_db("Main")
            multidb.start_transaction()

        def test_fails_inside_transaction(multidb):
            multidb.am_connected_to_db("Main")
            multidb.start_transaction()
            multidb.have_in_db("Users", {"Email": "failed@b.com"}, cleanup=0)
            assert False

        def test_failed_row_was_rolled_back(multidb):
            multidb.am_connected_to_db("Main")
            multidb.dont_see_in_db("Users", {"Email": "failed@b.com"})
        """
    )

    result = run_isolated(f"--multidb-config={config_file}")

    result.assert_outcomes(passed=4, failed=1, errors=1)
    result.stdout.fnmatch_lines(["*LeakedTransactionError*"])
    assert count_rows(sqlite_paths["Main"], "Users") == 0


def test_suite_cleanup_runs_at_session_end(
    pytester: pytest.Pytester,
    run_isolated: Callable[..., pytest.RunResult],
    config_file: Path,
    sqlite_paths: "dict[str, Path]",
    count_rows: Callable[..., int],
) -> None:
    pytester.makepyfile(
        test_suite_rows="""
        from multidb import CLEANUP_AFTER_SUITE

        def test_seed_for_suite(multidb):
            multidb.am_connected_to_db("Main")
            multidb.have_in_db("Users", {"Email": "suite@b.com"}, cleanup=CLEANUP_AFTER_SUITE)

        def test_row_survives_between_tests(multidb):
            multidb.am_connected_to_db("Main")
            multidb.see_in_db("Users", {"Email": "suite@b.com"})
        """
    )

    result = run_isolated(f"--multidb-config={config_file}")

    result.assert_outcomes(passed=2)
    assert count_rows(sqlite_paths["Main"], "Users") == 0


def test_config_from_ini(
    pytester: pytest.Pytester, run_isolated: Callable[..., pytest.RunResult], config_file: Path
) -> None:
    pytester.makeini(f"[pytest]\nmultidb_config = {config_file.name}\n")
    pytester.makepyfile(
        """
        def test_connects(multidb):
            assert multidb.am_connected_to_db("Main") == "Main"
        """
    )

    run_isolated().assert_outcomes(passed=1)


def test_config_fixture_can_be_overridden(
    pytester: pytest.Pytester, run_isolated: Callable[..., pytest.RunResult], sqlite_paths: "dict[str, Path]"
) -> None:
    pytester.makeconftest(
        f"""
        import pytest
        from multidb import MultiDbConfig

        @pytest.fixture(scope="session")
        def multidb_config():
            return MultiDbConfig({{"Main": {{"dsn": "sqlite:{sqlite_paths['Main']}", "user": "", "password": ""}}}})
        """
    )
    pytester.makepyfile(
        """
        def test_connects(multidb):
            multidb.am_connected_to_db("Main")
            multidb.dont_see_in_db("Users", {"Email": "nobody@b.com"})
        """
    )

    run_isolated().assert_outcomes(passed=1)


def test_missing_config_errors(pytester: pytest.Pytester, run_isolated: Callable[..., pytest.RunResult]) -> None:
    pytester.makepyfile(
        """
        def test_needs_db(multidb):
            pass
        """
    )

    result = run_isolated()

    result.assert_outcomes(errors=1)
    result.stdout.fnmatch_lines(["*ImproperConfigurationError*--multidb-config*"])


def test_unreadable_config_errors(pytester: pytest.Pytester, run_isolated: Callable[..., pytest.RunResult]) -> None:
    (pytester.path / "broken.json").write_text("{not json", encoding="utf-8")
    pytester.makepyfile(
        """
        def test_needs_db(multidb):
            pass
        """
    )

    result = run_isolated("--multidb-config=broken.json")

    result.assert_outcomes(errors=1)
    result.stdout.fnmatch_lines(["*Could not load MultiDb configuration*"])
