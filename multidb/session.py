"""The MultiDb engine.

One :class:`MultiDb` instance holds everything a test run needs: a lazily opened driver per connector, the
currently chosen connector, the transaction state and the cleanup stacks. Nothing is kept at module level, so
separate test workers each build their own engine.

Example:
    .. code-block:: python

        db = MultiDb(config)
        db.before_test("test_signup")
        db.am_connected_to_db("Primary")
        user_id = db.have_in_db("Users", {"Email": "a@b.com", "Created": "@asis NOW()"})
        db.see_in_db("Users", {"ID": user_id})
        db.after_test("test_signup")  # deletes the seeded user
"""

import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar, Union

from multidb.adapters import create_driver
from multidb.config import MultiDbConfig
from multidb.core.builder import (
    BuiltStatement,
    build_delete,
    build_insert,
    build_insert_many,
    build_select,
    build_update,
)
from multidb.core.cleanup import CleanupAction, CleanupFailure, CleanupRegistry, CleanupScope
from multidb.core.literal import AsIs
from multidb.core.transaction import TransactionCoordinator
from multidb.exceptions import (
    ConnectionError,
    DatabaseAssertionError,
    ImproperConfigurationError,
    LeakedTransactionError,
    MissingDependencyError,
    MultiDbError,
    NoConnectorChosenError,
    PrimaryKeyMismatchError,
    StatementExecutionError,
    UsageError,
)
from multidb.utils.logging import get_logger, set_current_test

if TYPE_CHECKING:
    from multidb.core.transaction import TransactionResult
    from multidb.driver import DriverAdapterBase, ExecutionResult
    from multidb.typing import ColumnSpec, Criteria, DictRow, PrimaryKey, RowValues, UpsertSpec

__all__ = ("DriverFactory", "MultiDb")

logger = get_logger("session")

T = TypeVar("T")

DriverFactory = Callable[[str, Optional[str], Optional[str]], "DriverAdapterBase"]

_DDL_OPTION_REGEX = re.compile(r"^\w+$")


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _is_blank_key(value: Any) -> bool:
    """True when ``value`` cannot identify a row: ``None``, empty, zero, or a sequence of only ``None``."""
    if _is_sequence(value):
        return all(item is None for item in value)
    return not value


class MultiDb:
    """Seed, inspect and clean up several databases from acceptance tests.

    Args:
        config: Connector configuration, or plain data accepted by :meth:`MultiDbConfig.from_mapping`.
        driver_factory: Opens a driver for ``(dsn, user, password)``. Defaults to picking an adapter by DSN scheme.
    """

    __slots__ = ("_chosen_connector", "_driver_factory", "_drivers", "cleanup", "config", "transactions")

    def __init__(
        self,
        config: "Union[MultiDbConfig, Mapping[str, Any]]",
        *,
        driver_factory: "Optional[DriverFactory]" = None,
    ) -> None:
        self.config = config if isinstance(config, MultiDbConfig) else MultiDbConfig.from_mapping(config)
        self._driver_factory: DriverFactory = driver_factory or create_driver
        self._drivers: "dict[str, DriverAdapterBase]" = {}
        self._chosen_connector: Optional[str] = None
        self.transactions = TransactionCoordinator(self._execute_raw, lambda: self._chosen_connector)
        self.cleanup = CleanupRegistry()

    # -- Connectors --
    @property
    def current_connector(self) -> Optional[str]:
        return self._chosen_connector

    @property
    def chosen_driver(self) -> "DriverAdapterBase":
        """The driver of the chosen connector.

        Raises:
            NoConnectorChosenError: If :meth:`am_connected_to_db` has not been called.
        """
        if self._chosen_connector is None:
            raise NoConnectorChosenError
        return self._drivers[self._chosen_connector]

    def _get_driver(self, connector: str) -> "DriverAdapterBase":
        driver = self._drivers.get(connector)
        if driver is not None:
            return driver

        connector_config = self.config.get_connector(connector)
        try:
            driver = self._driver_factory(
                connector_config["dsn"], connector_config["user"], connector_config["password"]
            )
            timezone_sql = driver.session_timezone_sql(self.config.timezone)
            if timezone_sql:
                driver.execute(timezone_sql)
        except (ImproperConfigurationError, MissingDependencyError):
            raise
        except Exception as e:
            msg = f"{e} while creating connection for connector {connector} [{type(e).__name__}]"
            raise ConnectionError(msg) from e

        logger.debug("Connected to connector %s", connector)
        self._drivers[connector] = driver
        return driver

    def am_connected_to_db(self, connector: str) -> str:
        """Choose the connector that following operations run against.

        Args:
            connector: Connector name from the configuration.

        Raises:
            ConnectorSwitchError: If a transaction is open on a different connector.
            ImproperConfigurationError: If the connector is not configured.
            ConnectionError: If the connection could not be opened.

        Returns:
            The previously chosen connector, or ``connector`` if none was chosen before.
        """
        self.transactions.ensure_can_switch(connector)

        previous_connector = self._chosen_connector or connector
        self._get_driver(connector)
        self._chosen_connector = connector
        return previous_connector

    def connect_to_db_and_execute(self, connector: str, callback: "Callable[[], T]") -> T:
        """Run ``callback`` with ``connector`` chosen, then switch back.

        If ``callback`` raises, the connector is left switched.
        """
        old_connector = self.am_connected_to_db(connector)
        result = callback()
        self.am_connected_to_db(old_connector)
        return result

    def quote_name(self, name: str) -> str:
        """Quote a database, table or column name for the chosen connector."""
        return self.chosen_driver.quote_identifier(name)

    # -- Execution --
    def _execute(self, sql: str, parameters: "Sequence[Any]" = ()) -> "ExecutionResult":
        driver = self.chosen_driver
        statement = {"connector": self._chosen_connector, "sql": sql, "parameters": list(parameters)}
        logger.debug("Query: %s", sql, extra=statement)
        logger.debug("Params: %r", statement["parameters"])
        return driver.execute(sql, parameters)

    def _execute_statement(self, statement: BuiltStatement) -> "ExecutionResult":
        return self._execute(statement.sql, statement.parameters)

    def _execute_raw(self, sql: str) -> "ExecutionResult":
        return self._execute(sql)

    def execute_sql(self, sql: str, parameters: "Sequence[Any]" = ()) -> "Union[list[DictRow], int]":
        """Execute the given SQL.

        Args:
            sql: SQL, optionally with ``?`` placeholders.
            parameters: Values for the placeholders.

        Returns:
            Rows (as dictionaries) for statements that return a result set, otherwise the affected row count.
        """
        result = self._execute(sql, parameters)
        if result.rows is not None:
            return result.rows
        return result.rowcount

    # -- Row operations --
    def have_in_db(
        self,
        table: str,
        values: "RowValues",
        primary_key: "PrimaryKey" = "ID",
        pk_value_for_cleanup: Any = None,
        cleanup: "Union[CleanupScope, int]" = CleanupScope.AFTER_TEST,
        upsert: "Optional[UpsertSpec]" = None,
    ) -> "Union[int, dict[str, Any], None]":
        """Insert a record into the given table and schedule its deletion.

        The row to delete is identified, in order of preference, by ``pk_value_for_cleanup`` when it is not empty,
        by the last insert id for a single-field key, or by the key values found in ``values`` when none of them is
        ``None``. If none of those is available no cleanup is scheduled.

        Args:
            table: Table name, preferably ``Database.TableName``.
            values: Field values of the form ``{"Field1": value, "Field2": value}``.
            primary_key: Field name(s) to match the last insert id or ``pk_value_for_cleanup``.
            pk_value_for_cleanup: A value other than ``0`` or ``None`` identifying the row to clean up; a sequence
                for compound keys.
            cleanup: When to delete the row.
            upsert: ``True`` to turn duplicate-key errors into updates (``ON DUPLICATE KEY UPDATE``), a sequence
                of fields to restrict the update, ``False`` to plain insert. ``None`` uses the driver default.

        Raises:
            PrimaryKeyMismatchError: If ``pk_value_for_cleanup`` does not match the shape of ``primary_key``.

        Returns:
            The last insert id for a single-field key (as ``{field: id}`` when ``primary_key`` was a sequence), the
            compound key values taken from ``values``, or ``None``.
        """
        driver = self.chosen_driver

        pk_was_sequence = not isinstance(primary_key, str)
        pk_fields = [primary_key] if isinstance(primary_key, str) else list(primary_key)
        if pk_value_for_cleanup is not None:
            if _is_sequence(pk_value_for_cleanup):
                if len(pk_fields) != len(pk_value_for_cleanup):
                    raise PrimaryKeyMismatchError
            elif len(pk_fields) != 1:
                raise PrimaryKeyMismatchError

        if upsert is None:
            upsert = driver.supports_upsert
        self._execute_statement(build_insert(table, values, driver.quote_identifier, primary_key=pk_fields, upsert=upsert))

        last_insert_id: Optional[int] = None
        if len(pk_fields) == 1:
            try:
                last_insert_id = int(driver.last_insert_id(table))
            except MultiDbError:
                # tables without an auto-increment key have no last insert id
                logger.debug("No last insert id available for %s", table, exc_info=True)

        multi_field_pk_values: Optional[dict[str, Any]] = None
        cleanup_criteria: Optional[dict[str, Any]] = None
        if _is_blank_key(pk_value_for_cleanup):
            if len(pk_fields) == 1 and last_insert_id:
                cleanup_criteria = {pk_fields[0]: last_insert_id}
            elif all(values.get(field) is not None for field in pk_fields):
                cleanup_criteria = {field: value for field, value in values.items() if field in pk_fields}
                multi_field_pk_values = cleanup_criteria
        else:
            key_values = list(pk_value_for_cleanup) if _is_sequence(pk_value_for_cleanup) else [pk_value_for_cleanup]
            cleanup_criteria = dict(zip(pk_fields, key_values))

        if cleanup and cleanup_criteria:
            self.setup_db_cleanup(CleanupAction.delete(table, cleanup_criteria), cleanup)

        if last_insert_id is not None:
            return {pk_fields[0]: last_insert_id} if pk_was_sequence else last_insert_id
        return multi_field_pk_values

    def have_in_db_multiple_rows(
        self,
        table: str,
        rows: "Sequence[RowValues]",
        cleanup_criteria: "Optional[Criteria]" = None,
        cleanup: "Union[CleanupScope, int]" = CleanupScope.AFTER_TEST,
        upsert: "Optional[UpsertSpec]" = None,
    ) -> int:
        """Insert several records with one statement.

        Args:
            table: Table name, preferably ``Database.TableName``.
            rows: Field value mappings, all with the same fields.
            cleanup_criteria: Field values forming the ``DELETE`` criteria run at cleanup; no cleanup without it.
            cleanup: When to run the cleanup.
            upsert: As for :meth:`have_in_db`.

        Returns:
            The affected row count.
        """
        if cleanup_criteria is not None and not (isinstance(cleanup_criteria, Mapping) or _is_sequence(cleanup_criteria)):
            msg = f"Invalid clean-up criteria given for {table}: {cleanup_criteria!r}"
            raise UsageError(msg)

        driver = self.chosen_driver
        if upsert is None:
            upsert = driver.supports_upsert
        result = self._execute_statement(build_insert_many(table, rows, driver.quote_identifier, upsert=upsert))

        if cleanup_criteria and cleanup:
            self.setup_db_cleanup(CleanupAction.delete(table, cleanup_criteria), cleanup)
        return result.rowcount

    def have_updated_db(self, table: str, updates: "RowValues", criteria: "Criteria") -> int:
        """Update rows matching ``criteria`` with ``updates``; returns the number of rows updated."""
        statement = build_update(table, updates, criteria, self.chosen_driver.quote_identifier)
        return self._execute_statement(statement).rowcount

    def see_in_db(self, table: str, criteria: "Criteria", count: int = -1) -> None:
        """Assert that rows matching ``criteria`` exist.

        Args:
            table: Table name.
            criteria: Row selection criteria.
            count: Expected number of rows; ``-1`` means at least one, ``0`` means none.

        Raises:
            DatabaseAssertionError: If the number of matching rows is not as expected.
        """
        statement = build_select(table, criteria, self.chosen_driver.quote_identifier, columns=AsIs("COUNT(*)"))
        rows = self._execute_statement(statement).rows or []
        found = int(next(iter(rows[0].values()))) if rows else 0

        if count < 0:
            if found <= 0:
                msg = f"No matching records found in {table} for {criteria!r}"
                raise DatabaseAssertionError(msg)
        elif count == 0:
            if found > 0:
                msg = f"{found} matching records were found in {table} for {criteria!r}"
                raise DatabaseAssertionError(msg)
        elif found != count:
            msg = f"Expected {count} matching records in {table} for {criteria!r}, found {found}"
            raise DatabaseAssertionError(msg)

    def dont_see_in_db(self, table: str, criteria: "Criteria") -> None:
        """Same as :meth:`see_in_db` with an expected count of ``0``."""
        self.see_in_db(table, criteria, 0)

    def get_from_db(
        self, table: str, criteria: "Criteria", limit: Optional[int] = 1, columns: "ColumnSpec" = None
    ) -> "list[DictRow]":
        """Get records from the table that match the criteria.

        Args:
            table: Table name.
            criteria: Row selection criteria.
            limit: Maximum number of rows, ``None`` for all.
            columns: A free SQL fragment describing what to select, or a sequence of column names.

        Returns:
            Matching rows as dictionaries.
        """
        statement = build_select(table, criteria, self.chosen_driver.quote_identifier, columns=columns, limit=limit)
        return self._execute_statement(statement).rows or []

    def have_deleted_from_db(self, table: str, criteria: "Criteria") -> int:
        """Delete rows matching ``criteria``; returns the number of rows deleted."""
        statement = build_delete(table, criteria, self.chosen_driver.quote_identifier)
        return self._execute_statement(statement).rowcount

    # -- Schema helpers --
    def create_database(
        self,
        database: str,
        options: "Optional[Mapping[str, str]]" = None,
        cleanup: "Union[CleanupScope, int]" = CleanupScope.AFTER_TEST,
    ) -> None:
        """Create a database and schedule it to be dropped.

        Args:
            database: Database name.
            options: ``character_set`` and/or ``collation``.
            cleanup: When to drop the database.
        """
        options = options or {}
        if not isinstance(options, Mapping):
            msg = f"Invalid options given for creating database {database}: {options!r}"
            raise UsageError(msg)

        sql = f"CREATE DATABASE {self.quote_name(database)}"
        for option, keyword in (("character_set", "CHARACTER SET"), ("collation", "COLLATE")):
            value = options.get(option)
            if value is None:
                continue
            if not _DDL_OPTION_REGEX.match(str(value)):
                msg = f"Invalid {option} {value!r} for database {database}"
                raise UsageError(msg)
            sql += f" {keyword} {value}"

        self.execute_sql(sql)
        self.setup_db_cleanup(CleanupAction.run_sql(f"DROP DATABASE {self.quote_name(database)}"), cleanup)

    def create_table_like(
        self, template_table: str, table: str, cleanup: "Union[CleanupScope, int]" = CleanupScope.AFTER_TEST
    ) -> None:
        """Create ``table`` as a replica of ``template_table`` and schedule it to be dropped."""
        self.execute_sql(f"CREATE TABLE {self.quote_name(table)} LIKE {self.quote_name(template_table)}")
        self.setup_db_cleanup(CleanupAction.run_sql(f"DROP TABLE {self.quote_name(table)}"), cleanup)

    def get_latest_auto_increment_id(self, table: str, database: Optional[str] = None) -> int:
        """Read the next auto-increment value of ``table`` from the information schema.

        Useful for producing ids that are known not to exist.

        Args:
            table: Table name.
            database: Database holding the table, ``None`` for the connected database.

        Raises:
            UsageError: If the value could not be read.
        """
        rows = self.get_from_db(
            "information_schema.TABLES",
            {"TABLE_NAME": table, "TABLE_SCHEMA": AsIs("DATABASE()") if database is None else database},
            columns=["AUTO_INCREMENT"],
        )
        if not rows or rows[0].get("AUTO_INCREMENT") is None:
            msg = f"Failed to retrieve the latest auto-increment ID for `{database or '<Current Database>'}`.`{table}`"
            raise UsageError(msg)
        return int(rows[0]["AUTO_INCREMENT"])

    # -- Cleanup --
    def setup_db_cleanup(
        self, action: CleanupAction, scope: "Union[CleanupScope, int]" = CleanupScope.AFTER_TEST
    ) -> None:
        """Bind ``action`` to the chosen connector and schedule it for ``scope``.

        Raises:
            NoConnectorChosenError: If no connector is chosen.
            CleanupScopeError: If ``scope`` is not a :class:`CleanupScope` value.
        """
        if self._chosen_connector is None:
            raise NoConnectorChosenError
        self.cleanup.register(action.bind(self._chosen_connector), scope)

    def _run_cleanup_action(self, action: CleanupAction) -> None:
        action(self)

    # -- Transactions --
    def start_transaction(self) -> None:
        """Begin a transaction on the chosen connector, or nest one level deeper."""
        self.transactions.start()

    def commit_transaction(self) -> None:
        """Commit the ongoing transaction, or de-nest the current level."""
        self.transactions.commit()

    def rollback_transaction(self) -> None:
        """Roll back the ongoing transaction."""
        self.transactions.rollback()

    def transaction(self, block: "Callable[[], T]") -> "TransactionResult[T]":
        """Execute ``block`` within a transaction.

        Returns:
            ``Ok(value)`` when ``block`` returned and the transaction was committed, ``RolledBack(cause)`` when it
            raised and the transaction was rolled back.
        """
        logger.debug("Current connector is %s", self._chosen_connector)
        return self.transactions.run(block)

    # -- Lifecycle hooks --
    def _force_rollback(self, reason: str) -> None:
        # the coordinator is back at level 0 before ROLLBACK is sent; state errors propagate
        try:
            self.transactions.rollback()
        except StatementExecutionError:
            logger.exception("Forced rollback failed (%s)", reason)

    def before_test(self, name: Optional[str] = None) -> None:
        """Check that no transaction leaked in from an earlier test.

        Raises:
            LeakedTransactionError: If a transaction was open; it has been rolled back.
        """
        set_current_test(name)
        if self.transactions.in_transaction:
            self._force_rollback(f"before test '{name}'")
            msg = f"Unfinished transaction was found; rolled back (before test '{name}')"
            raise LeakedTransactionError(msg)

    def after_test(self, name: Optional[str] = None) -> "list[CleanupFailure]":
        """Roll back any unfinished transaction and run the test-scoped cleanup.

        Cleanup always runs, even when a transaction had to be rolled back first.

        Raises:
            LeakedTransactionError: If a transaction was still open, after cleanup has run.

        Returns:
            Cleanup actions that failed; failures are logged and do not stop the remaining actions.
        """
        logger.debug("after_test(%s)", name)

        unfinished_transaction = self.transactions.in_transaction
        if unfinished_transaction:
            logger.debug("Unfinished transaction was found; rolling back (after test '%s')", name)
            # it is not possible to switch connectors mid-transaction, so wrap up before cleanup
            self._force_rollback(f"after test '{name}'")

        try:
            failures = self.cleanup.drain(CleanupScope.AFTER_TEST, self._run_cleanup_action)
        finally:
            self._chosen_connector = None
            set_current_test(None)

        if unfinished_transaction:
            msg = f"Unfinished transaction was found (after test '{name}')"
            raise LeakedTransactionError(msg)
        return failures

    def after_suite(self) -> "list[CleanupFailure]":
        """Run the suite-scoped cleanup."""
        logger.debug("after_suite()")
        return self.cleanup.drain(CleanupScope.AFTER_SUITE, self._run_cleanup_action)

    def on_test_failed(self, name: Optional[str] = None, error: Optional[BaseException] = None) -> None:
        """Roll back any open transaction of a failed test without reporting another failure."""
        logger.debug("on_test_failed(%s): %s", name, error)
        if self.transactions.in_transaction:
            self._force_rollback(f"failed test '{name}'")

    def close(self) -> None:
        """Roll back any open transaction, then close every connection opened so far."""
        if self.transactions.in_transaction:
            logger.warning(
                "Closing with an unfinished transaction on connector %s; rolling back", self.transactions.state.connector
            )
            self._force_rollback("close")
        for connector, driver in self._drivers.items():
            try:
                driver.close()
            except Exception:
                logger.warning("Failed to close connection for connector %s", connector, exc_info=True)
        self._drivers.clear()
        self._chosen_connector = None

    def __enter__(self) -> "MultiDb":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
