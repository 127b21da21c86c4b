from typing import Any, Optional

__all__ = (
    "CleanupScopeError",
    "ConnectionError",
    "ConnectorSwitchError",
    "DatabaseAssertionError",
    "ImproperConfigurationError",
    "LeakedTransactionError",
    "MissingDependencyError",
    "MultiDbError",
    "NoConnectorChosenError",
    "PrimaryKeyMismatchError",
    "SQLBuilderError",
    "StatementExecutionError",
    "TransactionSequenceError",
    "TransactionStateError",
    "UsageError",
)


class MultiDbError(Exception):
    """Base exception class from which all MultiDb exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``MultiDbError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class MissingDependencyError(MultiDbError, ImportError):
    """Missing optional dependency.

    This exception is raised only when a module depends on a dependency that has not been installed.
    """

    def __init__(self, package: str, install_package: Optional[str] = None) -> None:
        super().__init__(
            f"Package {package!r} is not installed but required. You can install it by running "
            f"'pip install multidb[{install_package or package}]' to install multidb with the required extra "
            f"or 'pip install {install_package or package}' to install the package separately",
        )


class ImproperConfigurationError(MultiDbError):
    """Improper Configuration error.

    Raised when the connector configuration is incomplete or refers to something that does not exist.
    """


class ConnectionError(MultiDbError):  # noqa: A001
    """A connector could not be connected to."""


# -- Usage Errors --
class UsageError(MultiDbError):
    """Base class for programming errors made by the caller.

    These are never retried and always surface immediately.
    """


class NoConnectorChosenError(UsageError):
    """A database operation was attempted before any connector was chosen."""

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = "No connector was chosen before interactions with Db"
        super().__init__(message)


class ConnectorSwitchError(UsageError):
    """Raised when switching connector while a transaction is open on another one."""

    def __init__(self, requested: str, owner: str) -> None:
        super().__init__(
            f"Cannot switch connector to '{requested}' while a transaction is in progress on another connector '{owner}'"
        )
        self.requested = requested
        self.owner = owner


class TransactionSequenceError(UsageError):
    """Commit or rollback was requested with no transaction in progress."""

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = "Invalid call sequence; no transaction in progress"
        super().__init__(message)


class PrimaryKeyMismatchError(UsageError):
    """The primary key fields and the values given to identify a row do not line up."""

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = (
                "Incompatible primary key field and value; single field primary keys should specify a non sequence "
                "value, and compound primary keys should specify compound values in a sequence of the same size"
            )
        super().__init__(message)


class CleanupScopeError(UsageError):
    """An unknown cleanup scope was requested."""


class SQLBuilderError(MultiDbError):
    """Issues Building or Generating SQL statements."""

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = "Issues building SQL statement."
        super().__init__(message)


class StatementExecutionError(MultiDbError):
    """A statement could not be prepared or executed by the driver."""

    sql: Optional[str]
    parameters: "list[Any]"

    def __init__(self, message: str, sql: Optional[str] = None, parameters: "Optional[list[Any]]" = None) -> None:
        """Initialize with the SQL and the bound parameters for diagnosis."""
        detail_message = message
        if sql:
            detail_message = f"{message}\nSQL: {sql}"
        if parameters:
            detail_message = f"{detail_message}\nParams: {parameters!r}"
        super().__init__(detail=detail_message)
        self.sql = sql
        self.parameters = list(parameters or [])


class TransactionStateError(MultiDbError):
    """The transaction bookkeeping is internally inconsistent.

    This is a defect in the caller or in MultiDb itself and is never repaired silently.
    """

    def __init__(self, level: int, connector: Optional[str]) -> None:
        super().__init__(f"Invalid transaction state (level:[{level}] connector:[{connector or ''}])")
        self.level = level
        self.connector = connector


# -- Test failures --
class DatabaseAssertionError(MultiDbError, AssertionError):
    """A database expectation did not hold; fails the running test."""


class LeakedTransactionError(DatabaseAssertionError):
    """A transaction was still open at a test boundary and has been rolled back."""
