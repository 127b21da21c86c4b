"""MultiDb: seed, inspect and clean up several databases from acceptance tests."""

from multidb import adapters, core, driver, exceptions, utils
from multidb.__metadata__ import __version__
from multidb.config import ConnectorConfig, MultiDbConfig
from multidb.core import (
    ASIS_PREFIX,
    AsIs,
    BuiltStatement,
    CleanupAction,
    CleanupFailure,
    CleanupRegistry,
    CleanupScope,
    Ok,
    RolledBack,
    TransactionCoordinator,
    TransactionResult,
    TransactionState,
)
from multidb.driver import DriverAdapterBase, ExecutionResult
from multidb.exceptions import (
    DatabaseAssertionError,
    ImproperConfigurationError,
    LeakedTransactionError,
    MultiDbError,
    SQLBuilderError,
    StatementExecutionError,
    TransactionStateError,
    UsageError,
)
from multidb.session import MultiDb

CLEANUP_NEVER = CleanupScope.NEVER
CLEANUP_AFTER_TEST = CleanupScope.AFTER_TEST
CLEANUP_AFTER_SUITE = CleanupScope.AFTER_SUITE

__all__ = (
    "ASIS_PREFIX",
    "CLEANUP_AFTER_SUITE",
    "CLEANUP_AFTER_TEST",
    "CLEANUP_NEVER",
    "AsIs",
    "BuiltStatement",
    "CleanupAction",
    "CleanupFailure",
    "CleanupRegistry",
    "CleanupScope",
    "ConnectorConfig",
    "DatabaseAssertionError",
    "DriverAdapterBase",
    "ExecutionResult",
    "ImproperConfigurationError",
    "LeakedTransactionError",
    "MultiDb",
    "MultiDbConfig",
    "MultiDbError",
    "Ok",
    "RolledBack",
    "SQLBuilderError",
    "StatementExecutionError",
    "TransactionCoordinator",
    "TransactionResult",
    "TransactionState",
    "TransactionStateError",
    "UsageError",
    "__version__",
    "adapters",
    "core",
    "driver",
    "exceptions",
    "utils",
)
