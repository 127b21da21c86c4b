"""Statement building, transaction tracking and cleanup bookkeeping."""

from multidb.core.builder import (
    BuiltStatement,
    build_delete,
    build_insert,
    build_insert_many,
    build_select,
    build_update,
    render_clause,
)
from multidb.core.cleanup import CleanupAction, CleanupFailure, CleanupKind, CleanupRegistry, CleanupScope
from multidb.core.literal import ASIS_PREFIX, AsIs
from multidb.core.parameters import NormalizedParameter, normalize_asis, normalize_parameters
from multidb.core.transaction import Ok, RolledBack, TransactionCoordinator, TransactionResult, TransactionState

__all__ = (
    "ASIS_PREFIX",
    "AsIs",
    "BuiltStatement",
    "CleanupAction",
    "CleanupFailure",
    "CleanupKind",
    "CleanupRegistry",
    "CleanupScope",
    "NormalizedParameter",
    "Ok",
    "RolledBack",
    "TransactionCoordinator",
    "TransactionResult",
    "TransactionState",
    "build_delete",
    "build_insert",
    "build_insert_many",
    "build_select",
    "build_update",
    "normalize_asis",
    "normalize_parameters",
    "render_clause",
)
