"""Compensating actions that undo state seeded by tests.

Actions are bound to the connector that was current when they were registered and are kept on one of two stacks,
drained after each test or once after the suite. The most recently registered action runs first, so rows created
later (which may reference earlier rows through foreign keys) are removed before the rows they depend on.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from multidb.exceptions import CleanupScopeError, UsageError
from multidb.utils.logging import get_logger

if TYPE_CHECKING:
    from multidb.session import MultiDb
    from multidb.typing import Criteria

__all__ = ("CleanupAction", "CleanupFailure", "CleanupKind", "CleanupRegistry", "CleanupScope")

logger = get_logger("core.cleanup")


class CleanupScope(IntEnum):
    """When a cleanup action runs."""

    NEVER = 0
    AFTER_TEST = 1
    AFTER_SUITE = 2


class CleanupKind(str, Enum):
    RUN_SQL = "run_sql"
    DELETE = "delete"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CleanupAction:
    """A compensating database operation.

    Build one with :meth:`run_sql` or :meth:`delete`; registration binds it to the current connector.
    """

    kind: CleanupKind
    payload: "tuple[Any, ...]"
    connector: Optional[str] = None

    @classmethod
    def run_sql(cls, sql: str, parameters: "Union[list[Any], tuple[Any, ...]]" = ()) -> "CleanupAction":
        return cls(CleanupKind.RUN_SQL, (sql, tuple(parameters)))

    @classmethod
    def delete(cls, table: str, criteria: "Criteria") -> "CleanupAction":
        # copied so later changes to the caller's mapping do not retarget the cleanup
        criteria = dict(criteria) if isinstance(criteria, Mapping) else list(criteria)
        return cls(CleanupKind.DELETE, (table, criteria))

    def bind(self, connector: str) -> "CleanupAction":
        return replace(self, connector=connector)

    @property
    def definition(self) -> str:
        """Human readable description for log output."""
        if self.kind is CleanupKind.RUN_SQL:
            sql, parameters = self.payload
            text = f"[{self.connector}] {sql}"
            return f"{text} {list(parameters)!r}" if parameters else text
        table, criteria = self.payload
        return f"[{self.connector}] DELETE FROM {table} WHERE {criteria!r}"

    def __call__(self, engine: "MultiDb") -> None:
        if self.connector is None:
            msg = f"Cleanup action was never bound to a connector: {self.definition}"
            raise UsageError(msg)

        engine.am_connected_to_db(self.connector)
        if self.kind is CleanupKind.RUN_SQL:
            sql, parameters = self.payload
            engine.execute_sql(sql, list(parameters))
        else:
            table, criteria = self.payload
            engine.have_deleted_from_db(table, criteria)


@dataclass(frozen=True)
class CleanupFailure:
    """A cleanup action that raised while being drained."""

    action: CleanupAction
    error: Exception


@dataclass
class CleanupRegistry:
    """Test-scoped and suite-scoped stacks of :class:`CleanupAction`."""

    test_actions: "list[CleanupAction]" = field(default_factory=list)
    suite_actions: "list[CleanupAction]" = field(default_factory=list)

    def _stack(self, scope: "Union[CleanupScope, int]") -> "Optional[list[CleanupAction]]":
        try:
            scope = CleanupScope(scope)
        except ValueError:
            msg = f"Unexpected value for cleanup scope: {scope!r}"
            raise CleanupScopeError(msg) from None

        if scope is CleanupScope.AFTER_TEST:
            return self.test_actions
        if scope is CleanupScope.AFTER_SUITE:
            return self.suite_actions
        return None

    def register(self, action: CleanupAction, scope: "Union[CleanupScope, int]" = CleanupScope.AFTER_TEST) -> None:
        """Push ``action`` onto the stack for ``scope``; ``NEVER`` discards it.

        Raises:
            CleanupScopeError: If ``scope`` is not a :class:`CleanupScope` value.
        """
        stack = self._stack(scope)
        if stack is not None:
            stack.append(action)

    def pending(self, scope: "Union[CleanupScope, int]") -> "list[CleanupAction]":
        """Actions for ``scope`` in the order they would run."""
        stack = self._stack(scope)
        return list(reversed(stack)) if stack is not None else []

    def drain(
        self, scope: "Union[CleanupScope, int]", runner: "Callable[[CleanupAction], Any]"
    ) -> "list[CleanupFailure]":
        """Run and remove every action for ``scope``, most recently registered first.

        A failing action is logged and recorded; the remaining actions still run.

        Returns:
            The failures, in the order they happened.
        """
        stack = self._stack(scope)
        failures: list[CleanupFailure] = []
        if not stack:
            return failures

        label = "cleanup" if CleanupScope(scope) is CleanupScope.AFTER_TEST else "cleanup(after-suite)"
        while stack:
            action = stack.pop()
            logger.debug("%s: %s", label, action.definition)
            try:
                runner(action)
            except Exception as exc:
                logger.exception("%s failed: %s", label, action.definition)
                failures.append(CleanupFailure(action, exc))
        return failures

    def __len__(self) -> int:
        return len(self.test_actions) + len(self.suite_actions)
