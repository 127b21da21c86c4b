"""Nested transactions on a single connector.

Only the outermost level talks to the database: the first :meth:`TransactionCoordinator.start` issues ``BEGIN``
and the matching final :meth:`TransactionCoordinator.commit` issues ``COMMIT``. Inner levels only move the nesting
counter. A rollback at any depth abandons the whole transaction.

A transaction belongs to the connector that was current when it started, and the coordinator refuses to let the
current connector drift away from it.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, NoReturn, Optional, TypeVar, Union

from multidb.exceptions import (
    ConnectorSwitchError,
    NoConnectorChosenError,
    TransactionSequenceError,
    TransactionStateError,
)
from multidb.utils.logging import get_logger

__all__ = ("Ok", "RolledBack", "TransactionCoordinator", "TransactionResult", "TransactionState")

logger = get_logger("core.transaction")

T = TypeVar("T")


@dataclass(frozen=True)
class TransactionState:
    """Snapshot of the nesting level and the connector owning the transaction."""

    level: int = 0
    connector: Optional[str] = None

    @property
    def in_transaction(self) -> bool:
        return self.level > 0

    @property
    def is_sane(self) -> bool:
        return (self.connector is not None) == (self.level > 0) and self.level >= 0


@dataclass(frozen=True)
class Ok(Generic[T]):
    """The transactional block returned normally and was committed."""

    value: T

    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class RolledBack:
    """The transactional block raised; the transaction was rolled back before this was returned."""

    cause: Exception

    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> NoReturn:
        raise self.cause


TransactionResult = Union[Ok[T], RolledBack]


class TransactionCoordinator:
    """Nested-transaction state machine layered over raw ``BEGIN``/``COMMIT``/``ROLLBACK``.

    Args:
        execute: Runs a raw statement against the current connector.
        current_connector: Returns the name of the current connector.
    """

    __slots__ = ("_connector", "_current_connector", "_execute", "_level")

    def __init__(self, execute: "Callable[[str], Any]", current_connector: "Callable[[], Optional[str]]") -> None:
        self._execute = execute
        self._current_connector = current_connector
        self._level = 0
        self._connector: Optional[str] = None

    @property
    def level(self) -> int:
        return self._level

    @property
    def connector(self) -> Optional[str]:
        return self._connector

    @property
    def in_transaction(self) -> bool:
        return self._level > 0

    @property
    def state(self) -> TransactionState:
        return TransactionState(self._level, self._connector)

    def assert_sane(self) -> None:
        """Check the level/connector invariant.

        Raises:
            TransactionStateError: If the owning connector is set without an open level (or vice versa), or if the
                current connector is no longer the one owning the transaction.
        """
        if not self.state.is_sane or (
            self._connector is not None and self._connector != self._current_connector()
        ):
            raise TransactionStateError(self._level, self._connector)

    def ensure_can_switch(self, connector: str) -> None:
        """Reject choosing ``connector`` while a transaction is open on a different one."""
        if self._level > 0 and self._connector != connector:
            raise ConnectorSwitchError(connector, self._connector or "")

    def start(self) -> None:
        """Begin a transaction or adjust nesting level.

        An ongoing transaction is not committed until the commit matching level 1; all other commits only
        de-nest it.
        """
        self.assert_sane()

        if self._level == 0:
            connector = self._current_connector()
            if connector is None:
                raise NoConnectorChosenError
            self._level = 1
            self._connector = connector
            logger.debug("Starting transaction on connector %s", self._connector)
            self._execute("BEGIN")
        else:
            self._level += 1
            logger.debug("Transaction nested to level %d", self._level)

    def commit(self) -> None:
        """Commit the ongoing transaction or de-nest the current level.

        Raises:
            TransactionSequenceError: If no transaction is in progress.
        """
        self.assert_sane()

        if self._level > 1:
            self._level -= 1
            logger.debug("Transaction de-nested to level %d", self._level)
        elif self._level == 1:
            connector = self._connector
            self._level = 0
            self._connector = None
            logger.debug("Committing transaction on connector %s", connector)
            self._execute("COMMIT")
        else:
            raise TransactionSequenceError

    def rollback(self) -> None:
        """Roll back the ongoing transaction, whatever its nesting level.

        Raises:
            TransactionSequenceError: If no transaction is in progress.
        """
        self.assert_sane()

        if self._level == 0:
            raise TransactionSequenceError
        logger.debug("Rolling back transaction on connector %s from level %d", self._connector, self._level)
        self._level = 0
        self._connector = None
        self._execute("ROLLBACK")

    def run(self, block: "Callable[[], T]") -> "TransactionResult[T]":
        """Execute ``block`` within a transaction.

        The transaction is committed when ``block`` returns. If it raises, the transaction is rolled back and the
        exception is handed back inside :class:`RolledBack`.

        Args:
            block: Callable performing the transactional work.

        Returns:
            ``Ok(value)`` on success, ``RolledBack(cause)`` on failure.
        """
        self.start()
        try:
            result = block()
        except Exception as exc:
            logger.debug("Transaction block failed; rolling back", exc_info=True)
            self.rollback()
            return RolledBack(exc)
        self.commit()
        return Ok(result)
