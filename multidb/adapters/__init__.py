"""Database adapters, selected by the scheme of a connector's DSN."""

from typing import TYPE_CHECKING, Final, Optional

from multidb.exceptions import ImproperConfigurationError
from multidb.utils.module_loader import import_string

if TYPE_CHECKING:
    from multidb.driver import DriverAdapterBase

__all__ = ("ADAPTERS", "create_driver", "resolve_driver_class")

ADAPTERS: Final[dict[str, str]] = {
    "sqlite": "multidb.adapters.sqlite.SqliteDriver",
    "mysql": "multidb.adapters.pymysql.PyMysqlDriver",
}


def resolve_driver_class(dsn: str) -> "type[DriverAdapterBase]":
    """Find the driver class for the scheme of ``dsn`` (the part before the first ``:``).

    Raises:
        ImproperConfigurationError: If no adapter handles the scheme.
    """
    scheme = dsn.partition(":")[0].lower()
    if scheme not in ADAPTERS:
        msg = f"No adapter available for DSN scheme {scheme!r}; supported schemes: {', '.join(sorted(ADAPTERS))}"
        raise ImproperConfigurationError(msg)
    return import_string(ADAPTERS[scheme])  # type: ignore[no-any-return]


def create_driver(dsn: str, user: Optional[str], password: Optional[str]) -> "DriverAdapterBase":
    return resolve_driver_class(dsn).connect(dsn, user, password)
