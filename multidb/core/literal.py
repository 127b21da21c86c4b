"""Raw SQL fragments that are rendered verbatim instead of being bound."""

from typing import Any, Final

__all__ = ("ASIS_PREFIX", "AsIs", "is_asis_string")

ASIS_PREFIX: Final[str] = "@asis "


class AsIs:
    """A trusted SQL fragment emitted into the statement text exactly as given.

    Anything wrapped here bypasses parameter binding, so it must never carry untrusted input.

    Example:
        >>> str(AsIs("NOW()"))
        'NOW()'
    """

    __slots__ = ("_sql_fragment",)

    def __init__(self, sql_fragment: str) -> None:
        object.__setattr__(self, "_sql_fragment", str(sql_fragment))

    def __setattr__(self, name: str, value: Any) -> None:
        msg = f"{type(self).__name__} is immutable"
        raise AttributeError(msg)

    @property
    def sql_fragment(self) -> str:
        return self._sql_fragment

    def __str__(self) -> str:
        return self._sql_fragment

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._sql_fragment!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AsIs):
            return NotImplemented
        return self._sql_fragment == other._sql_fragment

    def __hash__(self) -> int:
        return hash((AsIs, self._sql_fragment))


def is_asis_string(value: Any) -> bool:
    """Check whether ``value`` is a string carrying the ``@asis`` prefix (case-insensitive)."""
    return isinstance(value, str) and value[: len(ASIS_PREFIX)].lower() == ASIS_PREFIX
