"""Parameter normalization.

Row values and criteria arrive as mappings (``{"Field": value}``) or plain sequences. Before any statement is built
they are flattened into :class:`NormalizedParameter` triples so every builder deals with the same shape:

- ``field`` is ``None`` for positional entries,
- ``placeholder`` is ``"?"`` for bound values and ``None`` for literal SQL,
- ``value`` is the stringified bound value (``None`` stays ``None``), or the literal SQL text.
"""

from collections.abc import Mapping
from typing import Any, Final, NamedTuple, Optional, Union

from multidb.core.literal import ASIS_PREFIX, AsIs, is_asis_string

__all__ = ("PLACEHOLDER", "NormalizedParameter", "normalize_asis", "normalize_parameters", "to_scalar")

PLACEHOLDER: Final[str] = "?"


class NormalizedParameter(NamedTuple):
    """A single field/value pair ready to be rendered into SQL."""

    field: Optional[str]
    placeholder: Optional[str]
    value: Optional[str]

    @property
    def is_literal(self) -> bool:
        return self.placeholder is None


def normalize_asis(value: Any) -> Any:
    """Promote an ``@asis``-prefixed string to :class:`AsIs`.

    Args:
        value: Any raw value.

    Returns:
        An :class:`AsIs` holding the text after the prefix, or ``value`` unchanged.
    """
    if is_asis_string(value):
        return AsIs(value[len(ASIS_PREFIX) :])
    return value


def to_scalar(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def normalize_parameters(params: "Union[Mapping[Any, Any], list[Any], tuple[Any, ...]]") -> "list[NormalizedParameter]":
    """Normalise a params mapping or sequence for easy processing later on.

    Order and count of the input are preserved.

    Args:
        params: ``{field: value}`` mapping, or a sequence of values with no field names.

    Returns:
        One :class:`NormalizedParameter` per input entry.
    """
    items = params.items() if isinstance(params, Mapping) else enumerate(params)

    normalized: list[NormalizedParameter] = []
    for key, raw_value in items:
        # integer keys are positions, not field names
        field = None if isinstance(key, int) else str(key)
        value = normalize_asis(raw_value)
        if isinstance(value, AsIs):
            normalized.append(NormalizedParameter(field, None, str(value)))
        else:
            normalized.append(NormalizedParameter(field, PLACEHOLDER, to_scalar(value)))
    return normalized
