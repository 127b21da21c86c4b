from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Union

from typing_extensions import TypeAlias

from multidb.core.literal import AsIs

__all__ = (
    "ColumnSpec",
    "Criteria",
    "DictRow",
    "PrimaryKey",
    "RowValue",
    "RowValues",
    "UpsertSpec",
)

RowValue: TypeAlias = Union[AsIs, str, int, float, bool, Decimal, date, datetime, None]
"""A value in a row or criteria mapping: a literal, a scalar to bind, or ``None``."""

RowValues: TypeAlias = Mapping[str, RowValue]
"""Field values of the form ``{"Field1": value, "Field2": value}``."""

Criteria: TypeAlias = Union[Mapping[Any, RowValue], Sequence[RowValue]]
"""Row selection criteria, converted to ``Field1 = ? AND Field2 = ?``. Positional entries render as raw fragments."""

ColumnSpec: TypeAlias = Union[None, str, AsIs, Sequence[Union[str, AsIs]]]

UpsertSpec: TypeAlias = Union[bool, str, Sequence[str]]

PrimaryKey: TypeAlias = Union[str, Sequence[str]]

DictRow: TypeAlias = "dict[str, Any]"
