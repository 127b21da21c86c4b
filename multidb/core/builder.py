"""Single-table statement builders.

Each builder turns a table name plus row/criteria mappings into a :class:`BuiltStatement`: SQL text using ``?``
placeholders and the ordered list of values to bind. Identifier quoting is delegated to the ``quote`` callable
supplied by the driver; values never reach the SQL text except through :class:`~multidb.core.literal.AsIs`.

The upsert form uses MySQL's ``ON DUPLICATE KEY UPDATE`` syntax.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Callable, NamedTuple, Optional, Union

from multidb.core.literal import AsIs
from multidb.core.parameters import NormalizedParameter, normalize_asis, normalize_parameters
from multidb.exceptions import SQLBuilderError

if TYPE_CHECKING:
    from multidb.typing import ColumnSpec, Criteria, RowValues, UpsertSpec

__all__ = (
    "BuiltStatement",
    "QuoteFunc",
    "build_delete",
    "build_insert",
    "build_insert_many",
    "build_select",
    "build_update",
    "render_clause",
)

QuoteFunc = Callable[[str], str]


class BuiltStatement(NamedTuple):
    """SQL text plus the values to bind, in placeholder order."""

    sql: str
    parameters: "list[Optional[str]]"


def render_clause(param: NormalizedParameter, quote: QuoteFunc, *, null_safe: bool = True) -> str:
    """Render one ``field OPERATOR rhs`` fragment, or just ``rhs`` when there is no field.

    Args:
        param: The normalized parameter.
        quote: Identifier quoting function.
        null_safe: Compare ``None`` with ``IS`` rather than ``=``. Disabled for SET assignments.

    Returns:
        The SQL fragment.
    """
    rhs = param.value if param.placeholder is None else param.placeholder
    if param.field is None:
        return str(rhs)

    operator = "IS" if null_safe and param.value is None else "="
    return f"{quote(param.field)} {operator} {rhs}"


def _collect(params: "list[NormalizedParameter]", into: "list[Optional[str]]") -> None:
    into.extend(param.value for param in params if param.placeholder is not None)


def _render_values(params: "list[NormalizedParameter]") -> str:
    return ", ".join(str(param.value) if param.placeholder is None else param.placeholder for param in params)


def _where(criteria: "Criteria", quote: QuoteFunc, parameters: "list[Optional[str]]") -> str:
    where_params = normalize_parameters(criteria)
    if not where_params:
        return ""
    _collect(where_params, parameters)
    return " WHERE " + " AND ".join(render_clause(param, quote) for param in where_params)


def _upsert_fields(upsert: "UpsertSpec", default_fields: "Sequence[str]") -> "Optional[list[str]]":
    """Resolve the upsert option to the list of fields to refresh, or ``None`` when disabled."""
    if isinstance(upsert, bool):
        return list(default_fields) if upsert else None
    if isinstance(upsert, str):
        return [upsert]
    fields = list(upsert)
    return fields or None


def _values_assignment(field: str, quote: QuoteFunc) -> str:
    quoted = quote(field)
    return f"{quoted}=VALUES({quoted})"


def build_insert(
    table: str,
    values: "RowValues",
    quote: QuoteFunc,
    *,
    primary_key: "Union[str, Sequence[str]]" = ("ID",),
    upsert: "UpsertSpec" = True,
) -> BuiltStatement:
    """Build a single-row ``INSERT``.

    Args:
        table: Table name, optionally qualified as ``Database.Table``.
        values: ``{field: value}`` for the new row.
        quote: Identifier quoting function.
        primary_key: Primary key field(s). With a single field, upserts re-point ``LAST_INSERT_ID`` at the
            existing row so the driver still reports its id after a key collision.
        upsert: ``True`` to append ``ON DUPLICATE KEY UPDATE`` for every non-key field, a sequence of fields to
            restrict it, ``False`` (or an empty sequence) to omit it.

    Raises:
        SQLBuilderError: If ``values`` is empty.

    Returns:
        The built statement.
    """
    if not values:
        msg = f"No field values given to insert into {table}"
        raise SQLBuilderError(msg)

    pk_fields = [primary_key] if isinstance(primary_key, str) else list(primary_key)
    fields = [str(field) for field in values]

    params = normalize_parameters(values)
    parameters: list[Optional[str]] = []
    _collect(params, parameters)

    sql = f"INSERT INTO {quote(table)} ({', '.join(quote(field) for field in fields)}) VALUES ({_render_values(params)})"

    update_fields = _upsert_fields(upsert, fields)
    if update_fields is not None:
        fragments: list[str] = []
        if len(pk_fields) == 1:
            quoted_pk = quote(pk_fields[0])
            fragments.append(f"{quoted_pk}=LAST_INSERT_ID({quoted_pk})")
        fragments.extend(_values_assignment(field, quote) for field in update_fields if field not in pk_fields)
        if not fragments:
            # every column is part of a compound key; a self-assignment turns the collision into a no-op
            quoted_pk = quote(pk_fields[0])
            fragments.append(f"{quoted_pk}={quoted_pk}")
        sql += " ON DUPLICATE KEY UPDATE " + ", ".join(fragments)

    return BuiltStatement(sql, parameters)


def build_insert_many(
    table: str, rows: "Sequence[RowValues]", quote: QuoteFunc, *, upsert: "UpsertSpec" = True
) -> BuiltStatement:
    """Build one multi-row ``INSERT``.

    Column names come from the first row. Every row must have the same fields; values are read by field name, so
    their order within a row does not matter.

    Raises:
        SQLBuilderError: If ``rows`` is empty, the first row has no fields, or a row's fields differ from the first.
    """
    if not rows or not rows[0]:
        msg = f"Invalid data rows given to insert into {table}"
        raise SQLBuilderError(msg)

    keys = list(rows[0])
    fields = [str(field) for field in keys]
    parameters: list[Optional[str]] = []
    row_sql: list[str] = []
    for index, row in enumerate(rows):
        if set(row) != set(keys):
            msg = f"Row {index} to insert into {table} has fields {sorted(map(str, row))}, expected {sorted(fields)}"
            raise SQLBuilderError(msg)
        params = normalize_parameters([row[key] for key in keys])
        _collect(params, parameters)
        row_sql.append(f"({_render_values(params)})")

    sql = f"INSERT INTO {quote(table)} ({', '.join(quote(field) for field in fields)}) VALUES {', '.join(row_sql)}"

    update_fields = _upsert_fields(upsert, fields)
    if update_fields is not None:
        sql += " ON DUPLICATE KEY UPDATE " + ", ".join(_values_assignment(field, quote) for field in update_fields)

    return BuiltStatement(sql, parameters)


def build_update(table: str, updates: "RowValues", criteria: "Criteria", quote: QuoteFunc) -> BuiltStatement:
    """Build ``UPDATE table SET ... WHERE ...``.

    SET values are bound before WHERE values.

    Raises:
        SQLBuilderError: If ``updates`` is empty.
    """
    update_params = normalize_parameters(updates)
    if not update_params:
        msg = f"No field updates given for {table}"
        raise SQLBuilderError(msg)

    parameters: list[Optional[str]] = []
    _collect(update_params, parameters)
    assignments = ", ".join(render_clause(param, quote, null_safe=False) for param in update_params)
    where = _where(criteria, quote, parameters)

    return BuiltStatement(f"UPDATE {quote(table)} SET {assignments}{where}", parameters)


def _render_column(column: Any, quote: QuoteFunc) -> str:
    column = normalize_asis(column)
    if isinstance(column, AsIs):
        return str(column)
    return quote(str(column))


def build_select(
    table: str,
    criteria: "Criteria",
    quote: QuoteFunc,
    *,
    columns: "ColumnSpec" = None,
    limit: Optional[int] = None,
) -> BuiltStatement:
    """Build ``SELECT ... FROM table WHERE ... LIMIT n``.

    Args:
        table: Table name.
        criteria: ``{field: value}`` equality/NULL conjunction, or positional raw fragments.
        quote: Identifier quoting function.
        columns: ``None`` or empty for ``*``; a plain string is one raw projection (``"COUNT(*)"``); a sequence
            holds column names, with :class:`AsIs` or ``@asis`` entries rendered verbatim.
        limit: Row limit, or ``None`` for no ``LIMIT`` clause.

    Raises:
        SQLBuilderError: If ``limit`` is not a non-negative integer.
    """
    if not columns:
        projection = "*"
    elif isinstance(columns, (str, AsIs)):
        projection = str(normalize_asis(columns))
    else:
        projection = ", ".join(_render_column(column, quote) for column in columns)

    parameters: list[Optional[str]] = []
    sql = f"SELECT {projection} FROM {quote(table)}{_where(criteria, quote, parameters)}"

    if limit is not None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            msg = f"Invalid limit {limit!r}; expected a non-negative integer"
            raise SQLBuilderError(msg)
        sql += f" LIMIT {limit}"

    return BuiltStatement(sql, parameters)


def build_delete(table: str, criteria: "Criteria", quote: QuoteFunc) -> BuiltStatement:
    """Build ``DELETE FROM table WHERE ...``."""
    parameters: list[Optional[str]] = []
    return BuiltStatement(f"DELETE FROM {quote(table)}{_where(criteria, quote, parameters)}", parameters)
