# dbfixtures/row.py

"""
The fixture row model and the SQL fragments it generates.

A Row is one entry of a fixture document: a table, the primary key columns
that identify the row, and the remaining fields to store. Every method that
builds SQL is pure; values are bound positionally, so column lists and value
lists are produced from the same ordered projections and always line up.
"""

import datetime as dt
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .utils import quote_identifier, validate_identifier, current_timestamp

logger = logging.getLogger(__name__)

__all__ = ['Marker', 'ON_INSERT_NOW', 'ON_UPDATE_NOW', 'Row', 'SCALAR_TYPES']


class Marker:
    """
    Field value resolved to the current timestamp by one operation only.

    There are exactly two markers, ``ON_INSERT_NOW`` and ``ON_UPDATE_NOW``.
    They are compared by identity, so text that happens to read
    ``'ON_INSERT_NOW()'`` is only a marker if the document parser turned it
    into one.
    """
    __slots__ = ('literal', 'operation', 'tag')

    def __init__(self, literal: str, operation: str, tag: str):
        self.literal = literal
        self.operation = operation
        self.tag = tag

    def __repr__(self) -> str:
        return self.literal

    def __reduce__(self):
        return _marker_by_literal, (self.literal,)


ON_INSERT_NOW = Marker('ON_INSERT_NOW()', 'insert', '!on_insert_now')
ON_UPDATE_NOW = Marker('ON_UPDATE_NOW()', 'update', '!on_update_now')
MARKERS = {m.literal: m for m in (ON_INSERT_NOW, ON_UPDATE_NOW)}


def _marker_by_literal(literal: str) -> Marker:
    return MARKERS[literal]


SCALAR_TYPES = (type(None), bool, int, float, str, bytes, dt.date, dt.datetime, dt.time, Marker)


def _check_columns(table: str, label: str, columns: Mapping[str, Any]) -> Dict[str, Any]:
    checked = {}
    for col, value in columns.items():
        try:
            validate_identifier(col)
        except ValueError as e:
            raise ValueError(f"Table '{table}' {label}: {e}")
        if '.' in col:
            raise ValueError(f"Table '{table}' {label}: column names cannot be qualified: {col}")
        if not isinstance(value, SCALAR_TYPES):
            raise ValueError(
                f"Table '{table}' {label} column '{col}' must be a scalar value, "
                f"got {type(value).__name__}"
            )
        checked[col] = value
    return checked


class Row:
    """
    A single fixture row.

    Parameters
    ----------
    table : str
        Target table, optionally schema qualified (``audit.events``).
    pk : mapping
        Primary key column -> value. Must not be empty; composite keys are
        declared by listing several columns.
    fields : mapping, optional
        Non-key column -> value. Values may be the ON_INSERT_NOW / ON_UPDATE_NOW
        markers. May be empty, e.g. for join-table rows.

    The insert and update projections are resolved once, here:

    * insert columns = pk columns + fields, minus ON_UPDATE_NOW fields
    * update columns = fields, minus ON_INSERT_NOW fields

    Example
    -------
    ::

        row = Row('air_temples', {'id': 1}, {'name': 'Eastern', 'built': ON_INSERT_NOW})
        row.insert_columns()                    # ['"id"', '"name"', '"built"']
        row.where_clause(get_dialect('postgres'), 1)  # '"id" = $2'
    """

    def __init__(self, table: str, pk: Mapping[str, Any], fields: Optional[Mapping[str, Any]] = None):
        validate_identifier(table)
        if not isinstance(pk, Mapping) or not pk:
            raise ValueError(f"Table '{table}': pk must be a non-empty mapping of column to value")
        if fields is None:
            fields = {}
        if not isinstance(fields, Mapping):
            raise ValueError(f"Table '{table}': fields must be a mapping of column to value")

        nulls = [col for col, value in pk.items() if value is None]
        if nulls:
            # "col = NULL" never matches, the row would be inserted again on every load
            raise ValueError(f"Table '{table}': pk columns cannot be null: {nulls}")

        overlap = [col for col in fields if col in pk]
        if overlap:
            raise ValueError(f"Table '{table}': columns declared in both pk and fields: {overlap}")

        self._table = table
        self._pk = _check_columns(table, 'pk', pk)
        self._fields = _check_columns(table, 'fields', fields)

        self._insert_fields: Tuple[Tuple[str, Any], ...] = tuple(
            (col, val) for col, val in self._fields.items() if val is not ON_UPDATE_NOW
        )
        self._update_fields: Tuple[Tuple[str, Any], ...] = tuple(
            (col, val) for col, val in self._fields.items() if val is not ON_INSERT_NOW
        )

    @property
    def table(self) -> str:
        """Table name as declared in the fixture (unquoted)."""
        return self._table

    @property
    def pk(self) -> Dict[str, Any]:
        return dict(self._pk)

    @property
    def fields(self) -> Dict[str, Any]:
        return dict(self._fields)

    def __repr__(self) -> str:
        return f"Row('{self._table}', pk={self._pk!r}, fields={self._fields!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return (self._table == other._table
                and list(self._pk.items()) == list(other._pk.items())
                and list(self._fields.items()) == list(other._fields.items()))

    __hash__ = None

    # INSERT

    def insert_columns(self) -> List[str]:
        cols = list(self._pk) + [col for col, _ in self._insert_fields]
        return [quote_identifier(col) for col in cols]

    def insert_placeholders(self, dialect) -> List[str]:
        return [dialect.placeholder(i) for i in range(len(self._pk) + len(self._insert_fields))]

    def insert_values(self, now: Any = None) -> List[Any]:
        """Values aligned with insert_columns(); ON_INSERT_NOW becomes ``now``."""
        if now is None:
            now = current_timestamp()
        values = self.pk_values()
        for _, value in self._insert_fields:
            values.append(now if value is ON_INSERT_NOW else value)
        return values

    # UPDATE

    def update_columns(self) -> List[str]:
        return [quote_identifier(col) for col, _ in self._update_fields]

    def update_columns_length(self) -> int:
        return len(self._update_fields)

    def update_placeholders(self, dialect) -> List[str]:
        return [f'{col} = {dialect.placeholder(i)}' for i, col in enumerate(self.update_columns())]

    def update_values(self, now: Any = None) -> List[Any]:
        """Values aligned with update_columns(); ON_UPDATE_NOW becomes ``now``."""
        if now is None:
            now = current_timestamp()
        return [now if value is ON_UPDATE_NOW else value for _, value in self._update_fields]

    # KEY

    def pk_values(self) -> List[Any]:
        # markers have no meaning in a key, bind their literal text
        return [value.literal if isinstance(value, Marker) else value for value in self._pk.values()]

    def where_clause(self, dialect, offset: int = 0) -> str:
        """
        Conjunction over the primary key columns.

        Args:
            dialect: Dialect supplying placeholder text.
            offset: Number of placeholders already used by the statement, so that
                numbered styles continue one run through UPDATE ... SET ... WHERE.
        """
        conditions = [
            f'{quote_identifier(col)} = {dialect.placeholder(offset + i)}'
            for i, col in enumerate(self._pk)
        ]
        return ' AND '.join(conditions)
