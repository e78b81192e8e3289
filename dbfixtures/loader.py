# dbfixtures/loader.py

"""
Load fixture documents into a database.

Each document is applied inside a single transaction. For every row, in
document order, a COUNT(*) probe on the primary key decides between INSERT
and UPDATE; PostgreSQL id sequences are repaired after explicit-value writes.
The first failing statement rolls back the whole document.

Example
-------
::

    import sqlite3
    from dbfixtures import load_file, load_files

    conn = sqlite3.connect('test.db')
    load_file('fixtures/users.yml', conn, 'sqlite')

    # placeholders follow the driver: %s for psycopg2, $1 when it is unknown
    load_files(['fixtures/users.yml', 'fixtures/roles.yml'], pg_conn, 'postgres')
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from .dialects import Dialect, get_dialect
from .database import get_paramstyle, transaction
from .document import parse_document
from .errors import FixtureFileError, RowError
from .row import Row
from .sequences import needs_sequence_fix, fix_sequence
from .utils import ParamStyle, current_timestamp

logger = logging.getLogger(__name__)

__all__ = ['LoadResult', 'load', 'load_file', 'load_files', 'upsert_row']

OPERATION_COUNTERS = {'insert': 'inserted', 'update': 'updated', 'unchanged': 'unchanged'}


class LoadResult:
    """
    Counts of what a load did.

    Attributes:
        inserted: Rows that did not exist and were inserted
        updated: Existing rows that were updated
        unchanged: Existing rows with nothing to update (key-only rows)
        sequences_fixed: Postgres id sequences reset after a write
        documents: Documents committed
    """

    def __init__(self):
        self.inserted = 0
        self.updated = 0
        self.unchanged = 0
        self.sequences_fixed = 0
        self.documents = 0

    @property
    def rows(self) -> int:
        return self.inserted + self.updated + self.unchanged

    def count(self, operation: str, sequence_fixed: bool = False) -> None:
        """Record one row applied by upsert_row()."""
        counter = OPERATION_COUNTERS[operation]
        setattr(self, counter, getattr(self, counter) + 1)
        self.sequences_fixed += int(sequence_fixed)

    def merge(self, other: 'LoadResult') -> 'LoadResult':
        self.inserted += other.inserted
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.sequences_fixed += other.sequences_fixed
        self.documents += other.documents
        return self

    def __repr__(self) -> str:
        return (f"LoadResult(inserted={self.inserted}, updated={self.updated}, "
                f"unchanged={self.unchanged}, sequences_fixed={self.sequences_fixed})")


def _execute(cursor, sql: str, params: list) -> None:
    logger.debug(f"{sql} | Params: {params}")
    cursor.execute(sql, params)


def _driver_paramstyle(connection) -> Optional[str]:
    """Paramstyle declared by the connection's driver, None when unknown."""
    paramstyle = get_paramstyle(connection)
    return paramstyle if paramstyle in ParamStyle.values() else None


def upsert_row(cursor, row: Row, dialect: Dialect) -> Tuple[str, bool]:
    """
    Insert or update one row using ``cursor``.

    Args:
        cursor: DB-API cursor inside the caller's transaction
        row: Row to apply
        dialect: Dialect used to render placeholders and identifiers

    Returns:
        Tuple of (operation, sequence_fixed) where operation is 'insert',
        'update' or 'unchanged'
    """
    table = dialect.quote_identifier(row.table)
    now = dialect.adapt_timestamp(current_timestamp())

    _execute(cursor, f'SELECT COUNT(*) FROM {table} WHERE {row.where_clause(dialect, 0)}',
             row.pk_values())
    count = cursor.fetchone()[0]

    if count == 0:
        columns = row.insert_columns()
        sql = (f"INSERT INTO {table} ({', '.join(columns)}) "
               f"VALUES ({', '.join(row.insert_placeholders(dialect))})")
        _execute(cursor, sql, row.insert_values(now))
        operation = 'insert'
    else:
        columns = row.update_columns()
        if not columns:
            # nothing but the key, the row already matches
            return 'unchanged', False
        sql = (f"UPDATE {table} SET {', '.join(row.update_placeholders(dialect))} "
               f"WHERE {row.where_clause(dialect, row.update_columns_length())}")
        _execute(cursor, sql, row.update_values(now) + row.pk_values())
        operation = 'update'

    fixed = False
    if needs_sequence_fix(dialect, columns[0]):
        fixed = fix_sequence(cursor, row.table, dialect)
    return operation, fixed


def load(data: Union[bytes, str], connection, dialect: Union[str, Dialect, None] = None,
         paramstyle: Optional[str] = None) -> LoadResult:
    """
    Apply a fixture document to the database.

    Args:
        data: YAML fixture document
        connection: DB-API connection (or Database wrapper)
        dialect: 'sqlite', 'postgres' or a Dialect; defaults to the ``default_dialect`` setting
        paramstyle: Placeholder style. Defaults to the paramstyle of the connection's
            driver when it is known, otherwise to the dialect default

    Returns:
        LoadResult with the counts for this document

    Raises:
        DocumentError: The document could not be parsed; nothing was executed
        RowError: A statement failed; the transaction was rolled back
    """
    rows = parse_document(data)
    if paramstyle is None and not isinstance(dialect, Dialect):
        paramstyle = _driver_paramstyle(connection)
    dialect = get_dialect(dialect, paramstyle)
    result = LoadResult()

    with transaction(connection):
        cursor = connection.cursor()
        try:
            for row_number, row in enumerate(rows, 1):
                try:
                    operation, fixed = upsert_row(cursor, row, dialect)
                except Exception as e:
                    logger.debug(f"Row {row_number} ({row.table}) failed, rolling back: {e}")
                    raise RowError(row_number, row.table, e) from e
                result.count(operation, fixed)
        finally:
            cursor.close()

    result.documents = 1
    logger.info(f"Loaded {len(rows)} fixture rows: {result}")
    return result


def load_file(filename: Union[str, Path], connection, dialect: Union[str, Dialect, None] = None,
              paramstyle: Optional[str] = None) -> LoadResult:
    """
    Read a fixture file and load it.

    Raises:
        FixtureFileError: If the file cannot be read; the message names the path
    """
    try:
        with open(filename, 'rb') as fp:
            data = fp.read()
    except OSError as e:
        raise FixtureFileError(filename, e) from e

    logger.info(f"Loading fixture file {filename}")
    return load(data, connection, dialect, paramstyle)


def load_files(filenames: Iterable[Union[str, Path]], connection,
               dialect: Union[str, Dialect, None] = None,
               paramstyle: Optional[str] = None) -> LoadResult:
    """
    Load fixture files in order, stopping at the first failure.

    Each file is its own transaction: files before a failing one stay
    committed, files after it are never read. The failing file's error is
    raised unchanged.
    """
    total = LoadResult()
    for filename in filenames:
        total.merge(load_file(filename, connection, dialect, paramstyle))
    return total
