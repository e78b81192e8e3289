# dbfixtures/sequences.py
"""
Serial sequence repair for PostgreSQL.

Writing an explicit value into a ``serial``/``identity`` ``id`` column does not
advance its sequence, so the next insert that relies on the default would
collide with a fixture row. After such a write the sequence is reset to the
table's current ``MAX(id)``.
"""

import logging
from typing import Tuple

from .utils import quote_identifier, split_table_name

logger = logging.getLogger(__name__)

ID_COLUMN = 'id'
INTEGER_TYPES = ('smallint', 'integer', 'bigint')


def needs_sequence_fix(dialect, first_column: str) -> bool:
    """True when the dialect repairs sequences and the statement starts with the id column."""
    return dialect.supports_sequence_fix() and first_column == quote_identifier(ID_COLUMN)


def pk_data_type_sql(table: str, dialect) -> Tuple[str, list]:
    """Query returning the declared data type of ``table``'s id column."""
    schema, name = split_table_name(table)
    sql = ("SELECT data_type FROM information_schema.columns "
           f"WHERE table_name = {dialect.placeholder(0)} "
           f"AND column_name = '{ID_COLUMN}'")
    params = [name]
    if schema:
        sql += f" AND table_schema = {dialect.placeholder(1)}"
        params.append(schema)
    return sql, params


def fix_sequence_sql(table: str, dialect) -> Tuple[str, list]:
    """Statement resetting the id sequence of ``table`` to its highest id."""
    quoted = quote_identifier(table)
    sql = (f"SELECT pg_catalog.setval(pg_get_serial_sequence({dialect.placeholder(0)}, '{ID_COLUMN}'), "
           f"(SELECT MAX({quote_identifier(ID_COLUMN)}) FROM {quoted}))")
    return sql, [quoted]


def fix_sequence(cursor, table: str, dialect) -> bool:
    """
    Reset the id sequence of ``table`` if its id column is an integer.

    Runs inside the caller's transaction. A table whose id is not an integer
    (text, uuid, ...) is left alone.

    Returns:
        True if the sequence was reset
    """
    sql, params = pk_data_type_sql(table, dialect)
    cursor.execute(sql, params)
    result = cursor.fetchone()
    data_type = result[0] if result else None

    if data_type not in INTEGER_TYPES:
        logger.debug(f"Skipping sequence fix for {table}: id column type is {data_type}")
        return False

    sql, params = fix_sequence_sql(table, dialect)
    cursor.execute(sql, params)
    logger.debug(f"Reset id sequence for {table}")
    return True
