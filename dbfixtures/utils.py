# dbfixtures/utils.py
"""
Utility functions for dbfixtures.
"""

import datetime as dt

from .defaults import settings


class ParamStyle:
    """
    SQL parameter placeholder styles for different database drivers.

    Fixture statements are always bound positionally, so only the positional
    form of each style is produced:

    - QMARK: Question mark placeholders (?, ?) - SQLite, ODBC
    - DOLLAR: Numbered dollar placeholders ($1, $2) - PostgreSQL native protocol
    - NUMERIC: Numeric placeholders (:1, :2) - Oracle, pg8000
    - FORMAT: Printf-style (%s, %s) - MySQL, psycopg
    - PYFORMAT: Python format, positional form is %s - psycopg2, pymysql

    Example
    -------
    ::
        >>> ParamStyle.get_placeholder('qmark', 0)
        '?'
        >>> ParamStyle.get_placeholder('dollar', 2)
        '$3'
    """
    QMARK = 'qmark'         # id = ?
    DOLLAR = 'dollar'       # id = $1
    NUMERIC = 'numeric'     # id = :1
    FORMAT = 'format'       # id = %s
    PYFORMAT = 'pyformat'   # id = %s for positional
    DEFAULT = QMARK

    @classmethod
    def values(cls):
        return [getattr(cls, attr) for attr in dir(cls)
                if not attr.startswith('_') and attr.isupper() and attr != 'DEFAULT']

    @classmethod
    def get_placeholder(cls, paramstyle: str, index: int) -> str:
        """Placeholder text for the 0-based parameter ``index``."""
        if paramstyle == cls.QMARK:
            return '?'
        elif paramstyle == cls.DOLLAR:
            return f'${index + 1}'
        elif paramstyle == cls.NUMERIC:
            return f':{index + 1}'
        elif paramstyle in (cls.FORMAT, cls.PYFORMAT):
            return '%s'
        raise ValueError(f"Unsupported paramstyle: {paramstyle}")


def validate_identifier(identifier: str, max_length: int = 63) -> str:
    """
    Validate that an identifier is safe for use (even if it needs quoting).
    Returns the identifier if valid, raises ValueError if invalid.
    """
    if not isinstance(identifier, str):
        raise ValueError(f"Invalid identifier: must be a string, got {type(identifier).__name__}")
    if '.' in identifier:
        parts = identifier.split('.')
        return '.'.join(validate_identifier(part, max_length) for part in parts)

    if not identifier:
        raise ValueError("Invalid identifier: cannot be empty")
    if len(identifier) > max_length:
        raise ValueError(f"Invalid identifier: exceeds max length of {max_length}")

    dangerous_patterns = ['\x00', '\n', '\r', ';', '\x1a', '--', '/*', '*/']
    for pattern in dangerous_patterns:
        if pattern in identifier:
            raise ValueError(f"Invalid identifier: contains dangerous pattern '{pattern}': {identifier}")

    if identifier.startswith(' ') or identifier.endswith(' '):
        raise ValueError(f"Invalid identifier: has leading/trailing spaces: {identifier}")

    return identifier


def quote_identifier(identifier: str) -> str:
    """Double-quote an identifier, quoting each part of a qualified name."""
    if '.' in identifier:
        return '.'.join(quote_identifier(part) for part in identifier.split('.'))
    escaped = identifier.replace('"', '""')
    return f'"{escaped}"'


def split_table_name(table: str):
    """Split ``schema.table`` into ``(schema, table)``; schema is None when unqualified."""
    if '.' in table:
        schema, _, name = table.rpartition('.')
        return schema, name
    return None, table


def current_timestamp() -> dt.datetime:
    """Timestamp used to resolve ON_INSERT_NOW() / ON_UPDATE_NOW() markers."""
    if settings.get('utc_timestamps'):
        return dt.datetime.now(dt.timezone.utc)
    return dt.datetime.now()
