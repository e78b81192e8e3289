# dbfixtures/dialects.py
"""
SQL dialects used when generating fixture statements.

A dialect decides three things: the text of each positional placeholder,
how identifiers are quoted, and whether serial sequences need repairing
after a row is written with an explicit primary key. Adding a database
means adding a Dialect subclass and registering it in DIALECTS.

Example
-------
::

    from dbfixtures.dialects import get_dialect

    pg = get_dialect('postgres')
    pg.placeholder(0)            # '$1'
    pg.supports_sequence_fix()   # True

    # psycopg2 binds with %s
    pg = get_dialect('postgres', paramstyle='format')
    pg.placeholder(0)            # '%s'
"""

import datetime as dt
import logging
from typing import Optional

from .defaults import settings
from .utils import ParamStyle, quote_identifier

logger = logging.getLogger(__name__)


class Dialect:
    """Base dialect: positional ``?`` placeholders and no sequence repair."""

    name = 'standard'
    default_paramstyle = ParamStyle.QMARK

    def __init__(self, paramstyle: Optional[str] = None):
        paramstyle = paramstyle or self.default_paramstyle
        if paramstyle not in ParamStyle.values():
            raise ValueError(
                f"Unsupported paramstyle '{paramstyle}'. Must be one of: {ParamStyle.values()}"
            )
        self.paramstyle = paramstyle

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(paramstyle='{self.paramstyle}')"

    def placeholder(self, index: int) -> str:
        """Placeholder token for the 0-based bind position ``index``."""
        return ParamStyle.get_placeholder(self.paramstyle, index)

    def quote_identifier(self, identifier: str) -> str:
        return quote_identifier(identifier)

    def supports_sequence_fix(self) -> bool:
        return False

    def adapt_timestamp(self, value: dt.datetime):
        """Convert a marker timestamp into a value the driver can bind."""
        return value


class SQLiteDialect(Dialect):
    name = 'sqlite'
    default_paramstyle = ParamStyle.QMARK

    def adapt_timestamp(self, value: dt.datetime):
        # sqlite3's implicit datetime adapter is deprecated, bind text instead
        return value.strftime(settings.get('timestamp_format', '%Y-%m-%d %H:%M:%S.%f'))


class PostgresDialect(Dialect):
    name = 'postgres'
    default_paramstyle = ParamStyle.DOLLAR

    def supports_sequence_fix(self) -> bool:
        return True


DIALECTS = {
    'sqlite': SQLiteDialect,
    'sqlite3': SQLiteDialect,
    'postgres': PostgresDialect,
    'postgresql': PostgresDialect,
    'pg': PostgresDialect,
}


def get_dialect(dialect=None, paramstyle: Optional[str] = None) -> Dialect:
    """
    Resolve a dialect name (or instance) to a Dialect.

    Args:
        dialect: Dialect name such as 'sqlite' or 'postgres', a Dialect instance,
            or None for the ``default_dialect`` setting.
        paramstyle: Optional placeholder style overriding the dialect default.

    Returns:
        Dialect instance. Unknown names fall back to the standard positional
        dialect, which never fixes sequences.
    """
    if isinstance(dialect, Dialect):
        if paramstyle and paramstyle != dialect.paramstyle:
            return dialect.__class__(paramstyle)
        return dialect

    if dialect is None:
        dialect = settings.get('default_dialect', 'sqlite')

    dialect_class = DIALECTS.get(str(dialect).lower())
    if dialect_class is None:
        logger.warning(f"Unknown dialect '{dialect}', using standard '?' placeholders")
        dialect_class = Dialect
    return dialect_class(paramstyle)
