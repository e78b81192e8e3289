# dbfixtures/__init__.py
"""
dbfixtures - YAML data fixtures for relational databases

Loads declarative fixture documents into a database, inserting rows whose
primary key is missing and updating the ones that already exist:

- One transaction per document, rolled back on the first failing row
- SQLite and PostgreSQL dialects (``?`` and ``$n`` placeholders)
- PostgreSQL serial sequences repaired after explicit id writes
- ON_INSERT_NOW() / ON_UPDATE_NOW() timestamp markers
- YAML-based configuration of connections and fixture sets

Basic usage::

    import sqlite3
    import dbfixtures

    conn = sqlite3.connect('test.db')
    dbfixtures.load_file('fixtures/users.yml', conn, 'sqlite')

From a YAML config file::

    with dbfixtures.connect('test_db') as db:
        dbfixtures.load_files(dbfixtures.get_fixture_set('base'), db, 'postgres')

Fixture document::

    - table: some_table
      pk:
        id: 1
      fields:
        string_field: foobar
        created_at: ON_INSERT_NOW()
        updated_at: ON_UPDATE_NOW()
"""

__version__ = '0.1.0'

from .config import connect, set_config_file, get_fixture_set
from .database import Database, transaction
from .dialects import Dialect, SQLiteDialect, PostgresDialect, get_dialect
from .errors import FixtureError, DocumentError, RowError, FixtureFileError
from .loader import LoadResult, load, load_file, load_files
from .logging_utils import setup_logging, errors_logged
from .row import Row, Marker, ON_INSERT_NOW, ON_UPDATE_NOW

__all__ = [
    'load',
    'load_file',
    'load_files',
    'LoadResult',
    'Row',
    'Marker',
    'ON_INSERT_NOW',
    'ON_UPDATE_NOW',
    'Dialect',
    'SQLiteDialect',
    'PostgresDialect',
    'get_dialect',
    'FixtureError',
    'DocumentError',
    'RowError',
    'FixtureFileError',
    'Database',
    'transaction',
    'connect',
    'set_config_file',
    'get_fixture_set',
    'setup_logging',
    'errors_logged',
]
