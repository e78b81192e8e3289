# tests/conftest.py
"""
Shared test fixtures and configuration for pytest.
"""

import copy
import logging
import sqlite3
from pathlib import Path

import pytest

from dbfixtures.defaults import settings

TEST_DIR = Path(__file__).parent
FIXTURES_DIR = TEST_DIR / 'fixtures'

TEST_SCHEMA = """
CREATE TABLE some_table(
  id INT PRIMARY KEY NOT NULL,
  string_field CHAR(50) NOT NULL,
  boolean_field BOOL NOT NULL,
  created_at DATETIME,
  updated_at DATETIME
);

CREATE TABLE other_table(
  id INT PRIMARY KEY NOT NULL,
  int_field INT NOT NULL,
  boolean_field BOOL NOT NULL,
  created_at DATETIME,
  updated_at DATETIME
);

CREATE TABLE join_table(
  some_id INT NOT NULL,
  other_id INT NOT NULL,
  PRIMARY KEY(some_id, other_id)
);

CREATE TABLE string_key_table(
  id VARCHAR(50) PRIMARY KEY NOT NULL,
  created_at DATETIME,
  updated_at DATETIME
);
"""

TEST_DATA = """
---

- table: 'some_table'
  pk:
    id: 1
  fields:
    string_field: 'foobar'
    boolean_field: true
    created_at: 'ON_INSERT_NOW()'
    updated_at: 'ON_UPDATE_NOW()'

- table: 'other_table'
  pk:
    id: 2
  fields:
    int_field: 123
    boolean_field: false
    created_at: 'ON_INSERT_NOW()'
    updated_at: 'ON_UPDATE_NOW()'

- table: 'join_table'
  pk:
    some_id: 1
    other_id: 2

- table: 'string_key_table'
  pk:
    id: 'new_id'
  fields:
    created_at: 'ON_INSERT_NOW()'
    updated_at: 'ON_UPDATE_NOW()'
"""

TABLES = ('some_table', 'other_table', 'join_table', 'string_key_table')


@pytest.fixture(autouse=True)
def setup_test_config():
    """Point the global config at tests/test.yml and restore settings afterwards."""
    from dbfixtures import config

    saved = copy.deepcopy(settings)
    config.set_config_file(str(TEST_DIR / 'test.yml'))
    yield
    config._config_manager = None
    settings.clear()
    settings.update(saved)


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() changes to the root logger."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def db_path(tmp_path):
    """SQLite database file with the fixture schema."""
    path = tmp_path / 'fixtures_testdb.sqlite'
    conn = sqlite3.connect(str(path))
    conn.executescript(TEST_SCHEMA)
    conn.close()
    return path


@pytest.fixture
def db(db_path):
    """Connection to the test database."""
    conn = sqlite3.connect(str(db_path))
    yield conn
    conn.close()


@pytest.fixture
def count_rows(db):
    """Return a function counting the rows of a table."""
    def count(table):
        return db.execute(f'SELECT COUNT(*) FROM {table}').fetchone()[0]
    return count


@pytest.fixture
def fixture_file():
    return FIXTURES_DIR / 'test_fixtures1.yml'


@pytest.fixture
def fixture_files():
    return [FIXTURES_DIR / 'test_fixtures1.yml', FIXTURES_DIR / 'test_fixtures2.yml']
