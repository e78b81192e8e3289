# dbfixtures/database.py
"""
Database connection helpers.

Fixtures are loaded through any DB-API 2.0 connection. This module adds a thin
Database wrapper that remembers which driver and dialect a connection belongs
to, factory functions for the supported databases, and a transaction context
manager shared by the loader.
"""

import importlib
import importlib.util
import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from .utils import ParamStyle

logger = logging.getLogger(__name__)


DRIVERS = {
    # PostgreSQL Drivers
    'psycopg2': {
        'database_type': 'postgres',
        'priority': 11,
        'param_map': {'database': 'dbname'},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'port', 'password', 'sslmode', 'connect_timeout', 'application_name',
                            'options', 'sslcert', 'sslkey', 'sslrootcert'},
        'connection_method': 'connection_string',
        'default_port': 5432,
    },
    'psycopg': {  # psycopg3
        'database_type': 'postgres',
        'priority': 12,
        'param_map': {'database': 'dbname'},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'port', 'password', 'sslmode', 'connect_timeout', 'application_name',
                            'options', 'sslcert', 'sslkey', 'sslrootcert'},
        'connection_method': 'connection_string',
        'default_port': 5432,
    },

    # SQLite Driver
    'sqlite3': {
        'database_type': 'sqlite',
        'priority': 1,
        'param_map': {},
        'required_params': [{'database'}],
        'optional_params': {'timeout', 'detect_types', 'isolation_level', 'check_same_thread',
                            'cached_statements', 'uri'},
        'connection_method': 'kwargs',
    }
}


def get_drivers_for_database(db_type: str) -> List[str]:
    """
    Importable driver names for a database type, preferred driver first.

    Args:
        db_type: 'sqlite' or 'postgres'
    """
    available = []
    for driver_name, info in DRIVERS.items():
        if info['database_type'] != db_type:
            continue
        if importlib.util.find_spec(driver_name) is None:
            continue
        available.append(driver_name)
    available.sort(key=lambda d: DRIVERS[d]['priority'])
    return available


def get_supported_db_types() -> set:
    """Get all supported database types."""
    return {info['database_type'] for info in DRIVERS.values()}


def validate_connection_params(driver_name: str, **params) -> dict:
    """
    Validate connection parameters against driver requirements.

    Returns:
        Dict of driver keyword arguments with unknown parameters removed

    Raises:
        ValueError: If the driver is unknown or required parameters are missing
    """
    if driver_name not in DRIVERS:
        raise ValueError(f"Unknown driver: {driver_name}")

    driver_info = DRIVERS[driver_name]
    params = {key: val for key, val in params.items() if val is not None}
    if 'port' not in params and driver_info.get('default_port'):
        params['port'] = driver_info['default_port']

    if not any(required.issubset(params) for required in driver_info['required_params']):
        raise ValueError(f"Missing required parameters. Need one of: {driver_info['required_params']}")

    valid_params = set(driver_info.get('optional_params', set()))
    for required in driver_info['required_params']:
        valid_params.update(required)

    param_map = driver_info.get('param_map', {})
    return {param_map.get(key, key): val for key, val in params.items() if key in valid_params}


def get_connection_string(**kwargs) -> str:
    """ Get libpq connection string from keyword arguments."""
    return " ".join([f"{key}={value}" for key, value in kwargs.items()])


def get_paramstyle(connection) -> Optional[str]:
    """
    Paramstyle of the driver behind ``connection``, if it can be determined.

    Works for Database wrappers and for raw DB-API connections by looking up
    the driver module the connection class was defined in.
    """
    interface = getattr(connection, 'interface', None)
    if interface is None:
        module_name = type(connection).__module__.split('.')[0]
        interface = sys.modules.get(module_name)
    return getattr(interface, 'paramstyle', None)


def driver_errors() -> tuple:
    """DB-API ``Error`` classes of the drivers imported so far."""
    return tuple(sys.modules[name].Error for name in DRIVERS
                 if name in sys.modules and hasattr(sys.modules[name], 'Error'))


@contextmanager
def transaction(connection):
    """
    Run a block inside one transaction on a DB-API connection.

    Commits when the block finishes and rolls back on any exception, which is
    then re-raised. If the commit itself fails a rollback is attempted and the
    commit error propagates.

    Example:
        with transaction(conn):
            cursor = conn.cursor()
            cursor.execute("INSERT ...")
            cursor.execute("UPDATE ...")
    """
    try:
        yield connection
    except BaseException:
        connection.rollback()
        raise
    try:
        connection.commit()
    except Exception:
        try:
            connection.rollback()
        except Exception as e:
            logger.debug(f"Rollback after failed commit also failed: {e}")
        raise


class Database:
    """
    Database connection wrapper that provides uniform interface
    across different database adapters.

    Attribute access not handled here is delegated to the driver connection,
    so a Database can be passed anywhere a DB-API connection is expected.
    """

    # Attributes stored locally, others delegated to _connection
    _local_attrs = ['_connection', 'server_type', 'database_name', 'interface', 'paramstyle']

    def __init__(self, connection, interface, database_name: Optional[str] = None):
        """
        Initialize Database wrapper.

        Args:
            connection: Underlying database connection object
            interface: Database adapter module (sqlite3, psycopg2, ...)
            database_name: Name of the database
        """
        self._connection = connection
        self.interface = interface
        self.database_name = database_name
        self.paramstyle = getattr(interface, 'paramstyle', ParamStyle.DEFAULT)

        if interface.__name__ in DRIVERS:
            self.server_type = DRIVERS[interface.__name__]['database_type']
        else:
            self.server_type = 'unknown'

    def __getattr__(self, key: str) -> Any:
        """Delegate attribute access to underlying connection."""
        return getattr(self._connection, key)

    def __setattr__(self, key: str, value: Any) -> None:
        """Set attributes locally or delegate to connection."""
        if key in self._local_attrs:
            self.__dict__[key] = value
        else:
            setattr(self._connection, key, value)

    def __str__(self) -> str:
        if self.database_name:
            return f'Database({self.database_name}:{self.server_type})'
        return f'Database({self.server_type})'

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def cursor(self, *args, **kwargs):
        return self._connection.cursor(*args, **kwargs)

    def commit(self) -> None:
        self._connection.commit()

    def rollback(self) -> None:
        self._connection.rollback()

    def close(self) -> None:
        self._connection.close()

    def transaction(self):
        """
        Context manager for database transactions.

        Example:
            with db.transaction():
                cursor = db.cursor()
                cursor.execute("INSERT ...")
                # Auto-commit on success, rollback on exception
        """
        return transaction(self)

    @classmethod
    def create(cls, db_type: str, driver: Optional[str] = None, **kwargs) -> 'Database':
        """
        Factory method to create database connections.

        Args:
            db_type: Database type ('sqlite' or 'postgres')
            driver: Specific driver module to use, otherwise the preferred installed one
            **kwargs: Connection parameters

        Returns:
            Database instance
        """
        if db_type not in get_supported_db_types():
            raise ValueError(f"Unsupported database type '{db_type}'. "
                             f"Must be one of: {sorted(get_supported_db_types())}")

        candidates = get_drivers_for_database(db_type)
        if driver:
            if driver not in DRIVERS:
                raise ValueError(f"Unknown driver: {driver}")
            if DRIVERS[driver]['database_type'] != db_type:
                raise ValueError(f"Driver '{driver}' is not compatible with database type '{db_type}'")
            candidates = [driver]

        db_driver = None
        driver_name = None
        for driver_name in candidates:
            try:
                db_driver = importlib.import_module(driver_name)
                break
            except ImportError:
                logger.warning(f"Driver '{driver_name}' not available")

        if db_driver is None:
            raise ImportError(f"No database driver found for database type '{db_type}'")

        params = validate_connection_params(driver_name, **kwargs)
        if DRIVERS[driver_name]['connection_method'] == 'connection_string':
            connection = db_driver.connect(get_connection_string(**params))
        else:
            connection = db_driver.connect(**params)

        database_name = params.get('database') or params.get('dbname')
        logger.debug(f"Connected to {db_type} database {database_name} using {driver_name}")
        return cls(connection, db_driver, database_name)


def sqlite(database: str, **kwargs) -> Database:
    """Create SQLite connection."""
    import sqlite3

    connection = sqlite3.connect(database, **kwargs)
    return Database(connection, sqlite3, os.path.basename(database))


def connection_summary(params: Dict[str, Any]) -> Dict[str, Any]:
    """Connection parameters safe to log."""
    return {key: val for key, val in params.items() if 'password' not in key}
