# dbfixtures/config.py
"""
Configuration management for fixture loading.
Supports YAML configuration files with named connections, named fixture sets,
optional password encryption and global settings.
"""

import os
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List, Tuple

import yaml
from cryptography.fernet import Fernet

try:
    import keyring
    HAS_KEYRING = True
except ImportError:
    HAS_KEYRING = False

from .defaults import settings
from .database import Database, connection_summary, get_supported_db_types

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_VAR = 'DBFIXTURES_ENCRYPTION_KEY'
KEYRING_SERVICE = 'dbfixtures'
KEYRING_USERNAME = 'encryption_key'
CONNECTION_OPTIONS = ('type', 'driver', 'dialect', 'paramstyle')


class ConfigManager:
    """
    Manage dbfixtures configuration from YAML files.

    Configuration File Structure
    ----------------------------
    ::

        # dbfixtures.yml
        settings:
          default_dialect: postgres
          recognize_marker_strings: false
          logging:
            level: DEBUG

        connections:
          test_db:
            type: postgres
            host: localhost
            database: app_test
            user: app
            password: ${APP_TEST_PASSWORD}
            paramstyle: format         # optional, defaults to the driver's style
          local:
            type: sqlite
            database: ./local.db

        fixtures:
          base:
            - fixtures/users.yml
            - fixtures/roles.yml

    Configuration Locations
    -----------------------
    1. File specified in config_file parameter
    2. ``./dbfixtures.yml`` / ``./dbfixtures.yaml``
    3. ``~/.config/dbfixtures.yml`` / ``~/.config/dbfixtures.yaml``

    Notes
    -----
    * Connections require a 'type' field (sqlite or postgres)
    * ``encrypted_password`` values are decrypted with the key in DBFIXTURES_ENCRYPTION_KEY,
      or the key stored in the system keyring (``dbfixtures store-key``)
    * Passwords written as ${VAR_NAME} are read from the environment
    * Relative fixture paths are resolved against the config file's directory
    """

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize config manager and load configuration.

        Raises
        ------
        FileNotFoundError
            If no config file found in any search location
        ValueError
            If config file is invalid or malformed
        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        self._fernet = None

        self._apply_settings()

    def _find_config_file(self, config_file: Optional[str]) -> Path:
        """Find the configuration file."""
        if config_file:
            path = Path(config_file)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_file}")
            return path

        candidates = [
            Path("dbfixtures.yml"),
            Path("dbfixtures.yaml"),
            Path.home() / ".config" / "dbfixtures.yml",
            Path.home() / ".config" / "dbfixtures.yaml"
        ]
        for candidate in candidates:
            if candidate.exists():
                return candidate

        raise FileNotFoundError(
            "No config file found. Looked in: " +
            ", ".join(str(c) for c in candidates)
        )

    def _load_config(self) -> Dict[str, Any]:
        """Load and validate configuration file."""
        try:
            with open(self.config_file, 'r') as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Failed to load config file {self.config_file}: {e}") from e

        if not isinstance(config, dict):
            raise ValueError(f"Invalid config file {self.config_file}.")

        for section in ('settings', 'connections', 'fixtures'):
            if section in config and not isinstance(config[section], dict):
                raise ValueError(f"Invalid config file {self.config_file}: '{section}' must be a dictionary")

        supported = get_supported_db_types()
        for name, conn in config.get('connections', {}).items():
            if not isinstance(conn, dict) or 'type' not in conn:
                raise ValueError(f"Invalid connection '{name}' in {self.config_file}: 'type' is required")
            if conn['type'] not in supported:
                raise ValueError(f"Invalid connection '{name}' in {self.config_file}: "
                                 f"type must be one of {sorted(supported)}")

        for name, files in config.get('fixtures', {}).items():
            if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
                raise ValueError(f"Invalid fixture set '{name}' in {self.config_file}: must be a list of paths")

        logger.info(f"Loaded config from {self.config_file}")
        return config

    def _apply_settings(self) -> None:
        """Apply global settings from config."""
        for key, value in self.config.get('settings', {}).items():
            if isinstance(value, dict) and isinstance(settings.get(key), dict):
                settings[key].update(value)
            else:
                settings[key] = value

    def get_setting(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value from the config.

        Args:
            key: Setting key (supports dot notation like 'logging.level')
            default: Default value if key not found

        Example:
            level = config.get_setting('logging.level', 'INFO')
        """
        value = self.config.get('settings', {})
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def _get_fernet(self) -> Fernet:
        """Get or create Fernet instance for decryption."""
        if self._fernet is None:
            self._fernet = Fernet(_get_encryption_key().encode())
        return self._fernet

    def decrypt_password(self, encrypted_password: str) -> str:
        """Decrypt an encrypted password."""
        try:
            return self._get_fernet().decrypt(encrypted_password.encode()).decode()
        except ValueError:
            raise
        except Exception as e:
            raise ValueError(f"Failed to decrypt password: {e}") from e

    def get_connection_config(self, name: str) -> Dict[str, Any]:
        """Get configuration for a named connection, with the password resolved."""
        connections = self.config.get('connections', {})

        if name not in connections:
            available = list(connections.keys())
            raise ValueError(
                f"Connection '{name}' not found in config. "
                f"Available connections: {available}"
            )

        config = connections[name].copy()

        if 'encrypted_password' in config:
            config['password'] = self.decrypt_password(config.pop('encrypted_password'))

        password = config.get('password')
        if isinstance(password, str) and password.startswith('${') and password.endswith('}'):
            env_var = password[2:-1]
            config['password'] = os.environ.get(env_var)
            if config['password'] is None:
                raise ValueError(f"Environment variable {env_var} not set")

        return config

    def list_connections(self) -> list:
        """List all available connection names."""
        return list(self.config.get('connections', {}).keys())

    def get_fixture_set(self, name: str) -> List[Path]:
        """Files of a named fixture set, relative paths resolved against the config file."""
        fixture_sets = self.config.get('fixtures', {})
        if name not in fixture_sets:
            raise ValueError(
                f"Fixture set '{name}' not found in config. "
                f"Available fixture sets: {list(fixture_sets.keys())}"
            )
        base = self.config_file.parent
        return [path if path.is_absolute() else base / path
                for path in (Path(f) for f in fixture_sets[name])]

    def list_fixture_sets(self) -> list:
        return list(self.config.get('fixtures', {}).keys())


# Global config manager instance
_config_manager: Optional[ConfigManager] = None


def _get_manager(config_file: Optional[str] = None) -> ConfigManager:
    global _config_manager
    if config_file:
        return ConfigManager(config_file)
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def set_config_file(config_file: str) -> None:
    """Set the configuration file to use globally."""
    global _config_manager
    _config_manager = ConfigManager(config_file)


def connect(name: str, password: Optional[str] = None, config_file: Optional[str] = None) -> Database:
    """
    Connect to a named database from configuration.

    The connection's ``dialect`` and ``paramstyle`` entries are not passed to the
    driver; use connection_options() to read them.

    Example:
        db = connect('test_db')
        load_file('fixtures/users.yml', db, 'postgres')
    """
    config = _get_manager(config_file).get_connection_config(name)
    if password:
        config['password'] = password
    logger.debug(f"Connecting to database {name} with config: {connection_summary(config)}")

    db_type = config.pop('type')
    driver = config.pop('driver', None)
    for option in CONNECTION_OPTIONS:
        config.pop(option, None)

    return Database.create(db_type, driver=driver, **config)


def connection_options(name: str, config_file: Optional[str] = None) -> Tuple[str, Optional[str]]:
    """
    Dialect and paramstyle to load fixtures through a named connection.

    Returns:
        Tuple of (dialect, paramstyle); the dialect defaults to the connection
        type and paramstyle is None unless configured.
    """
    conn = _get_manager(config_file).config['connections'].get(name)
    if conn is None:
        raise ValueError(f"Connection '{name}' not found in config.")
    return conn.get('dialect', conn['type']), conn.get('paramstyle')


def get_fixture_set(name: str, config_file: Optional[str] = None) -> List[Path]:
    """Files of a named fixture set from configuration."""
    return _get_manager(config_file).get_fixture_set(name)


def get_setting(key: str, default: Any = None, config_file: Optional[str] = None) -> Any:
    """
    Get a setting value from configuration, falling back to built-in defaults.

    Example:
        level = get_setting('logging.level', 'INFO')
    """
    try:
        manager = _get_manager(config_file)
    except FileNotFoundError:
        manager = None

    if manager is not None:
        value = manager.get_setting(key)
        if value is not None:
            return value

    value = settings
    for k in key.split('.'):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default
    return value


def generate_encryption_key() -> str:
    """Generate a Fernet key to store in DBFIXTURES_ENCRYPTION_KEY."""
    return Fernet.generate_key().decode()


def encrypt_password(password: str, encryption_key: Optional[str] = None) -> str:
    """
    Encrypt a password for the ``encrypted_password`` connection entry.

    Args:
        password: Password to encrypt
        encryption_key: Key to use; defaults to DBFIXTURES_ENCRYPTION_KEY
    """
    key = encryption_key or _get_encryption_key()
    return Fernet(key.encode()).encrypt(password.encode()).decode()


def _get_encryption_key() -> str:
    """Encryption key from DBFIXTURES_ENCRYPTION_KEY, then the system keyring."""
    # environment variable takes precedence
    key = os.environ.get(ENCRYPTION_KEY_VAR)
    if key:
        logger.debug(f"Using {ENCRYPTION_KEY_VAR} from environment")
        return key

    if HAS_KEYRING:
        try:
            key = keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
        except Exception as e:
            logger.warning(f"Keyring access failed: {e}")
            key = None
        if key:
            logger.debug("Using encryption key from keyring")
            return key

    raise ValueError(
        f"Encryption key not found. Set {ENCRYPTION_KEY_VAR}"
        + (" or run `dbfixtures store-key`." if HAS_KEYRING else " (generate one with `dbfixtures generate-key`).")
    )


def _valid_fernet(key: str) -> bool:
    try:
        Fernet(key.encode())
        return True
    except ValueError:
        return False


def store_key(key: Optional[str] = None, force: bool = False) -> str:
    """
    Store an encryption key in the system keyring, generating one if not given.

    Returns:
        Message describing what was done

    Raises:
        ValueError: If keyring is not installed, the key is invalid or storing fails
    """
    if not HAS_KEYRING:
        raise ValueError("Keyring not available. Install keyring package to store key in system keyring.")

    try:
        current_key = keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except Exception as e:
        logger.debug(f"Could not read current keyring entry: {e}")
        current_key = None

    if current_key and not force:
        msg = "Encryption key already stored in system keyring. Use --force to overwrite."
        logger.warning(msg)
        return msg

    if key is None:
        key = generate_encryption_key()
    elif not _valid_fernet(key):
        raise ValueError("Invalid encryption key. Must be 32 url-safe base64-encoded bytes.")

    try:
        keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, key)
    except Exception as e:
        raise ValueError(f"Failed to store encryption key in system keyring: {e}") from e

    msg = "Stored encryption key in system keyring"
    if current_key:
        msg += " (previous key overwritten)"
    logger.info(msg)
    return msg


def diagnose_config(config_file: Optional[str] = None) -> List[Tuple[str, str]]:
    """Config health check: (status, message) pairs."""
    results = []
    try:
        mgr = ConfigManager(config_file)
        results.append(('✓', f"Config loaded: {mgr.config_file}"))
    except (FileNotFoundError, ValueError) as e:
        results.append(('✗', f"Config failed: {e}"))
        return results

    results.append(('✓', f"{len(mgr.list_connections())} connections"))
    results.append(('✓', f"{len(mgr.list_fixture_sets())} fixture sets"))
    results.append(('✓', "keyring ready") if HAS_KEYRING else ('?', "keyring optional"))

    for name in mgr.list_fixture_sets():
        missing = [str(p) for p in mgr.get_fixture_set(name) if not p.exists()]
        if missing:
            results.append(('✗', f"Fixture set '{name}' missing files: {', '.join(missing)}"))

    connections = mgr.config.get('connections', {}).values()
    if any('encrypted_password' in c for c in connections):
        try:
            key = _get_encryption_key()
        except ValueError:
            key = None
        if key is None:
            results.append(('✗', "Encrypted passwords but no encryption key"))
        else:
            results.append(('✓', "Encryption key valid") if _valid_fernet(key) else ('✗', "Encryption key invalid"))

    plain = sum(1 for c in connections
                if 'password' in c and not str(c['password']).startswith('${'))
    results.append(('✗', f"{plain} unencrypted passwords!") if plain else ('✓', "No unencrypted passwords"))
    return results
