# tests/test_config.py
import pytest
from pathlib import Path
from unittest.mock import Mock

from cryptography.fernet import Fernet

from dbfixtures import config
from dbfixtures.config import (
    ConfigManager, ENCRYPTION_KEY_VAR, connect, connection_options, diagnose_config,
    encrypt_password, generate_encryption_key, get_fixture_set, get_setting, store_key
)
from dbfixtures.database import Database
from dbfixtures.defaults import settings


@pytest.fixture
def test_config_file():
    """Path to test config file."""
    return Path(__file__).parent / 'test.yml'


@pytest.fixture
def config_manager(test_config_file):
    """Create ConfigManager instance with test config."""
    return ConfigManager(str(test_config_file))


@pytest.fixture
def write_config(tmp_path):
    """Write YAML text to a config file in tmp_path and return its path."""
    def write(text, name='dbfixtures.yml'):
        path = tmp_path / name
        path.write_text(text)
        return str(path)
    return write


class TestConfigManager:
    """Test ConfigManager class functionality."""

    def test_init_with_valid_config(self, config_manager):
        """Test ConfigManager initializes with valid config file."""
        assert 'connections' in config_manager.config
        assert 'fixtures' in config_manager.config

    def test_init_with_missing_file(self):
        """Test ConfigManager raises error for missing file."""
        with pytest.raises(FileNotFoundError):
            ConfigManager('/nonexistent/path/dbfixtures.yml')

    def test_list_connections(self, config_manager):
        """Test listing available connections."""
        assert config_manager.list_connections() == ['local_sqlite', 'pg_test', 'pg_plain']

    def test_plain_password(self, config_manager):
        """Test a literal password is returned as-is."""
        conn = config_manager.get_connection_config('pg_plain')
        assert conn['password'] == 'not_so_secret'
        assert conn['driver'] == 'psycopg2'

    def test_env_password(self, config_manager, monkeypatch):
        """Test ${VAR} passwords are read from the environment."""
        monkeypatch.setenv('DBFIXTURES_TEST_PASSWORD', 'from_env')
        conn = config_manager.get_connection_config('pg_test')
        assert conn['password'] == 'from_env'
        assert conn['paramstyle'] == 'format'

    def test_env_password_missing(self, config_manager, monkeypatch):
        """Test an unset environment variable is an error."""
        monkeypatch.delenv('DBFIXTURES_TEST_PASSWORD', raising=False)
        with pytest.raises(ValueError, match='DBFIXTURES_TEST_PASSWORD not set'):
            config_manager.get_connection_config('pg_test')

    def test_unknown_connection(self, config_manager):
        """Test getting invalid connection raises error."""
        with pytest.raises(ValueError, match="Connection 'nonexistent' not found"):
            config_manager.get_connection_config('nonexistent')

    def test_fixture_set_relative_to_config(self, config_manager, test_config_file):
        """Test fixture paths resolve against the config file's directory."""
        files = config_manager.get_fixture_set('base')
        assert files == [test_config_file.parent / 'fixtures' / 'test_fixtures1.yml',
                         test_config_file.parent / 'fixtures' / 'test_fixtures2.yml']
        assert all(f.exists() for f in files)

    def test_unknown_fixture_set(self, config_manager):
        """Test an unknown fixture set lists the available ones."""
        with pytest.raises(ValueError, match=r"Available fixture sets: \['base', 'broken'\]"):
            config_manager.get_fixture_set('cabbages')

    def test_get_setting_dot_notation(self, config_manager):
        """Test nested settings can be read with dot notation."""
        assert config_manager.get_setting('logging.level') == 'INFO'
        assert config_manager.get_setting('logging.nope', 'fallback') == 'fallback'

    def test_settings_applied(self, write_config):
        """Test config settings override the built-in defaults."""
        ConfigManager(write_config("""
settings:
  recognize_marker_strings: false
  logging:
    level: DEBUG
"""))
        assert settings['recognize_marker_strings'] is False
        assert settings['logging']['level'] == 'DEBUG'
        # untouched nested keys keep their defaults
        assert settings['logging']['filename_format'] == '%Y%m%d_%H%M%S'


class TestInvalidConfig:
    """Test validation of malformed config files."""

    @pytest.mark.parametrize('text, message', [
        ('- just\n- a list\n', 'Invalid config file'),
        ('connections: [a, b]\n', "'connections' must be a dictionary"),
        ('connections:\n  db:\n    host: localhost\n', "'type' is required"),
        ('connections:\n  db:\n    type: oracle\n', 'type must be one of'),
        ('fixtures:\n  base: fixtures/users.yml\n', "Invalid fixture set 'base'"),
        ('connections: {db: [unclosed\n', 'Failed to load config file'),
    ])
    def test_invalid(self, write_config, text, message):
        """Test each malformed config raises ValueError."""
        with pytest.raises(ValueError, match=message):
            ConfigManager(write_config(text))


class TestEncryption:
    """Test encrypted passwords."""

    def test_encrypted_password(self, write_config, monkeypatch):
        """Test encrypted_password is decrypted with the environment key."""
        key = generate_encryption_key()
        token = encrypt_password('agni_kai', key)
        monkeypatch.setenv(ENCRYPTION_KEY_VAR, key)

        mgr = ConfigManager(write_config(f"""
connections:
  secure:
    type: postgres
    host: localhost
    database: app
    user: app
    encrypted_password: {token}
"""))
        conn = mgr.get_connection_config('secure')
        assert conn['password'] == 'agni_kai'
        assert 'encrypted_password' not in conn

    def test_wrong_key(self, write_config, monkeypatch):
        """Test decrypting with another key fails cleanly."""
        token = encrypt_password('agni_kai', generate_encryption_key())
        monkeypatch.setenv(ENCRYPTION_KEY_VAR, generate_encryption_key())
        mgr = ConfigManager(write_config(f"connections:\n  secure:\n    type: postgres\n"
                                         f"    encrypted_password: {token}\n"))
        with pytest.raises(ValueError, match='Failed to decrypt password'):
            mgr.get_connection_config('secure')

    def test_missing_key(self, monkeypatch):
        """Test encrypting without any key is an error."""
        monkeypatch.delenv(ENCRYPTION_KEY_VAR, raising=False)
        monkeypatch.setattr(config, 'HAS_KEYRING', False)
        with pytest.raises(ValueError, match='Encryption key not found'):
            encrypt_password('agni_kai')

    def test_key_from_keyring(self, monkeypatch):
        """Test the keyring is used when the environment has no key."""
        key = generate_encryption_key()
        fake_keyring = Mock()
        fake_keyring.get_password.return_value = key
        monkeypatch.delenv(ENCRYPTION_KEY_VAR, raising=False)
        monkeypatch.setattr(config, 'HAS_KEYRING', True)
        monkeypatch.setattr(config, 'keyring', fake_keyring, raising=False)

        token = encrypt_password('agni_kai')
        assert Fernet(key.encode()).decrypt(token.encode()) == b'agni_kai'
        fake_keyring.get_password.assert_called_with('dbfixtures', 'encryption_key')

    def test_store_key(self, monkeypatch):
        """Test store_key generates a key and refuses to overwrite without force."""
        fake_keyring = Mock()
        fake_keyring.get_password.return_value = None
        monkeypatch.setattr(config, 'HAS_KEYRING', True)
        monkeypatch.setattr(config, 'keyring', fake_keyring, raising=False)

        assert store_key() == 'Stored encryption key in system keyring'
        stored = fake_keyring.set_password.call_args.args[2]
        assert len(stored) == 44

        fake_keyring.get_password.return_value = stored
        assert 'Use --force' in store_key()
        assert fake_keyring.set_password.call_count == 1
        assert 'overwritten' in store_key(force=True)

    def test_store_invalid_key(self, monkeypatch):
        """Test an invalid key is rejected."""
        fake_keyring = Mock()
        fake_keyring.get_password.return_value = None
        monkeypatch.setattr(config, 'HAS_KEYRING', True)
        monkeypatch.setattr(config, 'keyring', fake_keyring, raising=False)
        with pytest.raises(ValueError, match='Invalid encryption key'):
            store_key('not-a-key')

    def test_store_key_without_keyring(self, monkeypatch):
        """Test store_key needs the keyring package."""
        monkeypatch.setattr(config, 'HAS_KEYRING', False)
        with pytest.raises(ValueError, match='Keyring not available'):
            store_key()

    def test_key_from_environment(self, monkeypatch):
        """Test encrypt_password falls back to the environment key."""
        monkeypatch.setenv(ENCRYPTION_KEY_VAR, generate_encryption_key())
        assert encrypt_password('agni_kai') != 'agni_kai'


class TestModuleFunctions:
    """Test the module level helpers that use the global config."""

    def test_connect_sqlite(self):
        """Test connecting to a named SQLite connection."""
        db = connect('local_sqlite')
        try:
            assert isinstance(db, Database)
            assert db.server_type == 'sqlite'
            assert db.paramstyle == 'qmark'
            assert db.cursor().execute('SELECT 1').fetchone() == (1,)
        finally:
            db.close()

    def test_connection_options(self):
        """Test dialect and paramstyle come from the connection entry."""
        assert connection_options('local_sqlite') == ('sqlite', None)
        assert connection_options('pg_test') == ('postgres', 'format')

    def test_connection_options_unknown(self):
        """Test an unknown connection name is an error."""
        with pytest.raises(ValueError, match="Connection 'nope' not found"):
            connection_options('nope')

    def test_get_fixture_set(self):
        """Test fixture sets are read from the global config."""
        assert [f.name for f in get_fixture_set('base')] == ['test_fixtures1.yml', 'test_fixtures2.yml']

    def test_get_setting_falls_back_to_defaults(self):
        """Test settings missing from the config come from defaults."""
        assert get_setting('logging.level') == 'INFO'
        assert get_setting('logging.directory') == './logs'
        assert get_setting('no.such.setting', 'fallback') == 'fallback'

    def test_get_setting_without_config(self, tmp_path, monkeypatch):
        """Test get_setting works when no config file exists."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv('HOME', str(tmp_path))
        config._config_manager = None
        assert get_setting('default_dialect') == 'sqlite'

    def test_diagnose_config(self, test_config_file):
        """Test the health check reports missing fixture files and plain passwords."""
        results = dict((msg, status) for status, msg in diagnose_config(str(test_config_file)))
        assert results[f"Config loaded: {test_config_file}"] == '✓'
        assert results['3 connections'] == '✓'
        assert any(status == '✗' and "Fixture set 'broken'" in msg for msg, status in results.items())
        assert results['1 unencrypted passwords!'] == '✗'

    def test_diagnose_missing_config(self):
        """Test the health check reports a missing config file."""
        results = diagnose_config('/nonexistent/dbfixtures.yml')
        assert results[0][0] == '✗'
        assert len(results) == 1
