# dbfixtures/cli.py

import argparse
import importlib.util
import logging
import sys
from importlib.metadata import version, PackageNotFoundError

from . import config
from .database import DRIVERS, driver_errors, sqlite
from .errors import FixtureError
from .loader import load_files
from .logging_utils import setup_logging

logger = logging.getLogger('dbfixtures.cli')


def _installed_version(name: str) -> str:
    try:
        return version(name)
    except PackageNotFoundError:
        return '--'


def checkup(config_file=None):
    """ Check which database drivers are installed and whether the config is healthy."""
    print(f"{'DB Drivers':<20} {'Type':<10} {'Status':<8} {'Version'}")
    print("-" * 50)
    for name, info in sorted(DRIVERS.items(), key=lambda item: (item[1]['database_type'], item[1]['priority'])):
        status = "✓" if importlib.util.find_spec(name) else "✗"
        dist = 'psycopg2-binary' if name == 'psycopg2' else name
        print(f"{name:<20} {info['database_type']:<10} {status:<8} {_installed_version(dist)}")

    print("\nConfig Health")
    print("-" * 40)
    results = config.diagnose_config(config_file)
    for status, msg in results:
        print(f"{status} {msg}")
    return 1 if any(status == '✗' for status, _ in results) else 0


def _open_target(args):
    """Connection, dialect and paramstyle from --connection or --sqlite."""
    if args.sqlite:
        return sqlite(args.sqlite), args.dialect or 'sqlite', args.paramstyle
    if args.connection:
        dialect, paramstyle = config.connection_options(args.connection, args.config)
        db = config.connect(args.connection, config_file=args.config)
        return db, args.dialect or dialect, args.paramstyle or paramstyle
    raise FixtureError("Specify a target with --connection NAME or --sqlite PATH")


def _run_load(args, filenames):
    db, dialect, paramstyle = _open_target(args)
    try:
        result = load_files(filenames, db, dialect, paramstyle)
    finally:
        db.close()
    print(f"Loaded {len(filenames)} file(s): {result.inserted} inserted, {result.updated} updated, "
          f"{result.unchanged} unchanged, {result.sequences_fixed} sequences fixed")


def _add_target_args(parser):
    target = parser.add_mutually_exclusive_group()
    target.add_argument('--connection', '-c', help='Named connection from the config file')
    target.add_argument('--sqlite', metavar='PATH', help='SQLite database file')
    parser.add_argument('--dialect', '-d', help="SQL dialect ('sqlite' or 'postgres')")
    parser.add_argument('--paramstyle', help="Placeholder style override (defaults to the driver's paramstyle)")


def main(argv=None):
    parser = argparse.ArgumentParser(prog='dbfixtures', description='Load YAML fixtures into a database')
    parser.add_argument('--config', help='Config file path')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log generated SQL')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # load
    load_parser = subparsers.add_parser('load', help='Load fixture files in order')
    load_parser.add_argument('files', nargs='+', help='Fixture files')
    _add_target_args(load_parser)

    # load-set
    set_parser = subparsers.add_parser('load-set', help='Load a named fixture set from the config')
    set_parser.add_argument('name', help='Fixture set name')
    _add_target_args(set_parser)

    # checkup
    subparsers.add_parser('checkup', help='Check for drivers and configuration issues')

    # generate-key
    subparsers.add_parser('generate-key', help='Generate encryption key')

    # store-key
    key_parser = subparsers.add_parser('store-key',
                                       help='Store encryption key in system keyring (generate if not provided)')
    key_parser.add_argument('key', nargs='?', default=None,
                            help='Encryption key to store. If omitted, a new key is generated and stored.')
    key_parser.add_argument('--force', action='store_true',
                            help='Overwrite existing encryption key in system keyring')

    # encrypt-password
    pwd_parser = subparsers.add_parser('encrypt-password', help='Encrypt a password')
    pwd_parser.add_argument('password', nargs='?', help='Password to encrypt')

    args = parser.parse_args(argv)

    if args.command == 'checkup':
        return checkup(args.config)
    elif args.command == 'generate-key':
        print(config.generate_encryption_key())
        return 0
    elif args.command in ('store-key', 'encrypt-password'):
        try:
            if args.command == 'store-key':
                print(config.store_key(args.key, force=args.force))
            else:
                password = args.password
                if password is None:
                    import getpass
                    password = getpass.getpass("Enter password to encrypt: ")
                print(config.encrypt_password(password))
        except ValueError as e:
            print(e, file=sys.stderr)
            return 1
        return 0

    try:
        if args.config:
            config.set_config_file(args.config)
        setup_logging('dbfixtures', level='DEBUG' if args.verbose else None, log_file=False)
        if args.command == 'load':
            _run_load(args, args.files)
        elif args.command == 'load-set':
            _run_load(args, config.get_fixture_set(args.name, args.config))
    except (FixtureError, ValueError, FileNotFoundError, ImportError) + driver_errors() as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
