# dbfixtures/logging_utils.py
"""
Logging setup for fixture loading scripts and the command line.

Creates log files named ``{script_name}_{timestamp}.log`` and keeps a count of
ERROR records so a seeding job can report whether anything went wrong.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_error_handler: Optional['ErrorCountHandler'] = None
_log_path: Optional[str] = None


class ErrorCountHandler(logging.Handler):
    """Handler that only counts ERROR and CRITICAL records."""

    def __init__(self):
        super().__init__(level=logging.ERROR)
        self.error_count = 0

    def emit(self, record):
        if record.levelno >= logging.ERROR:
            self.error_count += 1


def setup_logging(
    script_name: Optional[str] = None,
    log_dir: Optional[str] = None,
    level: Optional[str] = None,
    console: Optional[bool] = None,
    log_file: bool = True,
) -> Optional[str]:
    """
    Configure root logging for a fixture loading run.

    Args:
        script_name: Base name for the log file (defaults to the running script's name)
        log_dir: Directory for log files (defaults to the ``logging.directory`` setting)
        level: DEBUG, INFO, WARNING or ERROR (defaults to ``logging.level``)
        console: Also log to stderr (defaults to ``logging.console``)
        log_file: Write a log file; False logs to the console only

    Returns:
        Path of the log file, or None when log_file is False

    Example
    -------
    ::

        import dbfixtures

        dbfixtures.setup_logging('seed_test_db', level='DEBUG')
        dbfixtures.load_files(['fixtures/users.yml'], conn, 'sqlite')
        if dbfixtures.errors_logged():
            sys.exit(1)

    Note:
        Set ``logging.filename_format`` to ``''`` in dbfixtures.yml for a single
        log file per script instead of one per run.
    """
    from .config import get_setting

    if script_name is None:
        script_name = Path(sys.argv[0]).stem or 'dbfixtures'

    logging_config = get_setting('logging', {})
    log_dir = log_dir or logging_config.get('directory', './logs')
    level = (level or logging_config.get('level', 'INFO')).upper()
    console = console if console is not None else logging_config.get('console', True)
    log_format = logging_config.get('format', '%(asctime)s [%(levelname)s] %(name)s: %(message)s')
    timestamp_format = logging_config.get('timestamp_format', '%Y-%m-%d %H:%M:%S')
    filename_format = logging_config.get('filename_format', '%Y%m%d_%H%M%S')

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    root_logger.handlers.clear()
    formatter = logging.Formatter(log_format, datefmt=timestamp_format)

    global _error_handler, _log_path
    _error_handler = ErrorCountHandler()
    root_logger.addHandler(_error_handler)

    log_path = None
    if log_file:
        log_dir_path = Path(log_dir)
        log_dir_path.mkdir(parents=True, exist_ok=True)
        if filename_format:
            timestamp = datetime.now().strftime(filename_format)
            log_path = log_dir_path / f"{script_name}_{timestamp}.log"
        else:
            log_path = log_dir_path / f"{script_name}.log"

        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, level))
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    _log_path = str(log_path) if log_path else None
    if _log_path:
        logger.info(f"Logging initialized: {_log_path}")
    return _log_path


def errors_logged() -> Optional[str]:
    """
    Report whether ERROR or CRITICAL records were logged since setup_logging().

    Returns:
        The log file path (or '<console>' without a log file) when errors were
        logged, None otherwise.
    """
    if _error_handler is None:
        logger.warning("errors_logged() called but setup_logging() was not called")
        return None
    if _error_handler.error_count == 0:
        return None
    return _log_path or '<console>'
