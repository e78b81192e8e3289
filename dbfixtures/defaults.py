# dbfixtures/defaults.py
"""Default settings - no imports to avoid circular dependencies."""

settings = {
    'default_dialect': 'sqlite',
    'recognize_marker_strings': True,  # treat 'ON_INSERT_NOW()' / 'ON_UPDATE_NOW()' text as markers
    'timestamp_format': '%Y-%m-%d %H:%M:%S.%f',  # how sqlite receives marker timestamps
    'utc_timestamps': False,
    'logging': {
        'directory': './logs',
        'level': 'INFO',
        'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        'timestamp_format': '%Y-%m-%d %H:%M:%S',
        'filename_format': '%Y%m%d_%H%M%S',  # Set to '' for single log file (no timestamp)
        'console': True,
    }
}
