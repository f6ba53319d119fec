"""
Settings for the delivery reports: an INI file layered over built-in
defaults, with database credentials taken from the environment (.env).
"""
import os
import logging
import configparser
from pathlib import Path

import pandas as pd
from dotenv import load_dotenv

load_dotenv()

SOURCE_TYPES = ('csv', 'database')
REPORT_SECTION_PREFIX = 'report:'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

DEFAULTS = {
    'DATABASE': {
        'type': 'postgresql',
        'url': os.getenv('DATABASE_URL', ''),
        'name': os.getenv('POSTGRES_DB', ''),
        'host': os.getenv('POSTGRES_HOST', ''),
        'port': os.getenv('POSTGRES_PORT', ''),
        'user': os.getenv('POSTGRES_USER', ''),
        'password': os.getenv('POSTGRES_PASSWORD', ''),
    },
    'LOGGING': {
        'level': 'INFO',
        'file': 'logs/reports.log',
    },
    'PATHS': {
        'input_dir': 'data/input',
        'output_dir': 'data/output',
    },
    'SOURCE': {
        'type': 'csv',
    },
    'REPORTS': {
        'as_of': '',
        'quality_check': 'true',
    },
}


class Config:
    """Report settings; every section has a default so a missing file still works."""

    def __init__(self, config_file='config.ini'):
        # passwords may contain '%'
        self.config = configparser.ConfigParser(interpolation=None)
        self.config.read_dict(DEFAULTS)

        self.config_file = Path(config_file)
        if self.config_file.exists():
            self.config.read(self.config_file)
            self._setup_logging()
        else:
            print(f"Warning: Config file {config_file} not found. Using defaults.")

    def _setup_logging(self):
        """Send log records to both the configured file and the console."""
        section = self.config['LOGGING']
        log_level = getattr(logging, section.get('level', 'INFO').upper())
        log_file = section.get('file', 'logs/reports.log')

        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        logging.basicConfig(
            level=log_level,
            format=LOG_FORMAT,
            handlers=[
                logging.FileHandler(log_file),
                logging.StreamHandler()
            ]
        )

    def get_database_config(self):
        """Connection settings from the DATABASE section."""
        return dict(self.config['DATABASE'])

    def get_input_path(self, filename=None):
        input_dir = self.config['PATHS'].get('input_dir')
        return os.path.join(input_dir, filename) if filename else input_dir

    def get_output_path(self, filename=None):
        """
        Export directory (created on first use), or a file inside it.
        """
        output_dir = self.config['PATHS'].get('output_dir')
        os.makedirs(output_dir, exist_ok=True)
        return os.path.join(output_dir, filename) if filename else output_dir

    def get_source_type(self):
        """
        Where table snapshots are read from: 'csv' or 'database'.
        """
        source_type = self.config['SOURCE'].get('type', 'csv').strip().lower()
        if source_type not in SOURCE_TYPES:
            raise ValueError(f"Unsupported source type: {source_type}")
        return source_type

    def get_as_of(self):
        """
        Evaluation instant for relative-date filters; today when not configured.
        """
        as_of = self.config['REPORTS'].get('as_of', '').strip()
        if as_of:
            return pd.Timestamp(as_of)
        return pd.Timestamp.today().normalize()

    def is_quality_check_enabled(self):
        return self.config['REPORTS'].getboolean('quality_check', True)

    def get_report_params(self, report_name):
        """
        Parameter values from an optional [report:<name>] section.

        Values stay strings; the report definition coerces them.
        """
        section = f"{REPORT_SECTION_PREFIX}{report_name}"
        if not self.config.has_section(section):
            return {}
        return dict(self.config[section])
