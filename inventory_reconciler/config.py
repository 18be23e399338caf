import os
import configparser
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional


DEFAULTS = {
    'DATABASE': {
        'type': 'supabase',
    },
    'LOGGING': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'directory': 'logs',
        'max_size_mb': '10',
        'backup_count': '5',
        'console_output': 'True'
    },
    'INVENTORY': {
        'interval_minutes': '10',
    },
    'ALERTS': {
        'page_size': '500',
        'max_pages': '40',
    },
    'CATALOG': {
        'page_size': '1000',
        'max_pages': '100',
    },
    'RECON': {
        'lookback_hours': '24',
        'page_size': '500',
        'max_pages': '20',
    },
    'BACKFILL': {
        'interval_minutes': '10',
        'lookback_days': '14',
        'page_size': '500',
        'max_pages': '40',
        'batched': 'True',
    },
    'FIX_ORDERS': {
        'interval_minutes': '10',
        'lookback_days': '60',
        'page_size': '500',
        'max_pages': '40',
    },
}


@dataclass(frozen=True)
class JobSettings:
    """Operator-tunable knobs for one paginated job."""
    interval_minutes: int
    page_size: int
    max_pages: int
    lookback: timedelta
    batched: bool = True


class Config:
    """Configuration manager for the Inventory Reconciler.

    Values are looked up in the environment first (``<SECTION>_<KEY>``, upper-cased),
    then in the INI file, then in the built-in defaults.
    """

    _instance = None

    def __new__(cls, *args, **kwargs):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the configuration if not already initialized."""
        if self._initialized:
            return

        self._config_path = Path(
            config_path or os.getenv('RECONCILER_CONFIG', str(Path('config') / 'settings.ini'))
        )
        self._config = configparser.ConfigParser(interpolation=None)
        self._config.read_dict(DEFAULTS)

        if self._config_path.exists():
            self._config.read(self._config_path)

        self._initialized = True

    @staticmethod
    def _env_name(section, key):
        return f"{section}_{key}".upper()

    def get(self, section, key, default=None):
        """Get configuration value."""
        env_value = os.getenv(self._env_name(section, key))
        if env_value not in (None, ''):
            return env_value.split('#')[0].strip()
        try:
            return self._config.get(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return default

    def get_int(self, section, key, default=None):
        """Get configuration value as integer."""
        try:
            return int(self.get(section, key))
        except (TypeError, ValueError):
            return default

    def get_float(self, section, key, default=None):
        """Get configuration value as float."""
        try:
            return float(self.get(section, key))
        except (TypeError, ValueError):
            return default

    def get_boolean(self, section, key, default=None):
        """Get configuration value as boolean."""
        value = self.get(section, key)
        if value is None:
            return default
        lowered = str(value).strip().lower()
        if lowered in ('1', 'true', 'yes', 'on'):
            return True
        if lowered in ('0', 'false', 'no', 'off'):
            return False
        return default

    def set(self, section, key, value):
        """Set configuration value for this process (not persisted)."""
        if not self._config.has_section(section):
            self._config.add_section(section)
        self._config.set(section, key, str(value))

    def job_settings(self, section: str) -> JobSettings:
        """Build the paging and scheduling settings for a job section.

        Args:
            section: Config section name (e.g. 'RECON', 'BACKFILL')

        Returns:
            JobSettings for the section
        """
        lookback_hours = self.get_float(section, 'lookback_hours')
        lookback_days = self.get_float(section, 'lookback_days')
        if lookback_hours is not None:
            lookback = timedelta(hours=lookback_hours)
        elif lookback_days is not None:
            lookback = timedelta(days=lookback_days)
        else:
            lookback = timedelta(0)

        return JobSettings(
            interval_minutes=max(1, self.get_int(section, 'interval_minutes', 10)),
            page_size=max(1, self.get_int(section, 'page_size', 500)),
            max_pages=max(1, self.get_int(section, 'max_pages', 20)),
            lookback=lookback,
            batched=self.get_boolean(section, 'batched', True),
        )

    @property
    def db_type(self):
        """Get the configured store backend ('supabase' or 'postgresql')."""
        return (self.get('DATABASE', 'type', 'supabase') or 'supabase').lower()

    @property
    def supabase_credentials(self):
        """Get Supabase URL and service key; environment variables win."""
        url = os.getenv('SUPABASE_URL') or self.get('SUPABASE', 'url', '')
        key = (
            os.getenv('SUPABASE_SERVICE_ROLE')
            or os.getenv('SUPABASE_KEY')
            or self.get('SUPABASE', 'service_role', '')
        )
        return {'url': url, 'key': key}

    @property
    def database_url(self):
        """Get the SQLAlchemy database URL for the postgresql backend."""
        return os.getenv('DATABASE_URL') or self.get('DATABASE', 'url', '')

    @property
    def log_config(self):
        """Get logging configuration."""
        return {
            'level': self.get('LOGGING', 'level', 'INFO'),
            'format': self.get('LOGGING', 'format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
            'directory': self.get('LOGGING', 'directory', 'logs'),
            'max_size_mb': self.get_int('LOGGING', 'max_size_mb', 10),
            'backup_count': self.get_int('LOGGING', 'backup_count', 5),
            'console_output': self.get_boolean('LOGGING', 'console_output', True)
        }

    @property
    def catalog_settings(self) -> JobSettings:
        """Paging settings for catalog and stock-level reads."""
        return self.job_settings('CATALOG')


# Global config instance
config = Config()
