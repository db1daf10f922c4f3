import os
import configparser
from pathlib import Path
import urllib.parse

DEFAULT_CONFIG_PATH = Path('config') / 'settings.ini'

DEFAULTS = {
    'DATABASE': {
        'engine': 'postgresql',
        'host': 'localhost',
        'port': '5432',
        'database': 'connectchain',
        'username': 'postgres',
        'password': 'postgres',
        'echo': 'False',
        'pool_size': '10',
        'max_overflow': '20',
        'pool_timeout': '30',
        'pool_recycle': '1800',
    },
    'LOGGING': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'directory': 'logs',
        'max_size_mb': '10',
        'backup_count': '5',
        'console_output': 'True',
    },
    'SERVER': {
        'host': '0.0.0.0',
        'port': '3000',
        'debug': 'False',
    },
    'MEDIA': {
        # 'local' or 'cloudinary'
        'backend': 'local',
        'local_directory': 'public/media',
        'public_base_url': 'http://localhost:3000/media',
        'cloud_name': '',
        'api_key': '',
        'api_secret': '',
        'cleanup_max_retries': '3',
        'cleanup_backoff_seconds': '0.5',
    },
    'TRANSACTION': {
        'timeout_seconds': '30',
    },
}

# Environment variables applied over the settings file
ENV_OVERRIDES = {
    'CONNECTCHAIN_LOG_LEVEL': ('LOGGING', 'level'),
    'CONNECTCHAIN_MEDIA_BACKEND': ('MEDIA', 'backend'),
    'CLOUDINARY_CLOUD_NAME': ('MEDIA', 'cloud_name'),
    'CLOUDINARY_API_KEY': ('MEDIA', 'api_key'),
    'CLOUDINARY_API_SECRET': ('MEDIA', 'api_secret'),
    'PORT': ('SERVER', 'port'),
}


class Config:
    """Configuration manager for the ConnectChain admin backend.

    Values come from, in increasing priority: DEFAULTS, the INI file named by
    CONNECTCHAIN_CONFIG (default config/settings.ini), then ENV_OVERRIDES.
    """

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config_path = Path(os.environ.get('CONNECTCHAIN_CONFIG', DEFAULT_CONFIG_PATH))
        self._config = configparser.ConfigParser(interpolation=None)
        self._config.read_dict(DEFAULTS)
        if self._config_path.exists():
            self._config.read(self._config_path)
        self._apply_env_overrides()

        self._initialized = True

    def _apply_env_overrides(self):
        for variable, (section, key) in ENV_OVERRIDES.items():
            value = os.environ.get(variable)
            if value:
                self.set(section, key, value)

    @property
    def path(self):
        return self._config_path

    def save(self, path=None):
        """Write the current configuration to an INI file.

        Args:
            path: Optional target path, defaults to the loaded settings path

        Returns:
            Path the configuration was written to
        """
        target = Path(path) if path else self._config_path
        target.parent.mkdir(parents=True, exist_ok=True)

        with open(target, 'w') as configfile:
            self._config.write(configfile)
        return target

    def _read(self, getter, section, key, default):
        try:
            return getter(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get(self, section, key, default=None):
        return self._read(self._config.get, section, key, default)

    def get_int(self, section, key, default=None):
        return self._read(self._config.getint, section, key, default)

    def get_float(self, section, key, default=None):
        return self._read(self._config.getfloat, section, key, default)

    def get_boolean(self, section, key, default=None):
        return self._read(self._config.getboolean, section, key, default)

    def set(self, section, key, value):
        """Set a value for the running process; save() persists it."""
        if not self._config.has_section(section):
            self._config.add_section(section)
        self._config.set(section, key, str(value))

    def get_db_url(self):
        """Build the SQLAlchemy database URL.

        CONNECTCHAIN_DATABASE_URL wins over the settings file, and an
        explicit DATABASE.url wins over the individual parts.
        """
        env_url = os.environ.get('CONNECTCHAIN_DATABASE_URL')
        if env_url:
            return env_url

        explicit_url = self.get('DATABASE', 'url')
        if explicit_url:
            return explicit_url

        password = urllib.parse.quote_plus(self.get('DATABASE', 'password', ''))
        return (f"{self.get('DATABASE', 'engine')}://{self.get('DATABASE', 'username')}:{password}"
                f"@{self.get('DATABASE', 'host')}:{self.get('DATABASE', 'port')}"
                f"/{self.get('DATABASE', 'database')}")

    @property
    def pool_config(self):
        """Connection pool settings for server databases."""
        return {
            'pool_size': self.get_int('DATABASE', 'pool_size', 10),
            'max_overflow': self.get_int('DATABASE', 'max_overflow', 20),
            'pool_timeout': self.get_int('DATABASE', 'pool_timeout', 30),
            'pool_recycle': self.get_int('DATABASE', 'pool_recycle', 1800),
        }

    @property
    def log_config(self):
        return {
            'level': self.get('LOGGING', 'level', 'INFO'),
            'format': self.get('LOGGING', 'format', DEFAULTS['LOGGING']['format']),
            'directory': self.get('LOGGING', 'directory', 'logs'),
            'max_size_mb': self.get_int('LOGGING', 'max_size_mb', 10),
            'backup_count': self.get_int('LOGGING', 'backup_count', 5),
            'console_output': self.get_boolean('LOGGING', 'console_output', True)
        }

    @property
    def server_config(self):
        return {
            'host': self.get('SERVER', 'host', '0.0.0.0'),
            'port': self.get_int('SERVER', 'port', 3000),
            'debug': self.get_boolean('SERVER', 'debug', False)
        }

    @property
    def media_config(self):
        """External media storage settings, including purge retry policy."""
        return {
            'backend': self.get('MEDIA', 'backend', 'local'),
            'local_directory': self.get('MEDIA', 'local_directory', 'public/media'),
            'public_base_url': self.get('MEDIA', 'public_base_url', ''),
            'cloud_name': self.get('MEDIA', 'cloud_name', ''),
            'api_key': self.get('MEDIA', 'api_key', ''),
            'api_secret': self.get('MEDIA', 'api_secret', ''),
            'cleanup_max_retries': self.get_int('MEDIA', 'cleanup_max_retries', 3),
            'cleanup_backoff_seconds': self.get_float('MEDIA', 'cleanup_backoff_seconds', 0.5)
        }

    @property
    def transaction_config(self):
        return {
            'timeout_seconds': self.get_float('TRANSACTION', 'timeout_seconds', 30.0)
        }

# Global config instance
config = Config()
