from typing import Optional, Dict, Any
import os
import json
from dotenv import load_dotenv
import keyring
from keyring.errors import KeyringError
import logging

logger = logging.getLogger(__name__)

KEYRING_SERVICE = 'availcal'


class ConfigManager:
    """Manage application configuration and environment variables"""

    def __init__(self, env_file: str = None):
        """Initialize config manager"""
        if env_file:
            self.env_file = env_file
        else:
            # Look for .env in the current working directory
            self.env_file = os.path.join(os.getcwd(), '.env')
            logger.debug(f"Looking for .env file at: {self.env_file}")

        self.config = {}
        self.load_config()

    def load_config(self):
        """Load configuration from environment and .env file"""
        if os.path.exists(self.env_file):
            logger.info(f"Loading environment variables from {self.env_file}")
            load_dotenv(self.env_file, override=True)

        self.config['app'] = self._load_app_config()
        self.config['google'] = self._load_google_config()
        self.config['sync'] = self._load_sync_config()
        self.config['development'] = self._load_dev_config()
        return self.config

    def _load_app_config(self) -> Dict[str, Any]:
        """Load application settings"""
        database_path = self._expand_path(os.getenv('DATABASE_PATH', '~/.availcal/calendar.db'))
        return {
            'timezone': os.getenv('TIMEZONE', 'America/New_York'),
            'database_path': database_path,
            'database_url': os.getenv('DATABASE_URL', f'sqlite:///{database_path}')
        }

    def _load_google_config(self) -> Dict[str, Any]:
        """Load Google Calendar settings.

        Service account credentials come from GOOGLE_SERVICE_ACCOUNT_FILE or,
        failing that, from the system keyring.
        """
        service_account_info = None
        service_account_file = os.getenv('GOOGLE_SERVICE_ACCOUNT_FILE')
        if service_account_file:
            path = self._expand_path(service_account_file)
            if not os.path.exists(path):
                raise ValueError(f"Service account JSON file not found at {path}")
            with open(path, 'r') as f:
                service_account_info = json.load(f)
            logger.info("Loaded service account JSON file")
        else:
            secret = self._get_secret('google_service_account')
            if secret:
                service_account_info = json.loads(secret)

        return {
            'calendar_id': os.getenv('GOOGLE_CALENDAR_ID', 'primary'),
            'service_account_info': service_account_info
        }

    def _load_sync_config(self) -> Dict[str, Any]:
        """Load mirror sync settings"""
        has_credentials = self.config.get('google', {}).get('service_account_info') is not None
        return {
            'enabled': self._parse_bool(os.getenv('SYNC_ENABLED', str(has_credentials))),
            'timeout_seconds': float(os.getenv('SYNC_TIMEOUT_SECONDS', 10))
        }

    def _load_dev_config(self) -> Dict[str, Any]:
        """Load development settings"""
        return {
            'debug': self._parse_bool(os.getenv('DEBUG', 'false')),
            'log_level': os.getenv('LOG_LEVEL', 'INFO')
        }

    def _expand_path(self, path: str) -> str:
        """Expand user and environment variables in path"""
        if not path:
            return path
        return os.path.expandvars(os.path.expanduser(path))

    def _parse_bool(self, value: str) -> bool:
        """Parse string boolean value"""
        return str(value).lower() in ('true', '1', 'yes', 'on')

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value"""
        parts = key.split('.')
        value = self.config
        for part in parts:
            if isinstance(value, dict):
                value = value.get(part)
            else:
                return default
        return value if value is not None else default

    def save_service_account(self, info: Dict[str, Any]):
        """Store service account JSON in the system keyring"""
        keyring.set_password(KEYRING_SERVICE, 'google_service_account', json.dumps(info))

    def _get_secret(self, key: str) -> Optional[str]:
        """Get secret from system keyring"""
        try:
            return keyring.get_password(KEYRING_SERVICE, key)
        except KeyringError as e:
            logger.warning(f"Keyring unavailable: {e}")
            return None

    def ensure_directories(self):
        """Ensure required directories exist"""
        path = os.path.dirname(self.get('app.database_path'))
        if path:
            os.makedirs(path, exist_ok=True)
