"""Application configuration settings.

This module centralizes all configuration values loaded from:
1. config.base.yaml (shared defaults)
2. config.{env}.yaml (environment-specific: dev, staging, prod)
3. config.local.yaml (local overrides, git-ignored)
4. Environment variables (highest priority)

Default environment is 'development' (DEV).

Usage:
    from config.settings import config

    # Access config values
    secret = config.JWT_SECRET
    uri = config.MONGO_URI

    # Check current environment
    env = config.ENV  # 'development', 'staging', or 'production'
"""
import os
from pathlib import Path
from typing import Optional, Any, Dict
import yaml


# Environment name mappings
ENV_ALIASES = {
    'dev': 'development',
    'development': 'development',
    'test': 'testing',
    'testing': 'testing',
    'staging': 'staging',
    'stage': 'staging',
    'prod': 'production',
    'production': 'production',
}

# Default environment
DEFAULT_ENV = 'development'

_TRUTHY = ('1', 'true', 'yes')


class Config:
    """Centralized application configuration.

    Priority (highest to lowest):
    1. Environment variables
    2. config.local.yaml (for local development overrides)
    3. config.{env}.yaml (environment-specific)
    4. config.base.yaml (shared defaults)

    Environment is determined by FLASK_ENV, then APP_ENV, then 'development'.
    """

    _config_data: Dict[str, Any] = {}
    _loaded: bool = False
    _current_env: str = DEFAULT_ENV

    def __init__(self):
        if not Config._loaded:
            self._load_config()

    @classmethod
    def _get_environment(cls) -> str:
        """Determine current environment from env vars or default to dev."""
        env = os.getenv('FLASK_ENV') or os.getenv('APP_ENV') or DEFAULT_ENV
        env = env.lower().strip()
        return ENV_ALIASES.get(env, DEFAULT_ENV)

    def _load_config(self):
        """Load configuration from YAML files based on environment."""
        config_dir = Path(os.getenv('CONFIG_DIR') or Path(__file__).parent)
        Config._current_env = self._get_environment()
        Config._config_data = {}

        env_config_map = {
            'development': 'config.dev.yaml',
            'testing': 'config.test.yaml',
            'staging': 'config.staging.yaml',
            'production': 'config.prod.yaml',
        }
        layers = [
            'config.base.yaml',
            env_config_map.get(Config._current_env, 'config.dev.yaml'),
            'config.local.yaml',
        ]
        for filename in layers:
            path = config_dir / filename
            if not path.exists():
                continue
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
            Config._config_data = self._deep_merge(Config._config_data, data)

        Config._loaded = True

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _get_yaml_value(self, *keys, default=None) -> Any:
        """Get a nested value from YAML config."""
        value = Config._config_data
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
            if value is None:
                return default
        return value

    def _get_bool(self, env_name: str, *keys, default: bool = False) -> bool:
        env_val = os.getenv(env_name, '').lower()
        if env_val:
            return env_val in _TRUTHY
        return bool(self._get_yaml_value(*keys, default=default))

    def _get_int(self, env_name: str, *keys, default: int = 0) -> int:
        env_val = os.getenv(env_name)
        if env_val:
            return int(env_val)
        return int(self._get_yaml_value(*keys, default=default))

    @classmethod
    def reload(cls):
        """Reload configuration (useful for testing)."""
        cls._loaded = False
        cls._config_data = {}
        return cls()

    # ==========================================================================
    # Environment Info
    # ==========================================================================

    @property
    def CURRENT_ENV(self) -> str:
        return Config._current_env

    @property
    def IS_DEV(self) -> bool:
        return Config._current_env == 'development'

    @property
    def IS_TESTING(self) -> bool:
        return Config._current_env == 'testing'

    @property
    def IS_STAGING(self) -> bool:
        return Config._current_env == 'staging'

    @property
    def IS_PROD(self) -> bool:
        return Config._current_env == 'production'

    @property
    def ENV(self) -> str:
        """Application environment (development, testing, staging, production)."""
        return Config._current_env

    # ==========================================================================
    # Application Settings
    # ==========================================================================

    @property
    def DEBUG(self) -> bool:
        """Flask debug mode."""
        return self._get_bool('FLASK_DEBUG', 'app', 'debug', default=False)

    @property
    def PORT(self) -> int:
        """Server port."""
        return self._get_int('PORT', 'app', 'port', default=5000)

    @property
    def APP_NAME(self) -> str:
        return os.getenv('APP_NAME') or self._get_yaml_value('app', 'name', default='DM Relay')

    @property
    def APP_VERSION(self) -> str:
        return self._get_yaml_value('app', 'version', default='1.0.0')

    # ==========================================================================
    # Security Settings
    # ==========================================================================

    @property
    def JWT_SECRET(self) -> Optional[str]:
        """JWT secret key for token signing. Required in production."""
        secret = os.getenv('JWT_SECRET') or self._get_yaml_value('security', 'jwt', 'secret')
        if not secret and (self.IS_DEV or self.IS_TESTING):
            return 'dev-secret'
        return secret

    @property
    def JWT_ALGORITHM(self) -> str:
        return os.getenv('JWT_ALGORITHM') or self._get_yaml_value('security', 'jwt', 'algorithm', default='HS256')

    @property
    def ACCESS_TOKEN_EXPIRE_MINUTES(self) -> int:
        """Access token expiry in minutes (default 7 days)."""
        return self._get_int('ACCESS_TOKEN_MINUTES', 'security', 'jwt', 'access_token_expire_minutes', default=10080)

    @property
    def BCRYPT_ROUNDS(self) -> int:
        return self._get_int('BCRYPT_ROUNDS', 'security', 'bcrypt_rounds', default=12)

    # ==========================================================================
    # Database Settings
    # ==========================================================================

    @property
    def MONGO_URI(self) -> str:
        return os.getenv('MONGO_URI') or self._get_yaml_value('database', 'mongo_uri', default='mongodb://localhost:27017')

    @property
    def MONGO_DB_NAME(self) -> str:
        return os.getenv('MONGO_DB') or self._get_yaml_value('database', 'name', default='chat_db')

    @property
    def MONGO_TIMEOUT_MS(self) -> int:
        """Upper bound for server selection, connect and socket operations.

        Store calls that exceed it surface as StoreUnavailableError instead
        of stalling a socket handler.
        """
        return self._get_int('MONGO_TIMEOUT_MS', 'database', 'timeout_ms', default=5000)

    # ==========================================================================
    # CORS Settings
    # ==========================================================================

    @property
    def CORS_ORIGINS(self) -> str:
        return os.getenv('CORS_ORIGINS') or self._get_yaml_value('cors', 'origins', default='*')

    @property
    def CORS_ORIGINS_LIST(self) -> list:
        origins = self.CORS_ORIGINS
        if origins == '*':
            return ['*']
        return [o.strip() for o in origins.split(',') if o.strip()]

    # ==========================================================================
    # Socket Settings
    # ==========================================================================

    @property
    def SOCKETIO_ASYNC_MODE(self) -> str:
        """Flask-SocketIO async mode (threading, eventlet, gevent)."""
        return os.getenv('SOCKETIO_ASYNC_MODE') or self._get_yaml_value('socket', 'async_mode', default='threading')

    @property
    def SOCKET_REQUIRE_AUTH(self) -> bool:
        """Only accept identify signals carrying a valid token."""
        return self._get_bool('SOCKET_REQUIRE_AUTH', 'socket', 'require_auth', default=False)

    # ==========================================================================
    # Upload Settings
    # ==========================================================================

    @property
    def UPLOAD_DIR(self) -> str:
        return os.getenv('UPLOAD_DIR') or self._get_yaml_value('upload', 'dir', default='uploads')

    @property
    def MAX_UPLOAD_SIZE_MB(self) -> int:
        return self._get_int('MAX_UPLOAD_SIZE_MB', 'upload', 'max_file_size_mb', default=50)

    @property
    def ALLOWED_UPLOAD_EXTENSIONS(self) -> list:
        return self._get_yaml_value(
            'upload', 'allowed_extensions',
            default=['jpg', 'jpeg', 'png', 'gif', 'webp', 'mp3', 'm4a', 'aac', 'wav', 'ogg', 'webm', 'mp4', 'mov', '3gp']
        )

    # ==========================================================================
    # Logging Settings
    # ==========================================================================

    @property
    def LOG_LEVEL(self) -> str:
        env_val = os.getenv('LOG_LEVEL')
        if env_val:
            return env_val.upper()
        if self.LOG_DEBUG:
            return 'DEBUG'
        return self._get_yaml_value('logging', 'level', default='INFO')

    @property
    def LOG_DEBUG(self) -> bool:
        return self._get_bool('LOG_DEBUG', 'logging', 'debug', default=False)

    @property
    def LOG_PATTERN(self) -> str:
        return os.getenv('LOG_PATTERN') or self._get_yaml_value('logging', 'pattern', default='%(message)s')

    @property
    def LOG_INCLUDE_DATETIME(self) -> bool:
        return self._get_bool('LOG_INCLUDE_DATETIME', 'logging', 'include_datetime', default=True)

    @property
    def LOG_INCLUDE_NAME(self) -> bool:
        return self._get_bool('LOG_INCLUDE_NAME', 'logging', 'include_name', default=True)

    @property
    def LOG_INCLUDE_LEVEL(self) -> bool:
        return self._get_bool('LOG_INCLUDE_LEVEL', 'logging', 'include_level', default=True)

    @property
    def LOG_DATE_FORMAT(self) -> str:
        return self._get_yaml_value('logging', 'date_format', default='%H:%M:%S')

    @property
    def LOG_FORMAT(self) -> str:
        """Build log format string based on config options."""
        pattern = self.LOG_PATTERN
        if pattern and pattern != '%(message)s':
            return pattern

        parts = []
        if self.LOG_INCLUDE_DATETIME:
            parts.append('%(asctime)s')
        if self.LOG_INCLUDE_NAME:
            parts.append('%(name)s')
        if self.LOG_INCLUDE_LEVEL:
            parts.append('%(levelname)s')
        parts.append('%(message)s')

        return ' - '.join(parts) if len(parts) > 1 else parts[0]

    # ==========================================================================
    # Validation Methods
    # ==========================================================================

    def validate_required(self) -> None:
        """Validate that required configuration values are set.

        Raises RuntimeError if required values are missing in production.
        """
        errors = []

        if self.IS_PROD:
            if not self.JWT_SECRET:
                errors.append('JWT_SECRET environment variable is required in production')
            if not self.MONGO_URI or self.MONGO_URI == 'mongodb://localhost:27017':
                errors.append('MONGO_URI should be set to production database in production')
            if self.CORS_ORIGINS == '*':
                errors.append('CORS_ORIGINS should not be "*" in production')

        if errors:
            raise RuntimeError('Configuration errors:\n' + '\n'.join(f'  - {e}' for e in errors))

    def to_dict(self) -> Dict[str, Any]:
        """Export current configuration as dictionary (for debugging)."""
        return {
            'environment': {
                'current': self.CURRENT_ENV,
                'is_dev': self.IS_DEV,
                'is_prod': self.IS_PROD,
            },
            'app': {
                'debug': self.DEBUG,
                'port': self.PORT,
                'name': self.APP_NAME,
                'version': self.APP_VERSION,
            },
            'security': {
                'jwt_algorithm': self.JWT_ALGORITHM,
                'access_token_expire_minutes': self.ACCESS_TOKEN_EXPIRE_MINUTES,
                'bcrypt_rounds': self.BCRYPT_ROUNDS,
                'jwt_secret_set': bool(self.JWT_SECRET),
            },
            'database': {
                'mongo_uri': '***' if self.MONGO_URI else None,
                'name': self.MONGO_DB_NAME,
                'timeout_ms': self.MONGO_TIMEOUT_MS,
            },
            'cors': {
                'origins': self.CORS_ORIGINS,
            },
            'socket': {
                'async_mode': self.SOCKETIO_ASYNC_MODE,
                'require_auth': self.SOCKET_REQUIRE_AUTH,
            },
            'upload': {
                'dir': self.UPLOAD_DIR,
                'max_file_size_mb': self.MAX_UPLOAD_SIZE_MB,
            },
            'logging': {
                'level': self.LOG_LEVEL,
            },
        }


# Singleton config instance
config = Config()


# =============================================================================
# Convenience exports
# =============================================================================

def get_env() -> str:
    return config.ENV

def is_dev() -> bool:
    return config.IS_DEV

def is_prod() -> bool:
    return config.IS_PROD
