"""Configuration for the relay server.

Environments: development (default), testing, staging, production.
Select one with FLASK_ENV or APP_ENV; point CONFIG_DIR elsewhere to load a
different set of YAML layers.

    from config import config

    uri = config.MONGO_URI
    timeout_ms = config.MONGO_TIMEOUT_MS
"""
from .settings import config, Config, is_dev, is_prod, get_env

__all__ = ['config', 'Config', 'is_dev', 'is_prod', 'get_env']
