"""
Configuration Module for the Song Tracker API
Handles logging setup, environment-driven settings and Flask app initialization
"""

import os
import logging


def configure_logging(level=None):
    """
    Configure application logging with standard format

    Args:
        level: Log level name; defaults to LOG_LEVEL from the environment

    Returns:
        Logger instance for the config module
    """
    level_name = (level or os.environ.get('LOG_LEVEL', 'INFO')).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return logging.getLogger(__name__)


def _env_number(name, default, cast=int):
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    try:
        return cast(value)
    except ValueError:
        logging.getLogger(__name__).warning(f"Invalid value for {name}: {value!r}, using {default}")
        return default


def get_metadata_config():
    """
    Read Spotify and metadata cache settings from the environment

    The client secret is only ever read here, on the server. It must not be
    shipped to browsers.

    Returns:
        Dict of settings consumed by MetadataService.from_config
    """
    return {
        'client_id': os.environ.get('SPOTIFY_CLIENT_ID'),
        'client_secret': os.environ.get('SPOTIFY_CLIENT_SECRET'),
        'token_safety_margin': _env_number('SPOTIFY_TOKEN_SAFETY_MARGIN', 60),
        'rate_limit_delay': _env_number('SPOTIFY_RATE_LIMIT_DELAY', 0.2, float),
        'max_retries': _env_number('SPOTIFY_MAX_RETRIES', 3),
        'max_rate_limit_wait': _env_number('SPOTIFY_MAX_RATE_LIMIT_WAIT', 30, float),
        'request_timeout': _env_number('SPOTIFY_REQUEST_TIMEOUT', 10, float),
        'freshness_seconds': _env_number('METADATA_FRESHNESS_SECONDS', 60 * 60 * 24),
        'retention_seconds': _env_number('METADATA_RETENTION_SECONDS', 60 * 60 * 24 * 7),
    }


def init_app_config(app):
    """
    Initialize Flask app configuration

    This sets up:
    - Custom JSON provider for date and metadata record formatting

    Args:
        app: Flask application instance
    """
    from utils.json_provider import CustomJSONProvider
    app.json = CustomJSONProvider(app)
