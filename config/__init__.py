"""
Config package for the Signal Relay.

Provides centralized configuration loading from root .env file.
"""

from config.settings import (
    load_config,
    get_google_credentials,
    get_discord_token,
    get_telegram_credentials,
    is_config_loaded,
)

__all__ = [
    'load_config',
    'get_google_credentials',
    'get_discord_token',
    'get_telegram_credentials',
    'is_config_loaded',
]
