"""
Centralized Configuration Loading for the Signal Relay.

- Single source of truth for environment variables
- Loads the project root .env once at startup
- Warns about missing credentials instead of failing hard, so the CLI
  `status` and dry-run paths work without a full setup

Usage:
    from config.settings import load_config, get_google_credentials

    # At app startup (call once)
    load_config()

    creds = get_google_credentials()
"""

import os
from pathlib import Path
from typing import Dict, Optional

# Flag to track if config has been loaded
_CONFIG_LOADED = False

REQUIRED_VARS = [
    'GOOGLE_SERVICE_ACCOUNT_EMAIL',
    'GOOGLE_PRIVATE_KEY',
    'GOOGLE_SPREADSHEET_ID',
]


def load_config(force_reload: bool = False, env_path: Optional[Path] = None) -> None:
    """
    Load environment variables from the project root .env file.

    Variables already present in the environment win over the file, so
    container platforms that inject variables directly need no .env.

    Args:
        force_reload: If True, reload even if already loaded
        env_path: Override the .env location (default: project root)
    """
    global _CONFIG_LOADED

    if _CONFIG_LOADED and not force_reload:
        return

    # Import here to avoid circular imports
    from dotenv import load_dotenv

    if env_path is None:
        env_path = Path(__file__).parent.parent / '.env'

    if env_path.exists():
        load_dotenv(env_path, override=False)

    _CONFIG_LOADED = True

    _validate_required_vars()


def _validate_required_vars(strict: bool = False) -> None:
    """
    Validate that all required environment variables are set.

    Args:
        strict: If True, raise ValueError on missing vars. If False, warn only.

    Raises:
        ValueError: If strict=True and any required variable is missing
    """
    import warnings

    missing = [var for var in REQUIRED_VARS if not os.getenv(var, '').strip()]

    if not (os.getenv('DISCORD_TOKEN') or os.getenv('TELEGRAM_BOT_TOKEN')):
        missing.append('DISCORD_TOKEN or TELEGRAM_BOT_TOKEN')

    if missing:
        msg = f"Missing environment variables: {missing}. Some features may be unavailable."
        if strict:
            raise ValueError(msg + " Check your .env file at project root.")
        else:
            warnings.warn(msg, UserWarning)


def get_google_credentials() -> Dict[str, str]:
    """
    Get Google service account credentials.

    Returns:
        Dict with service_account_email, private_key and spreadsheet_id
    """
    load_config()
    return {
        'service_account_email': os.getenv('GOOGLE_SERVICE_ACCOUNT_EMAIL', ''),
        'private_key': os.getenv('GOOGLE_PRIVATE_KEY', '').replace('\\n', '\n'),
        'spreadsheet_id': os.getenv('GOOGLE_SPREADSHEET_ID', ''),
    }


def get_discord_token() -> Optional[str]:
    """Get the Discord bot token (None if not configured)."""
    load_config()
    return os.getenv('DISCORD_TOKEN') or None


def get_telegram_credentials() -> Optional[Dict[str, str]]:
    """
    Get Telegram bot credentials.

    Returns:
        Dict with bot_token and chat_id, or None unless both are set
    """
    load_config()
    token = os.getenv('TELEGRAM_BOT_TOKEN')
    chat_id = os.getenv('TELEGRAM_CHAT_ID')
    if not token or not chat_id:
        return None
    return {'bot_token': token, 'chat_id': chat_id}


def is_config_loaded() -> bool:
    """Check if configuration has been loaded."""
    return _CONFIG_LOADED
