"""
Signal Relay Configuration

Configuration dataclasses for the signal relay system.
Follows the same shape as the other automation configs: one dataclass per
concern plus a master config with from_env() and validate().

Configuration Categories:
1. SheetsConfig - Google Sheets row store credentials and table names
2. DiscordConfig - Discord bot token and channel discovery
3. TelegramConfig - Telegram bot token and chat
4. ScheduleConfig - Poll intervals and APScheduler job defaults
5. AnnouncementConfig - Calendar instants for status announcements
6. RelayConfig - Master configuration
"""

from dataclasses import dataclass, field
from datetime import time
from typing import List, Optional
import logging
import os

import pytz


LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def resolve_log_level(name: str) -> int:
    """Map a level name to its logging constant; unknown names give INFO."""
    name = (name or '').strip().upper()
    if name in LOG_LEVELS:
        return getattr(logging, name)
    return logging.INFO


def _int_env(name: str, default: int, errors: List[str]) -> int:
    """Read an integer variable; a malformed value keeps the default and is reported."""
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        errors.append(f'{name} must be an integer, got {raw!r}')
        return default


def parse_clock(value: str) -> time:
    """
    Parse an 'HH:MM' string into a time.

    Raises:
        ValueError: If the string is not a valid 24h clock time
    """
    parts = value.strip().split(':')
    if len(parts) != 2:
        raise ValueError(f"Invalid clock time: {value!r} (expected HH:MM)")
    return time(int(parts[0]), int(parts[1]))


@dataclass
class SheetsConfig:
    """
    Google Sheets row store configuration.

    Attributes:
        service_account_email: Service account client email
        private_key: Service account PEM private key
        spreadsheet_id: Spreadsheet holding the Signals and Messages tables
        signals_table: Sheet title for trade signals
        messages_table: Sheet title for announcement templates
        token_uri: OAuth token endpoint for the service account
    """
    service_account_email: str = ''
    private_key: str = ''
    spreadsheet_id: str = ''
    signals_table: str = 'Signals'
    messages_table: str = 'Messages'
    token_uri: str = 'https://oauth2.googleapis.com/token'

    @property
    def configured(self) -> bool:
        return bool(
            self.service_account_email and self.private_key and self.spreadsheet_id
        )


@dataclass
class DiscordConfig:
    """
    Discord bot configuration.

    Signals and announcements go to every text channel named channel_name
    in every guild the bot belongs to, optionally narrowed to channel_ids.
    """
    token: str = ''
    channel_name: str = 'bobbypro-signals'
    channel_ids: List[str] = field(default_factory=list)
    discovery_ttl_seconds: int = 300
    retry_attempts: int = 3
    retry_delay: float = 1.0

    @property
    def enabled(self) -> bool:
        return bool(self.token)


@dataclass
class TelegramConfig:
    """Telegram bot configuration (single chat)."""
    bot_token: str = ''
    chat_id: str = ''
    retry_attempts: int = 3
    retry_delay: float = 1.0

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)


@dataclass
class ScheduleConfig:
    """
    APScheduler timing configuration.

    Attributes:
        signal_poll_seconds: Interval of the signal polling job
        announcement_poll_seconds: Interval of the announcement check job
        health_check_seconds: Interval of the health check job
        misfire_grace_time: Seconds a late job may still run
        run_immediately: Fire each interval job once at startup
    """
    signal_poll_seconds: int = 30
    announcement_poll_seconds: int = 60
    health_check_seconds: int = 300
    misfire_grace_time: int = 30
    run_immediately: bool = True


@dataclass
class AnnouncementConfig:
    """
    Calendar instants for status announcements, in the business timezone.

    NOTE: Comparison is minute-granular. announcement_poll_seconds must stay
    at or below 60 or an instant can be stepped over.
    """
    timezone: str = 'America/New_York'
    market_open_time: str = '09:30'
    closing_time: str = '11:33'
    midnight_time: str = '00:00'
    midnight_weekdays_only: bool = False


@dataclass
class RelayConfig:
    """
    Master configuration for the signal relay.

    Combines all sub-configurations for easy management.
    """
    sheets: SheetsConfig = field(default_factory=SheetsConfig)
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    announcements: AnnouncementConfig = field(default_factory=AnnouncementConfig)

    # Route messages to the log instead of chat destinations
    dry_run: bool = False
    log_level: str = 'INFO'
    message_log_file: Optional[str] = None

    # Malformed environment values, reported by validate()
    env_errors: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> 'RelayConfig':
        """
        Create configuration from environment variables.

        Environment Variables:
            GOOGLE_SERVICE_ACCOUNT_EMAIL: Service account email
            GOOGLE_PRIVATE_KEY: Service account key (escaped newlines allowed)
            GOOGLE_SPREADSHEET_ID: Spreadsheet id
            DISCORD_TOKEN: Discord bot token
            DISCORD_CHANNEL_NAME: Channel name to deliver to
            DISCORD_CHANNEL_IDS: Optional comma-separated channel id allow-list
            DISCORD_DISCOVERY_TTL: Seconds to cache channel discovery
            TELEGRAM_BOT_TOKEN: Telegram bot token
            TELEGRAM_CHAT_ID: Telegram chat id
            RELAY_SIGNAL_POLL_SECONDS: Signal poll interval
            RELAY_ANNOUNCEMENT_POLL_SECONDS: Announcement check interval
            RELAY_TIMEZONE: Business timezone
            RELAY_MARKET_OPEN_TIME: Reset instant (HH:MM)
            RELAY_CLOSING_TIME: Midday closing instant (HH:MM)
            RELAY_MIDNIGHT_TIME: Midnight instant (HH:MM)
            RELAY_MIDNIGHT_WEEKDAYS_ONLY: Only announce midnight Mon-Fri
            RELAY_DRY_RUN: Log messages instead of sending them
            RELAY_LOG_LEVEL: Log level
            RELAY_MESSAGE_LOG: Optional file for the dry-run message log
        """
        sheets_config = SheetsConfig()
        discord_config = DiscordConfig()
        telegram_config = TelegramConfig()
        schedule_config = ScheduleConfig()
        announcement_config = AnnouncementConfig()
        env_errors: List[str] = []

        # Google credentials; keys pasted into .env usually carry literal \n
        sheets_config.service_account_email = os.environ.get(
            'GOOGLE_SERVICE_ACCOUNT_EMAIL', ''
        )
        sheets_config.private_key = os.environ.get(
            'GOOGLE_PRIVATE_KEY', ''
        ).replace('\\n', '\n')
        sheets_config.spreadsheet_id = os.environ.get('GOOGLE_SPREADSHEET_ID', '')

        discord_config.token = os.environ.get('DISCORD_TOKEN', '')
        if channel_name := os.environ.get('DISCORD_CHANNEL_NAME'):
            discord_config.channel_name = channel_name
        if channel_ids := os.environ.get('DISCORD_CHANNEL_IDS'):
            discord_config.channel_ids = [
                c.strip() for c in channel_ids.split(',') if c.strip()
            ]
        discord_config.discovery_ttl_seconds = _int_env(
            'DISCORD_DISCOVERY_TTL', discord_config.discovery_ttl_seconds, env_errors
        )

        telegram_config.bot_token = os.environ.get('TELEGRAM_BOT_TOKEN', '')
        telegram_config.chat_id = os.environ.get('TELEGRAM_CHAT_ID', '')

        schedule_config.signal_poll_seconds = _int_env(
            'RELAY_SIGNAL_POLL_SECONDS', schedule_config.signal_poll_seconds, env_errors
        )
        schedule_config.announcement_poll_seconds = _int_env(
            'RELAY_ANNOUNCEMENT_POLL_SECONDS',
            schedule_config.announcement_poll_seconds,
            env_errors,
        )

        if tz := os.environ.get('RELAY_TIMEZONE'):
            announcement_config.timezone = tz
        if open_time := os.environ.get('RELAY_MARKET_OPEN_TIME'):
            announcement_config.market_open_time = open_time
        if closing_time := os.environ.get('RELAY_CLOSING_TIME'):
            announcement_config.closing_time = closing_time
        if midnight_time := os.environ.get('RELAY_MIDNIGHT_TIME'):
            announcement_config.midnight_time = midnight_time
        announcement_config.midnight_weekdays_only = os.environ.get(
            'RELAY_MIDNIGHT_WEEKDAYS_ONLY', 'false'
        ).lower() == 'true'

        return cls(
            sheets=sheets_config,
            discord=discord_config,
            telegram=telegram_config,
            schedule=schedule_config,
            announcements=announcement_config,
            dry_run=os.environ.get('RELAY_DRY_RUN', 'false').lower() == 'true',
            log_level=os.environ.get('RELAY_LOG_LEVEL', 'INFO'),
            message_log_file=os.environ.get('RELAY_MESSAGE_LOG') or None,
            env_errors=env_errors,
        )

    def validate(self) -> List[str]:
        """
        Validate configuration and return list of issues.

        Returns:
            List of validation error messages (empty if valid)
        """
        issues = list(self.env_errors)

        if not self.sheets.configured:
            issues.append(
                'Google Sheets not configured (need service account email, '
                'private key and spreadsheet id)'
            )
        elif '-----BEGIN' not in self.sheets.private_key:
            issues.append('Google private key does not look like a PEM key')

        if not self.dry_run and not (self.discord.enabled or self.telegram.enabled):
            issues.append('No destinations enabled (set DISCORD_TOKEN or Telegram credentials)')

        if self.telegram.bot_token and not self.telegram.chat_id:
            issues.append('Telegram bot token set but no chat id configured')

        if self.schedule.signal_poll_seconds <= 0:
            issues.append('Signal poll interval must be positive')
        if not (0 < self.schedule.announcement_poll_seconds <= 60):
            issues.append('Announcement poll interval must be between 1 and 60 seconds')

        for label, value in (
            ('market open', self.announcements.market_open_time),
            ('closing', self.announcements.closing_time),
            ('midnight', self.announcements.midnight_time),
        ):
            try:
                parse_clock(value)
            except ValueError:
                issues.append(f'Invalid {label} time: {value}')

        try:
            pytz.timezone(self.announcements.timezone)
        except pytz.UnknownTimeZoneError:
            issues.append(f'Unknown timezone: {self.announcements.timezone}')

        if self.log_level.strip().upper() not in LOG_LEVELS:
            issues.append(
                f'Invalid log level: {self.log_level} (expected one of {", ".join(LOG_LEVELS)})'
            )

        return issues
