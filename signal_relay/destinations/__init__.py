"""
Signal Relay Destinations

Chat destinations for signal and announcement delivery.

Available Destinations:
- DiscordChannelDestination: Discord bot REST API, one per text channel
- TelegramDestination: Telegram Bot API, single chat
- LoggingDestination: Structured logging sink for dry runs
"""

from signal_relay.destinations.base import BaseDestination, DestinationError
from signal_relay.destinations.discord_destination import (
    DiscordClient,
    DiscordChannelDestination,
)
from signal_relay.destinations.telegram_destination import TelegramDestination
from signal_relay.destinations.logging_destination import LoggingDestination
from signal_relay.destinations.directory import DestinationDirectory

__all__ = [
    'BaseDestination',
    'DestinationError',
    'DiscordClient',
    'DiscordChannelDestination',
    'TelegramDestination',
    'LoggingDestination',
    'DestinationDirectory',
]
