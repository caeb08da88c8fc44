"""
Destination Directory

Resolves the current set of destinations for a tick:
- Discord text channels discovered through the bot's guilds (cached)
- The configured Telegram chat
- A logging destination instead of both when running dry

Discord discovery is cached for discovery_ttl_seconds. When a refresh
fails the last known channel list is kept, so a transient API error does
not silence the relay.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

from signal_relay.config import RelayConfig
from signal_relay.destinations.base import BaseDestination
from signal_relay.destinations.discord_destination import (
    DiscordChannelDestination,
    DiscordClient,
)
from signal_relay.destinations.logging_destination import LoggingDestination
from signal_relay.destinations.telegram_destination import TelegramDestination

logger = logging.getLogger(__name__)


class DestinationDirectory:
    """
    Destination discovery with caching.

    Usage:
        directory = DestinationDirectory.from_config(config)
        for destination in directory.discover():
            ...
    """

    def __init__(
        self,
        discord_client: Optional[DiscordClient] = None,
        channel_name: str = 'bobbypro-signals',
        channel_ids: Optional[List[str]] = None,
        telegram: Optional[TelegramDestination] = None,
        logging_destination: Optional[LoggingDestination] = None,
        discovery_ttl_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the directory.

        Args:
            discord_client: Discord client, None to disable Discord
            channel_name: Discord channel name to deliver to
            channel_ids: Optional Discord channel id allow-list
            telegram: Telegram destination, None to disable Telegram
            logging_destination: If set, the only destination returned
            discovery_ttl_seconds: Seconds to cache Discord discovery
            clock: Monotonic clock (injectable for tests)
        """
        self.discord_client = discord_client
        self.channel_name = channel_name
        self.channel_ids = channel_ids or []
        self.telegram = telegram
        self.logging_destination = logging_destination
        self.discovery_ttl_seconds = discovery_ttl_seconds
        self._clock = clock

        self._lock = threading.Lock()
        self._discord_channels: List[DiscordChannelDestination] = []
        self._discovered_at: Optional[float] = None

    @classmethod
    def from_config(cls, config: RelayConfig) -> 'DestinationDirectory':
        if config.dry_run:
            return cls(logging_destination=LoggingDestination(
                log_file=config.message_log_file,
                level=config.log_level,
            ))

        discord_client = None
        if config.discord.enabled:
            discord_client = DiscordClient(
                token=config.discord.token,
                retry_attempts=config.discord.retry_attempts,
                retry_delay=config.discord.retry_delay,
            )

        telegram = None
        if config.telegram.enabled:
            telegram = TelegramDestination(
                bot_token=config.telegram.bot_token,
                chat_id=config.telegram.chat_id,
                retry_attempts=config.telegram.retry_attempts,
                retry_delay=config.telegram.retry_delay,
            )

        return cls(
            discord_client=discord_client,
            channel_name=config.discord.channel_name,
            channel_ids=config.discord.channel_ids,
            telegram=telegram,
            discovery_ttl_seconds=config.discord.discovery_ttl_seconds,
        )

    def _discord_cache_fresh(self) -> bool:
        if self._discovered_at is None:
            return False
        return self._clock() - self._discovered_at < self.discovery_ttl_seconds

    def _discord_destinations(self) -> List[DiscordChannelDestination]:
        if self.discord_client is None:
            return []

        with self._lock:
            if self._discord_cache_fresh():
                return list(self._discord_channels)

            try:
                channels = self.discord_client.discover_channels(
                    self.channel_name, self.channel_ids
                )
            except Exception as e:
                logger.error(
                    f"Discord channel discovery failed, keeping "
                    f"{len(self._discord_channels)} known channel(s): {e}"
                )
                return list(self._discord_channels)

            if [c.key for c in channels] != [c.key for c in self._discord_channels]:
                logger.info(
                    f"Discovered {len(channels)} Discord channel(s) named "
                    f"'{self.channel_name}': {[c.name for c in channels]}"
                )
            self._discord_channels = channels
            self._discovered_at = self._clock()
            return list(channels)

    def discover(self) -> List[BaseDestination]:
        """Return the destinations for the current tick."""
        if self.logging_destination is not None:
            return [self.logging_destination]

        destinations: List[BaseDestination] = list(self._discord_destinations())
        if self.telegram is not None:
            destinations.append(self.telegram)
        return destinations
