"""
Discord Destination

Discord bot REST API (v10) client and per-channel destination.
Supports rate limit handling and retry logic with exponential backoff.

One DiscordClient is shared by every channel destination so the request
window is counted per bot token, not per channel.

Message Format:
- content: signal text in Discord markdown
- embeds: color-coded panels (orange disclaimer, blue announcements)
"""

import requests
import threading
import time
import logging
from typing import Optional, Dict, Any, List, Sequence

from signal_relay.destinations.base import BaseDestination, DestinationError
from signal_relay.formatting import DISCORD_MARKUP, Embed

logger = logging.getLogger(__name__)

API_BASE = 'https://discord.com/api/v10'

# Discord channel type for guild text channels
GUILD_TEXT_CHANNEL = 0


class DiscordClient:
    """
    Minimal Discord bot REST client.

    Features:
    - Retry logic with exponential backoff
    - Rate limit handling (429 retry_after)
    - Local request window to stay under the global limit

    Usage:
        client = DiscordClient(token)
        for guild in client.list_guilds():
            channels = client.list_channels(guild['id'])
    """

    # Stay under Discord's per-route limits
    RATE_LIMIT_WINDOW = 60
    RATE_LIMIT_MAX = 25

    def __init__(
        self,
        token: str,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        api_base: str = API_BASE,
    ):
        """
        Initialize Discord client.

        Args:
            token: Discord bot token
            retry_attempts: Number of attempts per request
            retry_delay: Base delay between retries (exponential backoff)
            api_base: REST API base URL
        """
        if not token:
            raise ValueError("Discord bot token is required")

        self.token = token
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.api_base = api_base.rstrip('/')

        # Rate limiting, shared by the signal and announcement job threads
        self._request_times: List[float] = []
        self._rate_lock = threading.Lock()

    @property
    def headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bot {self.token}',
            'Content-Type': 'application/json',
        }

    def _within_rate_limit(self, now: float) -> bool:
        # Caller holds _rate_lock
        self._request_times = [
            t for t in self._request_times
            if now - t < self.RATE_LIMIT_WINDOW
        ]

        if len(self._request_times) >= self.RATE_LIMIT_MAX:
            logger.warning(
                f"Discord rate limit reached ({len(self._request_times)} requests in window)"
            )
            return False

        return True

    def _check_rate_limit(self) -> bool:
        """
        Check if we're within rate limits.

        Returns:
            True if OK to send, False if rate limited
        """
        with self._rate_lock:
            return self._within_rate_limit(time.time())

    def _rate_limit_wait(self) -> float:
        """Seconds until the request window has room (0.0 if it has room now)."""
        with self._rate_lock:
            now = time.time()
            if self._within_rate_limit(now):
                return 0.0
            return max(0.0, self.RATE_LIMIT_WINDOW - (now - min(self._request_times)))

    def _record_request(self) -> None:
        """Record a request for rate limiting."""
        with self._rate_lock:
            self._request_times.append(time.time())

    def request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        failure_kind: str = 'send_failed',
    ) -> requests.Response:
        """
        Perform an API request with retry logic.

        Returns the first non-429 response; HTTP error statuses are left to
        the caller.

        Raises:
            DestinationError: If every attempt timed out, errored or was rate limited
        """
        wait_time = self._rate_limit_wait()
        if wait_time > 0:
            logger.info(f"Rate limited, waiting {wait_time:.1f}s")
            time.sleep(wait_time)

        url = f"{self.api_base}{path}"
        last_error = 'no attempts made'

        for attempt in range(self.retry_attempts):
            try:
                response = requests.request(
                    method,
                    url,
                    headers=self.headers,
                    json=payload,
                    timeout=10
                )

                self._record_request()

                if response.status_code == 429:
                    # Rate limited by Discord
                    retry_after = response.json().get('retry_after', 5)
                    logger.warning(f"Discord rate limited, retry after {retry_after}s")
                    last_error = 'rate limited'
                    time.sleep(retry_after)
                    continue

                return response

            except requests.exceptions.Timeout:
                logger.warning(f"Discord {method} {path} timeout (attempt {attempt + 1})")
                last_error = 'timeout'
                time.sleep(self.retry_delay * (2 ** attempt))

            except requests.exceptions.RequestException as e:
                logger.error(f"Discord {method} {path} request error: {e}")
                last_error = str(e)
                time.sleep(self.retry_delay * (2 ** attempt))

        raise DestinationError(
            f"Discord {method} {path} failed after {self.retry_attempts} attempts: {last_error}",
            kind=failure_kind,
        )

    def _json_or_raise(self, response: requests.Response, what: str) -> Any:
        if response.status_code >= 400:
            raise DestinationError(
                f"Discord {what} error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )
        return response.json()

    def get_current_user(self) -> Dict[str, Any]:
        return self._json_or_raise(self.request('GET', '/users/@me'), 'user lookup')

    def list_guilds(self) -> List[Dict[str, Any]]:
        return self._json_or_raise(self.request('GET', '/users/@me/guilds'), 'guild list')

    def list_channels(self, guild_id: str) -> List[Dict[str, Any]]:
        return self._json_or_raise(
            self.request('GET', f'/guilds/{guild_id}/channels'), 'channel list'
        )

    def create_message(self, channel_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._json_or_raise(
            self.request('POST', f'/channels/{channel_id}/messages', payload),
            'send',
        )

    def delete_message(self, channel_id: str, message_id: str) -> None:
        response = self.request(
            'DELETE',
            f'/channels/{channel_id}/messages/{message_id}',
            failure_kind='delete_failed',
        )
        if response.status_code == 404:
            logger.debug(f"Discord message {message_id} already deleted")
            return
        if response.status_code >= 400:
            raise DestinationError(
                f"Discord delete error: {response.status_code} - {response.text[:200]}",
                kind='delete_failed',
                status_code=response.status_code,
            )

    def test_connection(self) -> bool:
        """Check that the token is accepted."""
        try:
            user = self.get_current_user()
            logger.info(f"Discord connection OK (bot user {user.get('username')})")
            return True
        except DestinationError as e:
            logger.error(f"Discord connection test failed: {e}")
            return False

    def discover_channels(
        self,
        channel_name: str,
        channel_ids: Optional[Sequence[str]] = None,
    ) -> List['DiscordChannelDestination']:
        """
        Find text channels with the given name across the bot's guilds.

        Args:
            channel_name: Channel name to match
            channel_ids: Optional allow-list of channel ids

        Returns:
            Channel destinations in guild order
        """
        allowed = set(channel_ids or [])
        destinations = []
        for guild in self.list_guilds():
            for channel in self.list_channels(guild['id']):
                if channel.get('type') != GUILD_TEXT_CHANNEL:
                    continue
                if channel.get('name') != channel_name:
                    continue
                if allowed and str(channel['id']) not in allowed:
                    continue
                destinations.append(DiscordChannelDestination(
                    client=self,
                    channel_id=str(channel['id']),
                    channel_name=channel['name'],
                    guild_name=guild.get('name', ''),
                ))
        return destinations


class DiscordChannelDestination(BaseDestination):
    """
    A single Discord text channel.

    Usage:
        destination = DiscordChannelDestination(client, '1234', 'bobbypro-signals')
        message_id = destination.send(text, [disclaimer_embed(DISCORD_MARKUP)])
    """

    def __init__(
        self,
        client: DiscordClient,
        channel_id: str,
        channel_name: str = '',
        guild_name: str = '',
    ):
        super().__init__(f"discord:{guild_name}#{channel_name}", DISCORD_MARKUP)
        self.client = client
        self.channel_id = channel_id
        self.channel_name = channel_name
        self.guild_name = guild_name

    @property
    def key(self) -> str:
        return f"discord:{self.channel_id}"

    def send(self, content: str, embeds: Sequence[Embed] = ()) -> str:
        payload: Dict[str, Any] = {}
        if content:
            payload['content'] = content
        if embeds:
            payload['embeds'] = [e.to_dict() for e in embeds]

        message = self.client.create_message(self.channel_id, payload)
        logger.info(f"Discord message sent to {self.name}: {message['id']}")
        return str(message['id'])

    def delete(self, message_id: str) -> None:
        self.client.delete_message(self.channel_id, message_id)
        logger.info(f"Discord message deleted from {self.name}: {message_id}")

    def test_connection(self) -> bool:
        try:
            response = self.client.request('GET', f'/channels/{self.channel_id}')
        except DestinationError as e:
            logger.error(f"Discord channel test failed ({self.name}): {e}")
            return False
        if response.status_code != 200:
            logger.error(
                f"Discord channel test failed ({self.name}): {response.status_code}"
            )
            return False
        return True
