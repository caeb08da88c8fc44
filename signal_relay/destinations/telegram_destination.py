"""
Telegram Destination

Telegram Bot API destination for a single chat, using HTML parse mode.
Embeds have no Telegram equivalent; their text is appended below the
message body, separated by a blank line.
"""

import requests
import time
import logging
from typing import Any, Dict, Sequence

from signal_relay.destinations.base import BaseDestination, DestinationError
from signal_relay.formatting import TELEGRAM_MARKUP, Embed

logger = logging.getLogger(__name__)

API_BASE = 'https://api.telegram.org'

# Telegram's reply when the message id no longer exists
MESSAGE_NOT_FOUND = 'message to delete not found'


class TelegramDestination(BaseDestination):
    """
    Telegram chat destination.

    Usage:
        destination = TelegramDestination(bot_token, chat_id)
        if destination.test_connection():
            message_id = destination.send('<b>Trend:</b> Bullish')
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        api_base: str = API_BASE,
    ):
        """
        Initialize Telegram destination.

        Args:
            bot_token: Telegram bot token
            chat_id: Target chat id
            retry_attempts: Number of attempts per request
            retry_delay: Base delay between retries (exponential backoff)
            api_base: Bot API base URL
        """
        if not bot_token or not chat_id:
            raise ValueError("Telegram bot token and chat id are required")

        super().__init__(f"telegram:{chat_id}", TELEGRAM_MARKUP)
        self.bot_token = bot_token
        self.chat_id = str(chat_id)
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.api_base = api_base.rstrip('/')

    @property
    def key(self) -> str:
        return f"telegram:{self.chat_id}"

    def _call(self, method: str, payload: Dict[str, Any], failure_kind: str) -> Dict[str, Any]:
        """
        Call a Bot API method with retry logic.

        Returns:
            Decoded response body (ok may be False for API-level errors)

        Raises:
            DestinationError: If every attempt failed at the transport level
        """
        url = f"{self.api_base}/bot{self.bot_token}/{method}"
        last_error = 'no attempts made'

        for attempt in range(self.retry_attempts):
            try:
                response = requests.post(url, json=payload, timeout=10)
                body = response.json()

                if response.status_code == 429:
                    retry_after = body.get('parameters', {}).get('retry_after', 5)
                    logger.warning(f"Telegram rate limited, retry after {retry_after}s")
                    last_error = 'rate limited'
                    time.sleep(retry_after)
                    continue

                return body

            except requests.exceptions.Timeout:
                logger.warning(f"Telegram {method} timeout (attempt {attempt + 1})")
                last_error = 'timeout'
                time.sleep(self.retry_delay * (2 ** attempt))

            except (requests.exceptions.RequestException, ValueError) as e:
                logger.error(f"Telegram {method} request error: {e}")
                last_error = str(e)
                time.sleep(self.retry_delay * (2 ** attempt))

        raise DestinationError(
            f"Telegram {method} failed after {self.retry_attempts} attempts: {last_error}",
            kind=failure_kind,
        )

    @staticmethod
    def render(content: str, embeds: Sequence[Embed] = ()) -> str:
        """Flatten content and embed descriptions into one HTML message."""
        parts = [content] + [e.description for e in embeds]
        return '\n\n'.join(p for p in parts if p)

    def send(self, content: str, embeds: Sequence[Embed] = ()) -> str:
        body = self._call(
            'sendMessage',
            {
                'chat_id': self.chat_id,
                'text': self.render(content, embeds),
                'parse_mode': 'HTML',
                'disable_web_page_preview': True,
            },
            failure_kind='send_failed',
        )
        if not body.get('ok'):
            raise DestinationError(
                f"Telegram send error: {body.get('error_code')} - {body.get('description')}",
                status_code=body.get('error_code'),
            )

        message_id = str(body['result']['message_id'])
        logger.info(f"Telegram message sent to {self.chat_id}: {message_id}")
        return message_id

    def delete(self, message_id: str) -> None:
        body = self._call(
            'deleteMessage',
            {'chat_id': self.chat_id, 'message_id': int(message_id)},
            failure_kind='delete_failed',
        )
        if body.get('ok'):
            logger.info(f"Telegram message deleted from {self.chat_id}: {message_id}")
            return

        description = str(body.get('description', ''))
        if MESSAGE_NOT_FOUND in description.lower():
            logger.debug(f"Telegram message {message_id} already deleted")
            return

        raise DestinationError(
            f"Telegram delete error: {body.get('error_code')} - {description}",
            kind='delete_failed',
            status_code=body.get('error_code'),
        )

    def test_connection(self) -> bool:
        try:
            body = self._call('getChat', {'chat_id': self.chat_id}, failure_kind='send_failed')
        except DestinationError as e:
            logger.error(f"Telegram connection test failed: {e}")
            return False
        if not body.get('ok'):
            logger.error(f"Telegram connection test failed: {body.get('description')}")
            return False
        return True
