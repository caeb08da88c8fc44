"""
Tests for signal_relay/destinations/telegram_destination.py

Covers:
- sendMessage payload (HTML parse mode, flattened embeds)
- API-level errors and transport retries
- deleteMessage with already-deleted messages
- getChat connection test
"""

import pytest
from unittest.mock import Mock, patch

import requests

from signal_relay.destinations.base import DestinationError
from signal_relay.destinations.telegram_destination import TelegramDestination
from signal_relay.formatting import TELEGRAM_MARKUP, Embed


POST = 'signal_relay.destinations.telegram_destination.requests.post'
SLEEP = 'signal_relay.destinations.telegram_destination.time.sleep'


@pytest.fixture
def telegram():
    return TelegramDestination(
        bot_token='123:abc',
        chat_id='-1001',
        retry_attempts=2,
        retry_delay=0.01,
    )


def reply(body, status_code=200):
    return Mock(status_code=status_code, json=lambda: body)


# ============================================================================
# Construction and rendering
# ============================================================================

class TestInit:
    """Tests for destination construction."""

    def test_requires_token_and_chat(self):
        with pytest.raises(ValueError):
            TelegramDestination(bot_token='', chat_id='1')
        with pytest.raises(ValueError):
            TelegramDestination(bot_token='t', chat_id='')

    def test_key_and_markup(self, telegram):
        assert telegram.key == 'telegram:-1001'
        assert telegram.markup == TELEGRAM_MARKUP


class TestRender:
    """Tests for embed flattening."""

    def test_content_then_embeds(self):
        text = TelegramDestination.render('body', [Embed(description='disclaimer')])

        assert text == 'body\n\ndisclaimer'

    def test_embed_only(self):
        assert TelegramDestination.render('', [Embed(description='Closed')]) == 'Closed'

    def test_content_only(self):
        assert TelegramDestination.render('body') == 'body'


# ============================================================================
# send
# ============================================================================

class TestSend:
    """Tests for sendMessage."""

    @patch(POST)
    def test_send_returns_message_id(self, mock_post, telegram):
        mock_post.return_value = reply({'ok': True, 'result': {'message_id': 77}})

        message_id = telegram.send('<b>Trend:</b> Bullish', [Embed(description='⚠️ risk')])

        assert message_id == '77'
        args, kwargs = mock_post.call_args
        assert args[0] == 'https://api.telegram.org/bot123:abc/sendMessage'
        assert kwargs['json'] == {
            'chat_id': '-1001',
            'text': '<b>Trend:</b> Bullish\n\n⚠️ risk',
            'parse_mode': 'HTML',
            'disable_web_page_preview': True,
        }

    @patch(POST)
    def test_api_error_raises(self, mock_post, telegram):
        mock_post.return_value = reply(
            {'ok': False, 'error_code': 400, 'description': "Bad Request: can't parse entities"},
            status_code=400,
        )

        with pytest.raises(DestinationError) as exc_info:
            telegram.send('<b>broken')

        assert exc_info.value.kind == 'send_failed'
        assert exc_info.value.status_code == 400

    @patch(SLEEP)
    @patch(POST)
    def test_rate_limit_retry(self, mock_post, mock_sleep, telegram):
        mock_post.side_effect = [
            reply({'ok': False, 'parameters': {'retry_after': 3}}, status_code=429),
            reply({'ok': True, 'result': {'message_id': 5}}),
        ]

        assert telegram.send('hi') == '5'
        mock_sleep.assert_called_with(3)

    @patch(SLEEP)
    @patch(POST)
    def test_timeout_retry(self, mock_post, mock_sleep, telegram):
        mock_post.side_effect = [
            requests.exceptions.Timeout(),
            reply({'ok': True, 'result': {'message_id': 6}}),
        ]

        assert telegram.send('hi') == '6'
        assert mock_post.call_count == 2

    @patch(SLEEP)
    @patch(POST)
    def test_transport_failure_exhausts_attempts(self, mock_post, mock_sleep, telegram):
        mock_post.side_effect = requests.exceptions.ConnectionError('refused')

        with pytest.raises(DestinationError) as exc_info:
            telegram.send('hi')

        assert exc_info.value.kind == 'send_failed'
        assert mock_post.call_count == 2


# ============================================================================
# delete
# ============================================================================

class TestDelete:
    """Tests for deleteMessage."""

    @patch(POST)
    def test_delete_success(self, mock_post, telegram):
        mock_post.return_value = reply({'ok': True, 'result': True})

        telegram.delete('77')

        args, kwargs = mock_post.call_args
        assert args[0].endswith('/deleteMessage')
        assert kwargs['json'] == {'chat_id': '-1001', 'message_id': 77}

    @patch(POST)
    def test_already_deleted_is_ok(self, mock_post, telegram):
        mock_post.return_value = reply({
            'ok': False,
            'error_code': 400,
            'description': 'Bad Request: message to delete not found',
        }, status_code=400)

        telegram.delete('77')

    @patch(POST)
    def test_other_errors_raise(self, mock_post, telegram):
        mock_post.return_value = reply({
            'ok': False,
            'error_code': 400,
            'description': "Bad Request: message can't be deleted",
        }, status_code=400)

        with pytest.raises(DestinationError) as exc_info:
            telegram.delete('77')

        assert exc_info.value.kind == 'delete_failed'

    @patch(SLEEP)
    @patch(POST)
    def test_transport_failure_is_delete_failed(self, mock_post, mock_sleep, telegram):
        mock_post.side_effect = requests.exceptions.Timeout()

        with pytest.raises(DestinationError) as exc_info:
            telegram.delete('77')

        assert exc_info.value.kind == 'delete_failed'


# ============================================================================
# test_connection
# ============================================================================

class TestConnection:
    """Tests for getChat connection check."""

    @patch(POST)
    def test_connection_ok(self, mock_post, telegram):
        mock_post.return_value = reply({'ok': True, 'result': {'id': -1001}})

        assert telegram.test_connection() is True
        assert mock_post.call_args[0][0].endswith('/getChat')

    @patch(POST)
    def test_connection_chat_not_found(self, mock_post, telegram):
        mock_post.return_value = reply(
            {'ok': False, 'error_code': 400, 'description': 'Bad Request: chat not found'},
            status_code=400,
        )

        assert telegram.test_connection() is False

    @patch(SLEEP)
    @patch(POST)
    def test_connection_unreachable(self, mock_post, mock_sleep, telegram):
        mock_post.side_effect = requests.exceptions.ConnectionError()

        assert telegram.test_connection() is False
