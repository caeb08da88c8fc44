"""
Tests for signal_relay/coordinators/dispatcher.py

Covers:
- Signal fan-out with per-destination failure isolation
- Formatting per markup dialect
- Announcement replace semantics (delete, send, update handle)
- Handle kept when a send fails, delete failures ignored
- Clearing announcements at market open
- DeliveryResult serialization
"""

import pytest

from signal_relay.announcement_calendar import AnnouncementEvent, AnnouncementType
from signal_relay.coordinators.dispatcher import (
    DeliveryResult,
    DeliveryState,
    Dispatcher,
)
from signal_relay.destinations.base import DestinationError
from signal_relay.formatting import COLORS, TELEGRAM_MARKUP
from signal_relay.signal_queue import Signal
from tests.mocks.mock_destinations import MockDestination


@pytest.fixture
def signal():
    return Signal(
        trend='Bearish',
        trend_score=42.0,
        trend_lock_activated='NO',
        securities='QQQ',
        morning_breaker_entry='OFF',
        reverse_signal_detected='YES',
    )


@pytest.fixture
def discord():
    return MockDestination('discord:1')


@pytest.fixture
def telegram():
    return MockDestination('telegram:42', markup=TELEGRAM_MARKUP)


@pytest.fixture
def dispatcher():
    return Dispatcher()


@pytest.fixture
def closing_event():
    return AnnouncementEvent(AnnouncementType.CLOSING, '2024-03-04', 'Tuesday')


# =============================================================================
# send_signal
# =============================================================================

class TestSendSignal:
    """Test signal fan-out."""

    def test_sends_to_every_destination(self, dispatcher, discord, telegram, signal):
        results = dispatcher.send_signal([discord, telegram], signal)

        assert [r.state for r in results] == [DeliveryState.SENT, DeliveryState.SENT]
        assert len(discord.sent) == 1
        assert len(telegram.sent) == 1

    def test_each_destination_gets_its_markup(self, dispatcher, discord, telegram, signal):
        dispatcher.send_signal([discord, telegram], signal)

        assert discord.last_message['content'].startswith('**Trend:** Bearish')
        assert telegram.last_message['content'].startswith('<b>Trend:</b> Bearish')

    def test_disclaimer_attached_as_embed(self, dispatcher, discord, signal):
        dispatcher.send_signal([discord], signal)

        embeds = discord.last_message['embeds']
        assert len(embeds) == 1
        assert embeds[0].color == COLORS['DISCLAIMER']
        assert 'Risk Disclaimer' in embeds[0].description

    def test_failure_does_not_abort_fan_out(self, dispatcher, discord, telegram, signal):
        discord.fail_send = DestinationError('discord down')

        results = dispatcher.send_signal([discord, telegram], signal)

        assert results[0].state == DeliveryState.FAILED
        assert results[0].error_kind == 'send_failed'
        assert results[0].error == 'discord down'
        assert results[1].state == DeliveryState.SENT
        assert len(telegram.sent) == 1

    def test_unexpected_exception_reported(self, dispatcher, discord, signal):
        discord.fail_send = RuntimeError('bug')

        results = dispatcher.send_signal([discord], signal)

        assert results[0].state == DeliveryState.FAILED
        assert results[0].error_kind == 'unexpected'

    def test_no_destinations(self, dispatcher, signal):
        assert dispatcher.send_signal([], signal) == []

    def test_results_carry_message_ids(self, dispatcher, discord, signal):
        results = dispatcher.send_signal([discord], signal)

        assert results[0].message_id == 'discord:1-msg-1'
        assert results[0].destination == 'discord:1'

    def test_signal_does_not_touch_handles(self, dispatcher, discord, signal):
        dispatcher.send_signal([discord], signal)

        assert dispatcher.handles == {}


# =============================================================================
# send_announcement
# =============================================================================

class TestSendAnnouncement:
    """Test status message replacement."""

    def test_first_announcement_records_handle(self, dispatcher, discord, closing_event):
        dispatcher.send_announcement([discord], closing_event, 'Closed')

        assert dispatcher.handles == {'discord:1': 'discord:1-msg-1'}
        assert discord.deleted == []

    def test_announcement_sent_as_info_embed(self, dispatcher, discord, telegram, closing_event):
        dispatcher.send_announcement([discord, telegram], closing_event, 'Closed & gone')

        assert discord.last_message['content'] == ''
        assert discord.last_message['embeds'][0].description == 'Closed & gone'
        assert discord.last_message['embeds'][0].color == COLORS['INFO']
        assert telegram.last_message['embeds'][0].description == 'ℹ️ Closed &amp; gone'

    def test_second_announcement_deletes_previous_first(self, dispatcher, discord, closing_event):
        dispatcher.send_announcement([discord], closing_event, 'one')
        discord.events.clear()

        dispatcher.send_announcement([discord], closing_event, 'two')

        assert discord.events == [('delete', 'discord:1-msg-1'), ('send', '')]
        assert dispatcher.handles['discord:1'] == 'discord:1-msg-2'

    def test_delete_failure_ignored(self, dispatcher, discord, closing_event):
        dispatcher.send_announcement([discord], closing_event, 'one')
        discord.fail_delete = DestinationError('no perms', kind='delete_failed')

        results = dispatcher.send_announcement([discord], closing_event, 'two')

        assert results[0].state == DeliveryState.SENT
        assert dispatcher.handles['discord:1'] == 'discord:1-msg-2'

    def test_send_failure_keeps_previous_handle(self, dispatcher, discord, closing_event):
        """The old message is deleted but its id stays the handle."""
        dispatcher.send_announcement([discord], closing_event, 'one')
        discord.fail_send = DestinationError('down')

        results = dispatcher.send_announcement([discord], closing_event, 'two')

        assert results[0].state == DeliveryState.FAILED
        assert dispatcher.handles['discord:1'] == 'discord:1-msg-1'

    def test_handles_are_per_destination(self, dispatcher, discord, telegram, closing_event):
        telegram.fail_send = DestinationError('down')

        dispatcher.send_announcement([discord, telegram], closing_event, 'one')

        assert dispatcher.handles == {'discord:1': 'discord:1-msg-1'}

    def test_handles_property_is_a_copy(self, dispatcher, discord, closing_event):
        dispatcher.send_announcement([discord], closing_event, 'one')

        dispatcher.handles.clear()

        assert 'discord:1' in dispatcher.handles


# =============================================================================
# clear_announcements
# =============================================================================

class TestClearAnnouncements:
    """Test market-open reset."""

    def test_clear_deletes_and_forgets(self, dispatcher, discord, closing_event):
        dispatcher.send_announcement([discord], closing_event, 'one')

        results = dispatcher.clear_announcements([discord])

        assert discord.deleted == ['discord:1-msg-1']
        assert results[0].state == DeliveryState.DELETED
        assert dispatcher.handles == {}

    def test_clear_without_handle_is_skipped(self, dispatcher, discord):
        results = dispatcher.clear_announcements([discord])

        assert results[0].state == DeliveryState.SKIPPED
        assert discord.events == []

    def test_clear_sends_nothing(self, dispatcher, discord, closing_event):
        dispatcher.send_announcement([discord], closing_event, 'one')
        discord.events.clear()

        dispatcher.clear_announcements([discord])

        assert [e[0] for e in discord.events] == ['delete']

    def test_clear_delete_failure_reported_and_handle_dropped(
        self, dispatcher, discord, closing_event
    ):
        dispatcher.send_announcement([discord], closing_event, 'one')
        discord.fail_delete = DestinationError('gone', kind='delete_failed')

        results = dispatcher.clear_announcements([discord])

        assert results[0].state == DeliveryState.FAILED
        assert results[0].error_kind == 'delete_failed'
        assert dispatcher.handles == {}


class TestDeliveryResult:
    """Test DeliveryResult dataclass."""

    def test_to_dict(self):
        result = DeliveryResult(
            destination='telegram:42',
            state=DeliveryState.FAILED,
            error_kind='send_failed',
            error='boom',
        )

        data = result.to_dict()

        assert data['destination'] == 'telegram:42'
        assert data['state'] == 'failed'
        assert data['error_kind'] == 'send_failed'
        assert 'timestamp' in data

    def test_ok(self):
        assert DeliveryResult('d', DeliveryState.SENT).ok is True
        assert DeliveryResult('d', DeliveryState.SKIPPED).ok is True
        assert DeliveryResult('d', DeliveryState.FAILED).ok is False
