"""
Signal Relay

Distributes trade signals written to a shared Google Sheet to Discord
channels and a Telegram chat exactly once each, and posts calendar-driven
status announcements (midday close, weekend, midnight) that replace the
previous announcement instead of piling up.

Components:
- config.py: Configuration dataclasses (SheetsConfig, DiscordConfig, TelegramConfig,
  ScheduleConfig, AnnouncementConfig, RelayConfig)
- row_store.py: Google Sheets table access
- signal_queue.py: Ready/Sent signal queue
- templates.py: Editable announcement templates with defaults
- formatting.py: Discord markdown / Telegram HTML rendering
- announcement_calendar.py: Announcement timing and dedup marker
- destinations/: Discord, Telegram and logging destinations
- coordinators/: Dispatcher and health monitor
- scheduler.py: APScheduler setup
- daemon.py: Main daemon entry point
"""

from signal_relay.config import (
    SheetsConfig,
    DiscordConfig,
    TelegramConfig,
    ScheduleConfig,
    AnnouncementConfig,
    RelayConfig,
)
from signal_relay.signal_queue import Signal, QueuedSignal, SignalQueue
from signal_relay.templates import MessageTemplates, DEFAULT_TEMPLATES
from signal_relay.announcement_calendar import (
    AnnouncementCalendar,
    AnnouncementEvent,
    AnnouncementMarker,
    AnnouncementType,
    next_business_day,
)
from signal_relay.coordinators import Dispatcher, DeliveryResult, DeliveryState
from signal_relay.scheduler import RelayScheduler
from signal_relay.daemon import RelayDaemon

__all__ = [
    # Config
    'SheetsConfig',
    'DiscordConfig',
    'TelegramConfig',
    'ScheduleConfig',
    'AnnouncementConfig',
    'RelayConfig',
    # Signals
    'Signal',
    'QueuedSignal',
    'SignalQueue',
    # Announcements
    'MessageTemplates',
    'DEFAULT_TEMPLATES',
    'AnnouncementCalendar',
    'AnnouncementEvent',
    'AnnouncementMarker',
    'AnnouncementType',
    'next_business_day',
    # Delivery
    'Dispatcher',
    'DeliveryResult',
    'DeliveryState',
    # Runtime
    'RelayScheduler',
    'RelayDaemon',
]
