"""
Announcement Calendar

Decides which status announcement, if any, is due at a given instant in
the business timezone (US Eastern by default):

1. Weekday at market open -> RESET (clear the previous status message)
2. Weekday at the midday instant -> CLOSING (Mon-Thu) or WEEKEND (Fri)
3. Midnight -> MIDNIGHT
4. Anything else -> nothing

Matching is minute-granular. Each (type, date) pair is dispatched at most
once per process via AnnouncementMarker; the marker lives in memory only,
so a restart inside a matching minute can repeat an announcement and a
process that is down for the whole minute skips it.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Dict, Optional, Tuple

import pytz

from signal_relay.config import AnnouncementConfig, parse_clock
from signal_relay.templates import render_template

logger = logging.getLogger(__name__)

FRIDAY = 4
SATURDAY = 5
SUNDAY = 6

# Locale-independent, unlike strftime('%A')
WEEKDAY_NAMES = (
    'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday',
)


class AnnouncementType(str, Enum):
    """Status announcement kinds."""
    RESET = 'reset'
    CLOSING = 'closing'
    WEEKEND = 'weekend'
    MIDNIGHT = 'midnight'


@dataclass(frozen=True)
class AnnouncementEvent:
    """A due announcement."""
    type: AnnouncementType
    date_key: str
    next_business_day: Optional[str] = None

    @property
    def marker(self) -> Tuple[str, str]:
        return (self.type.value, self.date_key)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            'type': self.type.value,
            'date_key': self.date_key,
            'next_business_day': self.next_business_day,
        }


def next_business_day(day: date) -> date:
    """
    Next weekday after the given date.

    Advances one day; Saturday or Sunday roll forward to Monday.
    Holidays are not considered.
    """
    nxt = day + timedelta(days=1)
    if nxt.weekday() == SATURDAY:
        nxt += timedelta(days=2)
    elif nxt.weekday() == SUNDAY:
        nxt += timedelta(days=1)
    return nxt


def format_day(day: date) -> str:
    """Weekday name used in announcement texts, e.g. 'Monday'."""
    return WEEKDAY_NAMES[day.weekday()]


def _same_minute(current: time, target: time) -> bool:
    return current.hour == target.hour and current.minute == target.minute


class AnnouncementCalendar:
    """
    Pure decision function over wall-clock time.

    Usage:
        calendar = AnnouncementCalendar(config.announcements)
        event = calendar.decide(datetime.now(calendar.timezone))
    """

    def __init__(self, config: Optional[AnnouncementConfig] = None):
        self.config = config or AnnouncementConfig()
        self.timezone = pytz.timezone(self.config.timezone)
        self.market_open = parse_clock(self.config.market_open_time)
        self.closing = parse_clock(self.config.closing_time)
        self.midnight = parse_clock(self.config.midnight_time)

    def localize(self, now: datetime) -> datetime:
        """Convert to the business timezone; naive datetimes are taken as local business time."""
        if now.tzinfo is None:
            return self.timezone.localize(now)
        return now.astimezone(self.timezone)

    def now(self) -> datetime:
        return datetime.now(self.timezone)

    def decide(self, now: datetime) -> Optional[AnnouncementEvent]:
        """
        Decide which announcement is due at `now`.

        Returns:
            AnnouncementEvent or None
        """
        local = self.localize(now)
        today = local.date()
        clock = local.time()
        weekday = local.weekday() < SATURDAY
        date_key = today.isoformat()

        if weekday and _same_minute(clock, self.market_open):
            return AnnouncementEvent(AnnouncementType.RESET, date_key)

        if weekday and _same_minute(clock, self.closing):
            kind = (
                AnnouncementType.WEEKEND if local.weekday() == FRIDAY
                else AnnouncementType.CLOSING
            )
            return AnnouncementEvent(
                kind,
                date_key,
                next_business_day=format_day(next_business_day(today)),
            )

        if _same_minute(clock, self.midnight):
            if self.config.midnight_weekdays_only and not weekday:
                return None
            return AnnouncementEvent(AnnouncementType.MIDNIGHT, date_key)

        return None

    def render(self, event: AnnouncementEvent, templates: Dict[str, str]) -> Optional[str]:
        """
        Resolve the announcement text for an event.

        Returns:
            Rendered text, or None for RESET (nothing is sent)
        """
        if event.type == AnnouncementType.RESET:
            return None
        template = templates[event.type.value]
        return render_template(template, event.next_business_day or '')


class AnnouncementMarker:
    """Single in-memory (type, date) marker of the last dispatched announcement."""

    def __init__(self):
        self._last: Optional[Tuple[str, str]] = None

    @property
    def last(self) -> Optional[Tuple[str, str]]:
        return self._last

    def should_dispatch(self, event: AnnouncementEvent) -> bool:
        return event.marker != self._last

    def record(self, event: AnnouncementEvent) -> None:
        self._last = event.marker
        logger.debug(f"Recorded announcement marker {self._last}")
