"""
Market hours lookups for NYSE sessions.

Used for status and health reporting: whether today is a trading day,
whether the market is currently open, and when the next session opens.
Announcement timing itself runs off the fixed wall-clock instants in
AnnouncementConfig, not off this calendar.

Holiday and early-close data comes from pandas_market_calendars.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, date, timedelta
from typing import Any, Dict, Optional

import pandas_market_calendars as mcal
import pytz

logger = logging.getLogger(__name__)

# Longest NYSE closure streak is well under two weeks
LOOKAHEAD_DAYS = 14


@dataclass
class MarketSchedule:
    """Market schedule for a single trading day."""

    date: date
    is_trading_day: bool
    market_open: Optional[datetime] = None
    market_close: Optional[datetime] = None
    is_early_close: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'date': self.date.isoformat(),
            'is_trading_day': self.is_trading_day,
            'market_open': self.market_open.isoformat() if self.market_open else None,
            'market_close': self.market_close.isoformat() if self.market_close else None,
            'is_early_close': self.is_early_close,
        }


@dataclass
class MarketHoursValidator:
    """
    NYSE session lookups with holiday and early close support.

    Args:
        timezone: Timezone for time comparisons (default: America/New_York)
        calendar_name: Market calendar name (default: NYSE)

    Example:
        validator = MarketHoursValidator()
        validator.session_summary()
    """

    timezone: str = 'America/New_York'
    calendar_name: str = 'NYSE'
    _tz: pytz.BaseTzInfo = field(init=False, repr=False)
    _calendar: mcal.MarketCalendar = field(init=False, repr=False)

    def __post_init__(self):
        """Initialize timezone and calendar objects."""
        self._tz = pytz.timezone(self.timezone)
        self._calendar = mcal.get_calendar(self.calendar_name)

    def _localize(self, dt: Optional[datetime]) -> datetime:
        if dt is None:
            return datetime.now(self._tz)
        if dt.tzinfo is None:
            return self._tz.localize(dt)
        return dt.astimezone(self._tz)

    def get_schedule(self, d: Optional[date] = None) -> MarketSchedule:
        """
        Get market schedule for a specific date.

        Args:
            d: Date to get schedule for (default: today)

        Returns:
            MarketSchedule with open/close times or is_trading_day=False
        """
        if d is None:
            d = datetime.now(self._tz).date()

        schedule_df = self._calendar.schedule(start_date=d, end_date=d)

        if schedule_df.empty:
            return MarketSchedule(date=d, is_trading_day=False)

        market_open = schedule_df.iloc[0]['market_open']
        market_close = schedule_df.iloc[0]['market_close']

        # Normal close is 16:00 ET
        close_hour = market_close.tz_convert(self._tz).hour

        return MarketSchedule(
            date=d,
            is_trading_day=True,
            market_open=market_open.to_pydatetime(),
            market_close=market_close.to_pydatetime(),
            is_early_close=close_hour < 16,
        )

    def is_trading_day(self, d: Optional[date] = None) -> bool:
        """True if the date is an NYSE trading day (default: today)."""
        if d is None:
            d = datetime.now(self._tz).date()
        return self.get_schedule(d).is_trading_day

    def is_market_hours(self, dt: Optional[datetime] = None) -> bool:
        """
        Check if given time is within NYSE market hours.

        Args:
            dt: Datetime to check (default: current time)

        Returns:
            True if within market hours, False otherwise
        """
        dt = self._localize(dt)
        schedule = self.get_schedule(dt.date())

        if not schedule.is_trading_day:
            logger.debug(f"Market closed: {dt.date()} is not a trading day")
            return False

        assert schedule.market_open is not None and schedule.market_close is not None
        return schedule.market_open <= dt <= schedule.market_close

    def next_open(self, dt: Optional[datetime] = None) -> Optional[datetime]:
        """
        Next session open strictly after the given time.

        Returns:
            Open time in the validator's timezone, or None if none found
        """
        dt = self._localize(dt)
        schedule_df = self._calendar.schedule(
            start_date=dt.date(),
            end_date=dt.date() + timedelta(days=LOOKAHEAD_DAYS),
        )
        for market_open in schedule_df['market_open']:
            opened = market_open.tz_convert(self._tz).to_pydatetime()
            if opened > dt:
                return opened
        return None

    def session_summary(self, dt: Optional[datetime] = None) -> Dict[str, Any]:
        """Session state for status output."""
        dt = self._localize(dt)
        schedule = self.get_schedule(dt.date())
        next_open = self.next_open(dt)
        return {
            'trading_day': schedule.is_trading_day,
            'open': self.is_market_hours(dt),
            'early_close': schedule.is_early_close,
            'next_open': next_open.isoformat() if next_open else None,
        }
