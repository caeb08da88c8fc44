"""
Utility modules for the signal relay.

Modules:
- market_hours: NYSE session lookups for status reporting
"""

from signal_relay.utils.market_hours import (
    MarketHoursValidator,
    MarketSchedule,
)

__all__ = [
    'MarketHoursValidator',
    'MarketSchedule',
]
