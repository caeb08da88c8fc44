"""
HealthMonitor - Relay health reporting

Responsibilities:
- Generate health status with uptime, counts and component status
- Report the NYSE session state alongside relay state
- Log health checks via the logging destination
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Dict, Any, Optional, Protocol

logger = logging.getLogger(__name__)


class SchedulerProtocol(Protocol):
    """Protocol for scheduler status."""
    def get_status(self) -> Dict[str, Any]: ...


class MarketHoursProtocol(Protocol):
    """Protocol for market session lookups."""
    def session_summary(self, dt: Optional[datetime] = None) -> Dict[str, Any]: ...


@dataclass
class RelayStats:
    """
    Relay statistics container.

    Passed to HealthMonitor so it can read current stats without
    direct access to daemon internals.
    """
    start_time: Optional[datetime] = None
    is_running: bool = False
    poll_count: int = 0
    signal_count: int = 0
    delivery_failures: int = 0
    announcement_count: int = 0
    error_count: int = 0
    last_poll: Optional[datetime] = None
    last_announcement: Optional[str] = None


class HealthMonitor:
    """
    Monitors relay health.

    Args:
        stats: RelayStats with current statistics
        destinations_fn: Callable returning the current destination keys
        scheduler: Scheduler instance for status info
        market_hours: Optional market session validator
        loggers: Destinations exposing log_health_check()
    """

    def __init__(
        self,
        stats: RelayStats,
        destinations_fn,
        scheduler: Optional[SchedulerProtocol] = None,
        market_hours: Optional[MarketHoursProtocol] = None,
        loggers: Optional[List[Any]] = None,
    ):
        self._stats = stats
        self._destinations_fn = destinations_fn
        self._scheduler = scheduler
        self._market_hours = market_hours
        self._loggers = loggers or []

    def health_check(self) -> Dict[str, Any]:
        """
        Perform health check and return status.

        Returns:
            Health status dictionary with:
            - status: 'healthy' or 'stopped'
            - uptime_seconds: Time since daemon start
            - poll_count, signal_count, delivery_failures, announcement_count, error_count
            - destinations: Current destination keys
            - scheduler: Scheduler status dict
            - market: NYSE session state (if available)
        """
        uptime = None
        if self._stats.start_time:
            uptime = (datetime.now() - self._stats.start_time).total_seconds()

        try:
            destinations = list(self._destinations_fn())
        except Exception as e:
            logger.warning(f"Failed to list destinations for health check: {e}")
            destinations = []

        status = {
            'status': 'healthy' if self._stats.is_running else 'stopped',
            'uptime_seconds': uptime,
            'poll_count': self._stats.poll_count,
            'signal_count': self._stats.signal_count,
            'delivery_failures': self._stats.delivery_failures,
            'announcement_count': self._stats.announcement_count,
            'error_count': self._stats.error_count,
            'last_poll': self._stats.last_poll.isoformat() if self._stats.last_poll else None,
            'last_announcement': self._stats.last_announcement,
            'destinations': destinations,
            'scheduler': self._scheduler.get_status() if self._scheduler else {},
        }

        if self._market_hours is not None:
            try:
                status['market'] = self._market_hours.session_summary()
            except Exception as e:
                logger.warning(f"Failed to get market session: {e}")
                status['market'] = {'error': str(e)}

        self._log_health_check(status)

        return status

    def _log_health_check(self, status: Dict[str, Any]) -> None:
        """Log health check via logging destinations."""
        for sink in self._loggers:
            try:
                sink.log_health_check(status)
            except Exception as e:
                logger.warning(f"Failed to log health check: {e}")
