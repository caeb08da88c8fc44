"""
Signal Relay Daemon

Main daemon class that orchestrates the relay:
- Signal polling: ready rows in the Signals table -> every destination
- Status announcements: calendar instants -> replace the status message
- Job scheduling via APScheduler
- Health monitoring

Designed for autonomous operation with:
- Graceful startup and shutdown
- Per-tick error isolation (a failed tick never stops the next one)
- Skip-if-busy recurring ticks
"""

import signal
import sys
import logging
import threading
from datetime import datetime
from typing import Optional, Dict, Any, List
from threading import Event

from signal_relay.announcement_calendar import (
    AnnouncementCalendar,
    AnnouncementEvent,
    AnnouncementMarker,
    AnnouncementType,
)
from signal_relay.config import RelayConfig
from signal_relay.coordinators.dispatcher import DeliveryState, Dispatcher
from signal_relay.coordinators.health_monitor import HealthMonitor, RelayStats
from signal_relay.destinations import BaseDestination, DestinationDirectory
from signal_relay.row_store import GoogleSheetsRowStore, RowStore
from signal_relay.scheduler import RelayScheduler
from signal_relay.signal_queue import SignalQueue
from signal_relay.templates import MessageTemplates

logger = logging.getLogger(__name__)


class RelayDaemon:
    """
    Main daemon for signal distribution and status announcements.

    Orchestrates:
    - SignalQueue for ready/sent signal rows
    - MessageTemplates for announcement texts
    - DestinationDirectory for Discord/Telegram discovery
    - Dispatcher for fan-out and status message handles
    - AnnouncementCalendar for announcement timing
    - RelayScheduler for job timing

    Usage:
        daemon = RelayDaemon.from_config(config)
        daemon.start()  # Blocks until shutdown signal

        # Or run a single tick manually:
        daemon.poll_signals()
        daemon.check_announcements()
    """

    def __init__(
        self,
        config: RelayConfig,
        row_store: Optional[RowStore] = None,
        queue: Optional[SignalQueue] = None,
        templates: Optional[MessageTemplates] = None,
        directory: Optional[DestinationDirectory] = None,
        dispatcher: Optional[Dispatcher] = None,
        calendar: Optional[AnnouncementCalendar] = None,
        scheduler: Optional[RelayScheduler] = None,
        market_hours: Optional[Any] = None,
    ):
        """
        Initialize relay daemon.

        Args:
            config: Full relay configuration
            row_store: Optional pre-configured row store
            queue: Optional pre-configured signal queue
            templates: Optional pre-configured template loader
            directory: Optional pre-configured destination directory
            dispatcher: Optional pre-configured dispatcher
            calendar: Optional pre-configured announcement calendar
            scheduler: Optional pre-configured scheduler (for testing)
            market_hours: Optional market session validator for status output
        """
        self.config = config
        self._shutdown_event = Event()
        self._is_running = False

        self.row_store = row_store or GoogleSheetsRowStore(config.sheets)
        self.queue = queue or SignalQueue(self.row_store, config.sheets.signals_table)
        self.templates = templates or MessageTemplates(
            self.row_store, config.sheets.messages_table
        )
        self.directory = directory or DestinationDirectory.from_config(config)
        self.dispatcher = dispatcher or Dispatcher()
        self.calendar = calendar or AnnouncementCalendar(config.announcements)
        self.marker = AnnouncementMarker()
        self.scheduler = scheduler or RelayScheduler(
            config.schedule, timezone=config.announcements.timezone
        )
        self.market_hours = market_hours

        self._stats = RelayStats()
        self._stats_lock = threading.Lock()
        self._known_destinations: List[str] = []

        audit_sinks = []
        if self.directory.logging_destination is not None:
            audit_sinks.append(self.directory.logging_destination)

        self.health_monitor = HealthMonitor(
            stats=self._stats,
            destinations_fn=lambda: list(self._known_destinations),
            scheduler=self.scheduler,
            market_hours=self.market_hours,
            loggers=audit_sinks,
        )

    @classmethod
    def from_config(cls, config: RelayConfig) -> 'RelayDaemon':
        """
        Create daemon from configuration.

        Args:
            config: Relay configuration

        Returns:
            Configured RelayDaemon instance
        """
        from signal_relay.utils.market_hours import MarketHoursValidator

        return cls(
            config=config,
            market_hours=MarketHoursValidator(timezone=config.announcements.timezone),
        )

    def _increment(self, name: str, amount: int = 1) -> None:
        with self._stats_lock:
            setattr(self._stats, name, getattr(self._stats, name) + amount)

    def _discover(self) -> List[BaseDestination]:
        destinations = self.directory.discover()
        self._known_destinations = [d.key for d in destinations]
        return destinations

    # =========================================================================
    # Signal polling
    # =========================================================================

    def poll_signals(self) -> int:
        """
        Run one signal polling tick.

        Every ready signal is sent to every destination, then marked sent
        whether or not the sends succeeded. Store and discovery errors end
        the tick; they are logged and counted, never raised.

        Returns:
            Number of signals processed
        """
        try:
            return self._poll_signals()
        except Exception as e:
            logger.error(f"Signal poll failed: {e}")
            self._increment('error_count')
            return 0

    def _poll_signals(self) -> int:
        self._increment('poll_count')
        self._stats.last_poll = datetime.now()

        queued = self.queue.list_ready_signals()
        if not queued:
            return 0

        destinations = self._discover()
        if not destinations:
            logger.warning(
                f"No destinations available, leaving {len(queued)} signal(s) queued"
            )
            return 0

        processed = 0
        for item in queued:
            results = self.dispatcher.send_signal(destinations, item.signal)
            failures = [r for r in results if r.state == DeliveryState.FAILED]
            if failures:
                self._increment('delivery_failures', len(failures))
                logger.warning(
                    f"Signal row {item.row_id} failed for "
                    f"{[r.destination for r in failures]}; marking sent anyway"
                )

            # Sent means attempted; failed destinations are not retried
            self.queue.mark_sent(item.row_id)
            processed += 1
            self._increment('signal_count')

        logger.info(f"Processed {processed} signal(s)")
        return processed

    # =========================================================================
    # Status announcements
    # =========================================================================

    def check_announcements(self, now: Optional[datetime] = None) -> Optional[AnnouncementEvent]:
        """
        Run one announcement tick.

        Args:
            now: Instant to evaluate (default: current time)

        Returns:
            The dispatched event, or None if nothing was due or dispatched
        """
        try:
            return self._check_announcements(now)
        except Exception as e:
            logger.error(f"Announcement check failed: {e}")
            self._increment('error_count')
            return None

    def _check_announcements(self, now: Optional[datetime]) -> Optional[AnnouncementEvent]:
        now = self.calendar.localize(now) if now is not None else self.calendar.now()

        event = self.calendar.decide(now)
        if event is None:
            return None

        if not self.marker.should_dispatch(event):
            logger.debug(f"Announcement {event.marker} already dispatched")
            return None

        destinations = self._discover()
        if not destinations:
            logger.warning(f"No destinations available for {event.type.value} announcement")
            return None

        if event.type == AnnouncementType.RESET:
            self.dispatcher.clear_announcements(destinations)
        else:
            text = self.calendar.render(event, self.templates.load())
            logger.info(f"Prepared {event.type.value} announcement: {text}")
            self.dispatcher.send_announcement(destinations, event, text)

        self.marker.record(event)
        self._increment('announcement_count')
        self._stats.last_announcement = f"{event.type.value}:{event.date_key}"
        return event

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _health_check(self) -> Dict[str, Any]:
        """Perform health check and return status."""
        return self.health_monitor.health_check()

    def _setup_signal_handlers(self) -> None:
        """Setup OS signal handlers for graceful shutdown."""
        def handle_shutdown(signum, frame):
            logger.info(f"Received signal {signum}, initiating shutdown...")
            self._shutdown_event.set()

        signal.signal(signal.SIGINT, handle_shutdown)
        signal.signal(signal.SIGTERM, handle_shutdown)

        # Windows-specific handling
        if sys.platform == 'win32':
            try:
                signal.signal(signal.SIGBREAK, handle_shutdown)
            except AttributeError:
                pass

    def start(self, block: bool = True) -> None:
        """
        Start the daemon.

        Args:
            block: Block until shutdown signal (default: True)
        """
        if self._is_running:
            logger.warning("Daemon already running")
            return

        logger.info("Starting signal relay...")
        self._stats.start_time = datetime.now()
        self._stats.is_running = True
        self._is_running = True

        try:
            if self.queue.ensure_table():
                logger.info("Created Signals sheet")
        except Exception as e:
            logger.error(f"Could not verify Signals sheet: {e}")

        if block:
            self._setup_signal_handlers()

        self.scheduler.add_interval_job(
            self.poll_signals,
            interval_seconds=self.config.schedule.signal_poll_seconds,
            job_id='poll_signals',
            job_name='Signal Poll',
        )
        self.scheduler.add_interval_job(
            self.check_announcements,
            interval_seconds=self.config.schedule.announcement_poll_seconds,
            job_id='check_announcements',
            job_name='Announcement Check',
        )
        self.scheduler.add_health_check_job(
            self._health_check,
            interval_seconds=self.config.schedule.health_check_seconds,
        )

        self.scheduler.start()

        if self.directory.logging_destination is not None:
            self.directory.logging_destination.log_daemon_started()

        logger.info("Signal relay started successfully")

        if block:
            self._run_loop()

    def _run_loop(self) -> None:
        """Main daemon loop - waits for shutdown signal."""
        logger.info("Daemon entering main loop (Ctrl+C to stop)")

        try:
            while not self._shutdown_event.is_set():
                self._shutdown_event.wait(timeout=1.0)
        except KeyboardInterrupt:
            logger.info("KeyboardInterrupt received")

        self.shutdown()

    def stop(self) -> None:
        """Request shutdown of a blocking start()."""
        self._shutdown_event.set()

    def shutdown(self) -> None:
        """Shutdown the daemon gracefully."""
        if not self._is_running:
            return

        logger.info("Shutting down signal relay...")

        self.scheduler.shutdown(wait=True)

        self._stats.is_running = False
        self._health_check()

        if self.directory.logging_destination is not None:
            self.directory.logging_destination.log_daemon_stopped('graceful_shutdown')

        self._is_running = False
        logger.info("Signal relay shutdown complete")

    def test_destinations(self) -> Dict[str, bool]:
        """
        Test all discovered destinations.

        Returns:
            Dictionary of destination key -> test_passed
        """
        results = {}
        for destination in self._discover():
            try:
                results[destination.key] = destination.test_connection()
            except Exception as e:
                logger.error(f"Destination test failed ({destination.name}): {e}")
                results[destination.key] = False
        return results

    @property
    def is_running(self) -> bool:
        """Check if daemon is running."""
        return self._is_running

    @property
    def stats(self) -> RelayStats:
        return self._stats

    def get_status(self) -> Dict[str, Any]:
        """
        Get daemon status.

        Returns:
            Status dictionary
        """
        return {
            'running': self._is_running,
            'start_time': self._stats.start_time.isoformat() if self._stats.start_time else None,
            'poll_count': self._stats.poll_count,
            'signal_count': self._stats.signal_count,
            'delivery_failures': self._stats.delivery_failures,
            'announcement_count': self._stats.announcement_count,
            'error_count': self._stats.error_count,
            'destinations': list(self._known_destinations),
            'status_handles': len(self.dispatcher.handles),
            'last_announcement': self.marker.last,
            'dry_run': self.config.dry_run,
            'scheduler': self.scheduler.get_status(),
            'config': {
                'signal_poll_seconds': self.config.schedule.signal_poll_seconds,
                'announcement_poll_seconds': self.config.schedule.announcement_poll_seconds,
                'timezone': self.config.announcements.timezone,
                'market_open_time': self.config.announcements.market_open_time,
                'closing_time': self.config.announcements.closing_time,
                'midnight_time': self.config.announcements.midnight_time,
            },
        }
