"""
Relay Scheduler

APScheduler-based job scheduling for the relay's recurring ticks.
Timezone aware, with per-job execution stats.

Recurring ticks are skip-if-busy: with max_instances=1 a fire that arrives
while the previous run of the same job is still going is dropped and
counted in the job's skipped_count, and coalesce folds a backlog into a
single run.
Different jobs run concurrently on the scheduler's thread pool.
"""

import logging
from datetime import datetime
from typing import Optional, Callable, Dict, Any, List

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.events import (
    EVENT_JOB_EXECUTED,
    EVENT_JOB_ERROR,
    EVENT_JOB_MISSED,
    EVENT_JOB_MAX_INSTANCES,
    JobEvent,
)
import pytz

from signal_relay.config import ScheduleConfig

logger = logging.getLogger(__name__)


class RelayScheduler:
    """
    APScheduler-based job scheduler for the relay.

    Manages interval jobs for:
    - Signal polling
    - Announcement checks
    - Health checks

    Usage:
        scheduler = RelayScheduler()
        scheduler.add_interval_job(poll_callback, 30, 'poll_signals')
        scheduler.start()
        # ... later ...
        scheduler.shutdown()
    """

    def __init__(
        self,
        config: Optional[ScheduleConfig] = None,
        timezone: str = 'America/New_York'
    ):
        """
        Initialize relay scheduler.

        Args:
            config: Schedule configuration
            timezone: Timezone for scheduling (default: America/New_York)
        """
        self.config = config or ScheduleConfig()
        self.timezone = pytz.timezone(timezone)

        self._scheduler = BackgroundScheduler(
            timezone=self.timezone,
            job_defaults={
                'coalesce': True,  # Combine missed runs
                'max_instances': 1,  # Skip a tick while the previous one runs
                'misfire_grace_time': self.config.misfire_grace_time,
            }
        )

        # Job tracking
        self._jobs: Dict[str, str] = {}  # name -> job_id
        self._job_stats: Dict[str, Dict[str, Any]] = {}
        self._is_running = False

        self._scheduler.add_listener(
            self._on_job_executed,
            EVENT_JOB_EXECUTED
        )
        self._scheduler.add_listener(
            self._on_job_error,
            EVENT_JOB_ERROR
        )
        self._scheduler.add_listener(
            self._on_job_missed,
            EVENT_JOB_MISSED
        )
        self._scheduler.add_listener(
            self._on_job_skipped,
            EVENT_JOB_MAX_INSTANCES
        )

    def _on_job_executed(self, event: JobEvent) -> None:
        """Handle successful job execution."""
        job_id = event.job_id
        if job_id in self._job_stats:
            self._job_stats[job_id]['last_run'] = datetime.now()
            self._job_stats[job_id]['run_count'] += 1
            self._job_stats[job_id]['last_status'] = 'success'
        logger.debug(f"Job executed: {job_id}")

    def _on_job_error(self, event: JobEvent) -> None:
        """Handle job execution error."""
        job_id = event.job_id
        if job_id in self._job_stats:
            self._job_stats[job_id]['last_run'] = datetime.now()
            self._job_stats[job_id]['error_count'] += 1
            self._job_stats[job_id]['last_status'] = 'error'
            self._job_stats[job_id]['last_error'] = str(event.exception)
        logger.error(f"Job error: {job_id} - {event.exception}")

    def _on_job_missed(self, event: JobEvent) -> None:
        """Handle missed job."""
        job_id = event.job_id
        if job_id in self._job_stats:
            self._job_stats[job_id]['missed_count'] += 1
            self._job_stats[job_id]['last_status'] = 'missed'
        logger.warning(f"Job missed: {job_id}")

    def _on_job_skipped(self, event: JobEvent) -> None:
        """Handle a fire skipped because the previous run is still active."""
        job_id = event.job_id
        if job_id in self._job_stats:
            self._job_stats[job_id]['skipped_count'] += 1
        logger.info(f"Job still running, skipped tick: {job_id}")

    def _new_stats(self, name: str) -> Dict[str, Any]:
        return {
            'name': name,
            'run_count': 0,
            'error_count': 0,
            'missed_count': 0,
            'skipped_count': 0,
            'last_run': None,
            'last_status': 'pending',
            'last_error': None,
        }

    def add_interval_job(
        self,
        callback: Callable,
        interval_seconds: int,
        job_id: str,
        job_name: Optional[str] = None,
        run_immediately: Optional[bool] = None,
    ) -> str:
        """
        Add periodic interval job.

        Args:
            callback: Function to call on interval
            interval_seconds: Interval in seconds
            job_id: Unique job identifier
            job_name: Human-readable job name
            run_immediately: Fire once at start (default: config.run_immediately)

        Returns:
            Job ID
        """
        if run_immediately is None:
            run_immediately = self.config.run_immediately

        kwargs: Dict[str, Any] = {}
        if run_immediately:
            kwargs['next_run_time'] = datetime.now(self.timezone)

        job = self._scheduler.add_job(
            callback,
            trigger='interval',
            seconds=interval_seconds,
            id=job_id,
            name=job_name or job_id,
            replace_existing=True,
            **kwargs,
        )

        self._jobs[job_id] = job.id
        self._job_stats[job.id] = self._new_stats(job_name or job_id)

        logger.info(f"Added interval job: {job.id} (every {interval_seconds}s)")
        return job.id

    def add_health_check_job(
        self,
        callback: Callable,
        interval_seconds: int = 300,
        job_id: str = 'health_check'
    ) -> str:
        """
        Add periodic health check job.

        Args:
            callback: Health check function
            interval_seconds: Check interval in seconds
            job_id: Unique job identifier

        Returns:
            Job ID
        """
        job = self._scheduler.add_job(
            callback,
            trigger='interval',
            seconds=interval_seconds,
            id=job_id,
            name='Health Check',
            replace_existing=True,
        )

        self._jobs['health_check'] = job.id
        logger.info(f"Added health check job: {job.id}")
        return job.id

    def start(self) -> None:
        """Start the scheduler."""
        if self._is_running:
            logger.warning("Scheduler already running")
            return

        self._scheduler.start()
        self._is_running = True
        logger.info("Scheduler started")

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown the scheduler gracefully.

        Args:
            wait: Wait for running jobs to complete
        """
        if not self._is_running:
            logger.warning("Scheduler not running")
            return

        self._scheduler.shutdown(wait=wait)
        self._is_running = False
        logger.info("Scheduler shutdown complete")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._is_running

    def get_next_run_times(self) -> Dict[str, Optional[datetime]]:
        """
        Get next run time for each job.

        Returns:
            Dictionary of job_name -> next_run_time
        """
        result = {}
        for name, job_id in self._jobs.items():
            job = self._scheduler.get_job(job_id)
            if job:
                result[name] = job.next_run_time
            else:
                result[name] = None
        return result

    def get_status(self) -> Dict[str, Any]:
        """
        Get overall scheduler status.

        Returns:
            Status dictionary
        """
        return {
            'running': self._is_running,
            'timezone': str(self.timezone),
            'jobs_count': len(self._jobs),
            'jobs': list(self._jobs.keys()),
            'next_runs': {
                name: str(dt) if dt else None
                for name, dt in self.get_next_run_times().items()
            },
            'job_stats': self.get_jobs_summary(),
        }

    def get_jobs_summary(self) -> List[Dict[str, Any]]:
        """
        Get summary of all scheduled jobs.

        Returns:
            List of job summaries
        """
        summaries = []
        for name, job_id in self._jobs.items():
            job = self._scheduler.get_job(job_id)
            stats = self._job_stats.get(job_id, {})

            summary = {
                'name': name,
                'job_id': job_id,
                'next_run': str(job.next_run_time) if job else None,
                'run_count': stats.get('run_count', 0),
                'error_count': stats.get('error_count', 0),
                'missed_count': stats.get('missed_count', 0),
                'skipped_count': stats.get('skipped_count', 0),
                'last_status': stats.get('last_status', 'unknown'),
            }
            summaries.append(summary)

        return summaries
