"""
Logging Destination

Structured logging sink used for dry runs and as an audit trail.
Messages are written to a dedicated logger instead of a chat service and
receive synthetic message ids, so deletes and handle tracking behave the
same as for real destinations.

Log Format:
- JSON structured logs for machine parsing (optional rotating file)
- Human-readable console output
"""

import logging
import json
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Sequence
from pathlib import Path
from logging.handlers import RotatingFileHandler

from signal_relay.destinations.base import BaseDestination
from signal_relay.formatting import DISCORD_MARKUP, Embed, Markup

MESSAGE_LOGGER = 'signal_relay.messages'


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
        }

        if hasattr(record, 'message_data'):
            log_entry['payload'] = record.message_data

        if hasattr(record, 'extra'):
            log_entry['extra'] = record.extra

        return json.dumps(log_entry, default=str)


class LoggingDestination(BaseDestination):
    """
    Logging sink destination.

    Usage:
        destination = LoggingDestination(log_file='logs/messages.log')
        destination.send('**Trend:** Bullish')
    """

    def __init__(
        self,
        log_file: Optional[str] = None,
        level: str = 'INFO',
        console_output: bool = True,
        markup: Markup = DISCORD_MARKUP,
    ):
        """
        Initialize logging destination.

        Args:
            log_file: Optional path for the JSON log (rotating)
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            console_output: Whether to also log to console
            markup: Markup dialect to render messages in
        """
        super().__init__('logging', markup)

        self.logger = logging.getLogger(MESSAGE_LOGGER)
        self.logger.setLevel(getattr(logging, level.upper()))

        # Keep message payloads out of the application log
        self.logger.propagate = False
        self.logger.handlers = []

        if log_file:
            path = Path(log_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                str(path),
                maxBytes=10 * 1024 * 1024,  # 10 MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setFormatter(JSONFormatter())
            self.logger.addHandler(file_handler)

        if console_output:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(logging.Formatter(
                '%(asctime)s | %(levelname)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(console_handler)

        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())

    @property
    def key(self) -> str:
        return 'logging'

    def _emit(self, level: int, msg: str, data: Dict[str, Any]) -> None:
        record = self.logger.makeRecord(
            self.logger.name,
            level,
            __file__,
            0,
            msg,
            (),
            None
        )
        record.message_data = data
        self.logger.handle(record)

    def send(self, content: str, embeds: Sequence[Embed] = ()) -> str:
        message_id = uuid.uuid4().hex
        self._emit(
            logging.INFO,
            f"MESSAGE {message_id}: {content or '(embed only)'}",
            {
                'message_id': message_id,
                'content': content,
                'embeds': [e.to_dict() for e in embeds],
            },
        )
        return message_id

    def delete(self, message_id: str) -> None:
        self._emit(logging.INFO, f"DELETE {message_id}", {'message_id': message_id})

    def test_connection(self) -> bool:
        self.logger.info("Logging destination connection test")
        return True

    def log_daemon_started(self) -> None:
        self.logger.info("DAEMON STARTED: Signal relay is running")

    def log_daemon_stopped(self, reason: str = 'shutdown') -> None:
        self.logger.info(f"DAEMON STOPPED: {reason}")

    def log_health_check(self, status: Dict[str, Any]) -> None:
        """Log health check status."""
        record = self.logger.makeRecord(
            self.logger.name,
            logging.DEBUG,
            __file__,
            0,
            "HEALTH CHECK",
            (),
            None
        )
        record.extra = status
        self.logger.handle(record)
