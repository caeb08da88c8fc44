"""
Signal Queue

Reads ready, unsent trade signals from the Signals table and flips their
Sent flag once delivery has been attempted.

A row is queued when its Ready cell is truthy and its Sent cell is not.
Rows are never deleted; Sent is the only field the relay writes.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from signal_relay.row_store import Row, RowStore

logger = logging.getLogger(__name__)

SIGNAL_HEADERS = [
    'Ready',
    'Trend',
    'Trend Score',
    'Trend Lock Activated',
    'Securities',
    'Morning Breaker Entry',
    'Stop',
    'Entry',
    'Target',
    'Reverse Signal Detected',
    'Sent',
]

MORNING_BREAKER_ON = 'ON'


def is_truthy(value: Any) -> bool:
    """Checkbox cells arrive as booleans, typed cells as 'TRUE'/'true'."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == 'true'
    return False


def _text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _score(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class Signal:
    """
    A single trade signal as written to the Signals table.

    Stop, entry and target are only populated when the morning breaker
    entry flag is ON.
    """
    trend: str
    trend_score: float
    trend_lock_activated: str
    securities: str
    morning_breaker_entry: str
    reverse_signal_detected: str
    stop: Optional[str] = None
    entry: Optional[str] = None
    target: Optional[str] = None
    ready: bool = True

    @property
    def morning_breaker_on(self) -> bool:
        return self.morning_breaker_entry.upper() == MORNING_BREAKER_ON

    @classmethod
    def from_row(cls, row: Row) -> 'Signal':
        """
        Parse a Signal from a table row, best effort.

        Missing text fields become '' and a non-numeric trend score
        becomes 0.0.
        """
        morning_breaker = _text(row.get('Morning Breaker Entry')).upper()
        signal = cls(
            trend=_text(row.get('Trend')),
            trend_score=_score(row.get('Trend Score')),
            trend_lock_activated=_text(row.get('Trend Lock Activated')),
            securities=_text(row.get('Securities')),
            morning_breaker_entry=morning_breaker,
            reverse_signal_detected=_text(row.get('Reverse Signal Detected')),
            ready=is_truthy(row.get('Ready')),
        )
        if signal.morning_breaker_on:
            signal.stop = _text(row.get('Stop')) or None
            signal.entry = _text(row.get('Entry')) or None
            signal.target = _text(row.get('Target')) or None
        return signal

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class QueuedSignal:
    """A ready signal together with its row identity."""
    signal: Signal
    row_id: int


class SignalQueue:
    """
    Ready/Sent flag queue over the Signals table.

    Usage:
        queue = SignalQueue(store)
        for queued in queue.list_ready_signals():
            ...deliver queued.signal...
            queue.mark_sent(queued.row_id)
    """

    def __init__(self, store: RowStore, table: str = 'Signals'):
        self.store = store
        self.table = table

    def ensure_table(self) -> bool:
        """Create the Signals table (or its header row) if missing."""
        return self.store.ensure_table(self.table, SIGNAL_HEADERS)

    def list_ready_signals(self) -> List[QueuedSignal]:
        """
        List signals that are ready and not yet sent, in store order.

        Store errors propagate to the caller. A row that cannot be parsed
        is logged and skipped.
        """
        queued = []
        for row in self.store.read_rows(self.table):
            if not is_truthy(row.get('Ready')) or is_truthy(row.get('Sent')):
                continue
            try:
                signal = Signal.from_row(row)
            except Exception as e:
                logger.error(f"Skipping malformed signal row {row.row_number}: {e}")
                continue
            queued.append(QueuedSignal(signal=signal, row_id=row.row_number))

        if queued:
            logger.info(f"Found {len(queued)} ready signal(s)")
        return queued

    def mark_sent(self, row_id: int) -> bool:
        """
        Set Sent=TRUE on the row with the given identity.

        The table is re-read so a row that disappeared in the meantime is
        detected. A missing row is a silent no-op.

        Returns:
            True if the row was found and updated
        """
        for row in self.store.read_rows(self.table):
            if row.row_number == row_id:
                self.store.update_cell(self.table, row_id, 'Sent', 'TRUE')
                logger.info(f"Marked signal row {row_id} as sent")
                return True

        logger.debug(f"Signal row {row_id} not found, nothing to mark")
        return False
