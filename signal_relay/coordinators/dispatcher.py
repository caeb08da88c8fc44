"""
Dispatcher - Fan-out of signals and announcements to destinations

Responsibilities:
- Format a signal once per markup dialect and send it to every destination
- Replace each destination's previous status announcement with a new one
- Clear status announcements at market open
- Isolate failures per destination and report them as DeliveryResults

The dispatcher never retries a failed destination within a call; transport
retries belong to the destination clients.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from signal_relay.announcement_calendar import AnnouncementEvent
from signal_relay.destinations.base import BaseDestination, DestinationError
from signal_relay.formatting import (
    Embed,
    Markup,
    announcement_embed,
    disclaimer_embed,
    format_signal,
)
from signal_relay.signal_queue import Signal

logger = logging.getLogger(__name__)


class DeliveryState(Enum):
    """Outcome of one destination operation."""
    SENT = "sent"
    DELETED = "deleted"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeliveryResult:
    """Result of a send or delete against one destination."""
    destination: str
    state: DeliveryState
    message_id: Optional[str] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def ok(self) -> bool:
        return self.state != DeliveryState.FAILED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'destination': self.destination,
            'state': self.state.value,
            'message_id': self.message_id,
            'error_kind': self.error_kind,
            'error': self.error,
            'timestamp': self.timestamp.isoformat(),
        }


def _failure(destination: BaseDestination, e: Exception, default_kind: str) -> DeliveryResult:
    kind = e.kind if isinstance(e, DestinationError) else default_kind
    return DeliveryResult(
        destination=destination.key,
        state=DeliveryState.FAILED,
        error_kind=kind,
        error=str(e),
    )


class Dispatcher:
    """
    Sends signals and status announcements to destinations.

    Keeps one handle (message id) per destination for the most recent
    status announcement, so the next announcement can replace it.

    Usage:
        dispatcher = Dispatcher()
        results = dispatcher.send_signal(destinations, signal)
        dispatcher.send_announcement(destinations, event, text)
    """

    def __init__(self):
        self._handles: Dict[str, str] = {}

    @property
    def handles(self) -> Dict[str, str]:
        """Copy of destination key -> status message id."""
        return dict(self._handles)

    def send_signal(
        self,
        destinations: Sequence[BaseDestination],
        signal: Signal,
    ) -> List[DeliveryResult]:
        """
        Send a signal to every destination.

        Each destination is attempted independently; a failure is logged
        and reported, never raised.

        Returns:
            One DeliveryResult per destination, in order
        """
        rendered: Dict[Markup, Tuple[str, Embed]] = {}
        results = []

        for destination in destinations:
            markup = destination.markup
            if markup not in rendered:
                rendered[markup] = (format_signal(signal, markup), disclaimer_embed(markup))
            body, disclaimer = rendered[markup]

            try:
                message_id = destination.send(body, [disclaimer])
                results.append(DeliveryResult(
                    destination=destination.key,
                    state=DeliveryState.SENT,
                    message_id=message_id,
                ))
            except Exception as e:
                logger.error(f"Signal delivery failed ({destination.name}): {e}")
                results.append(_failure(destination, e, 'unexpected'))

        sent = sum(1 for r in results if r.state == DeliveryState.SENT)
        logger.info(
            f"Signal {signal.securities or signal.trend} delivered to "
            f"{sent}/{len(results)} destination(s)"
        )
        return results

    def _delete_handle(self, destination: BaseDestination) -> Optional[DeliveryResult]:
        """Delete the destination's current status message; failures are logged and ignored."""
        message_id = self._handles.get(destination.key)
        if message_id is None:
            return None
        try:
            destination.delete(message_id)
            return DeliveryResult(
                destination=destination.key,
                state=DeliveryState.DELETED,
                message_id=message_id,
            )
        except Exception as e:
            logger.warning(
                f"Could not delete previous status message {message_id} "
                f"({destination.name}): {e}"
            )
            return _failure(destination, e, 'delete_failed')

    def send_announcement(
        self,
        destinations: Sequence[BaseDestination],
        event: AnnouncementEvent,
        text: str,
    ) -> List[DeliveryResult]:
        """
        Replace each destination's status message with a new announcement.

        Per destination, in order: delete the previous status message
        (failure ignored), send the new one, and remember its id only if the
        send succeeded.

        Returns:
            One DeliveryResult per destination describing the send
        """
        results = []
        for destination in destinations:
            self._delete_handle(destination)

            try:
                message_id = destination.send(
                    '', [announcement_embed(text, destination.markup)]
                )
            except Exception as e:
                logger.error(
                    f"{event.type.value} announcement failed ({destination.name}): {e}"
                )
                results.append(_failure(destination, e, 'unexpected'))
                continue

            self._handles[destination.key] = message_id
            results.append(DeliveryResult(
                destination=destination.key,
                state=DeliveryState.SENT,
                message_id=message_id,
            ))

        logger.info(
            f"{event.type.value} announcement for {event.date_key} sent to "
            f"{sum(1 for r in results if r.state == DeliveryState.SENT)}/{len(results)} destination(s)"
        )
        return results

    def clear_announcements(
        self,
        destinations: Sequence[BaseDestination],
    ) -> List[DeliveryResult]:
        """
        Delete each destination's status message and forget its handle.

        Returns:
            One DeliveryResult per destination (SKIPPED when there was no handle)
        """
        results = []
        for destination in destinations:
            result = self._delete_handle(destination)
            self._handles.pop(destination.key, None)
            results.append(result or DeliveryResult(
                destination=destination.key,
                state=DeliveryState.SKIPPED,
            ))

        logger.info(
            f"Cleared status messages: "
            f"{sum(1 for r in results if r.state == DeliveryState.DELETED)} deleted"
        )
        return results
