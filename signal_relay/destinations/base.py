"""
Base Destination Interface

Abstract base class for chat destinations.
Defines the interface that all destinations must implement.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from signal_relay.formatting import Embed, Markup


class DestinationError(Exception):
    """
    Raised when a destination cannot send or delete a message.

    Attributes:
        kind: Failure category ('send_failed', 'delete_failed', 'rate_limited')
        status_code: HTTP status code if the failure came from an HTTP response
    """

    def __init__(self, message: str, kind: str = 'send_failed', status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class BaseDestination(ABC):
    """
    Abstract base class for chat destinations.

    All destinations must implement:
    - send(): Post a message and return its message id
    - delete(): Remove a previously posted message
    - test_connection(): Verify the destination is reachable

    Destinations handle:
    - Rendering embeds in their own wire format
    - Delivery with retry logic
    """

    def __init__(self, name: str, markup: Markup):
        """
        Initialize destination.

        Args:
            name: Human readable name (e.g., 'discord:#bobbypro-signals')
            markup: Markup dialect the destination renders
        """
        self.name = name
        self.markup = markup

    @property
    @abstractmethod
    def key(self) -> str:
        """Stable identity across discovery refreshes, e.g. 'discord:1234'."""

    @abstractmethod
    def send(self, content: str, embeds: Sequence[Embed] = ()) -> str:
        """
        Send a message.

        Args:
            content: Message body in the destination's markup
            embeds: Optional side panels (disclaimer, announcement)

        Returns:
            Message id of the posted message

        Raises:
            DestinationError: If the message could not be sent
        """

    @abstractmethod
    def delete(self, message_id: str) -> None:
        """
        Delete a previously sent message.

        A message that is already gone counts as deleted.

        Raises:
            DestinationError: If the message could not be deleted
        """

    @abstractmethod
    def test_connection(self) -> bool:
        """
        Test that the destination is properly configured and reachable.

        Returns:
            True if connection test passed
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.key!r})"
