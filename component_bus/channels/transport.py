import logging
from abc import ABC, abstractmethod

from component_bus.channels.subscriptions import Visibility

logger = logging.getLogger(__name__)


class Transport(ABC):
    """
    Abstract base class for the external pub/sub transport (e.g. a WebSocket broadcasting layer).

    Authorization of private and presence channels is the transport's concern.
    """

    @abstractmethod
    def subscribe(self, channel: str, visibility: Visibility) -> None:
        """
        Start receiving messages for a channel.

        Args:
            channel: The channel name, e.g. "orders.42".
            visibility: The channel's visibility class.
        """
        pass

    @abstractmethod
    def unsubscribe(self, channel: str, visibility: Visibility) -> None:
        """Stop receiving messages for a channel."""
        pass


class NullTransport(Transport):
    """A transport that only logs. Used when a page is created without one."""

    def subscribe(self, channel: str, visibility: Visibility) -> None:
        logger.debug(f"No transport configured; not subscribing to {visibility.value} channel '{channel}'")

    def unsubscribe(self, channel: str, visibility: Visibility) -> None:
        logger.debug(f"No transport configured; not unsubscribing from {visibility.value} channel '{channel}'")
