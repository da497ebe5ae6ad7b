"""Adapter between an external pub/sub transport and local event routing."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from psygnal import Signal

from component_bus.channels.subscriptions import ChannelId, ChannelSubscription, PresenceEvent, Visibility, composite_key
from component_bus.channels.transport import NullTransport, Transport
from component_bus.core.event import Broadcast, Event, EventSource, Payload
from component_bus.exceptions import TransportSubscriptionError

logger = logging.getLogger(__name__)


class ChannelBridge:
    """Turns transport messages into Broadcast events and reference-counts channel subscriptions.

    Each distinct (channel, visibility) pair is subscribed on the transport once, however many
    instances listen to it, and unsubscribed when the last listening instance lets go.

    Attributes:
        received: Signal emitted with the synthesized `Event` for every inbound message.
    """

    received = Signal(object)

    def __init__(self, transport: Optional[Transport] = None) -> None:
        self._transport = transport or NullTransport()
        self._refcounts: Dict[ChannelId, int] = {}
        self._holdings: Dict[str, Set[ChannelId]] = {}

    # --- Subscription lifecycle ---

    def sync(self, owner_id: str, keys: Iterable[str]) -> None:
        """Make `owner_id` hold exactly the channels referenced by its resolved listener keys.

        New channels are acquired before stale ones are released, so a channel kept across a
        re-render never drops to zero holders.

        Raises:
            TransportSubscriptionError: The first transport failure, after every change was attempted.
        """
        desired = self._channel_ids(keys)
        current = self._holdings.get(owner_id, set())
        errors: List[TransportSubscriptionError] = []
        for channel_id in sorted(desired - current):
            self._collect(errors, self._acquire, owner_id, channel_id)
        for channel_id in sorted(current - desired):
            self._collect(errors, self._release, owner_id, channel_id)
        if errors:
            raise errors[0]

    def acquire(self, owner_id: str, keys: Iterable[str]) -> None:
        """Add the channels referenced by `keys` to what `owner_id` holds, without dropping any.

        Raises:
            TransportSubscriptionError: The first transport failure, after every channel was attempted.
        """
        held = self._holdings.get(owner_id, set())
        errors: List[TransportSubscriptionError] = []
        for channel_id in sorted(self._channel_ids(keys) - held):
            self._collect(errors, self._acquire, owner_id, channel_id)
        if errors:
            raise errors[0]

    def release(self, owner_id: str) -> None:
        """Drop every channel held by an instance that is being torn down."""
        errors: List[TransportSubscriptionError] = []
        for channel_id in sorted(self._holdings.get(owner_id, set())):
            self._collect(errors, self._release, owner_id, channel_id)
        self._holdings.pop(owner_id, None)
        if errors:
            raise errors[0]

    @staticmethod
    def _channel_ids(keys: Iterable[str]) -> Set[ChannelId]:
        channel_ids: Set[ChannelId] = set()
        for key in keys:
            subscription = ChannelSubscription.parse(key)
            if subscription is not None:
                channel_ids.add(subscription.channel_id)
        return channel_ids

    def _collect(self, errors: List[TransportSubscriptionError], operation, owner_id: str, channel_id: ChannelId):
        try:
            operation(owner_id, channel_id)
        except TransportSubscriptionError as e:
            logger.error(f"Channel subscription change failed for {owner_id}: {e}")
            errors.append(e)

    def _acquire(self, owner_id: str, channel_id: ChannelId) -> None:
        channel, visibility = channel_id
        count = self._refcounts.get(channel_id, 0)
        if count == 0:
            try:
                self._transport.subscribe(channel, visibility)
            except Exception as e:
                raise TransportSubscriptionError(
                    f"Failed to subscribe to {visibility.value} channel '{channel}': {e}",
                    channel=channel,
                    visibility=visibility,
                ) from e
            logger.info(f"Subscribed to {visibility.value} channel '{channel}'")
        self._refcounts[channel_id] = count + 1
        self._holdings.setdefault(owner_id, set()).add(channel_id)

    def _release(self, owner_id: str, channel_id: ChannelId) -> None:
        channel, visibility = channel_id
        held = self._holdings.get(owner_id)
        if held is None or channel_id not in held:
            return
        held.discard(channel_id)
        count = self._refcounts.get(channel_id, 0) - 1
        if count > 0:
            self._refcounts[channel_id] = count
            return
        self._refcounts.pop(channel_id, None)
        try:
            self._transport.unsubscribe(channel, visibility)
        except Exception as e:
            raise TransportSubscriptionError(
                f"Failed to unsubscribe from {visibility.value} channel '{channel}': {e}",
                channel=channel,
                visibility=visibility,
            ) from e
        logger.info(f"Unsubscribed from {visibility.value} channel '{channel}'")

    def is_subscribed(self, channel: str, visibility: Visibility | str) -> bool:
        return (channel, Visibility(visibility)) in self._refcounts

    def holder_count(self, channel: str, visibility: Visibility | str) -> int:
        return self._refcounts.get((channel, Visibility(visibility)), 0)

    @property
    def subscriptions(self) -> Dict[ChannelId, int]:
        """Return a *copy* of the active subscriptions and their holder counts."""
        return dict(self._refcounts)

    # --- Inbound messages ---

    def on_transport_message(
        self, channel: str, visibility: Visibility | str, remote_event: str, payload: Any = None
    ) -> Event:
        """Synthesize a Broadcast event for an inbound transport message and emit it on `received`.

        The event is named with the composite key (e.g. ``echo-private:orders.7,OrderShipped``) and
        carries the message payload as its single positional entry.
        """
        visibility = Visibility(visibility)
        if not self.is_subscribed(channel, visibility):
            logger.debug(f"Message '{remote_event}' on {visibility.value} channel '{channel}' has no local listeners")
        event = Event(
            name=composite_key(channel, visibility, remote_event),
            payload=Payload(args=(payload,)),
            scope=Broadcast(),
            source=EventSource.TRANSPORT,
        )
        self.received.emit(event)
        return event

    def on_presence_here(self, channel: str, members: List[Any]) -> Event:
        """The initial member set of a presence channel."""
        return self.on_transport_message(channel, Visibility.PRESENCE, PresenceEvent.HERE.value, list(members))

    def on_member_joining(self, channel: str, member: Any) -> Event:
        return self.on_transport_message(channel, Visibility.PRESENCE, PresenceEvent.JOINING.value, member)

    def on_member_leaving(self, channel: str, member: Any) -> Event:
        return self.on_transport_message(channel, Visibility.PRESENCE, PresenceEvent.LEAVING.value, member)
