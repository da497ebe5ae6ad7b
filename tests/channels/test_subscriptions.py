import pytest

from component_bus.channels.subscriptions import (
    ChannelSubscription,
    PresenceEvent,
    Visibility,
    composite_key,
    is_channel_key,
)


class TestVisibility:
    def test_prefixes(self):
        """Each visibility maps to its listener key prefix."""
        assert Visibility.PUBLIC.prefix == "echo"
        assert Visibility.PRIVATE.prefix == "echo-private"
        assert Visibility.PRESENCE.prefix == "echo-presence"

    def test_presence_event_names(self):
        """Presence channels expose here, joining and leaving events."""
        assert [e.value for e in PresenceEvent] == ["here", "joining", "leaving"]


class TestCompositeKey:
    def test_builds_key(self):
        """A composite key joins prefix, channel and remote event name."""
        assert composite_key("orders.7", Visibility.PRIVATE, "OrderShipped") == "echo-private:orders.7,OrderShipped"
        assert composite_key("news", "public", "Published") == "echo:news,Published"


class TestParse:
    @pytest.mark.parametrize(
        "key, channel, visibility, remote_event",
        [
            ("echo:news,Published", "news", Visibility.PUBLIC, "Published"),
            ("echo-private:orders.7,OrderShipped", "orders.7", Visibility.PRIVATE, "OrderShipped"),
            ("echo-presence:room.1,here", "room.1", Visibility.PRESENCE, "here"),
            ("echo:chat,Message,Edited", "chat", Visibility.PUBLIC, "Message,Edited"),
        ],
    )
    def test_channel_keys(self, key, channel, visibility, remote_event):
        """Channel listener keys parse into channel, visibility and remote event."""
        subscription = ChannelSubscription.parse(key)
        assert subscription.channel == channel
        assert subscription.visibility is visibility
        assert subscription.remote_event == remote_event
        assert subscription.channel_id == (channel, visibility)

    @pytest.mark.parametrize(
        "key",
        ["post-created", "post-updated.3", "echo:news", "echo:,Published", "echo:news,", "pusher:news,Published"],
    )
    def test_non_channel_keys(self, key):
        """Plain event names and malformed channel keys are not channel subscriptions."""
        assert ChannelSubscription.parse(key) is None
        assert not is_channel_key(key)

    def test_key_round_trips(self):
        """A parsed subscription rebuilds the key it was parsed from."""
        key = "echo-presence:room.1,joining"
        assert ChannelSubscription.parse(key).key == key
