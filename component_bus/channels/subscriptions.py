"""Composite channel listener keys: ``echo:orders,OrderShipped`` and friends."""

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Visibility(str, Enum):
    """Visibility class of an external pub/sub channel."""

    PUBLIC = "public"
    PRIVATE = "private"
    PRESENCE = "presence"

    @property
    def prefix(self) -> str:
        return VISIBILITY_PREFIXES[self]


VISIBILITY_PREFIXES = {
    Visibility.PUBLIC: "echo",
    Visibility.PRIVATE: "echo-private",
    Visibility.PRESENCE: "echo-presence",
}

PREFIX_TO_VISIBILITY = {prefix: visibility for visibility, prefix in VISIBILITY_PREFIXES.items()}


class PresenceEvent(str, Enum):
    """Remote event names reserved on presence channels."""

    HERE = "here"  # initial member set, payload is the member list
    JOINING = "joining"  # payload is the member who joined
    LEAVING = "leaving"  # payload is the member who left


type ChannelId = Tuple[str, Visibility]


def composite_key(channel: str, visibility: Visibility | str, remote_event: str) -> str:
    """Build the listener key a channel message is routed under."""
    return f"{Visibility(visibility).prefix}:{channel},{remote_event}"


class ChannelSubscription(BaseModel):
    """A listener key that refers to an event on an external channel."""

    model_config = ConfigDict(frozen=True)

    channel: str = Field(..., min_length=1)
    visibility: Visibility = Field(...)
    remote_event: str = Field(..., min_length=1)

    @property
    def key(self) -> str:
        return composite_key(self.channel, self.visibility, self.remote_event)

    @property
    def channel_id(self) -> ChannelId:
        return (self.channel, self.visibility)

    @classmethod
    def parse(cls, key: str) -> Optional["ChannelSubscription"]:
        """Parse a resolved listener key, returning None when it is not a channel key.

        The channel name runs up to the first comma; everything after it is the remote event name.
        """
        prefix, sep, rest = key.partition(":")
        if not sep or prefix not in PREFIX_TO_VISIBILITY:
            return None
        channel, sep, remote_event = rest.partition(",")
        if not sep or not channel or not remote_event:
            return None
        return cls(channel=channel, visibility=PREFIX_TO_VISIBILITY[prefix], remote_event=remote_event)


def is_channel_key(key: str) -> bool:
    return ChannelSubscription.parse(key) is not None
