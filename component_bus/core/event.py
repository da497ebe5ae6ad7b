"""Immutable event records and the scope sum type attached to them."""

from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Broadcast(BaseModel):
    """Deliver to every live instance on the page, origin included."""

    model_config = ConfigDict(frozen=True)
    kind: Literal["broadcast"] = Field(default="broadcast")


class DirectTo(BaseModel):
    """Deliver only to the instance(s) matching ``target``.

    ``target`` is either a component class / component name (every live instance of that
    type matches) or an instance id (exactly one instance matches).
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)
    kind: Literal["direct_to"] = Field(default="direct_to")
    target: Union[str, type[Any]] = Field(...)


class SelfOnly(BaseModel):
    """Deliver only to the instance that dispatched the event."""

    model_config = ConfigDict(frozen=True)
    kind: Literal["self_only"] = Field(default="self_only")


Scope = Annotated[Union[Broadcast, DirectTo, SelfOnly], Field(discriminator="kind")]


class EventSource(str, Enum):
    """Where an event entered the bus."""

    COMPONENT = "component"
    SCRIPT = "script"
    TRANSPORT = "transport"


class Payload(BaseModel):
    """Positional values plus key-tagged values carried by an event."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)
    args: tuple[Any, ...] = Field(default=())
    kwargs: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_detail(cls, detail: Any) -> "Payload":
        """Build a payload from a script-side event detail.

        A mapping becomes key-tagged entries, a list becomes positional entries, ``None``
        becomes an empty payload and any other value becomes a single positional entry.
        """
        if detail is None:
            return cls()
        if isinstance(detail, dict):
            return cls(kwargs=dict(detail))
        if isinstance(detail, (list, tuple)):
            return cls(args=tuple(detail))
        return cls(args=(detail,))

    def to_detail(self) -> Any:
        """Render the payload as a script-side event detail.

        Key-tagged only -> dict, positional only -> list. Mixed payloads render the positional
        values as a list with the key-tagged entries appended as a trailing dict.
        """
        if not self.args:
            return dict(self.kwargs)
        if not self.kwargs:
            return list(self.args)
        return [*self.args, dict(self.kwargs)]

    def __len__(self) -> int:
        return len(self.args) + len(self.kwargs)


class Event(BaseModel):
    """A named event with its payload, resolved scope and originating instance."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    event_id: UUID = Field(default_factory=uuid4)
    name: str = Field(...)
    payload: Payload = Field(default_factory=Payload)
    scope: Scope = Field(default_factory=Broadcast)
    origin_id: str | None = Field(default=None)
    source: EventSource = Field(default=EventSource.COMPONENT)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Event name must be a non-empty string.")
        return value

    @model_validator(mode="after")
    def validate_scope_origin(self):
        if isinstance(self.scope, SelfOnly) and self.origin_id is None:
            raise ValueError("A self-scoped event requires an origin instance")
        return self

    @property
    def is_broadcast(self) -> bool:
        return isinstance(self.scope, Broadcast)

    def __repr__(self) -> str:
        return f"Event(name={self.name!r}, scope={self.scope.kind}, origin_id={self.origin_id!r})"
