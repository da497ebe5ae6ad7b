"""Component-scoped event routing: components dispatch named events and listen for them by key."""

from component_bus.component import Component, on
from component_bus.core.dispatcher import Dispatcher, PendingEvent
from component_bus.core.event import Broadcast, DirectTo, Event, EventSource, Payload, SelfOnly
from component_bus.exceptions import (
    AmbiguousScopeError,
    ComponentBusError,
    CycleError,
    DynamicNameResolutionError,
    EventAlreadyFlushedError,
    FlushLimitExceededError,
    HandlerInvocationError,
    TransportSubscriptionError,
    UnknownComponentError,
)
from component_bus.page import BrowserEvent, CycleResult, Page
from component_bus.registry import register_component

__all__ = [
    "AmbiguousScopeError",
    "Broadcast",
    "BrowserEvent",
    "Component",
    "ComponentBusError",
    "CycleError",
    "CycleResult",
    "DirectTo",
    "Dispatcher",
    "DynamicNameResolutionError",
    "Event",
    "EventAlreadyFlushedError",
    "EventSource",
    "FlushLimitExceededError",
    "HandlerInvocationError",
    "Page",
    "Payload",
    "PendingEvent",
    "SelfOnly",
    "TransportSubscriptionError",
    "UnknownComponentError",
    "on",
    "register_component",
]
