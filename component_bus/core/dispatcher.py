"""Queueing of dispatched events and the per-cycle flush."""

import logging
from collections import deque
from typing import Any, Callable, Deque, List, Optional, TypeVar

from psygnal import Signal

from component_bus.core.event import Broadcast, DirectTo, Event, EventSource, Payload, Scope, SelfOnly
from component_bus.exceptions import AmbiguousScopeError, EventAlreadyFlushedError, FlushLimitExceededError
from component_bus.settings import SCOPE_CONFLICT_ERROR, SCOPE_CONFLICT_LAST_WINS, Settings

logger = logging.getLogger(__name__)

R = TypeVar("R")


def normalize_target(target: Any) -> str | type:
    """Turn a `to()` argument into a DirectTo target: a component class, a component name or an instance id."""
    if isinstance(target, type):
        return target
    if isinstance(target, str):
        if not target:
            raise ValueError("to() target must be a non-empty string")
        return target
    instance_id = getattr(target, "instance_id", None)
    if isinstance(instance_id, str):
        return instance_id
    raise TypeError(f"Cannot direct an event to {type(target).__name__}; expected a component class, name or instance")


class PendingEvent:
    """A dispatched event waiting for the end-of-cycle flush.

    Scope modifiers chain and may be applied at most once:

        self.dispatch("post-created", title="Hello").to(Sidebar)
        self.dispatch("saved").self()

    The scope resolves to a single Broadcast / DirectTo / SelfOnly value when the event is built.
    """

    def __init__(
        self,
        name: str,
        payload: Payload,
        origin_id: Optional[str] = None,
        conflict_policy: str = SCOPE_CONFLICT_LAST_WINS,
        source: EventSource = EventSource.COMPONENT,
    ) -> None:
        self.name = name
        self.payload = payload
        self.origin_id = origin_id
        self.source = source
        self._conflict_policy = conflict_policy
        self._scope: Scope = Broadcast()
        self._scope_applied = False
        self._delivered = False

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def delivered(self) -> bool:
        return self._delivered

    def to(self, target: Any) -> "PendingEvent":
        """Deliver only to `target`: a component class or name (all its instances) or an instance / instance id."""
        self._apply_scope(DirectTo(target=normalize_target(target)))
        return self

    def self(self) -> "PendingEvent":
        """Deliver only to the dispatching instance."""
        if self.origin_id is None:
            raise ValueError(f"Event '{self.name}' has no originating instance and cannot be scoped to self")
        self._apply_scope(SelfOnly())
        return self

    # Alias for callers that find `pending.self()` awkward to read.
    to_self = self

    def _apply_scope(self, scope: Scope) -> None:
        if self._delivered:
            raise EventAlreadyFlushedError(f"Event '{self.name}' was already delivered; its scope can no longer change")
        if self._scope_applied:
            message = (
                f"Event '{self.name}' already has scope '{self._scope.kind}'; "
                f"a second modifier requested '{scope.kind}'"
            )
            if self._conflict_policy == SCOPE_CONFLICT_ERROR:
                raise AmbiguousScopeError(message)
            logger.warning(f"{message}. The last modifier wins.")
        self._scope = scope
        self._scope_applied = True

    def build(self) -> Event:
        return Event(
            name=self.name,
            payload=self.payload,
            scope=self._scope,
            origin_id=self.origin_id,
            source=self.source,
        )

    def __repr__(self) -> str:
        return f"PendingEvent(name={self.name!r}, scope={self._scope.kind}, delivered={self._delivered})"


class Dispatcher:
    """Collects events dispatched during a processing cycle and delivers them at the flush point.

    Events dispatched by handlers while a flush is running are appended to the same queue and
    delivered later in that flush, breadth-first, so an event is never routed re-entrantly.

    Attributes:
        delivered: Signal emitted with each `Event` right before it is routed.
    """

    delivered = Signal(object)

    def __init__(
        self,
        settings: Optional[Settings] = None,
        conflict_policy: Optional[str] = None,
        max_flush_events: Optional[int] = None,
    ) -> None:
        settings = settings or Settings()
        self._conflict_policy = conflict_policy or settings.get_scope_conflict_policy()
        self._max_flush_events = max_flush_events or settings.get_max_flush_events()
        self._queue: Deque[PendingEvent] = deque()
        self._flushing = False

    def dispatch(self, name: str, *args: Any, origin_id: Optional[str] = None, **kwargs: Any) -> PendingEvent:
        """Create a pending event and queue it for the next flush."""
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Event name must be a non-empty string.")
        pending = PendingEvent(
            name,
            Payload(args=args, kwargs=kwargs),
            origin_id=origin_id,
            conflict_policy=self._conflict_policy,
        )
        self._queue.append(pending)
        logger.debug(f"Queued event '{name}' from {origin_id or 'outside the page'}")
        return pending

    def enqueue(self, event: Event) -> PendingEvent:
        """Queue an already built event (from script or the channel transport) with its scope fixed."""
        pending = PendingEvent(
            event.name,
            event.payload,
            origin_id=event.origin_id,
            conflict_policy=self._conflict_policy,
            source=event.source,
        )
        if not isinstance(event.scope, Broadcast):
            pending._apply_scope(event.scope)
        self._queue.append(pending)
        logger.debug(f"Queued external event '{event.name}' ({event.scope.kind})")
        return pending

    @property
    def pending(self) -> List[PendingEvent]:
        return list(self._queue)

    def has_pending(self) -> bool:
        return bool(self._queue)

    def discard_pending(self) -> int:
        """Drop every queued event without delivering it. Returns how many were dropped."""
        count = len(self._queue)
        self._queue.clear()
        return count

    def flush_pending(self, deliver: Callable[[Event], R]) -> List[R]:
        """Deliver every queued event, including events queued by handlers along the way.

        Args:
            deliver: Routes one built event; its return values are collected in delivery order.

        Raises:
            FlushLimitExceededError: If more than the configured number of events would be delivered.
            RuntimeError: If called while a flush is already running.
        """
        if self._flushing:
            raise RuntimeError("flush_pending() called while a flush is already in progress")

        self._flushing = True
        results: List[R] = []
        try:
            while self._queue:
                if len(results) >= self._max_flush_events:
                    dropped = self.discard_pending()
                    logger.error(f"Flush limit of {self._max_flush_events} reached; dropped {dropped} queued event(s)")
                    raise FlushLimitExceededError(self._max_flush_events)
                pending = self._queue.popleft()
                event = pending.build()
                pending._delivered = True
                self.delivered.emit(event)
                results.append(deliver(event))
        finally:
            self._flushing = False
        return results
