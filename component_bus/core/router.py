"""Recipient resolution and handler invocation for a single event."""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from component_bus.core.event import Broadcast, DirectTo, Event, SelfOnly
from component_bus.core.handlers import invoke_handler
from component_bus.core.listeners import HandlerBinding, ListenerRegistrar
from component_bus.exceptions import HandlerInvocationError

logger = logging.getLogger(__name__)


@dataclass
class Invocation:
    """One handler call made while routing an event."""

    instance_id: str
    binding: HandlerBinding
    result: Any = None
    error: Optional[HandlerInvocationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RouteResult:
    """Everything that happened while routing one event."""

    event: Event
    candidates: List[str] = field(default_factory=list)
    invocations: List[Invocation] = field(default_factory=list)

    @property
    def errors(self) -> List[HandlerInvocationError]:
        return [i.error for i in self.invocations if i.error is not None]

    @property
    def recipients(self) -> List[str]:
        """Ids of instances that had at least one matching handler, in delivery order."""
        seen: List[str] = []
        for invocation in self.invocations:
            if invocation.instance_id not in seen:
                seen.append(invocation.instance_id)
        return seen


def component_name_of(instance: Any) -> Optional[str]:
    get_name = getattr(type(instance), "get_component_name", None)
    return get_name() if callable(get_name) else None


def matches_target(instance: Any, target: str | type) -> bool:
    """Whether `instance` is addressed by a DirectTo target.

    A class matches every instance of that class (subclasses included); a string matches the
    instance id exactly, or the component name of the instance's type.
    """
    if isinstance(target, type):
        return isinstance(instance, target)
    return instance.instance_id == target or component_name_of(instance) == target


class Router:
    """Resolves an event's recipients among the live instances and invokes their handlers."""

    def __init__(self, registrar: ListenerRegistrar) -> None:
        self._registrar = registrar

    def candidates(self, event: Event, instances: Sequence[Any]) -> List[Any]:
        """Return the instances eligible for `event` under its scope, in enumeration order."""
        scope = event.scope
        if isinstance(scope, Broadcast):
            return list(instances)
        if isinstance(scope, SelfOnly):
            return [i for i in instances if i.instance_id == event.origin_id]
        if isinstance(scope, DirectTo):
            matched = [i for i in instances if matches_target(i, scope.target)]
            if not matched:
                logger.debug(f"Event '{event.name}' directed to {scope.target!r} matched no live instance")
            return matched
        raise TypeError(f"Unknown event scope: {scope!r}")

    def route(self, event: Event, instances: Sequence[Any]) -> RouteResult:
        """Deliver `event` to every matching handler of every candidate instance.

        Handler failures are isolated: each is wrapped in a `HandlerInvocationError`, recorded on
        the result, and routing carries on with the remaining handlers and candidates.
        """
        result = RouteResult(event=event)
        for instance in self.candidates(event, instances):
            result.candidates.append(instance.instance_id)
            registry = self._registrar.registry_for(instance.instance_id)
            if registry is None:
                continue
            for binding in registry.lookup(event.name):
                result.invocations.append(self._invoke(instance, binding, event))

        if not result.invocations:
            logger.debug(f"Event '{event.name}' ({event.scope.kind}) had no listeners")
        return result

    def _invoke(self, instance: Any, binding: HandlerBinding, event: Event) -> Invocation:
        invocation = Invocation(instance_id=instance.instance_id, binding=binding)
        try:
            invocation.result = invoke_handler(instance, binding, event.payload)
        except Exception as e:
            error = HandlerInvocationError(
                event_name=event.name,
                instance_id=instance.instance_id,
                handler=binding.handler_name,
                detail=f"Handler '{binding.handler_name}' on instance {instance.instance_id} "
                f"failed for event '{event.name}': {e}",
            )
            error.__cause__ = e
            invocation.error = error
            logger.exception(f"Error delivering event '{event.name}' to {instance.instance_id}: {e}")
        return invocation
