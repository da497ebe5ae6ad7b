"""Helpers for exercising a component's dispatches and listeners in tests."""

from typing import Any, List, Optional, Type

from component_bus.channels.transport import Transport
from component_bus.component import Component
from component_bus.core.event import DirectTo, Event, EventSource
from component_bus.core.router import matches_target
from component_bus.page import CycleResult, Page


def payload_matches(event: Event, args: tuple, kwargs: dict) -> bool:
    """True when the event's leading positional values equal `args` and it carries every entry in `kwargs`."""
    if args and tuple(event.payload.args[: len(args)]) != tuple(args):
        return False
    missing = object()
    return all(event.payload.kwargs.get(key, missing) == value for key, value in kwargs.items())


class ComponentTest:
    """Drive one component through processing cycles and assert on the events dispatched.

    Typical usage:
        test = ComponentTest.mount(CreatePost, title="Hello")
        test.call("save")
        test.assert_dispatched("post-created", title="Hello")

        # Inject an event straight at the instance to exercise its listeners in isolation
        test.dispatch("post-updated.3", title="Edited")
    """

    def __init__(self, component: Component, page: Optional[Page] = None, transport: Optional[Transport] = None):
        self.page = page or Page(transport=transport)
        self.component = self.page.mount(component)
        self.last_cycle: Optional[CycleResult] = None
        self._dispatched: List[Event] = []
        self.page.dispatcher.delivered.connect(self._record)

    @classmethod
    def mount(
        cls,
        component_cls: Type[Component],
        *,
        page: Optional[Page] = None,
        transport: Optional[Transport] = None,
        **attributes: Any,
    ) -> "ComponentTest":
        return cls(component_cls(**attributes), page=page, transport=transport)

    def _record(self, event: Event) -> None:
        # Only events dispatched by components on the page; not the ones injected by the test.
        if event.source is EventSource.COMPONENT and event.origin_id is not None:
            self._dispatched.append(event)

    def _run(self, cycle) -> "ComponentTest":
        self._dispatched = []
        self.last_cycle = cycle()
        return self

    # --- Driving cycles ---

    def call(self, action: str, *args: Any, **kwargs: Any) -> "ComponentTest":
        return self._run(lambda: self.page.call(self.component.instance_id, action, *args, **kwargs))

    def dispatch(self, name: str, *args: Any, **kwargs: Any) -> "ComponentTest":
        """Deliver an event to the instance under test only."""
        return self._run(lambda: self.page.dispatch_to(self.component.instance_id, name, *args, **kwargs))

    def set(self, **attributes: Any) -> "ComponentTest":
        """Assign attributes and re-render, as if the page had synced new state."""
        for name, value in attributes.items():
            setattr(self.component, name, value)
        self.page.render(self.component)
        return self

    # --- Inspection ---

    @property
    def dispatched(self) -> List[Event]:
        """Events dispatched by components during the last cycle, in delivery order."""
        return list(self._dispatched)

    @property
    def errors(self) -> list:
        return self.last_cycle.errors if self.last_cycle is not None else []

    def was_dispatched(self, name: str, *args: Any, **kwargs: Any) -> bool:
        return any(e.name == name and payload_matches(e, args, kwargs) for e in self._dispatched)

    def listens_for(self, key: str) -> bool:
        registry = self.page.registrar.registry_for(self.component.instance_id)
        return registry is not None and key in registry

    # --- Assertions ---

    def assert_dispatched(self, name: str, *args: Any, **kwargs: Any) -> "ComponentTest":
        if not self.was_dispatched(name, *args, **kwargs):
            seen = [e.name for e in self._dispatched]
            raise AssertionError(f"Event '{name}' with payload args={args} kwargs={kwargs} was not dispatched; saw {seen}")
        return self

    def assert_not_dispatched(self, name: str, *args: Any, **kwargs: Any) -> "ComponentTest":
        if self.was_dispatched(name, *args, **kwargs):
            raise AssertionError(f"Event '{name}' was dispatched but should not have been")
        return self

    def assert_dispatched_to(self, target: Any, name: str) -> "ComponentTest":
        """Assert `name` was dispatched with a DirectTo scope addressing `target` (a class, name or id)."""
        for event in self._dispatched:
            if event.name != name or not isinstance(event.scope, DirectTo):
                continue
            if isinstance(target, type) and event.scope.target is target:
                return self
            if isinstance(target, Component) and matches_target(target, event.scope.target):
                return self
            if event.scope.target == target:
                return self
        raise AssertionError(f"Event '{name}' was not dispatched to {target!r}")

    def assert_listens_for(self, key: str) -> "ComponentTest":
        if not self.listens_for(key):
            registry = self.page.registrar.registry_for(self.component.instance_id)
            keys = registry.keys() if registry is not None else []
            raise AssertionError(f"Instance does not listen for '{key}'; registered keys: {keys}")
        return self

    def assert_not_listens_for(self, key: str) -> "ComponentTest":
        if self.listens_for(key):
            raise AssertionError(f"Instance still listens for '{key}'")
        return self
