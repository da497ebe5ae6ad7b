"""The live component tree of one page and its processing cycles."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from psygnal import Signal
from pydantic import BaseModel, Field

from component_bus.channels.bridge import ChannelBridge
from component_bus.channels.transport import Transport
from component_bus.component import Component
from component_bus.core.dispatcher import Dispatcher, PendingEvent
from component_bus.core.event import Event, EventSource, Payload
from component_bus.core.handlers import call_action
from component_bus.core.listeners import REFRESH_HANDLER, HandlerBinding, ListenerRegistrar, RegistrationReport
from component_bus.core.logging import log_cycle_summary
from component_bus.core.router import RouteResult, Router
from component_bus.exceptions import (
    CycleError,
    DynamicNameResolutionError,
    HandlerInvocationError,
    TransportSubscriptionError,
    UnknownComponentError,
)
from component_bus.settings import Settings

logger = logging.getLogger(__name__)


class BrowserEvent(BaseModel):
    """A Broadcast event as seen by script on the page: a native event with a detail."""

    name: str = Field(...)
    detail: Any = Field(default=None)

    @classmethod
    def from_event(cls, event: Event) -> "BrowserEvent":
        return cls(name=event.name, detail=event.payload.to_detail())


@dataclass
class CycleResult:
    """Everything a processing cycle produced, handed back to whatever triggered it."""

    trigger: str
    return_value: Any = None
    routes: List[RouteResult] = field(default_factory=list)
    browser_events: List[BrowserEvent] = field(default_factory=list)
    registration_errors: List[DynamicNameResolutionError] = field(default_factory=list)
    transport_errors: List[TransportSubscriptionError] = field(default_factory=list)

    @property
    def events(self) -> List[Event]:
        """The events delivered during the cycle, in delivery order."""
        return [route.event for route in self.routes]

    @property
    def errors(self) -> List[HandlerInvocationError]:
        return [error for route in self.routes for error in route.errors]

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise a `CycleError` if any handler failed during the cycle."""
        if self.errors:
            raise CycleError(self.errors)


class Page:
    """Owns the live component instances of one page, their listener registries and the event plumbing.

    Every trigger (an action call, a script event, a channel message) runs one processing cycle:

        1. run the trigger; events it dispatches are queued
        2. flush the queue, routing each event breadth-first
        3. re-render instances whose state changed, rebuilding their listener registries

    Mounts and unmounts requested during a cycle are applied at step 3 so the live set never
    changes while events are being routed.

    Attributes:
        browser_events: Signal emitted with a `BrowserEvent` for every routed Broadcast event.
        rendered: Signal emitted with each instance after its listeners were (re)registered.
    """

    browser_events = Signal(object)
    rendered = Signal(object)

    def __init__(
        self,
        transport: Optional[Transport] = None,
        settings: Optional[Settings] = None,
        page_id: Optional[str] = None,
    ) -> None:
        self.page_id = page_id or uuid4().hex
        self.settings = settings or Settings()
        self.dispatcher = Dispatcher(self.settings)
        self.registrar = ListenerRegistrar()
        self.router = Router(self.registrar)
        self.bridge = ChannelBridge(transport)
        self.bridge.received.connect(self.receive_transport_event)

        self._instances: Dict[str, Component] = {}
        self._in_cycle = False
        self._cycle: Optional[CycleResult] = None
        self._deferred_mounts: List[Component] = []
        self._deferred_unmounts: List[str] = []
        self._deferred_transport_events: List[Event] = []
        self.last_transport_cycle: Optional[CycleResult] = None

    # --- Live instances ---

    def list_instances(self) -> List[Component]:
        """The live instances, in mount order."""
        return list(self._instances.values())

    def get_instance(self, instance_id: str) -> Component:
        try:
            return self._instances[instance_id]
        except KeyError:
            raise UnknownComponentError(f"No live component instance '{instance_id}' on page {self.page_id}")

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def mount(self, component: Component) -> Component:
        """Add an instance to the page and register its listeners."""
        if component.page is not None and component.page is not self:
            raise ValueError(f"{component!r} is already mounted on another page")
        if component.instance_id in self._instances:
            return component
        component._page = self
        if self._in_cycle:
            self._deferred_mounts.append(component)
            return component
        self._attach(component)
        return component

    def _attach(self, component: Component) -> RegistrationReport:
        self._instances[component.instance_id] = component
        logger.debug(f"Mounted {component.get_component_name()} ({component.instance_id}) on page {self.page_id}")
        return self.render(component)

    def unmount(self, instance_id: str) -> None:
        """Destroy an instance's registry and release its channel subscriptions."""
        if self._in_cycle:
            self._deferred_unmounts.append(instance_id)
            return
        component = self._instances.pop(instance_id, None)
        if component is None:
            return
        self.registrar.discard(instance_id)
        component._page = None
        logger.debug(f"Unmounted {component.get_component_name()} ({instance_id}) from page {self.page_id}")
        self.bridge.release(instance_id)

    def teardown(self) -> None:
        """Unmount every instance. Transport failures are logged; every instance is still removed."""
        for instance_id in list(self._instances):
            try:
                self.unmount(instance_id)
            except TransportSubscriptionError as e:
                logger.error(f"Failed to release channels of {instance_id} during teardown: {e}")

    # --- Rendering / registration ---

    def render(self, component: Component) -> RegistrationReport:
        """Replace the instance's listener registry with one resolved from its current state.

        Raises:
            TransportSubscriptionError: If a newly referenced channel could not be subscribed. The
                registry itself is already in place, so routing of local events is unaffected.
        """
        report = self.registrar.rebuild(component)
        component.mark_clean()
        registry = self.registrar.registry_for(component.instance_id)
        self.rendered.emit(component)
        self.bridge.sync(component.instance_id, registry.keys() if registry is not None else [])
        return report

    def register(self, instance_id: str, template: str, handler: str | Callable[..., Any]) -> HandlerBinding:
        """Add a listener to an instance from outside its declarations (e.g. from script).

        The binding lasts until the instance next re-renders, when its registry is rebuilt
        from its declared listeners.
        """
        if self._in_cycle:
            raise RuntimeError("Listeners cannot be registered while a processing cycle is running")
        component = self.get_instance(instance_id)
        binding = self.registrar.register(component, template, handler)
        registry = self.registrar.registry_for(instance_id)
        self.bridge.sync(instance_id, registry.keys() if registry is not None else [])
        return binding

    # --- Processing cycles ---

    def call(self, instance_id: str, action: str, *args: Any, **kwargs: Any) -> CycleResult:
        """Run an action on an instance and everything it dispatches.

        Raises:
            UnknownComponentError: If the instance or the public action does not exist.
            Exception: Whatever the action itself raises; events it queued are discarded.
        """
        component = self.get_instance(instance_id)
        if action != REFRESH_HANDLER and (action.startswith("_") or hasattr(Component, action)):
            raise UnknownComponentError(f"'{action}' is not a callable action of {component.get_component_name()}")
        trigger = f"{component.get_component_name()}.{action}"
        return self._run_cycle(trigger, lambda: call_action(component, action, *args, **kwargs))

    def dispatch_from_script(self, name: str, detail: Any = None) -> CycleResult:
        """Route a native event dispatched by script on the page as a Broadcast event."""
        event = Event(name=name, payload=Payload.from_detail(detail), source=EventSource.SCRIPT)
        return self._run_cycle(f"script:{name}", lambda: self.dispatcher.enqueue(event))

    def dispatch_to(self, target: Any, name: str, *args: Any, **kwargs: Any) -> CycleResult:
        """Dispatch an event from outside the page straight to `target` (a class, name, instance or id)."""
        return self._run_cycle(f"direct:{name}", lambda: self.dispatcher.dispatch(name, *args, **kwargs).to(target))

    def dispatch(self, name: str, *args: Any, **kwargs: Any) -> CycleResult:
        """Broadcast an event from outside the page."""
        return self._run_cycle(f"broadcast:{name}", lambda: self.dispatcher.dispatch(name, *args, **kwargs))

    def receive_transport_event(self, event: Event) -> Optional[CycleResult]:
        """Route an event synthesized by the channel bridge in its own cycle.

        A message that arrives while a cycle is running is queued and routed in its own cycle
        once the running one has finished, in which case `None` is returned.
        """
        if self._in_cycle:
            logger.debug(f"Queued transport event '{event.name}' until the running cycle finishes")
            self._deferred_transport_events.append(event)
            return None
        result = self._run_cycle(f"transport:{event.name}", lambda: self.dispatcher.enqueue(event))
        self.last_transport_cycle = result
        return result

    @property
    def in_cycle(self) -> bool:
        return self._in_cycle

    def _run_cycle(self, trigger: str, run: Callable[[], Any]) -> CycleResult:
        if self._in_cycle:
            raise RuntimeError(f"Cannot start cycle '{trigger}' while another cycle is running on page {self.page_id}")

        result = CycleResult(trigger=trigger)
        self._in_cycle = True
        self._cycle = result
        try:
            try:
                value = run()
            except Exception:
                dropped = self.dispatcher.discard_pending()
                if dropped:
                    logger.warning(f"Cycle '{trigger}' failed; discarded {dropped} undelivered event(s)")
                raise
            # Builders returned by dispatch calls are not action results.
            result.return_value = None if isinstance(value, PendingEvent) else value
            result.routes = self.dispatcher.flush_pending(self._deliver)
        except Exception:
            self._in_cycle = False
            self._cycle = None
            self._discard_deferred_lifecycle(trigger)
            # State changed before the failure must not leave stale keys routable.
            self._render_dirty(result)
            self._drain_transport_events()
            raise
        finally:
            self._in_cycle = False
            self._cycle = None
        self._render_dirty(result)
        log_cycle_summary(trigger, len(result.routes), len(result.errors))
        self._drain_transport_events()
        return result

    def _discard_deferred_lifecycle(self, trigger: str) -> None:
        mounts, self._deferred_mounts = self._deferred_mounts, []
        unmounts, self._deferred_unmounts = self._deferred_unmounts, []
        for component in mounts:
            component._page = None
        if mounts or unmounts:
            logger.warning(
                f"Cycle '{trigger}' failed; dropped {len(mounts)} pending mount(s) and {len(unmounts)} pending unmount(s)"
            )

    def _drain_transport_events(self) -> None:
        while self._deferred_transport_events:
            event = self._deferred_transport_events.pop(0)
            try:
                self.receive_transport_event(event)
            except Exception:
                logger.exception(f"Queued transport event '{event.name}' failed")

    def _deliver(self, event: Event) -> RouteResult:
        route = self.router.route(event, self.list_instances())
        if event.is_broadcast and event.source is not EventSource.SCRIPT:
            browser_event = BrowserEvent.from_event(event)
            if self._cycle is not None:
                self._cycle.browser_events.append(browser_event)
            self.browser_events.emit(browser_event)
        return route

    def _render_dirty(self, result: CycleResult) -> None:
        unmounts, self._deferred_unmounts = self._deferred_unmounts, []
        for instance_id in unmounts:
            try:
                self.unmount(instance_id)
            except TransportSubscriptionError as e:
                result.transport_errors.append(e)

        mounts, self._deferred_mounts = self._deferred_mounts, []
        for component in mounts:
            if component.instance_id in unmounts:
                component._page = None
                continue
            try:
                report = self._attach(component)
            except TransportSubscriptionError as e:
                result.transport_errors.append(e)
                continue
            result.registration_errors.extend(report.errors)

        for component in self.list_instances():
            if not component.is_dirty:
                continue
            try:
                report = self.render(component)
            except TransportSubscriptionError as e:
                result.transport_errors.append(e)
                continue
            result.registration_errors.extend(report.errors)

    def __repr__(self) -> str:
        return f"Page(page_id={self.page_id!r}, instances={len(self._instances)})"
