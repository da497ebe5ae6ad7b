"""Base class for stateful components that take part in event routing."""

import re
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Iterator
from uuid import uuid4

from psygnal import EventedModel, Signal
from psygnal.containers import EventedDict, EventedList
from pydantic import ConfigDict, PrivateAttr

if TYPE_CHECKING:
    from component_bus.core.dispatcher import PendingEvent
    from component_bus.page import Page

LISTENS_FOR_ATTR = "__listens_for__"

type ListenerHandler = str | Callable[..., Any]


def on(*templates: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark a component method as the handler for one or more listener keys.

    Templates may contain ``{attribute.path}`` placeholders which are resolved against the
    instance whenever its listeners are registered:

        class PostView(Component):
            post: Post

            @on("post-updated.{post.id}")
            def reload(self, title: str) -> None:
                ...
    """
    if not templates:
        raise ValueError("on() requires at least one listener key")

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        existing = getattr(func, LISTENS_FOR_ATTR, ())
        setattr(func, LISTENS_FOR_ATTR, (*existing, *templates))
        return func

    return decorator


def _kebab_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()


class Component(EventedModel):
    """A live component instance: an id, a mapping of attributes (the model fields) and actions (methods).

    Any change to a field, or to a nested evented container / model held by a field, emits
    the `changed` signal and marks the instance dirty so its listener registry is rebuilt at
    the end of the processing cycle.

    Listeners are declared three ways, registered in this order:
        * methods decorated with `on(...)`
        * the `listeners` class mapping of listener key -> method name
        * the `get_listeners()` hook, for keys computed at render time

    Attributes:
        changed: A signal emitted with no arguments when any value in the component changes.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)
    changed: ClassVar[Signal] = Signal()

    component_name: ClassVar[str] = ""
    listeners: ClassVar[dict[str, str]] = {}

    _instance_id: str = PrivateAttr(default_factory=lambda: uuid4().hex)
    _page: Any = PrivateAttr(default=None)
    _dirty: bool = PrivateAttr(default=False)

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        # Top-level field assignments arrive through the base model's event group.
        self.events.connect(self.changed)
        self._connect_children()
        self.changed.connect(self._mark_dirty)

    # --- Identity ---

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @classmethod
    def get_component_name(cls) -> str:
        """The type-level identifier used by `to()` targets, e.g. ``PostList`` -> ``post-list``."""
        return cls.component_name or _kebab_case(cls.__name__)

    @property
    def page(self) -> "Page | None":
        return self._page

    # --- Listener declarations ---

    def get_listeners(self) -> dict[str, ListenerHandler]:
        """Return listener key templates mapped to handlers. Override for keys computed at render time."""
        return dict(self.listeners)

    def iter_declared_listeners(self) -> Iterator[tuple[str, ListenerHandler]]:
        """Yield every (template, handler) pair this instance declares, in registration order."""
        seen: dict[str, Callable[..., Any]] = {}
        for klass in reversed(type(self).__mro__):
            for attr_name, member in vars(klass).items():
                if callable(member) and hasattr(member, LISTENS_FOR_ATTR):
                    seen.pop(attr_name, None)
                    seen[attr_name] = member
                elif attr_name in seen:
                    # Overridden without the decorator.
                    del seen[attr_name]
        for attr_name, member in seen.items():
            for template in getattr(member, LISTENS_FOR_ATTR):
                yield template, attr_name
        yield from self.get_listeners().items()

    # --- Dispatching ---

    def dispatch(self, name: str, *args: Any, **kwargs: Any) -> "PendingEvent":
        """Queue an event originating from this instance. Chain `.to(...)` or `.self()` to narrow its scope."""
        if self._page is None:
            raise RuntimeError(f"Component {self.get_component_name()} ({self.instance_id}) is not mounted on a page")
        return self._page.dispatcher.dispatch(name, *args, origin_id=self.instance_id, **kwargs)

    # --- Render state ---

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def refresh(self) -> None:
        """Request a re-render without changing state."""
        self._dirty = True

    def mark_clean(self) -> None:
        self._dirty = False

    def _mark_dirty(self) -> None:
        self._dirty = True

    # --- Nested change tracking ---

    def __setattr__(self, name: str, value: Any) -> None:
        # Disconnect from the old child before the attribute is replaced.
        if name in self.__class__.model_fields:
            self._disconnect_child(getattr(self, name, None))

        super().__setattr__(name, value)

        if name in self.__class__.model_fields:
            self._connect_child(getattr(self, name))

    def _connect_child(self, child: Any) -> None:
        """If `child` is an evented object, forward its events to our `changed` signal."""
        if isinstance(child, Component):
            child.changed.connect(self.changed)
        elif isinstance(child, EventedList):
            child.events.connect(self.changed)
            child.events.inserted.connect(self._on_item_inserted)
            child.events.removed.connect(self._on_item_removed)
            for item in child:
                self._connect_child(item)
        elif isinstance(child, EventedDict):
            child.events.connect(self.changed)
            child.events.added.connect(self._on_item_added)
            for item in child.values():
                self._connect_child(item)
        elif self._is_evented(child):
            child.events.connect(self.changed)

    def _disconnect_child(self, child: Any) -> None:
        if isinstance(child, Component):
            child.changed.disconnect(self.changed)
        elif isinstance(child, EventedList):
            child.events.disconnect(self.changed)
            child.events.inserted.disconnect(self._on_item_inserted)
            child.events.removed.disconnect(self._on_item_removed)
            for item in child:
                self._disconnect_child(item)
        elif isinstance(child, EventedDict):
            child.events.disconnect(self.changed)
            child.events.added.disconnect(self._on_item_added)
            for item in child.values():
                self._disconnect_child(item)
        elif self._is_evented(child):
            child.events.disconnect(self.changed)

    def _on_item_inserted(self, index: int, value: Any):
        self._connect_child(value)

    def _on_item_removed(self, index: int, value: Any):
        self._disconnect_child(value)

    def _on_item_added(self, key: str, value: Any):
        self._connect_child(value)

    def _connect_children(self) -> None:
        for name in self.__class__.model_fields:
            self._connect_child(getattr(self, name))

    def _is_evented(self, obj: Any) -> bool:
        """Check if an object has a connectable `events` signal group."""
        events = getattr(obj, "events", None)
        return events is not None and callable(getattr(events, "connect", None))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(instance_id={self.instance_id!r})"
