# Component registry mapping component names to classes.

from typing import Dict, Type, TypeVar

from component_bus.component import Component
from component_bus.exceptions import UnknownComponentError

C = TypeVar("C", bound=Type[Component])

# Registry mapping component names (as used by the HTTP API and `to()` targets) to their classes
COMPONENT_NAME_TO_CLASS: Dict[str, Type[Component]] = {}


def register_component(cls: C) -> C:
    """Class decorator making a component mountable by name."""
    name = cls.get_component_name()
    existing = COMPONENT_NAME_TO_CLASS.get(name)
    if existing is not None and existing is not cls:
        raise ValueError(f"Component name '{name}' is already registered to {existing.__qualname__}")
    COMPONENT_NAME_TO_CLASS[name] = cls
    return cls


def get_component_class(name: str) -> Type[Component]:
    try:
        return COMPONENT_NAME_TO_CLASS[name]
    except KeyError:
        raise UnknownComponentError(f"Unknown component: {name}")
