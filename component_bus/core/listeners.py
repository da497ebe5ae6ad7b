"""Per-instance listener registries and dynamic listener key resolution."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from component_bus.core.attributes import get_attribute_value, stringify_attribute
from component_bus.exceptions import DynamicNameResolutionError

logger = logging.getLogger(__name__)

# Matches `{post.id}` style placeholders in a listener key template.
PLACEHOLDER_PATTERN = re.compile(r"\{([^{}]*)\}")

# Handler name that re-renders the instance instead of invoking an action.
REFRESH_HANDLER = "$refresh"


def template_paths(template: str) -> List[str]:
    """Return the attribute paths referenced by a listener key template, in order."""
    return [match.strip() for match in PLACEHOLDER_PATTERN.findall(template)]


def is_dynamic(template: str) -> bool:
    return PLACEHOLDER_PATTERN.search(template) is not None


def resolve_listener_key(template: str, instance: Any) -> str:
    """Substitute every placeholder in `template` with the instance's current attribute value.

    Args:
        template: A listener key such as "post-updated.{post.id}".
        instance: The object the attribute paths are resolved against.

    Returns:
        The resolved key, e.g. "post-updated.3".

    Raises:
        DynamicNameResolutionError: If any placeholder path does not exist on the instance.
    """
    instance_id = getattr(instance, "instance_id", None)

    def _replace(match: re.Match) -> str:
        path = match.group(1).strip()
        try:
            value = get_attribute_value(instance, path)
        except (AttributeError, ValueError) as e:
            raise DynamicNameResolutionError(
                f"Cannot resolve '{{{path}}}' in listener key '{template}': {e}",
                template=template,
                path=path,
                instance_id=instance_id,
            ) from e
        return stringify_attribute(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


@dataclass(frozen=True)
class HandlerBinding:
    """A resolved listener key bound to a handler on one instance.

    Attributes:
        key: The resolved key matched against event names.
        template: The template the key was resolved from.
        handler: A method name on the instance, or a plain callable.
    """

    key: str
    template: str
    handler: str | Callable[..., Any]

    @property
    def handler_name(self) -> str:
        if isinstance(self.handler, str):
            return self.handler
        return getattr(self.handler, "__qualname__", repr(self.handler))

    @property
    def is_refresh(self) -> bool:
        return self.handler == REFRESH_HANDLER

    @property
    def is_dynamic(self) -> bool:
        return is_dynamic(self.template)

    def describe(self) -> str:
        if not self.is_dynamic:
            return f"'{self.key}'"
        return f"'{self.key}' (from '{self.template}', paths {template_paths(self.template)})"


class ListenerRegistry:
    """Resolved listener key -> ordered handler bindings, for a single component instance."""

    def __init__(self, instance_id: str) -> None:
        self.instance_id = instance_id
        self._bindings: Dict[str, List[HandlerBinding]] = {}

    def add(self, binding: HandlerBinding) -> None:
        self._bindings.setdefault(binding.key, []).append(binding)

    def lookup(self, key: str) -> List[HandlerBinding]:
        """Return a *copy* of the bindings registered under `key`, in registration order."""
        return list(self._bindings.get(key, ()))

    def keys(self) -> List[str]:
        return list(self._bindings)

    def __iter__(self) -> Iterator[HandlerBinding]:
        for bindings in self._bindings.values():
            yield from bindings

    def __contains__(self, key: object) -> bool:
        return key in self._bindings

    def __len__(self) -> int:
        return sum(len(bindings) for bindings in self._bindings.values())

    def __repr__(self) -> str:
        return f"ListenerRegistry(instance_id={self.instance_id!r}, keys={self.keys()!r})"


@dataclass
class RegistrationReport:
    """Outcome of rebuilding one instance's registry."""

    instance_id: str
    registered: List[HandlerBinding] = field(default_factory=list)
    errors: List[DynamicNameResolutionError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class ListenerRegistrar:
    """Owns the listener registries of every live instance on a page.

    Registries are replaced wholesale on every rebuild, so keys resolved from stale attribute
    values never stay reachable.
    """

    def __init__(self) -> None:
        self._registries: Dict[str, ListenerRegistry] = {}

    def register(self, instance: Any, template: str, handler: str | Callable[..., Any]) -> HandlerBinding:
        """Resolve `template` against `instance` now and add the binding to its current registry.

        Raises:
            DynamicNameResolutionError: If the template references a missing attribute path.
        """
        key = resolve_listener_key(template, instance)
        binding = HandlerBinding(key=key, template=template, handler=handler)
        registry = self._registries.setdefault(instance.instance_id, ListenerRegistry(instance.instance_id))
        registry.add(binding)
        logger.debug(f"Registered listener {binding.describe()} -> {binding.handler_name} on {instance.instance_id}")
        return binding

    def rebuild(self, instance: Any) -> RegistrationReport:
        """Build a fresh registry from the instance's declared listeners and swap it in.

        A template that fails to resolve is reported and skipped; the instance's other
        registrations still proceed.
        """
        report = RegistrationReport(instance_id=instance.instance_id)
        registry = ListenerRegistry(instance.instance_id)
        for template, handler in instance.iter_declared_listeners():
            try:
                key = resolve_listener_key(template, instance)
            except DynamicNameResolutionError as e:
                logger.warning(f"Skipping listener on {instance.instance_id}: {e}")
                report.errors.append(e)
                continue
            binding = HandlerBinding(key=key, template=template, handler=handler)
            if binding.is_dynamic:
                logger.debug(f"Resolved listener {binding.describe()} on {instance.instance_id}")
            registry.add(binding)
            report.registered.append(binding)

        previous = self._registries.get(instance.instance_id)
        self._registries[instance.instance_id] = registry
        if previous is not None:
            dropped = set(previous.keys()) - set(registry.keys())
            if dropped:
                logger.debug(f"Dropped stale listener keys on {instance.instance_id}: {sorted(dropped)}")
        return report

    def registry_for(self, instance_id: str) -> Optional[ListenerRegistry]:
        return self._registries.get(instance_id)

    def discard(self, instance_id: str) -> Optional[ListenerRegistry]:
        """Destroy the registry of an unmounted instance."""
        return self._registries.pop(instance_id, None)

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self._registries

    def __len__(self) -> int:
        return len(self._registries)
