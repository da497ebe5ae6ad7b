# Component Bus Exceptions

from typing import Any, Sequence


class ComponentBusError(Exception):
    """Base exception for all component bus errors.

    Attributes:
        detail (Optional[str]): A detailed error message. If not provided directly
            during initialization but other arguments are, the first positional
            argument is used as the detail.
    """

    def __init__(self, *args, detail: str | None = None):
        """Initializes the ComponentBusError.

        Args:
            *args: Arguments passed to the base Exception class.
            detail (Optional[str]): A detailed error message. If not provided and `args`
                                    is not empty, the first argument in `args` is used.
        """
        super().__init__(*args)
        self.detail = detail or (args[0] if args else None)


class DynamicNameResolutionError(ValueError, ComponentBusError):
    """Raised when a listener key placeholder cannot be resolved against an instance's attributes."""

    # Inherit from ValueError for semantic meaning (bad configuration value)
    def __init__(self, *args, template: str, path: str, instance_id: str | None = None, detail: str | None = None):
        """Initializes the DynamicNameResolutionError.

        Args:
            *args: Arguments passed to the base Exception class.
            template (str): The listener key template being resolved.
            path (str): The attribute path that could not be resolved.
            instance_id (Optional[str]): The instance the registration belonged to.
            detail (Optional[str]): A detailed error message.
        """
        ComponentBusError.__init__(self, *args, detail=detail)
        self.template = template
        self.path = path
        self.instance_id = instance_id


class AmbiguousScopeError(ComponentBusError):
    """Raised when a second scope modifier is applied to a pending event."""

    pass


class EventAlreadyFlushedError(ComponentBusError):
    """Raised when a scope modifier is applied to an event that was already delivered."""

    pass


class FlushLimitExceededError(ComponentBusError):
    """Raised when a single flush delivers more events than the configured limit."""

    def __init__(self, limit: int):
        detail = f"Flush delivered more than {limit} events; handlers are likely dispatching in a loop."
        super().__init__(detail, detail=detail)
        self.limit = limit


class HandlerInvocationError(ComponentBusError):
    """Raised (and collected) when a matched listener handler fails during routing.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, event_name: str, instance_id: str, handler: str, detail: str | None = None):
        message = detail or f"Handler '{handler}' on instance {instance_id} failed for event '{event_name}'"
        super().__init__(message, detail=message)
        self.event_name = event_name
        self.instance_id = instance_id
        self.handler = handler


class TransportSubscriptionError(ComponentBusError):
    """Raised when the external pub/sub transport fails to subscribe or unsubscribe."""

    def __init__(self, *args, channel: str, visibility: Any, detail: str | None = None):
        super().__init__(*args, detail=detail)
        self.channel = channel
        self.visibility = visibility


class UnknownComponentError(LookupError, ComponentBusError):
    """Raised when a page, component instance, component name or action cannot be found."""

    def __init__(self, *args, detail: str | None = None):
        ComponentBusError.__init__(self, *args, detail=detail)


class CycleError(ComponentBusError):
    """Raised by ``CycleResult.raise_for_errors`` when handlers failed during a processing cycle."""

    def __init__(self, errors: Sequence[HandlerInvocationError]):
        self.errors = list(errors)
        summary = "; ".join(str(e) for e in self.errors)
        message = f"{len(self.errors)} handler(s) failed during the processing cycle: {summary}"
        super().__init__(message, detail=message)
