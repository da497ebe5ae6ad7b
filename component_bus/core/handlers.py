import inspect
from typing import Any, Callable, Dict, List, Tuple

from component_bus.core.event import Payload
from component_bus.core.listeners import HandlerBinding
from component_bus.exceptions import UnknownComponentError

_POSITIONAL_KINDS = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
_KEYWORD_KINDS = (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
_MISSING = object()


def bind_payload(func: Callable[..., Any], payload: Payload) -> Tuple[List[Any], Dict[str, Any]]:
    """Work out the call arguments for `func` from an event payload.

    Key-tagged entries bind by parameter name; positional entries fill the remaining
    positional parameters in order. Entries the signature has no room for are dropped,
    unless the handler accepts ``*args`` / ``**kwargs``.
    """
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures get the payload as-is.
        return list(payload.args), dict(payload.kwargs)

    params = signature.parameters
    accepts_var_positional = any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params.values())
    accepts_var_keyword = any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values())
    positional = [p for p in params.values() if p.kind in _POSITIONAL_KINDS]

    named = {
        key: value
        for key, value in payload.kwargs.items()
        if accepts_var_keyword or (key in params and params[key].kind in _KEYWORD_KINDS)
    }

    if not named:
        args = list(payload.args)
        if not accepts_var_positional:
            args = args[: len(positional)]
        return args, {}

    call_args: List[Any] = []
    call_kwargs = dict(named)

    if accepts_var_positional:
        # Surplus entries only reach *args when every parameter before it is passed positionally.
        values = iter(payload.args)
        for param in positional:
            if param.name in call_kwargs:
                call_args.append(call_kwargs.pop(param.name))
                continue
            value = next(values, _MISSING)
            if value is _MISSING:
                break
            call_args.append(value)
        call_args.extend(values)
        return call_args, call_kwargs

    # Mixed payload: positional entries fill, by name, the positional parameters not already
    # bound by a key-tagged entry.
    free = iter(p for p in positional if p.name not in named)
    for value in payload.args:
        param = next(free, None)
        if param is None:
            break
        if param.kind is inspect.Parameter.POSITIONAL_ONLY:
            call_args.append(value)
        else:
            call_kwargs[param.name] = value
    return call_args, call_kwargs


def resolve_handler(instance: Any, binding: HandlerBinding) -> Callable[..., Any]:
    """Return the callable a binding refers to on `instance`.

    Raises:
        UnknownComponentError: If the named action does not exist on the instance.
    """
    if callable(binding.handler):
        return binding.handler
    method = getattr(instance, binding.handler, None)
    if method is None or not callable(method):
        raise UnknownComponentError(
            f"{type(instance).__name__} has no action '{binding.handler}' for listener '{binding.key}'"
        )
    return method


def invoke_handler(instance: Any, binding: HandlerBinding, payload: Payload) -> Any:
    """Invoke the handler behind `binding` with the event payload.

    A `$refresh` binding re-renders the instance instead of calling an action.
    """
    if binding.is_refresh:
        instance.refresh()
        return None
    handler = resolve_handler(instance, binding)
    args, kwargs = bind_payload(handler, payload)
    return handler(*args, **kwargs)


def call_action(instance: Any, action: str, *args: Any, **kwargs: Any) -> Any:
    """Invoke a public action on an instance by name, binding arguments the same way as listeners."""
    if action.startswith("_"):
        raise UnknownComponentError(f"Action '{action}' is not public")
    binding = HandlerBinding(key=action, template=action, handler=action)
    return invoke_handler(instance, binding, Payload(args=args, kwargs=kwargs))
