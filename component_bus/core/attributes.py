from typing import Any


def get_attribute_value(source: Any, path: str) -> Any:
    """Get a value from a component instance (or any object) using a dotted path.

    Args:
        source: The object to read from, usually a component instance.
        path: The path to the value e.g. "post.id", "filters.status", "rows.0.title".

    Returns:
        The value at the path.

    Raises:
        AttributeError: If any segment of the path cannot be accessed.
        ValueError: If the path is empty or contains an empty segment.
    """
    vals = path.split(".")
    if not path or any(not v for v in vals):
        raise ValueError(f"Invalid attribute path: {path!r}")

    x: Any = source
    while vals:
        key = vals.pop(0)

        # Try dict-like access first (includes EventedDict)
        if hasattr(x, "__getitem__") and (isinstance(x, dict) or hasattr(x, "keys")):
            try:
                x = x[key]
                continue
            except (KeyError, TypeError):
                pass

        # Try attribute access
        if hasattr(x, key):
            x = getattr(x, key)
        else:
            # Try accessing as index for list-like objects
            try:
                x = x[int(key)]
            except (ValueError, TypeError, IndexError, KeyError):
                raise AttributeError(f"Cannot access '{key}' on {type(x).__name__}")
    return x


def stringify_attribute(value: Any) -> str:
    """Render an attribute value for interpolation into a listener key."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
