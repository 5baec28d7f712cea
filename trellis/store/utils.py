"""Small helpers shared by models and collections."""

from collections.abc import Sequence
from typing import Any, Callable, Optional


def is_many(value: Any) -> bool:
    """Whether a value is a sequence of references rather than a single one."""
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def first(value: Any) -> Any:
    """First item of a sequence, the value itself otherwise."""
    if is_many(value):
        return value[0] if len(value) else None
    return value


def map_items(value: Any, fn: Callable[[Any], Any]) -> Any:
    """Apply fn to every item of a sequence, or to the single value."""
    if is_many(value):
        return [fn(item) for item in value]
    return fn(value)


def get_type(model) -> str:
    """Type tag of a model instance."""
    return type(model).type


def get_id(model) -> Optional[Any]:
    """Id of a model instance."""
    return model._data.get(type(model).id_attribute)


def is_empty_id(value: Any) -> bool:
    """Ids that count as missing. Zero is a valid id."""
    return value is None or value == ""
