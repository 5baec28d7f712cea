"""Plain and JSON conversion of serialized models.

Field values must already be plain data: scalars, lists, tuples and
string-keyed dicts of those. Datetimes are the one exception and travel
as {"__datetime__": isoformat} markers. Anything else, models included,
raises SerializationError instead of being converted lossily.
"""

import json
from datetime import datetime
from typing import Any, Dict, List

from .consts import DATETIME_MARKER
from .exceptions import SerializationError

_SCALARS = (str, int, float, bool)


def to_plain(value: Any, path: str = "") -> Any:
    """Copy a raw field value into JSON-compatible data.

    Args:
        value: The raw value
        path: Location of the value, used in error messages

    Returns:
        The JSON-compatible copy

    Raises:
        SerializationError: For values that are not plain data
    """
    from .model import Model

    if value is None or isinstance(value, _SCALARS):
        return value
    if isinstance(value, datetime):
        return {DATETIME_MARKER: value.isoformat()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v, f"{path}[{i}]") for i, v in enumerate(value)]
    if isinstance(value, dict):
        plain = {}
        for key, v in value.items():
            if not isinstance(key, str):
                raise SerializationError(f"{path or 'record'} has a non-string key {key!r}")
            plain[key] = to_plain(v, f"{path}.{key}" if path else key)
        return plain
    if isinstance(value, Model):
        raise SerializationError(
            f"{path or 'value'} holds {value!r}. Declare the field as a reference so its id is stored instead."
        )
    raise SerializationError(f"{path or 'value'} holds a {type(value).__name__}, which is not plain data")


def from_plain(value: Any) -> Any:
    """Convert a value produced by to_plain back, restoring datetimes."""
    if isinstance(value, list):
        return [from_plain(v) for v in value]
    if isinstance(value, dict):
        if len(value) == 1 and DATETIME_MARKER in value:
            return datetime.fromisoformat(value[DATETIME_MARKER])
        return {k: from_plain(v) for k, v in value.items()}
    return value


def dumps(records: List[Dict[str, Any]], indent: int = 2) -> str:
    """Encode serialized models as a JSON string.

    Args:
        records: Output of Collection.serialize()
        indent: JSON indentation

    Returns:
        JSON string
    """
    try:
        plain = [to_plain(record, f"record {i}") for i, record in enumerate(records)]
        return json.dumps(plain, indent=indent)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to encode records: {e}")


def loads(text: str) -> List[Dict[str, Any]]:
    """Decode a JSON string produced by dumps().

    Args:
        text: JSON string

    Returns:
        List of plain records, ready for Collection(...)
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise SerializationError(f"Failed to decode records: {e}")
    if not isinstance(data, list):
        raise SerializationError(f"Expected a list of records, got {type(data).__name__}")
    return [from_plain(record) for record in data]
