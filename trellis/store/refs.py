"""Reference declarations and the live view of many-references."""

from collections.abc import Mapping, MutableSequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Union

if TYPE_CHECKING:
    from .model import Model


@dataclass(frozen=True)
class ExternalRef:
    """A back-reference computed from another model type's reference.

    Example:
        class Person(Model):
            type = "person"
            refs = {"pets": ExternalRef(model="pet", property="owner")}

        # person.pets lists every pet whose owner is person
    """

    model: str
    property: str

    @classmethod
    def coerce(cls, value: Any) -> Optional["ExternalRef"]:
        """Interpret a refs entry. Plain type names are local refs (None)."""
        if isinstance(value, ExternalRef):
            return value
        if isinstance(value, Mapping):
            return cls(model=value["model"], property=value["property"])
        return None


class ReferenceList(MutableSequence):
    """Resolved models of a many-reference.

    Structural edits are not applied to this list directly: each one is
    translated into a splice of the owner's raw id list, after which the
    resolved items are refreshed from the owner. Items that do not resolve
    are None.
    """

    def __init__(self, model: "Model", key: str, items: Iterable[Optional["Model"]]):
        self._model = model
        self._key = key
        self._items: List[Optional["Model"]] = list(items)

    def __getitem__(self, index):
        # Slices are plain lists, detached from the owner
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            start, stop, step = index.indices(len(self._items))
            if step != 1:
                raise ValueError("extended slice assignment is not supported")
            self._splice(start, max(stop - start, 0), list(value))
        else:
            self._splice(self._position(index), 1, [value])

    def __delitem__(self, index) -> None:
        if isinstance(index, slice):
            positions = sorted(range(*index.indices(len(self._items))), reverse=True)
            for position in positions:
                self._splice(position, 1, [])
        else:
            self._splice(self._position(index), 1, [])

    def insert(self, index: int, value: Any) -> None:
        length = len(self._items)
        if index < 0:
            index = max(length + index, 0)
        self._splice(min(index, length), 0, [value])

    def extend(self, values: Iterable[Any]) -> None:
        self._splice(len(self._items), 0, list(values))

    def __iadd__(self, values: Iterable[Any]) -> "ReferenceList":
        self.extend(values)
        return self

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, ReferenceList):
            return self._items == other._items
        if isinstance(other, (list, tuple)):
            return self._items == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"ReferenceList({self._items!r})"

    def _position(self, index: int) -> int:
        length = len(self._items)
        position = index + length if index < 0 else index
        if not 0 <= position < length:
            raise IndexError("reference list index out of range")
        return position

    def _splice(self, start: int, delete_count: int, values: List[Any]) -> None:
        resolved: Union["ReferenceList", List, None] = self._model._splice_ref(
            self._key, start, delete_count, values
        )
        self._items = list(resolved) if resolved is not None else []
