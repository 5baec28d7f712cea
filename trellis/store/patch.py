"""Patch objects describing committed model mutations."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class PatchType(str, Enum):
    """Kind of mutation a patch describes."""

    ADD = "add"
    REPLACE = "replace"
    REMOVE = "remove"


@dataclass
class Patch:
    """A single committed mutation of one model field.

    Example:
        def on_patch(patch, model):
            print(patch.op, patch.field, patch.old_value, "->", patch.value)

        unsubscribe = person.patch_listen(on_patch)
        person.name = "Jane"   # replace /name
    """

    op: PatchType
    path: str
    value: Any = None
    old_value: Any = None

    def __post_init__(self):
        self.op = PatchType(self.op)

    @property
    def field(self) -> str:
        """Name of the mutated field (the path without its leading slash)."""
        return self.path[1:]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the plain patch form used for exchanging patches."""
        return {
            "op": self.op.value,
            "path": self.path,
            "value": self.value,
            "oldValue": self.old_value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Patch":
        """Build a patch from its plain form.

        Args:
            data: Mapping with "op" and "path", optionally "value" and "oldValue"

        Returns:
            The Patch
        """
        return cls(
            op=data["op"],
            path=data["path"],
            value=data.get("value"),
            old_value=data.get("oldValue", data.get("old_value")),
        )
