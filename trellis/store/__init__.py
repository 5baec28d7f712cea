"""Normalized in-memory store of typed, cross-referencing models.

Models are unique by (type, id). References between models are stored
as ids and resolved on read through the collection that owns them, so a
whole graph serializes to flat records and back without losing links.

Quick Start:
    from trellis.store import Collection, ExternalRef, Model

    class Person(Model):
        type = "person"
        refs = {"pets": ExternalRef(model="pet", property="owner")}

    class Pet(Model):
        type = "pet"
        refs = {"owner": "person"}

    class Zoo(Collection):
        types = [Person, Pet]

    zoo = Zoo()
    fido = zoo.add({"id": 1, "name": "Fido", "owner": {"id": 1, "name": "John"}}, "pet")

    john = zoo.find("person", 1)
    fido.owner is john       # True
    john.pets                # [fido]

    # Patches
    unsubscribe = fido.patch_listen(lambda patch, model: print(patch.to_dict()))
    fido.name = "Rex"        # {'op': 'replace', 'path': '/name', ...}

    # Round trip
    clone = Zoo(zoo.serialize())

Key Classes:
    - Model: One typed record with attributes and references
    - Collection: Owner of models, indexed by type and id
    - ExternalRef: Declaration of a computed back-reference
    - ReferenceList: Live, editable view of a many-reference
    - Patch: Description of one committed mutation
"""

from .collection import Collection
from .consts import DEFAULT_TYPE, ID_PROP, TYPE_PROP
from .model import Model
from .patch import Patch, PatchType
from .refs import ExternalRef, ReferenceList
from .types import TypeRegistry
from .exceptions import (
    StoreError,
    MissingIdError,
    TypeMismatchError,
    ImmutableReferenceError,
    SerializationError,
)

__all__ = [
    # Main API
    "Collection",
    "Model",
    "ExternalRef",
    "ReferenceList",
    "TypeRegistry",
    # Patches
    "Patch",
    "PatchType",
    # Constants
    "DEFAULT_TYPE",
    "ID_PROP",
    "TYPE_PROP",
    # Exceptions
    "StoreError",
    "MissingIdError",
    "TypeMismatchError",
    "ImmutableReferenceError",
    "SerializationError",
]
