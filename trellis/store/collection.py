"""Collection: the registry that owns models and indexes them by type and id."""

import logging
import weakref
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterator, List, Optional, Type, Union

from snarfx import Computed, ObservableList, action, get_pending_count, transaction

from .model import Model, PatchListener
from .patch import Patch
from .serialization import dumps, loads
from .types import TypeRegistry
from .utils import get_id, get_type, is_empty_id, is_many

logger = logging.getLogger(__name__)


class Collection:
    """In-memory store of models, unique by (type, id).

    Models reference each other by id; the collection resolves those ids
    and upserts nested records assigned to references. Every declared
    model type gets a cached view of its models, readable as an
    attribute or through find_all().

    Example:
        class MyCollection(Collection):
            types = [Person, Pet]

        collection = MyCollection()
        john = collection.add({"id": 1, "name": "John"}, "person")
        fido = collection.add({"id": 1, "name": "Fido", "owner": 1}, "pet")

        fido.owner is john            # True
        len(collection.person)        # 1

        # Round trip
        clone = MyCollection(collection.serialize())
        clone.find("pet", 1).owner.name   # "John"
    """

    types: List[Type[Model]] = []

    def __init__(self, data: Optional[List[Dict[str, Any]]] = None):
        """Create a collection, optionally seeded with serialized models.

        Args:
            data: Plain records carrying their type tag, e.g. the output
                of serialize(); their order does not matter
        """
        self._data = ObservableList()
        self._model_hash: Dict[str, Dict[Any, Model]] = {}
        self._type_registry = TypeRegistry(self.types)
        self._views: Dict[str, Computed] = {}
        self._patch_listeners: List[Callable[[Patch, Model], None]] = []

        for model_type in self._type_registry.declared():
            self._views[model_type] = self._get_by_type(model_type)

        if data:
            with transaction():
                self.add(list(data))

    # Type registration

    def register_type(self, cls: Type[Model]) -> None:
        """Register a Model class for this collection only.

        Args:
            cls: The Model subclass; its type gets a view like the
                classes listed in types
        """
        self._type_registry.register(cls)
        if cls.type not in self._views:
            self._views[cls.type] = self._get_by_type(cls.type)

    # Adding

    @action
    def add(self, model: Any, model_type: Optional[str] = None) -> Union[Model, List[Model]]:
        """Add a model or list of models.

        Plain records are upserted: if a model with the same type and id
        is already in the collection, the record is merged into it and the
        existing instance is returned.

        Args:
            model: A dict, a Model, or a list of those
            model_type: Type of plain records; defaults to their type tag

        Returns:
            The model instance(s) held by the collection
        """
        if is_many(model):
            return [self.add(item, model_type) for item in model]

        if isinstance(model, Model):
            return self._add_instance(model)
        return self._add_data(model, model_type)

    def _add_instance(self, instance: Model) -> Model:
        existing = self.find(get_type(instance), get_id(instance))
        if existing is not None:
            if existing is not instance:
                logger.debug("Merging %r into the existing instance", instance)
                existing.update(instance)
            return existing

        self._insert(instance)
        return instance

    def _add_data(self, data: Mapping, model_type: Optional[str]) -> Model:
        cls = self._type_registry.get_model(model_type or self._type_of(data))

        prepared = cls.preprocess(dict(data))
        model_id = prepared.get(cls.id_attribute)
        existing = None if is_empty_id(model_id) else self.find(cls.type, model_id)
        if existing is not None:
            logger.debug("Upserting %s:%r", cls.type, model_id)
            existing.update(prepared)
            return existing

        instance = cls._from_prepared(prepared, self)
        # Nested records assigned during construction may have claimed the key
        return self._add_instance(instance)

    def _insert(self, instance: Model) -> None:
        model_type = get_type(instance)
        self._model_hash.setdefault(model_type, {})[get_id(instance)] = instance
        instance._bind(self)
        self._data.append(instance)
        logger.debug("Added %r", instance)

    def _type_of(self, data: Mapping) -> Optional[str]:
        for attribute in self._type_registry.type_attributes():
            if data.get(attribute) is not None:
                return data[attribute]
        return None

    # Lookup

    def find(self, model_type: str, model_id: Any = None) -> Optional[Model]:
        """Find a specific model.

        Args:
            model_type: Type of the model
            model_id: Id of the model; without one, the first model of the
                type is returned

        Returns:
            The model, or None if not found
        """
        if model_id is not None:
            return self._model_hash.get(model_type, {}).get(model_id)
        return next((item for item in self._data if get_type(item) == model_type), None)

    def find_all(self, model_type: str) -> List[Model]:
        """Find all models of a type, in insertion order.

        The view is cached until a model is added or removed; each call
        returns a new list, so callers may modify it freely.

        Args:
            model_type: Type of the models

        Returns:
            List of models (empty for unknown types)
        """
        if get_pending_count():
            # A mutation batch is in flight; cached views may be stale
            return self._filter(model_type)
        if model_type not in self._views:
            self._views[model_type] = self._get_by_type(model_type)
        return list(self._views[model_type].get())

    def _filter(self, model_type: str) -> List[Model]:
        return [item for item in self._data if get_type(item) == model_type]

    def _get_by_type(self, model_type: str) -> Computed:
        ref = weakref.ref(self)

        def models() -> List[Model]:
            collection = ref()
            return collection._filter(model_type) if collection is not None else []

        return Computed(models)

    # Removal

    def remove(self, model_type: str, model_id: Any = None) -> Optional[Model]:
        """Remove a specific model.

        Args:
            model_type: Type of the model
            model_id: Id of the model; without one, the first model of the
                type is removed

        Returns:
            The removed model, or None if not found
        """
        model = self.find(model_type, model_id)
        self._remove_models([model])
        return model

    @action
    def remove_all(self, model_type: str) -> List[Model]:
        """Remove all models of a type.

        Returns:
            The removed models
        """
        models = self._filter(model_type)
        self._remove_models(models)
        return models

    @action
    def reset(self) -> None:
        """Remove all models."""
        self._remove_models(list(self._data))

    @action
    def _remove_models(self, models: List[Optional[Model]]) -> None:
        for model in models:
            if model is None:
                continue
            self._data.remove(model)
            self._model_hash.get(get_type(model), {}).pop(get_id(model), None)
            model._bind(None)
            logger.debug("Removed %r", model)

    # Serialization

    def serialize(self) -> List[Dict[str, Any]]:
        """Convert the collection into a list of plain records."""
        return [item.serialize() for item in self._data]

    @property
    def snapshot(self) -> List[Dict[str, Any]]:
        """Current serialized state of the collection."""
        return self.serialize()

    def to_json(self) -> str:
        """Serialize the collection to a JSON string."""
        return dumps(self.serialize())

    @classmethod
    def from_json(cls, text: str) -> "Collection":
        """Create a collection from a JSON string produced by to_json()."""
        return cls(loads(text))

    # Patches

    def patch_listen(self, listener: PatchListener) -> Callable[[], None]:
        """Listen to the patches of every model in the collection.

        Args:
            listener: Called with (patch, model)

        Returns:
            Function that removes the listener
        """
        self._patch_listeners.append(listener)

        def unsubscribe() -> None:
            self._patch_listeners = [item for item in self._patch_listeners if item is not listener]

        return unsubscribe

    def _on_patch_trigger(self, patch: Patch, model: Model) -> None:
        for listener in list(self._patch_listeners):
            listener(patch, model)

    # Container protocol

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Model]:
        return iter(list(self._data))

    def __contains__(self, model: Model) -> bool:
        return any(item is model for item in self._data)

    def __getattr__(self, name: str) -> List[Model]:
        # Declared types are readable as attributes (collection.person)
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._type_registry:
            return self.find_all(name)
        raise AttributeError(f"{type(self).__name__} has no model type {name!r}")
