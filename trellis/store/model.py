"""Model: one typed record that resolves its references through a collection."""

import copy
import logging
import warnings
import weakref
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set, Union

from snarfx import ObservableDict, action, transaction

from .consts import DEFAULT_TYPE, ID_PROP, REF_ID_SUFFIX, RESERVED_KEYS, TYPE_PROP
from .exceptions import ImmutableReferenceError, MissingIdError, TypeMismatchError
from .patch import Patch, PatchType
from .refs import ExternalRef, ReferenceList
from .utils import first, get_id, get_type, is_empty_id, is_many, map_items

if TYPE_CHECKING:
    from .collection import Collection

logger = logging.getLogger(__name__)

PatchListener = Callable[[Patch, "Model"], None]
Resolved = Union["Model", ReferenceList, List["Model"], None]


def _same(value: Any, other: Any) -> bool:
    return value is other or (type(value) is type(other) and value == other)


class Model:
    """A typed record with attributes and references to other models.

    References are stored as ids and resolved on every read through the
    collection the model belongs to. Every committed mutation produces a
    Patch that is passed to the model's patch listeners and then to its
    collection.

    Configuration is declared on the subclass:
        type: Type tag of the model
        id_attribute: Name of the id field
        type_attribute: Name of the type field in serialized data
        refs: Local references ({"owner": "person"}) and back-references
            ({"pets": ExternalRef(model="pet", property="owner")})
        defaults: Default field values
        enable_auto_id: Generate ids for records that have none

    Example:
        class Person(Model):
            type = "person"
            refs = {"spouse": "person"}

        class Pet(Model):
            type = "pet"
            refs = {"owner": "person"}

        collection = MyCollection()
        fido = collection.add({"id": 1, "name": "Fido", "owner": 2}, "pet")
        collection.add({"id": 2, "name": "John"}, "person")

        fido.owner.name   # "John"
        fido.owner_id     # 2
        fido.owner = {"id": 3, "name": "Dave"}   # upserts person 3
    """

    type: str = DEFAULT_TYPE
    id_attribute: str = ID_PROP
    type_attribute: str = TYPE_PROP
    refs: Dict[str, Any] = {}
    defaults: Dict[str, Any] = {}
    enable_auto_id: bool = True

    _autoincrement_value = 1

    @classmethod
    def preprocess(cls, raw_data: Dict[str, Any]) -> Dict[str, Any]:
        """Transform received data (e.g. from an API) before it becomes a model."""
        return raw_data

    @classmethod
    def auto_id_function(cls) -> Union[int, str]:
        """Generate an id for a record that has none."""
        value = cls._autoincrement_value
        cls._autoincrement_value = value + 1
        return value

    def __init__(
        self,
        initial_data: Optional[Dict[str, Any]] = None,
        collection: Optional["Collection"] = None,
        listener: Optional[PatchListener] = None,
    ):
        """Create a model.

        Args:
            initial_data: Field values, including references as ids, plain
                dicts or models
            collection: Collection used to resolve references; the model is
                not added to it
            listener: Patch listener, registered once construction is done

        Raises:
            MissingIdError: If there is no id and enable_auto_id is False
        """
        self._setup(self.preprocess(dict(initial_data or {})), collection, listener)

    @classmethod
    def _from_prepared(cls, prepared: Dict[str, Any], collection: "Collection") -> "Model":
        """Create a model from data that already went through preprocess()."""
        instance = cls.__new__(cls)
        instance._setup(prepared, collection)
        return instance

    def _setup(
        self,
        prepared: Dict[str, Any],
        collection: Optional["Collection"],
        listener: Optional[PatchListener] = None,
    ) -> None:
        self._collection_ref = None
        self._data = ObservableDict()
        self._refs: Dict[str, Optional[str]] = {}
        self._props: Set[str] = set()
        self._patch_listeners: List[PatchListener] = []
        self._silent = True

        data = copy.deepcopy(self.defaults)
        data.update(prepared)

        with transaction():
            self._ensure_id(data, collection)
            self.assign(self.id_attribute, data[self.id_attribute])
            self._bind(collection)
            self._init_ref_getters()
            self.update(data)

        if listener is not None:
            self._patch_listeners.append(listener)
        self._silent = False

    # Owner

    @property
    def collection(self) -> Optional["Collection"]:
        """The collection this model belongs to, or None."""
        if self._collection_ref is None:
            return None
        return self._collection_ref()

    def _bind(self, collection: Optional["Collection"]) -> None:
        self._collection_ref = weakref.ref(collection) if collection is not None else None

    # Mutation

    @action
    def update(self, data: Union["Model", Mapping]) -> Dict[str, Any]:
        """Update the model with new field values.

        The id is only applied if the model has none yet.

        Args:
            data: Field values, or another model whose raw values are used

        Returns:
            Dict of the applied keys to their assigned values
        """
        if data is self:
            return {}
        if isinstance(data, Model):
            data = dict(data._data.items())

        vals: Dict[str, Any] = {}
        for key in list(data):
            self._update_key(vals, data, key)
        return vals

    @action
    def assign(self, key: str, value: Any) -> Any:
        """Set a field.

        Args:
            key: Field name
            value: New value; for references an id, a dict, a model, or a
                list of those

        Returns:
            The assigned value, or the resolved model(s) for references

        Raises:
            ImmutableReferenceError: If key is a back-reference
            TypeMismatchError: If a model of the wrong type is referenced
        """
        base = self._ref_of_id_key(key)
        if base is not None:
            return self.assign(base, value)
        if self._external_ref(key) is not None:
            raise ImmutableReferenceError(key)

        if key in self._refs:
            self._ensure_getter(key)
            return self._set_ref(key, value)

        if key == self.id_attribute:
            current = self._data.get(key)
            if not is_empty_id(current) and not _same(value, current):
                warnings.warn(
                    f"Ignoring new {key} {value!r} of {self!r}. Ids can't be changed.",
                    UserWarning,
                )
                return current

        patch_action = PatchType.REPLACE if key in self._data else PatchType.ADD
        old_value = self._data.get(key)
        self._data[key] = value
        # Listeners may read the field back
        self._ensure_getter(key)
        self._trigger_change(patch_action, key, value, old_value)
        return value

    @action
    def assign_ref(self, key: str, value: Any, model_type: Optional[str] = None) -> Resolved:
        """Declare a new reference on this model and assign it.

        Args:
            key: Reference name
            value: Reference value (id, dict, model, or a list of those)
            model_type: Target type, used if value holds no model

        Returns:
            The referenced model(s)

        Raises:
            ImmutableReferenceError: If key is a back-reference
        """
        if self._external_ref(key) is not None:
            raise ImmutableReferenceError(key)

        if key in self._refs:
            return self.assign(key, value)

        item = first(value)
        self._init_ref_getter(key, get_type(item) if isinstance(item, Model) else model_type)
        data = self._store_ref(key, value)
        self._trigger_change(PatchType.ADD, key, data)
        return data

    @action
    def unassign(self, key: str) -> None:
        """Remove a field value."""
        if key == self.id_attribute:
            warnings.warn(f"Ignoring removal of the {key} of {self!r}.", UserWarning)
            return
        if key not in self._data:
            return
        old_value = self._data.pop(key)
        self._trigger_change(PatchType.REMOVE, key, None, old_value)

    # Serialization

    def serialize(self) -> Dict[str, Any]:
        """Convert the model into plain data.

        References are emitted as ids (or lists of ids), never as nested
        objects.

        Returns:
            Dict of raw field values plus the type tag
        """
        data = {key: copy.deepcopy(value) for key, value in self._data.items()}
        data[self.type_attribute] = get_type(self)
        return data

    @property
    def snapshot(self) -> Dict[str, Any]:
        """Current serialized state of the model."""
        return self.serialize()

    # Patches

    def patch_listen(self, listener: PatchListener) -> Callable[[], None]:
        """Add a patch listener.

        Args:
            listener: Called with (patch, model) after every mutation

        Returns:
            Function that removes the listener
        """
        self._patch_listeners.append(listener)

        def unsubscribe() -> None:
            self._patch_listeners = [item for item in self._patch_listeners if item is not listener]

        return unsubscribe

    def apply_patch(self, patch: Union[Patch, Mapping]) -> None:
        """Replay a patch, e.g. one produced by another process.

        Args:
            patch: A Patch or its dict form
        """
        if isinstance(patch, Mapping):
            patch = Patch.from_dict(patch)
        if patch.op in (PatchType.ADD, PatchType.REPLACE):
            self.assign(patch.field, patch.value)
        elif patch.op == PatchType.REMOVE:
            self.unassign(patch.field)

    def _trigger_change(
        self,
        patch_action: PatchType,
        field: str,
        value: Any = None,
        old_value: Any = None,
    ) -> None:
        if self._silent:
            return
        if patch_action == PatchType.REPLACE and _same(value, old_value):
            return

        patch = Patch(op=patch_action, path=f"/{field}", value=value, old_value=old_value)

        for listener in list(self._patch_listeners):
            listener(patch, self)

        collection = self.collection
        if collection is not None:
            collection._on_patch_trigger(patch, self)

    # Ids

    def _ensure_id(self, data: Dict[str, Any], collection: Optional["Collection"]) -> None:
        id_attribute = self.id_attribute
        if not is_empty_id(data.get(id_attribute)):
            return
        if not self.enable_auto_id:
            raise MissingIdError(self.type, id_attribute)

        candidate = self.auto_id_function()
        while collection is not None and collection.find(self.type, candidate) is not None:
            logger.debug("Auto id %r of %s is taken, generating another", candidate, self.type)
            candidate = self.auto_id_function()
        data[id_attribute] = candidate

    def _update_key(self, vals: Dict[str, Any], data: Mapping, key: str) -> None:
        if key in RESERVED_KEYS or key in (TYPE_PROP, self.type_attribute):
            return  # Internal keys and the type tag are never fields
        if key != self.id_attribute or is_empty_id(self._data.get(self.id_attribute)):
            vals[key] = self.assign(key, data[key])

    # References

    def _external_ref(self, key: Any) -> Optional[ExternalRef]:
        return ExternalRef.coerce(self.refs.get(key))

    def _ref_of_id_key(self, key: Any) -> Optional[str]:
        """Reference name for a raw id accessor name (owner_id -> owner)."""
        if not isinstance(key, str) or key in self._refs or not key.endswith(REF_ID_SUFFIX):
            return None
        base = key[: -len(REF_ID_SUFFIX)]
        return base if base in self._refs else None

    def _init_ref_getters(self) -> None:
        for ref in self.refs:
            self._init_ref_getter(ref)

    def _init_ref_getter(self, ref: str, model_type: Optional[str] = None) -> None:
        if self._external_ref(ref) is not None:
            self._props.add(ref)
            return

        self._refs[ref] = model_type or self.refs.get(ref)
        # The reference is always present, even without data
        if ref not in self._data:
            self._data[ref] = None
        self._props.update((ref, ref + REF_ID_SUFFIX))

    def _ensure_getter(self, key: str) -> None:
        self._props.add(key)

    def _get_value_ref(self, key: str, model_type: Optional[str], item: Any) -> Any:
        """Id to store for one reference item.

        Without a collection there is no registry to find the target class,
        so a plain dict contributes its "id" key even when the target type
        declares another id_attribute.
        """
        if item is None:
            return None

        collection = self.collection
        if isinstance(item, Model):
            if model_type is not None and get_type(item) != model_type:
                raise TypeMismatchError(key, model_type, get_type(item))
            if collection is not None and item.collection is None:
                collection.add(item)
            return get_id(item)

        if isinstance(item, Mapping):
            if collection is None:
                return item.get(ID_PROP)
            model = collection.add(item, model_type)
            if model_type is not None and get_type(model) != model_type:
                raise TypeMismatchError(key, model_type, get_type(model))
            return get_id(model)

        return item

    def _get_referenced_models(self, key: str) -> Resolved:
        collection = self.collection
        model_type = self._refs.get(key)
        raw = self._data.get(key)

        if is_many(raw):
            if collection is None:
                return []
            return ReferenceList(
                self,
                key,
                [collection.find(model_type, ref_id) if ref_id is not None else None for ref_id in raw],
            )

        if raw is None or collection is None:
            return None
        return collection.find(model_type, raw)

    def _get_external_ref(self, ref: ExternalRef) -> List["Model"]:
        collection = self.collection
        if collection is None:
            return []

        result = []
        for model in collection.find_all(ref.model):
            prop = model[ref.property]
            if is_many(prop):
                if any(item is self for item in prop):
                    result.append(model)
            elif prop is self:
                result.append(model)
        return result

    def _store_ref(self, key: str, value: Any) -> Resolved:
        model_type = self._refs[key]
        ids = map_items(value, lambda item: self._get_value_ref(key, model_type, item))
        self._data[key] = ids

        # The reference was unset
        if ids is None:
            return None
        return self._get_referenced_models(key)

    def _set_ref(self, key: str, value: Any) -> Resolved:
        old_value = self._get_referenced_models(key)
        patch_action = PatchType.ADD if old_value is None else PatchType.REPLACE

        new_value = self._store_ref(key, value)

        if old_value is None and new_value is None:
            return None
        self._trigger_change(
            PatchType.REMOVE if new_value is None else patch_action,
            key,
            new_value,
            old_value,
        )
        return new_value

    @action
    def _splice_ref(self, key: str, start: int, delete_count: int, values: List[Any]) -> Resolved:
        """Apply an edit of a resolved many-reference to its raw ids."""
        model_type = self._refs[key]
        added = [self._get_value_ref(key, model_type, value) for value in values]

        old_value = self._get_referenced_models(key)
        ids = list(self._data.get(key) or [])
        ids[start : start + delete_count] = added
        self._data[key] = ids

        new_value = self._get_referenced_models(key)
        self._trigger_change(PatchType.REPLACE, key, new_value, old_value)
        return new_value

    # Field access

    def _read(self, key: str) -> Any:
        external = self._external_ref(key)
        if external is not None:
            return self._get_external_ref(external)
        if key in self._refs:
            return self._get_referenced_models(key)
        base = self._ref_of_id_key(key)
        if base is not None:
            return self._data.get(base)
        return self._data.get(key)

    def __getattr__(self, name: str) -> Any:
        # Only called when regular lookup fails
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._props:
            return self._read(name)
        raise AttributeError(f"{type(self).__name__} has no field {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or hasattr(type(self), name):
            object.__setattr__(self, name, value)
        else:
            self.assign(name, value)

    def __getitem__(self, key: str) -> Any:
        return self._read(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.assign(key, value)

    def __delitem__(self, key: str) -> None:
        self.unassign(key)

    def __contains__(self, key: str) -> bool:
        return key in self._data or self._external_ref(key) is not None

    def __iter__(self):
        return iter(list(self._data.keys()))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.type}:{get_id(self)!r}>"
