"""Type registry mapping type tags to Model classes."""

from typing import Dict, List, Optional, Set, Type

from .consts import DEFAULT_TYPE, TYPE_PROP
from .model import Model


class TypeRegistry:
    """Maps type tags to Model classes.

    Allows a collection to know which class to instantiate when a plain
    record is added under a given type. Tags without a registered class
    get an ad-hoc Model subclass, created once and reused.

    Example:
        registry = TypeRegistry()
        registry.register(Person)
        registry.register(Pet)

        cls = registry.get_model("person")  # Person
    """

    def __init__(self, types: Optional[List[Type[Model]]] = None):
        self._types: Dict[str, Type[Model]] = {}
        self._fallbacks: Dict[str, Type[Model]] = {}
        for cls in types or []:
            self.register(cls)

    def register(self, cls: Type[Model]) -> None:
        """Register a Model class under its type tag.

        Args:
            cls: The Model subclass; a later class with the same tag wins
        """
        self._types[cls.type] = cls
        self._fallbacks.pop(cls.type, None)

    def get_model(self, model_type: Optional[str]) -> Type[Model]:
        """Get the Model class for a type tag.

        Args:
            model_type: Type tag, or None for untyped data

        Returns:
            The registered class, Model for untyped data, or an ad-hoc
            Model subclass for unknown tags
        """
        if model_type is None or model_type == DEFAULT_TYPE:
            return self._types.get(DEFAULT_TYPE, Model)
        cls = self._types.get(model_type)
        if cls is not None:
            return cls
        if model_type not in self._fallbacks:
            name = f"{Model.__name__}[{model_type}]"
            self._fallbacks[model_type] = type(name, (Model,), {"type": model_type})
        return self._fallbacks[model_type]

    def declared(self) -> List[str]:
        """Type tags of the registered classes, in registration order."""
        return list(self._types)

    def type_attributes(self) -> Set[str]:
        """Names under which plain data may carry its type tag."""
        return {TYPE_PROP} | {cls.type_attribute for cls in self._types.values()}

    def __contains__(self, model_type: str) -> bool:
        return model_type in self._types

    def clear(self) -> None:
        """Remove all registered classes."""
        self._types.clear()
        self._fallbacks.clear()
