"""Exceptions for the trellis.store module."""


class StoreError(Exception):
    """Base exception for all store errors."""

    pass


class MissingIdError(StoreError, ValueError):
    """A model was created without an id and auto ids are disabled."""

    def __init__(self, model_type: str, id_attribute: str):
        self.model_type = model_type
        self.id_attribute = id_attribute
        super().__init__(f"{id_attribute} is required for model type {model_type!r}")


class TypeMismatchError(StoreError, TypeError):
    """A model of the wrong type was assigned to a reference."""

    def __init__(self, key: str, expected: str, actual: str):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(f"Reference {key!r} expects a {expected!r} model, got {actual!r}")


class ImmutableReferenceError(StoreError, AttributeError):
    """An external (back) reference was assigned directly."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"{key} is an external reference")


class SerializationError(StoreError):
    """Failed to serialize or deserialize a collection."""

    pass
