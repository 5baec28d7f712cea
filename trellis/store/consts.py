"""Constants shared by models and collections."""

# Name of the type property when a model is serialized
TYPE_PROP = "__type__"

# Type of models without a declared custom type
DEFAULT_TYPE = "__default_type__"

# Default name of the id attribute
ID_PROP = "id"

# Suffix of the raw id accessor created for every local reference
REF_ID_SUFFIX = "_id"

# Internal model attributes that update() must never overwrite
RESERVED_KEYS = frozenset(
    {
        "_collection_ref",
        "_data",
        "_refs",
        "_props",
        "_patch_listeners",
        "_silent",
    }
)

# Marker wrapping datetime field values in JSON output
DATETIME_MARKER = "__datetime__"
