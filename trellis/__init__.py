"""
Trellis - Normalized object-graph store.

Built on snarfx (reactive state).

Submodules:
    trellis.store - Models, collections, references and patches
"""

import snarfx

# Re-export snarfx batching for convenience
transaction = snarfx.transaction
action = snarfx.action

from .store import Collection, ExternalRef, Model, Patch, PatchType
from . import store

__all__ = [
    # Core functions
    "transaction",
    "action",
    # Submodules
    "store",
    # Store
    "Collection",
    "Model",
    "ExternalRef",
    "Patch",
    "PatchType",
]

__version__ = "0.1.0"
