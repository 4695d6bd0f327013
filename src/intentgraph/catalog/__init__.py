"""Node type catalog: capability metadata consulted by synthesis and repair."""

from .builtin import BUILTIN_TYPES, DEPRECATED_TYPES, GENERIC_DESCRIPTOR, GENERIC_STEP
from .registry import CatalogProvider, CatalogUnavailableError, TypeCatalog, default_catalog
from .types import TypeDescriptor

__all__ = [
    "BUILTIN_TYPES",
    "DEPRECATED_TYPES",
    "GENERIC_DESCRIPTOR",
    "GENERIC_STEP",
    "CatalogProvider",
    "CatalogUnavailableError",
    "TypeCatalog",
    "TypeDescriptor",
    "default_catalog",
]
