"""Read-only node type catalog and the provider that hands out snapshots of it."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from types import MappingProxyType

from .builtin import BUILTIN_TYPES, GENERIC_DESCRIPTOR
from .types import TypeDescriptor


class CatalogUnavailableError(RuntimeError):
    """Raised when the engine is asked to work without a loaded type catalog."""


class TypeCatalog:
    """Immutable ``type_id -> TypeDescriptor`` lookup table."""

    def __init__(self, descriptors: Iterable[TypeDescriptor]) -> None:
        table: dict[str, TypeDescriptor] = {}
        for descriptor in descriptors:
            table[descriptor.type_id] = descriptor
        self._types = MappingProxyType(table)

    def resolve(self, type_id: str | None) -> TypeDescriptor | None:
        """Return the descriptor for ``type_id``, or None when it is not catalogued."""
        if not isinstance(type_id, str):
            return None
        return self._types.get(type_id)

    def describe(self, type_id: str | None) -> TypeDescriptor:
        """Like resolve(), but unknown types fall back to the generic step descriptor."""
        return self.resolve(type_id) or self._types.get(GENERIC_DESCRIPTOR.type_id, GENERIC_DESCRIPTOR)

    def triggers(self) -> list[TypeDescriptor]:
        return [d for d in self._types.values() if d.is_trigger]

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._types

    def __iter__(self) -> Iterator[TypeDescriptor]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)


def default_catalog() -> TypeCatalog:
    """Catalog built from the bundled descriptor table."""
    return TypeCatalog(BUILTIN_TYPES)


class CatalogProvider:
    """Holds the current catalog reference.

    An external updater may call ``replace`` at any time. Each engine call takes
    one ``snapshot`` up front and uses it for the whole pipeline, so a refresh
    can never be observed half-way through an invocation.
    """

    def __init__(self, catalog: TypeCatalog | None = None) -> None:
        self._catalog = catalog

    def replace(self, catalog: TypeCatalog) -> None:
        self._catalog = catalog

    def snapshot(self) -> TypeCatalog:
        catalog = self._catalog
        if catalog is None:
            raise CatalogUnavailableError("No node type catalog has been loaded")
        return catalog

    @property
    def loaded(self) -> bool:
        return self._catalog is not None
