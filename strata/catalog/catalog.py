"""Migration Catalog — every unit known to this process.

Descriptors from the core source and each extension source are merged,
checked for collisions and ordered by timestamp. Handlers are loaded on
first use and memoized in the HandlerRegistry.
"""

from __future__ import annotations

import logging
from pathlib import Path

from strata.catalog.registry import HandlerRegistry
from strata.catalog.source import CatalogSource, DirectorySource
from strata.exceptions import DiscoveryError, UnitNotFoundError
from strata.types import MigrationHandlers, Scope, UnitDescriptor, UnitId

_logger = logging.getLogger(__name__)

CORE_MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


class MigrationCatalog:
    """Discovers units across sources and loads their handlers lazily."""

    def __init__(
        self,
        sources: list[CatalogSource],
        registry: HandlerRegistry | None = None,
    ) -> None:
        self._sources = list(sources)
        self._registry = registry or HandlerRegistry()
        self._units: list[UnitDescriptor] | None = None
        self._by_id: dict[UnitId, tuple[UnitDescriptor, CatalogSource]] = {}

    @classmethod
    def from_directories(
        cls,
        core_dir: Path | None = None,
        extension_dirs: list[Path] | None = None,
    ) -> MigrationCatalog:
        """Core units plus `<extension>/migrations` for each extension."""
        sources: list[CatalogSource] = [
            DirectorySource(core_dir or CORE_MIGRATIONS_DIR, name="core", scope=Scope.CORE)
        ]
        for ext in extension_dirs or []:
            ext = Path(ext)
            sources.append(
                DirectorySource(ext / "migrations", name=ext.name, scope=Scope.EXTENSION)
            )
        return cls(sources)

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    def discover(self) -> list[UnitDescriptor]:
        """All descriptors, ordered by timestamp. Cached after the first call."""
        if self._units is not None:
            return list(self._units)

        by_id: dict[UnitId, tuple[UnitDescriptor, CatalogSource]] = {}
        seen_keys: dict[tuple, UnitId] = {}
        for source in self._sources:
            for descriptor in source.descriptors():
                if descriptor.identifier in by_id:
                    other = by_id[descriptor.identifier][1]
                    raise DiscoveryError(
                        f"Migration '{descriptor.identifier}' is provided by both "
                        f"'{other.name}' and '{source.name}'"
                    )
                key = (descriptor.domain, descriptor.version, descriptor.timestamp)
                if key in seen_keys:
                    raise DiscoveryError(
                        f"Migrations '{seen_keys[key]}' and '{descriptor.identifier}' "
                        f"share version {descriptor.version} and timestamp "
                        f"{descriptor.timestamp} in domain '{descriptor.domain.value}'"
                    )
                seen_keys[key] = descriptor.identifier
                by_id[descriptor.identifier] = (descriptor, source)

        self._by_id = by_id
        self._units = sorted(
            (d for d, _ in by_id.values()),
            key=lambda d: (d.timestamp, d.identifier),
        )
        _logger.debug(
            "Discovered %d migration(s) from %d source(s)",
            len(self._units), len(self._sources),
        )
        return list(self._units)

    def get(self, identifier: UnitId) -> UnitDescriptor:
        self.discover()
        entry = self._by_id.get(identifier)
        if entry is None:
            raise UnitNotFoundError(f"Migration '{identifier}' not found")
        return entry[0]

    def load_handler(self, identifier: UnitId) -> MigrationHandlers:
        """Handlers for `identifier`, importing the unit on first request."""
        if identifier in self._registry:
            return self._registry.get(identifier)
        self.discover()
        entry = self._by_id.get(identifier)
        if entry is None:
            raise UnitNotFoundError(f"Migration '{identifier}' not found")
        descriptor, source = entry
        _logger.debug("Loading migration %s from %s", identifier, source.name)
        return self._registry.register(identifier, source.load(descriptor))

    def versions(self) -> list[str]:
        return [d.version for d in self.discover()]

    def __repr__(self) -> str:
        count = len(self._units) if self._units is not None else "?"
        return f"MigrationCatalog(sources={len(self._sources)}, units={count})"
