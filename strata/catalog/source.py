"""Catalog sources — where migration units come from.

A source yields UnitDescriptors without running any unit code, and loads
a unit's handlers when asked. DirectorySource scans the filesystem;
StaticSource serves units registered in memory.

On disk a unit is a Python file laid out as

    <root>/<domain>/<version>-<timestamp>-<title>.py

where <version> may use underscores ("1_2_0") and <domain> is one of
schema, config, content. The module must define `up(context)` and may
define `down(context)` and an `info` dict with a "description".
"""

from __future__ import annotations

import importlib.util
import logging
import re
import sys
from pathlib import Path
from typing import Iterable, Protocol, runtime_checkable

from strata import versioning
from strata.exceptions import DiscoveryError, UnitNotFoundError
from strata.types import Domain, MigrationHandlers, Scope, UnitDescriptor

_logger = logging.getLogger(__name__)

_MODULE_SAFE = re.compile(r"\W")


@runtime_checkable
class CatalogSource(Protocol):
    name: str
    scope: Scope

    def descriptors(self) -> list[UnitDescriptor]: ...

    def load(self, descriptor: UnitDescriptor) -> MigrationHandlers: ...


def parse_descriptor_name(
    filename: str,
    domain: Domain,
    scope: Scope = Scope.CORE,
    source: str = "",
    location: Path | None = None,
) -> UnitDescriptor:
    """Build a descriptor from a `<version>-<timestamp>-<title>` name."""
    stem = filename[:-3] if filename.lower().endswith(".py") else filename
    parts = stem.split("-", 2)
    if len(parts) < 2:
        raise DiscoveryError(
            f"Migration '{filename}' is not named <version>-<timestamp>-<title>"
        )

    raw_version, raw_timestamp = parts[0], parts[1]
    title = parts[2] if len(parts) > 2 else ""

    version = versioning.clean_version(versioning.normalize_version(raw_version))
    if version is None:
        raise DiscoveryError(
            f"Migration '{filename}' declares an invalid version '{raw_version}'"
        )
    try:
        timestamp = int(raw_timestamp)
    except ValueError:
        raise DiscoveryError(
            f"Migration '{filename}' declares an invalid timestamp '{raw_timestamp}'"
        ) from None

    return UnitDescriptor(
        identifier=stem,
        version=version,
        timestamp=timestamp,
        domain=domain,
        scope=scope,
        title=title,
        source=source,
        location=location,
    )


class DirectorySource:
    """Scans a migrations directory with one subdirectory per domain."""

    def __init__(self, root: Path, name: str = "core", scope: Scope = Scope.CORE) -> None:
        self.root = Path(root)
        self.name = name
        self.scope = scope

    def descriptors(self) -> list[UnitDescriptor]:
        if not self.root.is_dir():
            _logger.debug("Migration directory %s does not exist", self.root)
            return []

        found: list[UnitDescriptor] = []
        for domain in Domain:
            domain_dir = self.root / domain.value
            if not domain_dir.is_dir():
                continue
            for path in sorted(domain_dir.glob("*.py")):
                if path.name.startswith("_"):
                    continue
                found.append(
                    parse_descriptor_name(
                        path.name,
                        domain,
                        scope=self.scope,
                        source=self.name,
                        location=path,
                    )
                )
        return found

    def load(self, descriptor: UnitDescriptor) -> MigrationHandlers:
        if descriptor.location is None:
            raise UnitNotFoundError(f"Migration '{descriptor.identifier}' has no file")

        module_name = _MODULE_SAFE.sub(
            "_", f"strata_unit_{self.name}_{descriptor.domain.value}_{descriptor.identifier}"
        )
        spec = importlib.util.spec_from_file_location(module_name, descriptor.location)
        if spec is None or spec.loader is None:
            raise UnitNotFoundError(f"Cannot import {descriptor.location}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            sys.modules.pop(module_name, None)
            raise

        up = getattr(module, "up", None)
        if not callable(up):
            raise DiscoveryError(
                f"Migration '{descriptor.identifier}' does not define up(context)"
            )
        down = getattr(module, "down", None)
        info = getattr(module, "info", None) or {}
        if not isinstance(info, dict):
            raise DiscoveryError(
                f"Migration '{descriptor.identifier}' info must be a dict, "
                f"got {type(info).__name__}"
            )
        return MigrationHandlers(
            up=up,
            down=down if callable(down) else None,
            description=info.get("description", "") or descriptor.title,
        )

    def __repr__(self) -> str:
        return f"DirectorySource(name={self.name!r}, root={str(self.root)!r})"


class StaticSource:
    """Units registered in memory, for embedding hosts and tests."""

    def __init__(self, name: str = "static", scope: Scope = Scope.CORE) -> None:
        self.name = name
        self.scope = scope
        self._units: dict[str, tuple[UnitDescriptor, MigrationHandlers]] = {}

    def add(
        self,
        identifier: str,
        domain: Domain | str,
        handlers: MigrationHandlers,
    ) -> UnitDescriptor:
        """Register a unit named `<version>-<timestamp>-<title>`."""
        descriptor = parse_descriptor_name(
            identifier, Domain(domain), scope=self.scope, source=self.name
        )
        self._units[descriptor.identifier] = (descriptor, handlers)
        return descriptor

    def extend(self, units: Iterable[tuple[str, Domain | str, MigrationHandlers]]) -> None:
        for identifier, domain, handlers in units:
            self.add(identifier, domain, handlers)

    def descriptors(self) -> list[UnitDescriptor]:
        return [descriptor for descriptor, _ in self._units.values()]

    def load(self, descriptor: UnitDescriptor) -> MigrationHandlers:
        entry = self._units.get(descriptor.identifier)
        if entry is None:
            raise UnitNotFoundError(f"Migration '{descriptor.identifier}' not found")
        return entry[1]
