"""Migration catalog — discovering units and loading their handlers."""

from strata.catalog.catalog import CORE_MIGRATIONS_DIR, MigrationCatalog
from strata.catalog.registry import HandlerRegistry
from strata.catalog.source import (
    CatalogSource,
    DirectorySource,
    StaticSource,
    parse_descriptor_name,
)

__all__ = [
    "CORE_MIGRATIONS_DIR",
    "CatalogSource",
    "DirectorySource",
    "HandlerRegistry",
    "MigrationCatalog",
    "StaticSource",
    "parse_descriptor_name",
]
