"""Shared test fixtures — in-memory catalogs and recording handlers."""

from __future__ import annotations

import pytest
import pytest_asyncio

from strata.catalog import MigrationCatalog, StaticSource
from strata.config_document import JsonConfigDocument
from strata.store import MetadataStore
from strata.types import MigrationContext, MigrationHandlers, MigrationOutcome, Scope


class RecordingUnit:
    """A unit whose handlers record every call. No real data is touched."""

    def __init__(
        self,
        calls: list,
        name: str,
        success: bool = True,
        message: str | None = None,
        raises: Exception | None = None,
        reversible: bool = True,
        description: str = "",
    ):
        self.calls = calls
        self.name = name
        self.success = success
        self.message = message
        self.raises = raises
        self.reversible = reversible
        self.description = description
        self.contexts: list[MigrationContext] = []

    async def _handle(self, direction: str, context: MigrationContext) -> MigrationOutcome:
        self.calls.append((direction, self.name))
        self.contexts.append(context)
        if self.raises is not None:
            raise self.raises
        return MigrationOutcome(success=self.success, message=self.message)

    async def up(self, context):
        return await self._handle("up", context)

    async def down(self, context):
        return await self._handle("down", context)

    def handlers(self) -> MigrationHandlers:
        return MigrationHandlers(
            up=self.up,
            down=self.down if self.reversible else None,
            description=self.description or self.name,
        )


@pytest.fixture
def calls():
    return []


@pytest.fixture
def make_catalog(calls):
    """Build a catalog from (identifier, domain, **RecordingUnit kwargs) tuples."""

    def _factory(*units, scope: Scope = Scope.CORE, name: str = "static"):
        source = StaticSource(name=name, scope=scope)
        recorders = {}
        for identifier, domain, *rest in units:
            kwargs = rest[0] if rest else {}
            unit = RecordingUnit(calls, identifier, **kwargs)
            recorders[identifier] = unit
            source.add(identifier, domain, unit.handlers())
        catalog = MigrationCatalog([source])
        catalog.recorders = recorders
        return catalog

    return _factory


@pytest_asyncio.fixture
async def store(tmp_path):
    s = MetadataStore(str(tmp_path / "strata.db"))
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def config_doc(tmp_path):
    return JsonConfigDocument(tmp_path / "config.json")
