"""CLI runtime context — bridges the sync CLI to the async orchestrator."""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine

from rich.console import Console

from strata import __version__
from strata.catalog import MigrationCatalog
from strata.config import StrataSettings, settings
from strata.config_document import JsonConfigDocument
from strata.orchestrator import MigrationOrchestrator
from strata.store import MetadataStore


class StrataContext:
    """Holds the collaborators one CLI invocation works with."""

    _instance: StrataContext | None = None

    def __init__(
        self,
        app_settings: StrataSettings | None = None,
        console: Console | None = None,
    ) -> None:
        self.settings = app_settings or settings
        self.console = console or Console()
        self.build_version = self.settings.build_version or __version__
        self.config_document = JsonConfigDocument(self.settings.config_path)
        self.store = MetadataStore(str(self.settings.db_path))
        self.catalog = MigrationCatalog.from_directories(
            extension_dirs=self.settings.extension_dirs
        )

    async def ensure_store(self) -> MetadataStore:
        """Create the workspace and open the store on first use."""
        self.settings.db_path.parent.mkdir(parents=True, exist_ok=True)
        await self.store.initialize()
        return self.store

    def orchestrator(self) -> MigrationOrchestrator:
        return MigrationOrchestrator(
            config=self.config_document,
            store=self.store,
            catalog=self.catalog,
            build_version=self.build_version,
            baseline_version=self.settings.baseline_version,
            cache_dirs=self.settings.cache_dirs,
            console=self.console,
        )

    @classmethod
    def get(cls) -> StrataContext:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls, instance: StrataContext | None = None) -> None:
        cls._instance = instance


def run_async(coro: Coroutine) -> Any:
    """Run an async coroutine from sync CLI code."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        import concurrent.futures
        with concurrent.futures.ThreadPoolExecutor() as pool:
            return pool.submit(asyncio.run, coro).result()
    else:
        return asyncio.run(coro)
