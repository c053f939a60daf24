"""Migration Orchestrator — the entry point a host calls before serving.

One run per process:

    resolve versions → discover catalog → plan → show plan
        → approval gate → execute → record → strict/failsafe decision

ConfigError and DiscoveryError escape before anything is mutated.
A failed run in strict mode raises FatalAbort once its audit record
has been written; the host is expected to exit instead of serving.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field
from rich.console import Console

from strata.catalog import MigrationCatalog
from strata.config import RunDirectives
from strata.display import plan_lines, print_plan
from strata.exceptions import FatalAbort
from strata.executor import Executor
from strata.recorder import RecordResult, StatusRecorder
from strata.resolver import VersionResolver
from strata.scheduler import Scheduler
from strata.types import (
    Domain,
    MigrationContext,
    UnitDescriptor,
    UnitResult,
    VersionState,
)

logger = structlog.get_logger()


class RunStatus(str, Enum):
    SKIPPED = "skipped"
    UP_TO_DATE = "up_to_date"
    DRY_RUN = "dry_run"
    APPROVAL_REQUIRED = "approval_required"
    COMPLETED = "completed"
    FAILED = "failed"


class RunReport(BaseModel):
    """What happened during one orchestrator run."""

    status: RunStatus
    state: VersionState | None = None
    plan: list[UnitDescriptor] = Field(default_factory=list)
    results: list[UnitResult] = Field(default_factory=list)
    record: RecordResult | None = None
    # True when the host should stop instead of starting normally
    halt: bool = False

    @property
    def advanced(self) -> list[Domain]:
        return list(self.record.advanced) if self.record else []


class MigrationOrchestrator:
    """Wires resolver, catalog, scheduler, executor and recorder together.

    All collaborators are passed in; nothing is looked up from globals.
    """

    def __init__(
        self,
        config,
        store,
        catalog: MigrationCatalog,
        build_version: str,
        baseline_version: str = "0.1.0",
        cache_dirs: list[Path] | None = None,
        services: dict[str, Any] | None = None,
        console: Console | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._catalog = catalog
        self._resolver = VersionResolver(
            config, store, build_version=build_version, baseline_version=baseline_version
        )
        self._scheduler = Scheduler(catalog)
        self._recorder = StatusRecorder(config, store)
        self._cache_dirs = list(cache_dirs or [])
        self._services = dict(services or {})
        self._console = console or Console()

    @property
    def catalog(self) -> MigrationCatalog:
        return self._catalog

    def validate(self, directives: RunDirectives) -> None:
        """Raise ConfigError for bad directives before any store is opened."""
        if not directives.skip_all:
            self._resolver.validate(directives)

    async def plan(self, directives: RunDirectives) -> tuple[VersionState, list[UnitDescriptor]]:
        """Resolve versions and compute the plan without running anything."""
        state = await self._resolver.resolve(directives)
        self._catalog.discover()
        state = self._resolver.apply_sweep(state, directives, self._catalog.versions())
        plan = self._scheduler.plan(state, directives.direction, directives.domain)
        return state, plan

    async def run(self, directives: RunDirectives) -> RunReport:
        if directives.skip_all:
            logger.info("migration.skipped", reason="skip_all")
            return RunReport(status=RunStatus.SKIPPED)

        state, plan = await self.plan(directives)
        logger.info(
            "migration.check",
            config=state.config_version,
            schema=state.schema_version,
            target=state.target_version,
            planned=len(plan),
        )

        if not plan and not directives.explicit_command:
            return RunReport(status=RunStatus.UP_TO_DATE, state=state)

        print_plan(
            self._console, plan, state, self._catalog,
            direction=directives.direction, dry_run=directives.dry_run,
        )

        if directives.dry_run:
            return RunReport(status=RunStatus.DRY_RUN, state=state, plan=plan)

        if not plan:
            logger.info("migration.nothing_to_do", target=state.target_version)
            return RunReport(status=RunStatus.UP_TO_DATE, state=state)

        if not directives.auto_approve:
            self._console.print(
                "[bold red]Your data needs to be migrated. Make a copy of your data, "
                "then run again with --auto-approve.[/bold red]"
            )
            logger.error("migration.approval_required", planned=len(plan))
            return RunReport(
                status=RunStatus.APPROVAL_REQUIRED,
                state=state,
                plan=plan,
                halt=not directives.failsafe,
            )

        context = MigrationContext(
            config=self._config,
            database=self._store,
            direction=directives.direction,
            services=self._services,
        )
        executor = Executor(
            self._catalog,
            cache_dirs=self._cache_dirs,
            ignore_list=directives.ignore_list,
        )
        result = await executor.run(plan, context, directives.policy)

        preamble = [
            f"[INFO] {directives.direction.value}: config {state.config_version}, "
            f"schema {state.schema_version} => {state.target_version}"
        ]
        preamble += [
            f"[INFO] {line}"
            for line in plan_lines(plan, state, self._catalog, directives.direction)
        ]
        result = result.model_copy(update={"transcript": preamble + result.transcript})
        record = await self._recorder.persist(state, plan, result, directives.policy)

        report = RunReport(
            status=RunStatus.FAILED if result.had_failure else RunStatus.COMPLETED,
            state=state,
            plan=plan,
            results=result.results,
            record=record,
            halt=result.halt,
        )
        logger.info(
            "migration.finished",
            status=report.status.value,
            failed=len(result.failed()),
            advanced=[d.value for d in record.advanced],
        )

        if result.halt:
            raise FatalAbort(
                f"{len(result.failed())} migration(s) failed; refusing to start. "
                "Fix the errors, then restart so the update process may finish.",
                report=report,
            )
        return report
