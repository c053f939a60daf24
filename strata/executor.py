"""Executor — runs a plan one unit at a time.

Every unit is awaited to completion before the next one starts, so each
unit sees the state left behind by the previous one. A failing unit never
stops the plan; the run is flagged and the caller decides what to do once
everything has been attempted.
"""

from __future__ import annotations

import inspect
import logging
import shutil
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from strata.catalog import MigrationCatalog
from strata.exceptions import UnitFailure
from strata.types import (
    Direction,
    FailurePolicy,
    MigrationContext,
    MigrationOutcome,
    UnitDescriptor,
    UnitResult,
)

_logger = logging.getLogger(__name__)


class ExecutionResult(BaseModel):
    results: list[UnitResult] = Field(default_factory=list)
    had_failure: bool = False
    halt: bool = False
    transcript: list[str] = Field(default_factory=list)

    def failed(self) -> list[UnitResult]:
        return [r for r in self.results if not r.outcome.success]


class Executor:
    """Applies planned units sequentially and collects their outcomes."""

    def __init__(
        self,
        catalog: MigrationCatalog,
        cache_dirs: list[Path] | None = None,
        ignore_list: tuple[str, ...] | list[str] = (),
    ) -> None:
        self._catalog = catalog
        self._cache_dirs = [Path(p) for p in cache_dirs or []]
        self._ignore_list = tuple(ignore_list)
        self._transcript: list[str] = []

    def _log(self, level: int, message: str) -> None:
        _logger.log(level, message)
        self._transcript.append(f"[{logging.getLevelName(level)}] {message}")

    async def run(
        self,
        plan: list[UnitDescriptor],
        context: MigrationContext,
        policy: FailurePolicy = FailurePolicy.STRICT,
    ) -> ExecutionResult:
        self._transcript = []
        direction = context.direction
        count = len(plan)
        self._log(logging.INFO, f"Executing {count} migration{'' if count == 1 else 's'}")

        self.clear_caches()

        results: list[UnitResult] = []
        for unit in plan:
            outcome = await self._run_unit(unit, context, direction)
            results.append(
                UnitResult(
                    identifier=unit.identifier,
                    domain=unit.domain,
                    scope=unit.scope,
                    outcome=outcome,
                )
            )

        had_failure = any(not r.outcome.success for r in results)
        if had_failure:
            self._log(
                logging.ERROR,
                "Some steps failed to complete. Please fix errors manually, then "
                "restart so the update process may finish.",
            )
        else:
            self._log(logging.INFO, f"Migration{'' if count == 1 else 's'} completed successfully")

        return ExecutionResult(
            results=results,
            had_failure=had_failure,
            halt=had_failure and policy == FailurePolicy.STRICT,
            transcript=list(self._transcript),
        )

    def clear_caches(self) -> None:
        """Remove known cache directories. Errors are logged, never raised."""
        for cache_dir in self._cache_dirs:
            try:
                if cache_dir.exists():
                    shutil.rmtree(cache_dir)
                    self._log(logging.INFO, f"Cleared cache {cache_dir}")
            except OSError as e:
                self._log(logging.WARNING, f"Could not clear cache {cache_dir}: {e}")

    def is_ignored(self, identifier: str) -> bool:
        return any(part in identifier for part in self._ignore_list)

    async def _run_unit(
        self,
        unit: UnitDescriptor,
        context: MigrationContext,
        direction: Direction,
    ) -> MigrationOutcome:
        if self.is_ignored(unit.identifier):
            self._log(logging.INFO, f"Skipping ignored migration \"{unit.identifier}\"")
            return MigrationOutcome(success=True, skipped=True, message="Skipped (ignored)")

        prefix = "[rollback] " if direction == Direction.DOWN else ""
        self._log(logging.INFO, f"Running {prefix}{unit.identifier}")

        try:
            handler = self._catalog.load_handler(unit.identifier).for_direction(direction)
            if handler is None:
                raise UnitFailure(f"no {direction.value} handler")
            result = handler(context)
            if inspect.isawaitable(result):
                result = await result
            outcome = _coerce_outcome(result)
        except Exception as e:
            outcome = MigrationOutcome(success=False, message=f"{type(e).__name__}: {e}")

        if outcome.success:
            self._log(logging.INFO, f"- {outcome.message or 'Success'}")
        else:
            self._log(logging.ERROR, f"- {outcome.message or 'Failure'}")
        return outcome


def _coerce_outcome(result: object) -> MigrationOutcome:
    if isinstance(result, MigrationOutcome):
        return result
    if isinstance(result, dict):
        try:
            return MigrationOutcome.model_validate(result)
        except ValidationError as e:
            raise UnitFailure(f"handler returned an invalid outcome: {e}") from e
    raise UnitFailure(f"handler returned {type(result).__name__}, expected an outcome")
