"""Status Recorder — audit trail and version markers after a run.

Recording never fails a run retroactively: a write error is logged as a
warning and reported in the RecordResult.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from strata.executor import ExecutionResult
from strata.scheduler import plan_by_domain
from strata.types import (
    Domain,
    ExecutionRecord,
    FailurePolicy,
    UnitDescriptor,
    VersionState,
)

_logger = logging.getLogger(__name__)


class RecordResult(BaseModel):
    record: ExecutionRecord
    audit_saved: bool = False
    advanced: list[Domain] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class StatusRecorder:
    """Writes the run's ExecutionRecord and moves the domain markers.

    The schema marker lives in the metadata store; the config and content
    domains share the config document's `version`. A marker only moves
    when its domain had a non-empty plan that was attempted without
    failures. A failed run in strict mode moves no marker at all.

    Moving the config marker alone first records the schema marker at its
    resolved version when the store has none yet.
    """

    def __init__(self, config, store) -> None:
        self._config = config
        self._store = store

    async def persist(
        self,
        state: VersionState,
        plan: list[UnitDescriptor],
        result: ExecutionResult,
        policy: FailurePolicy = FailurePolicy.STRICT,
    ) -> RecordResult:
        record = ExecutionRecord(
            initial_version=state.config_version,
            target_version=state.target_version,
            details=list(result.transcript),
        )
        outcome = RecordResult(record=record)

        try:
            await self._store.insert_run(record)
            outcome.audit_saved = True
        except Exception as e:
            _logger.warning("Couldn't save migration logs to database: %s", e)
            outcome.errors.append(f"audit: {e}")

        for domain in self.domains_to_advance(plan, result, policy):
            try:
                if domain == Domain.SCHEMA:
                    if state.schema_version != state.target_version:
                        await self._store.record_schema_version(state.target_version)
                else:
                    if Domain.SCHEMA not in outcome.advanced:
                        await self._pin_schema_marker(state)
                    await self._config.merge({"version": state.target_version})
                outcome.advanced.append(domain)
            except Exception as e:
                _logger.warning(
                    "Couldn't advance %s marker to %s: %s",
                    domain.value, state.target_version, e,
                )
                outcome.errors.append(f"{domain.value}: {e}")

        return outcome

    async def _pin_schema_marker(self, state: VersionState) -> None:
        # An unrecorded schema marker reads as the config version; record it
        # before the config marker moves away from it.
        if await self._store.latest_schema_version() is None:
            await self._store.record_schema_version(state.schema_version)

    @staticmethod
    def domains_to_advance(
        plan: list[UnitDescriptor],
        result: ExecutionResult,
        policy: FailurePolicy,
    ) -> list[Domain]:
        """Marker domains (SCHEMA and/or CONFIG) that may move for this run."""
        if result.had_failure and policy == FailurePolicy.STRICT:
            return []

        grouped = plan_by_domain(plan)
        attempted = {r.identifier for r in result.results}
        failed_domains = {r.domain for r in result.results if not r.outcome.success}

        def clean(domains: tuple[Domain, ...]) -> bool:
            units = [u for d in domains for u in grouped[d]]
            return (
                bool(units)
                and all(u.identifier in attempted for u in units)
                and not any(d in failed_domains for d in domains)
            )

        markers: list[Domain] = []
        if clean((Domain.SCHEMA,)):
            markers.append(Domain.SCHEMA)
        # config and content share the config document's marker
        if clean((Domain.CONFIG, Domain.CONTENT)):
            markers.append(Domain.CONFIG)
        return markers
