"""Scheduler — picks and orders the units a run must apply."""

from __future__ import annotations

import logging

from strata import versioning
from strata.catalog import MigrationCatalog
from strata.types import Direction, Domain, UnitDescriptor, VersionState

_logger = logging.getLogger(__name__)


class Scheduler:
    """Turns the catalog plus a VersionState into an ordered plan.

    Upgrades take units in (current, target], downgrades units in
    (target, current], where `current` is the schema marker for schema
    units and the config marker for everything else. The plan is always
    ordered by timestamp ascending, for downgrades too.
    """

    def __init__(self, catalog: MigrationCatalog) -> None:
        self._catalog = catalog

    def plan(
        self,
        state: VersionState,
        direction: Direction = Direction.UP,
        domain: Domain | None = None,
    ) -> list[UnitDescriptor]:
        selected: list[UnitDescriptor] = []
        for unit in self._catalog.discover():
            if domain is not None and unit.domain != domain:
                continue
            if not self._in_range(unit, state, direction):
                continue
            handlers = self._catalog.load_handler(unit.identifier)
            if handlers.for_direction(direction) is None:
                _logger.debug(
                    "Excluding %s from %s plan: no %s handler",
                    unit.identifier, direction.value, direction.value,
                )
                continue
            selected.append(unit)

        return sorted(selected, key=lambda u: (u.timestamp, u.identifier))

    @staticmethod
    def _in_range(unit: UnitDescriptor, state: VersionState, direction: Direction) -> bool:
        current = state.current_for(unit.domain)
        if direction == Direction.DOWN:
            return versioning.in_interval(unit.version, state.target_version, current)
        return versioning.in_interval(unit.version, current, state.target_version)


def plan_by_domain(plan: list[UnitDescriptor]) -> dict[Domain, list[UnitDescriptor]]:
    """Group a plan per domain, keeping plan order inside each group."""
    grouped: dict[Domain, list[UnitDescriptor]] = {d: [] for d in Domain}
    for unit in plan:
        grouped[unit.domain].append(unit)
    return grouped
