"""Baseline entry of the core catalog.

Fresh installs start with both markers at the baseline version 0.1.0,
and plans only take units above the current marker, so this unit is
never scheduled. The tables it would create come from
MetadataStore.initialize(). It stays as the first core unit and as the
reference layout for new ones: `<version>-<timestamp>-<title>.py` under
a domain directory, an `up(context)` handler, an optional `down`, and an
`info` dict with a description.
"""

from __future__ import annotations

from strata.types import MigrationContext, MigrationOutcome

info = {"description": "Baseline schema (created by the metadata store)"}


async def up(context: MigrationContext) -> MigrationOutcome:
    return MigrationOutcome(success=True, message="Baseline schema in place")
