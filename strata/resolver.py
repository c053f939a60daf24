"""Version resolution — where are we, and where are we going?"""

from __future__ import annotations

import logging

from strata import versioning
from strata.config import RunDirectives
from strata.exceptions import ConfigError
from strata.types import VersionState

_logger = logging.getLogger(__name__)


class VersionResolver:
    """Reads the current markers and picks the target for a run.

    The config marker comes from the config accessor, the schema marker
    from the metadata store. A store that has never recorded a schema
    marker is treated as being at the config version.
    """

    def __init__(
        self,
        config,
        store,
        build_version: str,
        baseline_version: str = "0.1.0",
    ) -> None:
        self._config = config
        self._store = store
        self._build_version = build_version
        self._baseline_version = baseline_version

    def validate(self, directives: RunDirectives) -> tuple[str, str | None, str | None]:
        """Check the directives without touching any store.

        Returns (target, config override, schema override), cleaned.
        Raises ConfigError if any of them is not a valid semantic version.
        """
        if directives.target_version is not None:
            target = _require(directives.target_version, "target version")
        elif directives.test_target_version:
            target = _require(directives.test_target_version, "test target version")
        else:
            target = _require(self._build_version, "build version")

        config_override = _optional(
            directives.config_version_override, "config version override"
        )
        schema_override = _optional(
            directives.schema_version_override, "schema version override"
        )
        return target, config_override, schema_override

    async def resolve(self, directives: RunDirectives) -> VersionState:
        """Resolve the VersionState for `directives`.

        Nothing is read before the directives are validated.
        """
        target, config_override, schema_override = self.validate(directives)

        if config_override is not None:
            config_version = config_override
        else:
            config_version = _require(
                await self._config.get_version() or self._baseline_version,
                "recorded config version",
            )

        if schema_override is not None:
            schema_version = schema_override
        else:
            stored = await self._store.latest_schema_version()
            schema_version = (
                _require(stored, "recorded schema version") if stored else config_version
            )

        state = VersionState(
            schema_version=schema_version,
            config_version=config_version,
            target_version=target,
        )
        _logger.debug(
            "Migration check: config=%s schema=%s target=%s",
            state.config_version, state.schema_version, state.target_version,
        )
        return state

    def apply_sweep(
        self,
        state: VersionState,
        directives: RunDirectives,
        catalog_versions: list[str],
    ) -> VersionState:
        """Widen the range for the TESTMIG_ALL / TESTMIG_NEW test sweeps."""
        if not (directives.sweep_all or directives.sweep_new):
            return state

        target = versioning.highest(catalog_versions) or state.target_version
        if directives.sweep_new:
            config_version = _require(self._build_version, "build version")
        else:
            config_version = _require(self._baseline_version, "baseline version")

        return VersionState(
            schema_version=state.schema_version,
            config_version=config_version,
            target_version=target,
        )


def _require(raw: str | None, label: str) -> str:
    cleaned = versioning.clean_version(raw)
    if cleaned is None:
        raise ConfigError(
            f"The {label} {raw!r} is not a valid version. Valid format: 12.0.0"
        )
    return cleaned


def _optional(raw: str | None, label: str) -> str | None:
    if raw is None:
        return None
    return _require(raw, label)
