"""Global configuration and run directives.

Settings are loaded from STRATA_* environment variables. Run directives
are built once at the host boundary and handed to the orchestrator as a
single immutable value.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings

from strata.types import Direction, Domain, FailurePolicy


class StrataSettings(BaseSettings):
    workspace_dir: Path = Path(".strata")
    db_path: Path = Path(".strata/strata.db")
    config_path: Path = Path(".strata/config.json")
    data_dir: Path = Path(".strata/data")
    extension_dirs: list[Path] = Field(default_factory=list)
    log_level: str = "INFO"

    # Build version used as default target; empty means the installed package version
    build_version: str = ""
    # Config marker used by the "all migrations" test sweep
    baseline_version: str = "0.1.0"

    model_config = {"env_prefix": "STRATA_"}

    @property
    def cache_dirs(self) -> list[Path]:
        return [self.data_dir / "cache"]


settings = StrataSettings()


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "y", "on"}


class RunDirectives(BaseModel):
    """Everything the host decided about this run."""

    model_config = ConfigDict(frozen=True)

    target_version: str | None = None
    test_target_version: str | None = None
    direction: Direction = Direction.UP
    dry_run: bool = False
    auto_approve: bool = False
    failsafe: bool = False
    skip_all: bool = False
    ignore_list: tuple[str, ...] = ()
    domain: Domain | None = None

    config_version_override: str | None = None
    schema_version_override: str | None = None
    sweep_all: bool = False
    sweep_new: bool = False

    # Set when the run was requested explicitly (e.g. `strata migrate up`)
    explicit_command: bool = False

    @field_validator("ignore_list", mode="before")
    @classmethod
    def _split_ignore_list(cls, value):
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(",")
        return tuple(part.strip() for part in value if part and part.strip())

    @property
    def policy(self) -> FailurePolicy:
        return FailurePolicy.FAILSAFE if self.failsafe else FailurePolicy.STRICT

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides
    ) -> RunDirectives:
        """Build directives from the migration test variables plus overrides.

        TESTMIG_BP_VERSION      target version for test runs
        TESTMIG_IGNORE_LIST     comma separated identifier parts to skip
        TESTMIG_CONFIG_VERSION  pretend the config marker is at this version
        TESTMIG_DB_VERSION      pretend the schema marker is at this version
        TESTMIG_ALL             re-run every migration since the baseline
        TESTMIG_NEW             run migrations newer than the build version
        SKIP_MIGRATIONS         do nothing at all
        """
        env = os.environ if environ is None else environ
        values = {
            "test_target_version": env.get("TESTMIG_BP_VERSION") or None,
            "ignore_list": env.get("TESTMIG_IGNORE_LIST", ""),
            "config_version_override": env.get("TESTMIG_CONFIG_VERSION") or None,
            "schema_version_override": env.get("TESTMIG_DB_VERSION") or None,
            "sweep_all": _truthy(env.get("TESTMIG_ALL")),
            "sweep_new": _truthy(env.get("TESTMIG_NEW")),
            "skip_all": _truthy(env.get("SKIP_MIGRATIONS")),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
