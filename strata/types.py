"""Core types shared across all strata components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeAlias, Union

from pydantic import BaseModel, ConfigDict, Field

UnitId: TypeAlias = str


# ── Enumerations ─────────────────────────────────────────────────────────────


class Domain(str, Enum):
    SCHEMA = "schema"
    CONFIG = "config"
    CONTENT = "content"


DOMAIN_LABELS = {
    Domain.SCHEMA: "Database Changes",
    Domain.CONFIG: "Config File Changes",
    Domain.CONTENT: "Changes to Content Files",
}


class Scope(str, Enum):
    CORE = "core"
    EXTENSION = "extension"


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"


class FailurePolicy(str, Enum):
    STRICT = "strict"
    FAILSAFE = "failsafe"


# ── Outcomes ─────────────────────────────────────────────────────────────────


class MigrationOutcome(BaseModel):
    """What a unit handler reports back after running."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str | None = None
    skipped: bool = False


class UnitResult(BaseModel):
    """Outcome of one planned unit, tagged with where it came from."""

    identifier: UnitId
    domain: Domain
    scope: Scope = Scope.CORE
    outcome: MigrationOutcome


# ── Units ────────────────────────────────────────────────────────────────────


class UnitDescriptor(BaseModel):
    """Metadata for one migration unit, known before its code is loaded.

    The identifier is the descriptor's file stem,
    ``<version>-<timestamp>-<title>``.
    """

    model_config = ConfigDict(frozen=True)

    identifier: UnitId
    version: str
    timestamp: int
    domain: Domain
    scope: Scope = Scope.CORE
    title: str = ""
    source: str = ""  # name of the CatalogSource that owns this unit
    location: Path | None = None


@dataclass(frozen=True)
class MigrationContext:
    """Bundle handed to every handler. Passed through untouched."""

    config: Any
    database: Any
    direction: Direction = Direction.UP
    metadata: dict[str, Any] = field(default_factory=dict)
    services: dict[str, Any] = field(default_factory=dict)


HandlerResult = Union[MigrationOutcome, dict, Awaitable[Any]]
Handler = Callable[[MigrationContext], HandlerResult]


@dataclass(frozen=True)
class MigrationHandlers:
    """The executable half of a unit."""

    up: Handler
    down: Handler | None = None
    description: str = ""

    def for_direction(self, direction: Direction) -> Handler | None:
        return self.up if direction == Direction.UP else self.down


# ── Versions & records ──────────────────────────────────────────────────────


class VersionState(BaseModel):
    """Markers and target for one run. Resolved once, never mutated."""

    model_config = ConfigDict(frozen=True)

    schema_version: str
    config_version: str
    target_version: str

    def current_for(self, domain: Domain) -> str:
        if domain == Domain.SCHEMA:
            return self.schema_version
        return self.config_version


class ExecutionRecord(BaseModel):
    """Audit record for one run. Written once, never updated."""

    model_config = ConfigDict(frozen=True)

    initial_version: str
    target_version: str
    details: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def details_text(self) -> str:
        return "\n".join(self.details)
