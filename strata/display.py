"""Plan summary rendering — what the operator sees before anything runs."""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from strata.catalog import MigrationCatalog
from strata.scheduler import plan_by_domain
from strata.types import DOMAIN_LABELS, Direction, Scope, UnitDescriptor, VersionState


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def render_plan(
    plan: list[UnitDescriptor],
    state: VersionState,
    catalog: MigrationCatalog,
    direction: Direction = Direction.UP,
    dry_run: bool = False,
) -> Group:
    """Build the plan summary. Dry runs differ only in the header."""
    header = "DRY RUN" if dry_run else f"Migration{'' if len(plan) == 1 else 's'} Required"

    lines = [Text(header, style="bold", justify="center")]
    if state.config_version != state.schema_version:
        lines.append(Text(
            f"Database Version {state.schema_version} => {state.target_version}",
            style="dim", justify="center",
        ))
        lines.append(Text(
            f"Config Version {state.config_version} => {state.target_version}",
            style="dim", justify="center",
        ))
    else:
        lines.append(Text(
            f"Version {state.config_version} => {state.target_version}",
            style="dim", justify="center",
        ))
    lines.append(Text(_plural(len(plan), "change"), style="dim", justify="center"))

    body: list = [Panel(Group(*lines), border_style="yellow", width=44)]

    marker = "[rollback] " if direction == Direction.DOWN else ""
    for domain, units in plan_by_domain(plan).items():
        body.append(Text(DOMAIN_LABELS[domain], style="bold"))
        if not units:
            body.append(Text("- None", style="dim"))
            continue
        for unit in units:
            description = catalog.load_handler(unit.identifier).description or unit.title
            scope = f" ({unit.source})" if unit.scope == Scope.EXTENSION else ""
            body.append(Text(f"- {marker}{description}{scope}  [{unit.identifier}]"))

    return Group(*body)


def print_plan(
    console: Console,
    plan: list[UnitDescriptor],
    state: VersionState,
    catalog: MigrationCatalog,
    direction: Direction = Direction.UP,
    dry_run: bool = False,
) -> None:
    console.print(render_plan(plan, state, catalog, direction, dry_run))


def plan_lines(
    plan: list[UnitDescriptor],
    state: VersionState,
    catalog: MigrationCatalog,
    direction: Direction = Direction.UP,
) -> list[str]:
    """The plan summary as plain text lines, for the run transcript."""
    plain = Console(width=80, color_system=None, force_terminal=False)
    with plain.capture() as capture:
        plain.print(render_plan(plan, state, catalog, direction))
    return [line.rstrip() for line in capture.get().splitlines() if line.strip()]
