"""strata CLI — inspect and run migrations.

`strata migrate up|down` runs the orchestrator. `strata status`,
`strata history` and `strata units` are read-only.
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from strata.cli import migrate
from strata.cli.context import StrataContext, run_async
from strata.config import RunDirectives, settings
from strata.exceptions import ConfigError, DiscoveryError

console = Console()

_app = typer.Typer(
    name="strata",
    help="strata -- versioned migrations for database, config and content.",
    no_args_is_help=True,
)

_app.add_typer(migrate.app, name="migrate", help="Apply or revert migrations (up, down)")


@_app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@_app.command("status")
def status():
    """Show recorded markers and what an upgrade would do."""
    ctx = StrataContext.get()
    orchestrator = ctx.orchestrator()
    directives = RunDirectives.from_env()

    async def _status():
        await ctx.ensure_store()
        try:
            return await orchestrator.plan(directives)
        finally:
            await ctx.store.close()

    try:
        orchestrator.validate(directives)
        state, plan = run_async(_status())
    except (ConfigError, DiscoveryError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)

    pending = f"[yellow]{len(plan)} pending[/yellow]" if plan else "[green]up to date[/green]"
    console.print(Panel(
        f"Build:            {ctx.build_version}\n"
        f"Target:           {state.target_version}\n"
        f"Config version:   {state.config_version}\n"
        f"Schema version:   {state.schema_version}\n"
        f"Migrations:       {pending}\n"
        f"Extensions:       {len(ctx.settings.extension_dirs)}",
        title="Migration Status",
        border_style="cyan",
    ))


@_app.command("history")
def history(
    limit: int = typer.Option(10, "--limit", "-n", help="Max runs"),
    details: bool = typer.Option(False, "--details", help="Print each run's log"),
):
    """Show recorded migration runs, most recent first."""
    ctx = StrataContext.get()

    async def _history():
        await ctx.ensure_store()
        try:
            return await ctx.store.list_runs(limit=limit)
        finally:
            await ctx.store.close()

    runs = run_async(_history())
    if not runs:
        console.print("[dim]No migration runs recorded yet.[/dim]")
        return

    table = Table(title="Migration Runs")
    table.add_column("When", style="dim", no_wrap=True, max_width=19)
    table.add_column("From", style="cyan")
    table.add_column("To", style="green")
    table.add_column("Log lines", justify="right")

    for run in runs:
        table.add_row(
            run.created_at.strftime("%Y-%m-%d %H:%M"),
            run.initial_version,
            run.target_version,
            str(len(run.details)),
        )
    console.print(table)

    if details:
        for run in runs:
            console.print(Panel(
                run.details_text() or "(empty)",
                title=f"{run.initial_version} -> {run.target_version}",
                border_style="dim",
            ))


@_app.command("units")
def units():
    """List every migration unit in the catalog."""
    ctx = StrataContext.get()
    try:
        descriptors = ctx.catalog.discover()
    except DiscoveryError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)

    if not descriptors:
        console.print("[dim]No migrations found.[/dim]")
        return

    table = Table(title="Migration Catalog")
    table.add_column("Version", style="cyan", no_wrap=True)
    table.add_column("Domain", style="blue")
    table.add_column("Scope", style="magenta")
    table.add_column("Identifier", style="white")

    for d in descriptors:
        scope = d.scope.value if d.source in ("", "core") else f"{d.scope.value}:{d.source}"
        table.add_row(d.version, d.domain.value, scope, d.identifier)
    console.print(table)


@_app.command("version")
def version_cmd():
    """Show strata version."""
    from strata import __version__
    console.print(f"strata v{__version__}")


def app(args: list[str] | None = None) -> None:
    """Console-script entry point."""
    _app(args=args)
