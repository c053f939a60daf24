"""Migration commands — strata migrate up, strata migrate down."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from strata.cli.context import StrataContext, run_async
from strata.config import RunDirectives
from strata.exceptions import ConfigError, DiscoveryError, FatalAbort
from strata.orchestrator import RunReport, RunStatus
from strata.types import Direction, Domain

app = typer.Typer(help="Apply or revert migrations")
console = Console()

_TargetOpt = typer.Option(None, "--target", "-t", help="Version to migrate to (e.g. 1.2.0)")
_DryRunOpt = typer.Option(False, "--dry-run", help="Show the plan without running anything")
_ApproveOpt = typer.Option(False, "--auto-approve", help="Run mutating migrations without asking")
_FailsafeOpt = typer.Option(False, "--failsafe", help="Do not fail the process when a migration fails")
_IgnoreOpt = typer.Option(None, "--ignore", help="Comma-separated identifier parts to skip")
_DomainOpt = typer.Option(None, "--domain", "-d", help="Only plan one domain")


def _execute(directives: RunDirectives) -> RunReport:
    ctx = StrataContext.get()
    orchestrator = ctx.orchestrator()

    async def _run():
        await ctx.ensure_store()
        try:
            return await orchestrator.run(directives)
        finally:
            await ctx.store.close()

    try:
        orchestrator.validate(directives)
        report = run_async(_run())
    except (ConfigError, DiscoveryError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)
    except FatalAbort as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise typer.Exit(code=e.exit_code)

    _print_report(report)
    if report.halt:
        raise typer.Exit(code=0 if report.status == RunStatus.APPROVAL_REQUIRED else 1)
    return report


def _print_report(report: RunReport) -> None:
    if report.status == RunStatus.UP_TO_DATE:
        target = report.state.target_version if report.state else "?"
        console.print(f"[green]Nothing to migrate, already at {target}.[/green]")
    elif report.status == RunStatus.SKIPPED:
        console.print("[dim]Migrations skipped.[/dim]")
    elif report.status == RunStatus.COMPLETED:
        console.print(f"[green]{len(report.results)} migration(s) applied.[/green]")
    elif report.status == RunStatus.FAILED:
        failed = [r.identifier for r in report.results if not r.outcome.success]
        console.print(
            f"[yellow]{len(failed)} migration(s) failed, continuing in failsafe mode: "
            f"{', '.join(failed)}[/yellow]"
        )


def _directives(
    direction: Direction,
    target: str | None,
    dry_run: bool,
    auto_approve: bool,
    failsafe: bool,
    ignore: str | None,
    domain: Domain | None,
) -> RunDirectives:
    return RunDirectives.from_env(
        direction=direction,
        target_version=target,
        dry_run=dry_run,
        auto_approve=auto_approve,
        failsafe=failsafe,
        ignore_list=ignore,
        domain=domain,
        explicit_command=True,
    )


@app.command("up")
def up(
    target: Optional[str] = _TargetOpt,
    dry_run: bool = _DryRunOpt,
    auto_approve: bool = _ApproveOpt,
    failsafe: bool = _FailsafeOpt,
    ignore: Optional[str] = _IgnoreOpt,
    domain: Optional[Domain] = _DomainOpt,
):
    """Upgrade durable state to the target version (default: this build)."""
    _execute(_directives(Direction.UP, target, dry_run, auto_approve, failsafe, ignore, domain))


@app.command("down")
def down(
    target: str = typer.Option(..., "--target", "-t", help="Version to revert to"),
    dry_run: bool = _DryRunOpt,
    auto_approve: bool = _ApproveOpt,
    failsafe: bool = _FailsafeOpt,
    ignore: Optional[str] = _IgnoreOpt,
    domain: Optional[Domain] = _DomainOpt,
):
    """Revert durable state to an older version."""
    _execute(_directives(Direction.DOWN, target, dry_run, auto_approve, failsafe, ignore, domain))
