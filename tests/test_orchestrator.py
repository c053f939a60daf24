"""End-to-end runs of the orchestrator against in-memory catalogs."""

import io

import pytest
from rich.console import Console

from strata.config import RunDirectives
from strata.exceptions import ConfigError, DiscoveryError, FatalAbort
from strata.orchestrator import MigrationOrchestrator, RunStatus
from strata.types import Direction, Domain


def _console():
    return Console(file=io.StringIO(), width=120, color_system=None)


@pytest.fixture
def orchestrate(store, config_doc, tmp_path):
    async def _factory(catalog, config_version="1.0.0", build_version="1.2.0", cache_dirs=None):
        await config_doc.merge({"version": config_version})
        console = _console()
        orch = MigrationOrchestrator(
            config=config_doc,
            store=store,
            catalog=catalog,
            build_version=build_version,
            cache_dirs=cache_dirs,
            console=console,
        )
        orch.output = console.file
        return orch

    return _factory


def _approved(**kwargs):
    return RunDirectives(auto_approve=True, **kwargs)


# ── Scenario 1: straightforward upgrade ─────────────────────────

async def test_upgrade_runs_plan_and_advances_marker(orchestrate, make_catalog, calls, store):
    catalog = make_catalog(("1_1_0-100-a", "schema"), ("1_2_0-200-b", "schema"))
    orch = await orchestrate(catalog)

    report = await orch.run(_approved())

    assert report.status == RunStatus.COMPLETED
    assert calls == [("up", "1_1_0-100-a"), ("up", "1_2_0-200-b")]
    assert report.advanced == [Domain.SCHEMA]
    assert await store.latest_schema_version() == "1.2.0"


async def test_audit_details_include_plan_summary(orchestrate, make_catalog, store):
    catalog = make_catalog(("1_1_0-100-a", "schema", {"description": "Add index"}))
    orch = await orchestrate(catalog)

    await orch.run(_approved())

    (run,) = await store.list_runs()
    assert run.details[0].startswith("[INFO] up: config 1.0.0")
    assert any("Migration Required" in line for line in run.details)
    assert any("Database Changes" in line for line in run.details)
    assert any("Add index" in line and "[1_1_0-100-a]" in line for line in run.details)


async def test_second_run_is_empty(orchestrate, make_catalog, calls):
    catalog = make_catalog(
        ("1_1_0-100-a", "schema"),
        ("1_2_0-200-b", "config"),
        ("1_2_0-300-c", "content"),
    )
    orch = await orchestrate(catalog)

    first = await orch.run(_approved())
    assert first.status == RunStatus.COMPLETED
    calls.clear()

    second = await orch.run(_approved())
    assert second.status == RunStatus.UP_TO_DATE
    assert second.plan == []
    assert calls == []


# ── Scenario 2: a failing unit ──────────────────────────────────

async def test_strict_failure_raises_after_full_plan(orchestrate, make_catalog, calls, store, config_doc):
    catalog = make_catalog(
        ("1_1_0-100-a", "schema", {"success": False, "message": "boom"}),
        ("1_2_0-200-b", "schema"),
    )
    orch = await orchestrate(catalog)

    with pytest.raises(FatalAbort) as exc_info:
        await orch.run(_approved())

    assert calls == [("up", "1_1_0-100-a"), ("up", "1_2_0-200-b")]
    assert exc_info.value.exit_code == 1
    assert exc_info.value.report.status == RunStatus.FAILED
    assert await store.latest_schema_version() is None
    assert await config_doc.get_version() == "1.0.0"
    # audit trail is still written
    (run,) = await store.list_runs()
    assert any("boom" in line for line in run.details)


async def test_failsafe_failure_returns_control(orchestrate, make_catalog, calls, store):
    catalog = make_catalog(
        ("1_1_0-100-a", "schema", {"success": False}),
        ("1_2_0-200-b", "schema"),
    )
    orch = await orchestrate(catalog)

    report = await orch.run(_approved(failsafe=True))

    assert report.status == RunStatus.FAILED
    assert report.halt is False
    assert len(calls) == 2
    assert await store.latest_schema_version() is None


# ── Scenario 3: downgrade ───────────────────────────────────────

async def test_downgrade_skips_irreversible_units(orchestrate, make_catalog, calls, store):
    catalog = make_catalog(
        ("1_1_0-100-a", "schema"),
        ("1_2_0-200-b", "schema", {"reversible": False}),
    )
    await store.record_schema_version("1.2.0")
    orch = await orchestrate(catalog, config_version="1.2.0")

    report = await orch.run(_approved(direction=Direction.DOWN, target_version="1.0.0"))

    assert [u.identifier for u in report.plan] == ["1_1_0-100-a"]
    assert calls == [("down", "1_1_0-100-a")]
    assert await store.latest_schema_version() == "1.0.0"


# ── Scenario 4: dry run ─────────────────────────────────────────

async def test_dry_run_shows_plan_only(orchestrate, make_catalog, calls, store, tmp_path):
    cache = tmp_path / "cache"
    cache.mkdir()
    catalog = make_catalog(("1_1_0-100-a", "schema"), ("1_2_0-200-b", "schema"))
    orch = await orchestrate(catalog, cache_dirs=[cache])

    report = await orch.run(_approved(dry_run=True))

    assert report.status == RunStatus.DRY_RUN
    assert [u.identifier for u in report.plan] == ["1_1_0-100-a", "1_2_0-200-b"]
    assert calls == []
    assert cache.exists()
    assert await store.latest_schema_version() is None
    assert await store.list_runs() == []
    output = orch.output.getvalue()
    assert "DRY RUN" in output
    assert "1_2_0-200-b" in output


async def test_dry_run_output_matches_real_plan_summary(orchestrate, make_catalog):
    catalog = make_catalog(("1_1_0-100-a", "schema"))
    dry = await orchestrate(catalog)
    await dry.run(RunDirectives(dry_run=True))
    pending = await orchestrate(catalog)
    await pending.run(RunDirectives())

    dry_lines = dry.output.getvalue().splitlines()
    pending_lines = pending.output.getvalue().splitlines()
    assert [line for line in dry_lines if "Database Changes" in line] == [
        line for line in pending_lines if "Database Changes" in line
    ]
    assert any("1_1_0-100-a" in line for line in dry_lines)
    assert any("1_1_0-100-a" in line for line in pending_lines)


# ── Scenario 5: bad target ──────────────────────────────────────

async def test_invalid_target_fails_before_discovery(orchestrate, make_catalog, calls):
    catalog = make_catalog(("1_1_0-100-a", "schema"))
    orch = await orchestrate(catalog)

    with pytest.raises(ConfigError):
        await orch.run(_approved(target_version="not-a-version"))

    assert catalog._units is None
    assert len(catalog.registry) == 0
    assert calls == []


async def test_discovery_error_aborts_before_mutation(orchestrate, make_catalog, calls, store):
    catalog = make_catalog(("1_1_0-100-a", "schema"), ("1_1_0-100-b", "schema"))
    orch = await orchestrate(catalog)

    with pytest.raises(DiscoveryError):
        await orch.run(_approved())
    assert calls == []
    assert await store.list_runs() == []


# ── approval gate & directives ─────────────────────────────────

async def test_requires_approval(orchestrate, make_catalog, calls, store):
    catalog = make_catalog(("1_1_0-100-a", "schema"))
    orch = await orchestrate(catalog)

    report = await orch.run(RunDirectives())

    assert report.status == RunStatus.APPROVAL_REQUIRED
    assert report.halt is True
    assert calls == []
    assert await store.latest_schema_version() is None
    assert "--auto-approve" in orch.output.getvalue()


async def test_requires_approval_failsafe_keeps_hosting(orchestrate, make_catalog):
    catalog = make_catalog(("1_1_0-100-a", "schema"))
    orch = await orchestrate(catalog)
    report = await orch.run(RunDirectives(failsafe=True))
    assert report.status == RunStatus.APPROVAL_REQUIRED
    assert report.halt is False


async def test_skip_all(orchestrate, make_catalog, calls):
    catalog = make_catalog(("1_1_0-100-a", "schema"))
    orch = await orchestrate(catalog)

    report = await orch.run(_approved(skip_all=True, target_version="garbage"))

    assert report.status == RunStatus.SKIPPED
    assert calls == []


async def test_ignore_list_is_honoured(orchestrate, make_catalog, calls):
    catalog = make_catalog(("1_1_0-100-a", "schema"), ("1_2_0-200-legacy-bots", "content"))
    orch = await orchestrate(catalog)

    report = await orch.run(_approved(ignore_list="legacy"))

    assert calls == [("up", "1_1_0-100-a")]
    skipped = [r for r in report.results if r.outcome.skipped]
    assert [r.identifier for r in skipped] == ["1_2_0-200-legacy-bots"]


async def test_domain_filter_only_moves_that_marker(orchestrate, make_catalog, calls, store, config_doc):
    catalog = make_catalog(("1_1_0-100-a", "schema"), ("1_1_0-200-b", "config"))
    orch = await orchestrate(catalog)

    report = await orch.run(_approved(domain=Domain.CONFIG))

    assert calls == [("up", "1_1_0-200-b")]
    assert report.advanced == [Domain.CONFIG]
    assert await config_doc.get_version() == "1.2.0"
    assert await store.latest_schema_version() == "1.0.0"

    calls.clear()
    follow_up = await orch.run(_approved(domain=Domain.SCHEMA))

    assert [u.identifier for u in follow_up.plan] == ["1_1_0-100-a"]
    assert calls == [("up", "1_1_0-100-a")]
    assert await store.latest_schema_version() == "1.2.0"


async def test_failsafe_schema_failure_is_retried(orchestrate, make_catalog, calls, store, config_doc):
    catalog = make_catalog(
        ("1_1_0-100-a", "schema", {"success": False}),
        ("1_1_0-200-b", "config"),
    )
    orch = await orchestrate(catalog)

    first = await orch.run(_approved(failsafe=True))

    assert first.status == RunStatus.FAILED
    assert first.advanced == [Domain.CONFIG]
    assert await config_doc.get_version() == "1.2.0"
    assert await store.latest_schema_version() == "1.0.0"

    catalog.recorders["1_1_0-100-a"].success = True
    calls.clear()
    second = await orch.run(_approved(failsafe=True))

    assert [u.identifier for u in second.plan] == ["1_1_0-100-a"]
    assert calls == [("up", "1_1_0-100-a")]
    assert second.status == RunStatus.COMPLETED
    assert await store.latest_schema_version() == "1.2.0"


async def test_explicit_command_with_nothing_to_do(orchestrate, make_catalog):
    orch = await orchestrate(make_catalog(), config_version="1.2.0")
    report = await orch.run(_approved(explicit_command=True))
    assert report.status == RunStatus.UP_TO_DATE
    assert "0 changes" in orch.output.getvalue()


async def test_services_reach_handlers(store, config_doc, make_catalog):
    await config_doc.merge({"version": "1.0.0"})
    catalog = make_catalog(("1_1_0-100-a", "schema"))
    orch = MigrationOrchestrator(
        config=config_doc, store=store, catalog=catalog, build_version="1.1.0",
        services={"mailer": "stub"}, console=_console(),
    )

    await orch.run(_approved())

    (ctx,) = catalog.recorders["1_1_0-100-a"].contexts
    assert ctx.services == {"mailer": "stub"}
    assert ctx.config is config_doc
    assert ctx.database is store
