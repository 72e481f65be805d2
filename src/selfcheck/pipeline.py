"""Reference orchestration of a full self-audit run."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field

from selfcheck.config import AuditConfig
from selfcheck.core.engine import AnalysisContext, AnalysisEngine
from selfcheck.core.errors import EngineFailuresError, FlagPhaseError, RetentionError
from selfcheck.core.models import CleanupResult, FlagStatus, Issue, sort_issues
from selfcheck.core.runner import Runner
from selfcheck.core.workspace import WorkspaceFactory, new_workspace
from selfcheck.flags.system import FlagSystem
from selfcheck.retention.archivist import Archivist
from selfcheck.retention.reclaimer import ArtifactReclaimer

logger = logging.getLogger(__name__)

ISSUES_FILE = "findings_issues.json"
FLAGS_FILE = "findings_flag_statuses.json"
FLAG_REPORT_FILE = "findings_flag_report.md"


class AuditOutcome(BaseModel):
    """Everything a run produced."""

    issues: list[Issue] = Field(default_factory=list)
    flags: list[FlagStatus] = Field(default_factory=list)
    engine_failures: list[str] = Field(default_factory=list)
    snapshot: Path | None = None
    archived: list[str] = Field(default_factory=list)
    cleanup: CleanupResult | None = None

    @property
    def passed(self) -> bool:
        return not self.engine_failures


def check_initial_resources(reclaimer: ArtifactReclaimer, threshold: float) -> None:
    needs_cleanup, usage = reclaimer.check_storage_usage(threshold)
    if needs_cleanup:
        logger.warning(
            f"Storage usage is {usage:.1f}%. Consider running cleanup before analysis."
        )


async def run_audit(
    root_path: Path,
    config: AuditConfig | None = None,
    engines: list[AnalysisEngine] | None = None,
    flag_system: FlagSystem | None = None,
    reclaimer: ArtifactReclaimer | None = None,
    workspace_factory: WorkspaceFactory = new_workspace,
    ctx: AnalysisContext | None = None,
) -> AuditOutcome:
    """Run every engine, reconcile flags, persist artifacts and rotate snapshots.

    Engine failures do not stop the run: they are recorded on the outcome
    and the findings of the remaining engines are still saved. Only a flag
    cataloging failure is fatal.

    Args:
        root_path: Project root to audit.
        config: Settings; defaults when omitted.
        engines: Engines to schedule; defaults to the flag system alone.
        flag_system: Flag reconciliation engine used for the flag statuses.
        reclaimer: Reclaimer that takes over workspace disposal.
        workspace_factory: Builds workspaces (``True`` asks for memory).
        ctx: Cancellation context shared by all engines.

    Returns:
        AuditOutcome describing the run.

    Raises:
        FlagPhaseError: Flags could not be cataloged.
    """
    config = config or AuditConfig()
    ctx = ctx or AnalysisContext()
    flag_system = flag_system or FlagSystem(config.flags)
    if reclaimer is None:
        reclaimer = ArtifactReclaimer(verbose=config.verbose)
        reclaimer.apply_config(config.cleanup)
    outcome = AuditOutcome()

    check_initial_resources(reclaimer, config.resource_threshold)

    runner = Runner(engines if engines is not None else [flag_system], reclaimer, workspace_factory)
    logger.info("Running comprehensive project analysis...")
    try:
        await runner.run(root_path, ctx)
    except EngineFailuresError as e:
        logger.error(f"Analysis finished with engine failures: {e}")
        outcome.engine_failures = [f"{name}: {err}" for name, err in e.failures]
    outcome.issues = sort_issues(runner.get_issues())

    workspace = workspace_factory(True)
    reclaimer.register_workspace(workspace)
    try:
        outcome.flags = await asyncio.to_thread(flag_system.reconcile, ctx, root_path, workspace)
    except FlagPhaseError:
        _cleanup_after_failure(reclaimer, "flag cataloging", config)
        raise

    latest_dir = _save_artifacts(config.artifacts_root, outcome, flag_system)
    logger.info(f"Artifacts written to {latest_dir}")

    archivist = Archivist(config.artifacts_root)
    outcome.snapshot = archivist.create_snapshot("")
    try:
        outcome.archived = archivist.archive_old_snapshots(config.max_active_snapshots)
        archivist.cleanup_archives(config.archive_retention_months)
    except RetentionError as e:
        logger.warning(f"Archival failed: {e}")

    if not config.skip_cleanup:
        logger.info("Performing post-analysis cleanup...")
        try:
            outcome.cleanup = reclaimer.cleanup_on_exit()
        except RetentionError as e:
            logger.warning(f"Cleanup failed: {e}")

    return outcome


def _cleanup_after_failure(reclaimer: ArtifactReclaimer, phase: str, config: AuditConfig) -> None:
    if config.skip_cleanup:
        return
    logger.info(f"Attempting cleanup after {phase} failure...")
    try:
        reclaimer.cleanup_on_exit()
    except RetentionError as e:
        logger.error(f"Cleanup also failed: {e}")


def _save_artifacts(artifacts_root: Path, outcome: AuditOutcome, flag_system: FlagSystem) -> Path:
    latest_dir = artifacts_root / "active" / "latest"
    latest_dir.mkdir(parents=True, exist_ok=True)

    files = {
        ISSUES_FILE: json.dumps([i.model_dump(mode="json") for i in outcome.issues], indent=2),
        FLAGS_FILE: json.dumps([f.model_dump(mode="json") for f in outcome.flags], indent=2),
        FLAG_REPORT_FILE: flag_system.generate_status_report(outcome.flags),
    }
    for name, content in files.items():
        (latest_dir / name).write_text(content, encoding="utf-8")
    return latest_dir
