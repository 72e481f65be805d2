"""Concurrent engine runner and the thread-safe findings collector."""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from selfcheck.core.engine import AnalysisContext, AnalysisEngine
from selfcheck.core.errors import EngineFailuresError
from selfcheck.core.models import Issue
from selfcheck.core.workspace import Workspace, WorkspaceFactory, new_workspace

if TYPE_CHECKING:
    from selfcheck.retention.reclaimer import ArtifactReclaimer

logger = logging.getLogger(__name__)


class IssueCollector:
    """Collects findings from engines running concurrently.

    ``issues()`` hands out a tuple snapshot, never the internal list.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._issues: list[Issue] = []

    def collect(self, issues: list[Issue]) -> None:
        with self._lock:
            self._issues.extend(issues)

    def issues(self) -> tuple[Issue, ...]:
        with self._lock:
            return tuple(self._issues)

    def __len__(self) -> int:
        with self._lock:
            return len(self._issues)


class Runner:
    """Runs a set of engines concurrently against one project root."""

    def __init__(
        self,
        engines: list[AnalysisEngine],
        reclaimer: ArtifactReclaimer | None = None,
        workspace_factory: WorkspaceFactory = new_workspace,
    ) -> None:
        self.engines = list(engines)
        self.reclaimer = reclaimer
        self.workspace_factory = workspace_factory
        self.collector = IssueCollector()

    async def run(self, root_path: Path, ctx: AnalysisContext | None = None) -> None:
        """Execute every engine concurrently.

        One disk workspace is shared by all engines for the duration of the
        run and disposed afterwards whatever the outcome.

        Args:
            root_path: Project root to analyze.
            ctx: Cancellation context; a fresh one is used if omitted.

        Raises:
            EngineFailuresError: One or more engines raised from ``analyze``.
                Findings from the other engines are still available through
                ``get_issues()``.
        """
        ctx = ctx or AnalysisContext()
        workspace = self.workspace_factory(False)
        if self.reclaimer is not None:
            self.reclaimer.register_workspace(workspace)

        try:
            results = await asyncio.gather(
                *(self._run_engine(engine, ctx, root_path, workspace) for engine in self.engines),
                return_exceptions=True,
            )
        finally:
            self._dispose(workspace)

        failures: list[tuple[str, BaseException]] = []
        for engine, result in zip(self.engines, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(f"Engine {engine.name} failed: {result}")
                failures.append((engine.name, result))

        if failures:
            raise EngineFailuresError(failures)

    async def _run_engine(
        self,
        engine: AnalysisEngine,
        ctx: AnalysisContext,
        root_path: Path,
        workspace: Workspace,
    ) -> None:
        logger.debug(f"Engine {engine.name} started")
        issues = await engine.analyze(ctx, root_path, workspace)
        self.collector.collect(issues)
        logger.debug(f"Engine {engine.name} finished with {len(issues)} issues")

    def _dispose(self, workspace: Workspace) -> None:
        try:
            workspace.cleanup()
        except OSError as e:
            logger.warning(f"Workspace disposal failed: {e}")

    def get_issues(self) -> list[Issue]:
        """Findings collected so far, as a fresh list."""
        return list(self.collector.issues())
