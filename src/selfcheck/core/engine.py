"""Analysis engine contract and the task-based base engine."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

from selfcheck.core.errors import AnalysisCancelledError
from selfcheck.core.models import Effort, Issue, IssueCategory, Priority, Severity
from selfcheck.core.workspace import Workspace

logger = logging.getLogger(__name__)

TASK_FAILURE_ID = "ENGINE-TASK-FAILURE"


class AnalysisContext:
    """Cancellation and deadline carrier threaded through every engine.

    Engines should call ``check()`` inside long loops. Nothing preempts an
    engine that ignores it.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._cancelled = threading.Event()
        self.deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None if there is none."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise AnalysisCancelledError if the context is done."""
        if self.cancelled:
            raise AnalysisCancelledError("analysis cancelled")


@runtime_checkable
class AnalysisEngine(Protocol):
    """Contract every schedulable analyzer implements.

    ``analyze`` returns the engine's findings. Raising means the whole engine
    could not run (e.g. the root path is unreadable).
    """

    @property
    def name(self) -> str: ...

    async def analyze(
        self, ctx: AnalysisContext, root_path: Path, workspace: Workspace
    ) -> list[Issue]: ...


AnalysisTask = Callable[[AnalysisContext, Path, Workspace], Awaitable[list[Issue]]]


class BaseEngine:
    """Engine composed of independent tasks run in registration order.

    A failing task is turned into a single synthetic Issue and the remaining
    tasks still run, so an engine built on this class never fails hard.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._tasks: list[AnalysisTask] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def tasks(self) -> list[AnalysisTask]:
        return list(self._tasks)

    def register_task(self, task: AnalysisTask) -> None:
        self._tasks.append(task)

    async def analyze(
        self, ctx: AnalysisContext, root_path: Path, workspace: Workspace
    ) -> list[Issue]:
        """Run every registered task and merge their findings.

        Args:
            ctx: Cancellation context.
            root_path: Project root under analysis.
            workspace: Shared scratch workspace.

        Returns:
            Findings from all tasks, plus one failure Issue per failed task.
        """
        all_issues: list[Issue] = []
        for task in self._tasks:
            try:
                issues = await task(ctx, root_path, workspace)
            except AnalysisCancelledError:
                raise
            except Exception as e:
                logger.warning(f"Task {getattr(task, '__name__', task)!s} failed in {self._name}: {e}")
                all_issues.append(self._task_failure_issue(root_path, e))
                continue
            all_issues.extend(issues)
        return all_issues

    def _task_failure_issue(self, root_path: Path, error: BaseException) -> Issue:
        return Issue(
            id=TASK_FAILURE_ID,
            category=IssueCategory.CODE_QUALITY,
            severity=Severity.MEDIUM,
            priority=Priority.P2,
            title=f"Task failed in {self._name}",
            description=str(error),
            location=str(root_path),
            suggestion="Check logs and environment settings.",
            effort=Effort.SMALL,
        )
