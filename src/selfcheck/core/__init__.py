"""Engine contract, runner, workspaces and data models."""

from selfcheck.core.engine import AnalysisContext, AnalysisEngine, AnalysisTask, BaseEngine
from selfcheck.core.errors import (
    AnalysisCancelledError,
    EngineFailuresError,
    FlagPhaseError,
    PathTraversalError,
    SelfcheckError,
    WorkspaceError,
)
from selfcheck.core.models import (
    CleanupResult,
    ConflictSeverity,
    ConflictType,
    Effort,
    FlagConflict,
    FlagStatus,
    ImplementationStatus,
    Issue,
    IssueCategory,
    IssueStatus,
    Priority,
    Severity,
    SnapshotInfo,
    SnapshotStatus,
    sort_issues,
)
from selfcheck.core.runner import IssueCollector, Runner
from selfcheck.core.workspace import DiskWorkspace, MemoryWorkspace, Workspace, new_workspace

__all__ = [
    "AnalysisCancelledError",
    "AnalysisContext",
    "AnalysisEngine",
    "AnalysisTask",
    "BaseEngine",
    "CleanupResult",
    "ConflictSeverity",
    "ConflictType",
    "DiskWorkspace",
    "Effort",
    "EngineFailuresError",
    "FlagConflict",
    "FlagPhaseError",
    "FlagStatus",
    "ImplementationStatus",
    "Issue",
    "IssueCategory",
    "IssueCollector",
    "IssueStatus",
    "MemoryWorkspace",
    "PathTraversalError",
    "Priority",
    "Runner",
    "SelfcheckError",
    "Severity",
    "SnapshotInfo",
    "SnapshotStatus",
    "Workspace",
    "WorkspaceError",
    "new_workspace",
    "sort_issues",
]
