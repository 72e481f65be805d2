"""Core data models for selfcheck."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class IssueCategory(str, Enum):
    """Area of the project a finding belongs to."""

    CODE_QUALITY = "code_quality"
    DOCUMENTATION = "documentation"
    TESTING = "testing"
    SECURITY = "security"
    PERFORMANCE = "performance"
    USABILITY = "usability"


class Severity(str, Enum):
    """Impact of a finding, from Critical down to Info."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class Priority(str, Enum):
    """Remediation priority, P0 first."""

    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class Effort(str, Enum):
    """Rough size of the fix."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class IssueStatus(str, Enum):
    """Remediation state of a finding."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class ImplementationStatus(str, Enum):
    """Verdict on how completely a declared flag is wired up."""

    FULLY_IMPLEMENTED = "fully_implemented"
    PARTIALLY_IMPLEMENTED = "partially_implemented"
    PLANNED_NOT_IMPLEMENTED = "planned_not_implemented"
    NEEDS_REPAIR = "needs_repair"


class ConflictType(str, Enum):
    """Kinds of cross-source disagreement for a flag."""

    ORPHANED_FLAG = "orphaned_flag"
    DESCRIPTION_CONFLICT = "description_conflict"
    PLANNING_MISMATCH = "planning_mismatch"


class ConflictSeverity(str, Enum):
    """Severity of a flag conflict."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class SnapshotStatus(str, Enum):
    """Where a snapshot currently lives."""

    ACTIVE = "active"
    ARCHIVED = "archived"


PRIORITY_ORDER: dict[Priority, int] = {
    Priority.P0: 0,
    Priority.P1: 1,
    Priority.P2: 2,
    Priority.P3: 3,
}

SEVERITY_ORDER: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.INFO: 4,
}


# =============================================================================
# Finding Models
# =============================================================================


class Issue(BaseModel):
    """A single finding produced by an analysis engine."""

    model_config = ConfigDict(frozen=True)

    id: str  # stable category code, e.g. "FLAG-PARTIAL-IMPLEMENTATION"
    category: IssueCategory
    severity: Severity
    priority: Priority
    title: str
    description: str = ""
    location: str = ""  # file:line or path
    suggestion: str = ""
    effort: Effort = Effort.SMALL
    status: IssueStatus = IssueStatus.PENDING


def sort_issues(issues: list[Issue] | tuple[Issue, ...]) -> list[Issue]:
    """Return issues ordered by priority, then severity.

    This is the order report renderers expect to receive findings in.
    """
    return sorted(
        issues,
        key=lambda i: (
            PRIORITY_ORDER.get(i.priority, len(PRIORITY_ORDER)),
            SEVERITY_ORDER.get(i.severity, len(SEVERITY_ORDER)),
        ),
    )


# =============================================================================
# Flag Reconciliation Models
# =============================================================================


class FlagConflict(BaseModel):
    """Disagreement between two provenance sources about one flag."""

    type: ConflictType
    source1: str
    source2: str
    description: str
    severity: ConflictSeverity


class FlagStatus(BaseModel):
    """Reconciliation record for one declared (or planned) command-line flag.

    Created by the catalog phase and mutated in place by later phases.
    """

    name: str
    long_form: str
    short_form: str = ""
    description: str = ""
    status: ImplementationStatus = ImplementationStatus.PLANNED_NOT_IMPLEMENTED
    defined_in_code: bool = False
    defined_in_help: bool = False
    defined_in_docs: bool = False
    defined_in_planning: bool = False
    test_coverage: bool = False
    actual_behavior: str = ""
    conflicts: list[FlagConflict] = Field(default_factory=list)
    location: str = ""  # file:line of the registration, empty for ghost flags

    def has_conflict(self, conflict_type: ConflictType) -> bool:
        return any(c.type == conflict_type for c in self.conflicts)


# =============================================================================
# Retention Models
# =============================================================================


class SnapshotInfo(BaseModel):
    """A timestamped directory of produced artifacts."""

    name: str
    timestamp: datetime
    size: int = 0
    status: SnapshotStatus = SnapshotStatus.ACTIVE
    path: Path


class CleanupResult(BaseModel):
    """Outcome of a reclaimer pass."""

    files_removed: int = 0
    dirs_removed: int = 0
    space_freed: int = 0  # bytes
    errors: list[str] = Field(default_factory=list)
    duration: float = 0.0  # seconds
    storage_usage_before: float = 0.0
    storage_usage_after: float = 0.0
    dry_run: bool = False
