"""selfcheck: a self-audit pipeline for a project's own source tree."""

from selfcheck.config import AuditConfig, CleanupConfig, CleanupPattern, FlagSystemConfig
from selfcheck.core import AnalysisContext, BaseEngine, Issue, Runner, new_workspace
from selfcheck.flags import FlagSystem
from selfcheck.pipeline import AuditOutcome, run_audit
from selfcheck.retention import Archivist, ArtifactReclaimer

__version__ = "0.1.0"

__all__ = [
    "AnalysisContext",
    "Archivist",
    "ArtifactReclaimer",
    "AuditConfig",
    "AuditOutcome",
    "BaseEngine",
    "CleanupConfig",
    "CleanupPattern",
    "FlagSystem",
    "FlagSystemConfig",
    "Issue",
    "Runner",
    "new_workspace",
    "run_audit",
]
