"""Exception hierarchy for selfcheck."""

from __future__ import annotations


class SelfcheckError(Exception):
    """Base class for all selfcheck errors."""


class ConfigError(SelfcheckError):
    """Configuration file could not be decoded or validated."""


class WorkspaceError(SelfcheckError):
    """A workspace could not be created or was used after disposal."""


class PathTraversalError(WorkspaceError):
    """A relative path tried to escape the workspace root."""

    def __init__(self, rel_path: str) -> None:
        super().__init__(f"path traversal not allowed: {rel_path}")
        self.rel_path = rel_path


class AnalysisCancelledError(SelfcheckError):
    """The analysis context was cancelled or its deadline passed."""


class EngineFailuresError(SelfcheckError):
    """One or more engines failed hard during a run.

    Attributes:
        failures: (engine name, exception) pairs in completion order.
    """

    def __init__(self, failures: list[tuple[str, BaseException]]) -> None:
        self.failures = failures
        combined = "".join(f"engine {name} failed: {err}; " for name, err in failures)
        super().__init__(f"analysis engines encountered errors: {combined}")

    @property
    def engine_names(self) -> list[str]:
        return [name for name, _ in self.failures]


class PackageNotFoundError(SelfcheckError):
    """A named source package could not be located under the project root."""


class FlagPhaseError(SelfcheckError):
    """A flag reconciliation phase failed.

    The message carries the phase context, e.g. ``cataloging flags: <cause>``.
    """

    def __init__(self, phase: str, cause: BaseException | str) -> None:
        self.phase = phase
        self.cause = cause
        super().__init__(f"{phase}: {cause}")


class RetentionError(SelfcheckError):
    """A directory-level retention operation failed."""


class SnapshotError(RetentionError):
    """A snapshot could not be created."""


class InvalidPatternError(RetentionError):
    """A cleanup glob pattern is malformed."""
