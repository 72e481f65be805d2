"""Temporary file and workspace garbage collection."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
from collections.abc import Callable
from fnmatch import fnmatchcase
from pathlib import Path

from rich.console import Console

from selfcheck.config import CleanupConfig, CleanupPattern, read_config_file
from selfcheck.core.errors import ConfigError, InvalidPatternError, RetentionError
from selfcheck.core.models import CleanupResult
from selfcheck.core.workspace import DiskWorkspace, Workspace

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS = [
    CleanupPattern(pattern="selfcheck-*", description="Selfcheck temporary files"),
    CleanupPattern(pattern="checkpoint-*", description="Checkpoint temporary files"),
    CleanupPattern(pattern="test-*", description="Test temporary files"),
    CleanupPattern(pattern="*.tmp", description="Generic temporary files"),
]

StorageProbe = Callable[[Path], float]


def disk_usage_percent(path: Path) -> float:
    """Percentage of the filesystem holding path that is in use."""
    usage = shutil.disk_usage(path)
    if usage.total == 0:
        return 0.0
    return usage.used / usage.total * 100.0


def dir_size(path: Path) -> int:
    """Total size in bytes of the regular files below path."""
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for filename in filenames:
            file_path = os.path.join(dirpath, filename)
            if not os.path.islink(file_path):
                total += os.path.getsize(file_path)
    return total


def format_bytes(size: int) -> str:
    """Format a byte count as a human readable string (e.g. "1.5 KB")."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}B"


def is_valid_glob(pattern: str) -> bool:
    """Reject globs with an unterminated character class or trailing escape."""
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            if i + 1 >= len(pattern):
                return False
            i += 2
            continue
        if ch == "[":
            close = pattern.find("]", i + 2 if pattern[i + 1 : i + 2] in ("!", "^", "]") else i + 1)
            if close == -1:
                return False
            i = close + 1
            continue
        i += 1
    return True


class ArtifactReclaimer:
    """Reclaims disk space from tracked workspaces and pattern-matched scratch files.

    Entries directly under the base directory (the OS temp root by default)
    are removed when they match at least one enabled include pattern and no
    exclude pattern. In dry-run mode every count and size is computed as if
    cleanup had run, but nothing is removed.
    """

    def __init__(
        self,
        verbose: bool = False,
        base_dir: Path | None = None,
        console: Console | None = None,
        storage_probe: StorageProbe = disk_usage_percent,
    ) -> None:
        self.verbose = verbose
        self.dry_run = False
        self.base_dir = base_dir or Path(tempfile.gettempdir())
        self.patterns: list[CleanupPattern] = [p.model_copy() for p in DEFAULT_PATTERNS]
        self.config = CleanupConfig()
        self.workspaces: list[Workspace] = []
        self.console = console or Console()
        self.storage_probe = storage_probe

    # =========================================================================
    # Configuration
    # =========================================================================

    def register_workspace(self, workspace: Workspace) -> None:
        """Take over disposal of a workspace."""
        self.workspaces.append(workspace)

    def set_dry_run(self, enabled: bool) -> None:
        self.dry_run = enabled

    def set_base_dir(self, base_dir: Path) -> None:
        self.base_dir = base_dir

    def add_custom_pattern(self, pattern: str, description: str) -> None:
        self.patterns.append(CleanupPattern(pattern=pattern, description=description))

    def apply_config(self, config: CleanupConfig) -> None:
        """Adopt a cleanup block and merge its enabled custom patterns."""
        self.config = config
        for p in config.custom_patterns:
            if p.enabled:
                self.add_custom_pattern(p.pattern, p.description)

    def load_config(self, config_path: Path) -> None:
        """Merge the ``cleanup`` block of a YAML or TOML file.

        A missing file is not an error.
        """
        if not config_path.exists():
            return
        data = read_config_file(config_path)
        try:
            config = CleanupConfig.model_validate(data.get("cleanup") or {})
        except ValueError as e:
            raise ConfigError(f"invalid cleanup section in {config_path}: {e}") from e
        self.apply_config(config)

    def validate_patterns(self) -> None:
        """Raise InvalidPatternError for the first malformed include or exclude glob."""
        for p in self.patterns:
            if not is_valid_glob(p.pattern):
                raise InvalidPatternError(f"invalid pattern {p.pattern!r}")
        for exclude in self.config.exclude_patterns:
            if not is_valid_glob(exclude):
                raise InvalidPatternError(f"invalid exclude pattern {exclude!r}")

    def should_clean(self, name: str) -> bool:
        matched = any(p.enabled and fnmatchcase(name, p.pattern) for p in self.patterns)
        if not matched:
            return False
        return not any(fnmatchcase(name, exclude) for exclude in self.config.exclude_patterns)

    # =========================================================================
    # Cleanup
    # =========================================================================

    def get_storage_usage(self) -> float:
        try:
            return self.storage_probe(self.base_dir)
        except OSError as e:
            logger.warning(f"Could not read storage usage for {self.base_dir}: {e}")
            return 0.0

    def check_storage_usage(self, threshold: float) -> tuple[bool, float]:
        """Report whether usage is strictly above threshold, and the usage itself."""
        usage = self.get_storage_usage()
        return usage > threshold, usage

    def cleanup_temporary_files(self) -> CleanupResult:
        """Dispose tracked workspaces and remove matching scratch entries.

        Returns:
            CleanupResult with counts, bytes freed and per-item errors.

        Raises:
            RetentionError: The base directory could not be listed.
        """
        start = time.monotonic()
        result = CleanupResult(dry_run=self.dry_run)
        result.storage_usage_before = self.get_storage_usage()

        if self.verbose:
            mode = " (DRY RUN)" if self.dry_run else ""
            self.console.print(f"Starting temporary file cleanup{mode}...")
            self.console.print(f"Storage usage before cleanup: {result.storage_usage_before:.1f}%")

        handled_roots: set[Path] = set()
        for workspace in self.workspaces:
            self._process_workspace(workspace, result, handled_roots)
        if not self.dry_run:
            self.workspaces = []

        try:
            with os.scandir(self.base_dir) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise RetentionError(f"failed to read {self.base_dir} directory: {e}") from e

        for entry in entries:
            if Path(entry.path) in handled_roots:
                continue
            self._process_entry(entry, result)

        if self.dry_run:
            result.storage_usage_after = result.storage_usage_before
        else:
            result.storage_usage_after = self.get_storage_usage()
        result.duration = time.monotonic() - start

        if self.verbose:
            self._log_result(result)
        logger.debug(
            f"Cleanup finished: {result.files_removed} files, {result.dirs_removed} dirs, "
            f"{result.space_freed} bytes, {len(result.errors)} errors"
        )
        return result

    def _process_workspace(
        self, workspace: Workspace, result: CleanupResult, handled_roots: set[Path]
    ) -> None:
        if not isinstance(workspace, DiskWorkspace):
            if not self.dry_run:
                workspace.cleanup()
            return
        if workspace.disposed:
            return

        handled_roots.add(workspace.root)
        if workspace.root.exists():
            try:
                result.space_freed += dir_size(workspace.root)
            except OSError as e:
                logger.debug(f"Could not size workspace {workspace.root}: {e}")

        if self.verbose:
            verb = "Would remove" if self.dry_run else "Removing"
            self.console.print(f"{verb} workspace: {workspace.root}", markup=False)

        if self.dry_run:
            result.dirs_removed += 1
            return
        try:
            workspace.cleanup()
        except OSError as e:
            result.errors.append(f"Failed to cleanup workspace {workspace.root}: {e}")
        else:
            result.dirs_removed += 1

    def _process_entry(self, entry: os.DirEntry[str], result: CleanupResult) -> None:
        if not self.should_clean(entry.name):
            return

        path = Path(entry.path)
        is_dir = entry.is_dir(follow_symlinks=False)
        try:
            result.space_freed += dir_size(path) if is_dir else entry.stat(follow_symlinks=False).st_size
        except OSError as e:
            logger.debug(f"Could not size {path}: {e}")

        if self.verbose:
            verb = "Would remove" if self.dry_run else "Removing"
            self.console.print(f"{verb}: {path}", markup=False)

        if not self.dry_run:
            try:
                if is_dir:
                    shutil.rmtree(path)
                else:
                    path.unlink()
            except OSError as e:
                result.errors.append(f"Failed to remove {path}: {e}")
                return

        if is_dir:
            result.dirs_removed += 1
        else:
            result.files_removed += 1

    def _log_result(self, result: CleanupResult) -> None:
        self.console.print(f"Cleanup completed in {result.duration:.3f}s")
        if result.dry_run:
            self.console.print(
                f"Files that would be removed: {result.files_removed}, "
                f"Directories that would be removed: {result.dirs_removed}"
            )
            self.console.print(f"Estimated space freed: {format_bytes(result.space_freed)}")
        else:
            self.console.print(
                f"Files removed: {result.files_removed}, Directories removed: {result.dirs_removed}"
            )
            self.console.print(f"Space freed: {format_bytes(result.space_freed)}")
            self.console.print(f"Storage usage after cleanup: {result.storage_usage_after:.1f}%")
        if result.errors:
            self.console.print(f"[red]Errors encountered: {len(result.errors)}[/red]")

    def preview_cleanup(self) -> CleanupResult:
        """Run cleanup in dry-run mode, restoring the previous mode afterwards."""
        previous = self.dry_run
        self.dry_run = True
        try:
            return self.cleanup_temporary_files()
        finally:
            self.dry_run = previous

    def cleanup_on_exit(self) -> CleanupResult:
        """Run cleanup and always print a summary."""
        result = self.cleanup_temporary_files()

        if result.dry_run:
            self.console.print("\n[bold]=== Cleanup Preview (DRY RUN) ===[/bold]")
            self.console.print(f"Files that would be removed: {result.files_removed}")
            self.console.print(f"Directories that would be removed: {result.dirs_removed}")
            self.console.print(f"Estimated space freed: {format_bytes(result.space_freed)}")
        else:
            self.console.print("\n[bold]=== Cleanup Summary ===[/bold]")
            self.console.print(f"Files removed: {result.files_removed}")
            self.console.print(f"Directories removed: {result.dirs_removed}")
            self.console.print(f"Space freed: {format_bytes(result.space_freed)}")
            self.console.print(
                f"Storage usage: {result.storage_usage_before:.1f}% → {result.storage_usage_after:.1f}%"
            )
        self.console.print(f"Duration: {result.duration:.3f}s")

        if result.errors:
            self.console.print(f"[red]Errors: {len(result.errors)}[/red]")
            for error in result.errors:
                self.console.print(f"  - {error}", markup=False)

        return result
