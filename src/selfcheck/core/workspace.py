"""Disposable scratch storage for engines.

A workspace hides where scratch files really live. Two backends exist:

- ``MemoryWorkspace`` keeps everything in a dict and has no filesystem footprint.
- ``DiskWorkspace`` owns a freshly created, uniquely named directory.

Both reject relative paths containing a ``..`` segment on read and write.
"""

from __future__ import annotations

import logging
import posixpath
import shutil
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from selfcheck.core.errors import PathTraversalError, WorkspaceError

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "selfcheck-workspace-"


def _check_rel_path(rel_path: str) -> list[str]:
    """Split a relative path into segments, refusing parent traversal and the root itself."""
    segments = [s for s in rel_path.replace("\\", "/").split("/") if s not in ("", ".")]
    if ".." in segments:
        raise PathTraversalError(rel_path)
    if not segments:
        raise WorkspaceError(f"path does not name a file: {rel_path!r}")
    return segments


class Workspace(ABC):
    """Sandboxed scratch area shared by the engines of one run."""

    def __init__(self) -> None:
        self._disposed = False

    @property
    @abstractmethod
    def is_memory(self) -> bool:
        """True for the in-memory backend."""

    @property
    def disposed(self) -> bool:
        return self._disposed

    @abstractmethod
    def path(self, *segments: str) -> str:
        """Join segments against the workspace root."""

    @abstractmethod
    def write_file(self, rel_path: str, data: bytes) -> None:
        """Write bytes, creating intermediate directories as needed."""

    @abstractmethod
    def read_file(self, rel_path: str) -> bytes:
        """Read bytes previously written under rel_path."""

    @abstractmethod
    def cleanup(self) -> None:
        """Release the backing storage. Safe to call more than once."""

    def _ensure_live(self) -> None:
        if self._disposed:
            raise WorkspaceError("workspace has been disposed")


class MemoryWorkspace(Workspace):
    """Workspace backed by an in-process dict rooted at a virtual ``/``."""

    def __init__(self) -> None:
        super().__init__()
        self._files: dict[str, bytes] | None = {}
        self._lock = threading.Lock()

    @property
    def is_memory(self) -> bool:
        return True

    def path(self, *segments: str) -> str:
        return posixpath.normpath(posixpath.join("/", *[s.lstrip("/") for s in segments]))

    def write_file(self, rel_path: str, data: bytes) -> None:
        segments = _check_rel_path(rel_path)
        self._ensure_live()
        key = self.path(*segments)
        with self._lock:
            files = self._live_files()
            parent = self._file_parent(files, segments)
            if parent is not None:
                raise FileExistsError(f"not a directory in workspace: {parent}")
            if self._is_dir(files, key):
                raise IsADirectoryError(f"is a directory in workspace: {rel_path}")
            files[key] = bytes(data)

    def read_file(self, rel_path: str) -> bytes:
        segments = _check_rel_path(rel_path)
        self._ensure_live()
        key = self.path(*segments)
        with self._lock:
            files = self._live_files()
            if key in files:
                return files[key]
            if self._file_parent(files, segments) is not None:
                raise NotADirectoryError(f"not a directory in workspace: {rel_path}")
            if self._is_dir(files, key):
                raise IsADirectoryError(f"is a directory in workspace: {rel_path}")
            raise FileNotFoundError(f"no such file in workspace: {rel_path}")

    def _live_files(self) -> dict[str, bytes]:
        # Caller holds the lock.
        if self._files is None:
            raise WorkspaceError("workspace has been disposed")
        return self._files

    def _file_parent(self, files: dict[str, bytes], segments: list[str]) -> str | None:
        """First ancestor of segments that is stored as a file, if any."""
        for i in range(1, len(segments)):
            ancestor = self.path(*segments[:i])
            if ancestor in files:
                return ancestor
        return None

    @staticmethod
    def _is_dir(files: dict[str, bytes], key: str) -> bool:
        prefix = key + "/"
        return any(k.startswith(prefix) for k in files)

    def cleanup(self) -> None:
        with self._lock:
            self._files = None
        self._disposed = True


class DiskWorkspace(Workspace):
    """Workspace backed by a uniquely named directory on disk."""

    def __init__(self, root: Path) -> None:
        super().__init__()
        self.root = root

    @classmethod
    def create(cls, base_dir: Path | None = None) -> DiskWorkspace:
        """Create a new directory under base_dir (the OS temp root by default)."""
        try:
            root = tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=base_dir)
        except OSError as e:
            raise WorkspaceError(f"failed to create workspace root: {e}") from e
        logger.debug(f"Created disk workspace at {root}")
        return cls(Path(root))

    @property
    def is_memory(self) -> bool:
        return False

    def path(self, *segments: str) -> str:
        return str(self.root.joinpath(*[s.lstrip("/\\") for s in segments]))

    def write_file(self, rel_path: str, data: bytes) -> None:
        segments = _check_rel_path(rel_path)
        self._ensure_live()
        target = Path(self.path(*segments))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def read_file(self, rel_path: str) -> bytes:
        segments = _check_rel_path(rel_path)
        self._ensure_live()
        return Path(self.path(*segments)).read_bytes()

    def cleanup(self) -> None:
        if self.root.exists():
            shutil.rmtree(self.root)
            logger.debug(f"Removed disk workspace {self.root}")
        self._disposed = True


WorkspaceFactory = Callable[[bool], Workspace]


def new_workspace(use_memory: bool, base_dir: Path | None = None) -> Workspace:
    """Default workspace factory.

    Args:
        use_memory: Build an in-memory workspace instead of a disk one.
        base_dir: Parent directory for disk workspaces.

    Returns:
        A live workspace owned by the caller.
    """
    if use_memory:
        return MemoryWorkspace()
    return DiskWorkspace.create(base_dir)
