"""Locate source packages and modules inside a project tree."""

from __future__ import annotations

from collections import deque
from pathlib import Path

from selfcheck.core.errors import PackageNotFoundError

SKIP_DIRS = {
    "__pycache__",
    "node_modules",
    "venv",
    "env",
    "build",
    "dist",
    "site-packages",
}


def _is_skipped(directory: Path) -> bool:
    return directory.name.startswith(".") or directory.name in SKIP_DIRS or directory.name.endswith(".egg-info")


def _is_source_file(path: Path) -> bool:
    name = path.name
    return (
        path.is_file()
        and name.endswith(".py")
        and not name.startswith("test_")
        and not name.endswith("_test.py")
    )


def _walk_dirs(root: Path):
    """Yield directories below root breadth-first, sorted, skipping noise."""
    queue: deque[Path] = deque([root])
    while queue:
        current = queue.popleft()
        yield current
        try:
            children = sorted(p for p in current.iterdir() if p.is_dir() and not _is_skipped(p))
        except OSError:
            continue
        queue.extend(children)


def discover_package_files(root: Path, name: str) -> list[Path]:
    """Return the non-test source files of the shallowest package or module named name.

    A package is a directory called ``name`` that directly holds ``.py`` files;
    a module is a file called ``name.py``.

    Raises:
        PackageNotFoundError: Nothing under root matches.
    """
    if not root.is_dir():
        raise PackageNotFoundError(f"project root {root} is not a directory")

    for directory in _walk_dirs(root):
        package = directory / name
        if package.is_dir() and not _is_skipped(package):
            files = sorted(p for p in package.iterdir() if _is_source_file(p))
            if files:
                return files
        module = directory / f"{name}.py"
        if module.is_file():
            return [module]

    raise PackageNotFoundError(f"package {name} not found")


def discover_module(root: Path, name: str) -> Path | None:
    """Return the shallowest ``<name>.py`` below root, or None."""
    if not root.is_dir():
        return None
    for directory in _walk_dirs(root):
        module = directory / f"{name}.py"
        if module.is_file():
            return module
    return None
