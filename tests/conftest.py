"""Shared fixtures for selfcheck tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from selfcheck.core.engine import AnalysisContext
from selfcheck.core.workspace import MemoryWorkspace, Workspace, new_workspace

CONFIG_CLI = '''\
"""Flag registration for myapp."""

HELP_TEXT = """Usage: myapp [flags]

  --verbose, -v   Enable verbose output
  --dry-run       Show what would happen
"""


def register(flags, cfg):
    flags.bool_var_p(cfg, "verbose", "v", False, "Enable verbose output")
    flags.bool_var(cfg, "dry-run", False, "Show what would happen")
    flags.string_var(cfg, "format", "text", "Output format")
    flags.bool_var(cfg, "hidden-mode", False, "Undocumented switch")


def apply(cfg):
    if cfg.Verbose:
        cfg.DryRun = cfg.DryRun or False
    cfg.OutputFormat = cfg.OutputFormat.lower()
'''

MAIN_MODULE = '''\
def main(cfg):
    if cfg.Verbose:
        print("verbose")
    if cfg.HiddenMode:
        print("hidden")
'''

README = """\
# myapp

Run `myapp --verbose` for chatty output or `myapp --format json` for JSON.
"""

PLANNING = """\
# Flag plan

Keep --verbose. Add --recursive in the next milestone.
"""


@pytest.fixture
def ctx() -> AnalysisContext:
    """A fresh, never-cancelled analysis context."""
    return AnalysisContext()


@pytest.fixture
def memory_workspace() -> Workspace:
    """An in-memory workspace."""
    return MemoryWorkspace()


@pytest.fixture
def workspace_factory(tmp_path: Path):
    """Workspace factory that keeps disk workspaces under tmp_path."""
    base = tmp_path / "scratch"
    base.mkdir()

    def factory(use_memory: bool) -> Workspace:
        return new_workspace(use_memory, base_dir=base)

    return factory


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """A small project with flag registrations, a main entry and docs."""
    root = tmp_path / "project"
    config_dir = root / "myapp" / "config"
    config_dir.mkdir(parents=True)
    (config_dir / "__init__.py").write_text("")
    (config_dir / "cli.py").write_text(CONFIG_CLI)
    (root / "myapp" / "__main__.py").write_text(MAIN_MODULE)
    (root / "README.md").write_text(README)
    docs_dev = root / "docs" / "dev"
    docs_dev.mkdir(parents=True)
    (docs_dev / "flag_conflicts.md").write_text(PLANNING)
    return root
