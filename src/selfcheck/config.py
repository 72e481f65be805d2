"""Configuration management for selfcheck."""

from __future__ import annotations

import tomllib
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from selfcheck.core.errors import ConfigError

DEFAULT_CONFIG_PATH = Path(".selfcheck/config.yaml")


class CleanupPattern(BaseModel):
    """A glob rule naming scratch entries the reclaimer may remove."""

    pattern: str = Field(description="Shell-style glob matched against entry names")
    description: str = ""
    enabled: bool = True


class CleanupConfig(BaseModel):
    """Reclaimer settings, read from the ``cleanup`` block."""

    storage_threshold: float = Field(
        default=80.0,
        description="Storage usage percentage above which cleanup is suggested",
    )
    max_retention_days: int = Field(
        default=7,
        description="Maximum age of temporary files (informational)",
    )
    custom_patterns: list[CleanupPattern] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(
        default_factory=list,
        description="Globs that protect entries even when an include pattern matches",
    )


class FlagSystemConfig(BaseModel):
    """Where the flag reconciliation engine looks, and what it looks for."""

    config_package: str = Field(default="config", description="Package holding flag registrations")
    main_module: str = Field(default="__main__", description="Module holding the program entry")
    receivers: list[str] = Field(
        default_factory=lambda: ["cfg", "c", "self"],
        description="Names through which configuration fields are referenced",
    )
    registration_suffixes: list[str] = Field(default_factory=lambda: ["_var", "_var_p"])
    short_marker: str = Field(default="_p", description="Suffix marking a long+short registration")
    user_docs: list[str] = Field(
        default_factory=lambda: [
            "README.md",
            "docs/user/command-reference.md",
            "docs/user/examples.md",
            "docs/user/filtering.md",
            "docs/user/dry-run.md",
            "docs/user/incremental.md",
        ]
    )
    planning_docs: list[str] = Field(
        default_factory=lambda: [
            "docs/checkpoint/design.md",
            "docs/checkpoint/requirements.md",
            "docs/remediation/plan.md",
            "docs/remediation/tasks.md",
            "docs/dev/flag_conflicts.md",
            "docs/design/roadmap.md",
        ]
    )
    field_overrides: dict[str, str] = Field(
        default_factory=dict,
        description="Extra flag -> field name entries layered over the built-in table",
    )


class AuditConfig(BaseModel):
    """Top-level selfcheck configuration."""

    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)
    flags: FlagSystemConfig = Field(default_factory=FlagSystemConfig)
    artifacts_root: Path = Field(
        default=Path("major_checkpoint"),
        description="Root of the latest/snapshots/archive artifact layout",
    )
    max_active_snapshots: int = Field(default=5, ge=1)
    archive_retention_months: int = Field(default=12, ge=0)
    resource_threshold: float = Field(
        default=75.0,
        description="Storage usage percentage that triggers a warning before analysis",
    )
    skip_cleanup: bool = Field(default=False, description="Skip the post-run reclaimer pass")
    verbose: bool = False

    @classmethod
    def load(cls, config_path: Path | None = None) -> AuditConfig:
        """Load configuration from file or use defaults.

        ``.toml`` files are read with tomllib, anything else as YAML.
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        if not config_path.exists():
            return cls()

        data = read_config_file(config_path)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"invalid config file {config_path}: {e}") from e

    def save(self, config_path: Path) -> None:
        """Save configuration to file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)


def read_config_file(config_path: Path) -> dict[str, object]:
    """Decode a YAML or TOML config file into a dict."""
    try:
        if config_path.suffix == ".toml":
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        else:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to decode config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config file {config_path} must contain a mapping")
    return data
