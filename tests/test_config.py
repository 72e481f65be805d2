"""Unit tests for configuration loading."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from rich.console import Console
from rich.logging import RichHandler

from selfcheck.config import AuditConfig, CleanupConfig, FlagSystemConfig, read_config_file
from selfcheck.core.errors import ConfigError
from selfcheck.logging_setup import configure_logging


class TestAuditConfigDefaults:
    """Tests for default values."""

    def test_defaults(self) -> None:
        config = AuditConfig()

        assert config.artifacts_root == Path("major_checkpoint")
        assert config.max_active_snapshots == 5
        assert config.archive_retention_months == 12
        assert config.resource_threshold == 75.0
        assert config.skip_cleanup is False
        assert config.cleanup == CleanupConfig()
        assert config.flags.config_package == "config"
        assert config.flags.receivers == ["cfg", "c", "self"]

    def test_cleanup_defaults(self) -> None:
        cleanup = CleanupConfig()

        assert cleanup.storage_threshold == 80.0
        assert cleanup.max_retention_days == 7
        assert cleanup.custom_patterns == []
        assert cleanup.exclude_patterns == []

    def test_planning_docs_include_conflict_notes(self) -> None:
        assert "docs/dev/flag_conflicts.md" in FlagSystemConfig().planning_docs
        assert "README.md" in FlagSystemConfig().user_docs


class TestAuditConfigLoad:
    """Tests for AuditConfig.load and save."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert AuditConfig.load(tmp_path / "absent.yaml") == AuditConfig()

    def test_load_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "max_active_snapshots: 3\n"
            "skip_cleanup: true\n"
            "flags:\n"
            "  config_package: settings\n"
            "  field_overrides:\n"
            "    out: OutputPath\n"
            "cleanup:\n"
            "  exclude_patterns: ['keep-*']\n"
        )

        config = AuditConfig.load(path)

        assert config.max_active_snapshots == 3
        assert config.skip_cleanup is True
        assert config.flags.config_package == "settings"
        assert config.flags.field_overrides == {"out": "OutputPath"}
        assert config.cleanup.exclude_patterns == ["keep-*"]

    def test_load_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "selfcheck.toml"
        path.write_text(
            'artifacts_root = "reports"\n'
            "archive_retention_months = 6\n"
            "\n"
            "[cleanup]\n"
            "storage_threshold = 95.5\n"
        )

        config = AuditConfig.load(path)

        assert config.artifacts_root == Path("reports")
        assert config.archive_retention_months == 6
        assert config.cleanup.storage_threshold == 95.5

    def test_empty_yaml_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert AuditConfig.load(path) == AuditConfig()

    def test_invalid_values(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("max_active_snapshots: 0\n")

        with pytest.raises(ConfigError, match="invalid config file"):
            AuditConfig.load(path)

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError, match="must contain a mapping"):
            read_config_file(path)

    def test_broken_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("key: [unclosed\n")

        with pytest.raises(ConfigError, match="failed to decode"):
            AuditConfig.load(path)

    def test_save_then_load(self, tmp_path: Path) -> None:
        """Test that a saved configuration loads back equal."""
        config = AuditConfig(max_active_snapshots=2, verbose=True)
        config.flags.user_docs = ["docs/usage.md"]
        path = tmp_path / "nested" / "config.yaml"

        config.save(path)

        assert AuditConfig.load(path) == config


class TestConfigureLogging:
    """Tests for the rich logging hookup."""

    @pytest.fixture(autouse=True)
    def restore_logger(self):
        logger = logging.getLogger("selfcheck")
        handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
        yield
        logger.handlers = handlers
        logger.setLevel(level)
        logger.propagate = propagate

    def test_installs_rich_handler(self) -> None:
        configure_logging(verbose=True, console=Console(quiet=True))

        logger = logging.getLogger("selfcheck")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_default_level_is_info(self) -> None:
        configure_logging(console=Console(quiet=True))

        assert logging.getLogger("selfcheck").level == logging.INFO
