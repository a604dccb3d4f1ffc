"""Tests for config loading."""

from __future__ import annotations

from pathlib import Path

from ashen.core.config import AshenConfig, ensure_gitignore, get_ashen_dir, load_config


class TestLoadConfig:
    def test_defaults_when_no_config_file(self, tmp_path: Path):
        """Without an ashen.toml, load_config should return defaults."""
        config = load_config(tmp_path)

        assert isinstance(config, AshenConfig)
        assert config.grouping.scan_limit == 100
        assert config.grouping.safe_categories == ["TypeError"]
        assert config.grouping.minutes_per_error == 2
        assert config.fix.success_rate == 0.9
        assert config.fix.seed is None
        assert config.fix.resolve_on_success is True
        assert config.storage.database == "ashen.db"
        assert config.storage.encrypt is True

    def test_loads_all_sections(self, tmp_path: Path):
        toml_content = """\
[grouping]
scan_limit = 50
safe_categories = ["TypeError", "ReferenceError"]
minutes_per_error = 3

[fix]
success_rate = 0.5
seed = 7
resolve_on_success = false
applied_by = "night-shift"

[storage]
database = "other.db"
encrypt = false
"""
        (tmp_path / "ashen.toml").write_text(toml_content)
        config = load_config(tmp_path)

        assert config.grouping.scan_limit == 50
        assert config.grouping.safe_categories == ["TypeError", "ReferenceError"]
        assert config.grouping.minutes_per_error == 3
        assert config.fix.success_rate == 0.5
        assert config.fix.seed == 7
        assert config.fix.resolve_on_success is False
        assert config.fix.applied_by == "night-shift"
        assert config.storage.database == "other.db"
        assert config.storage.encrypt is False

    def test_partial_section_keeps_other_defaults(self, tmp_path: Path):
        (tmp_path / "ashen.toml").write_text("[fix]\nseed = 1\n")
        config = load_config(tmp_path)
        assert config.fix.seed == 1
        assert config.fix.success_rate == 0.9
        assert config.grouping.scan_limit == 100

    def test_success_rate_is_clamped(self, tmp_path: Path):
        (tmp_path / "ashen.toml").write_text("[fix]\nsuccess_rate = 4\n")
        assert load_config(tmp_path).fix.success_rate == 1.0

        (tmp_path / "ashen.toml").write_text("[fix]\nsuccess_rate = -0.5\n")
        assert load_config(tmp_path).fix.success_rate == 0.0


class TestAshenDir:
    def test_creates_directory(self, tmp_path: Path):
        ashen_dir = get_ashen_dir(tmp_path)
        assert ashen_dir == tmp_path / ".ashen"
        assert ashen_dir.is_dir()

    def test_gitignore_created(self, tmp_path: Path):
        ensure_gitignore(tmp_path)
        assert (tmp_path / ".gitignore").read_text() == ".ashen/\n"

    def test_gitignore_appended_once(self, tmp_path: Path):
        (tmp_path / ".gitignore").write_text("node_modules/")
        ensure_gitignore(tmp_path)
        ensure_gitignore(tmp_path)
        assert (tmp_path / ".gitignore").read_text() == "node_modules/\n.ashen/\n"
