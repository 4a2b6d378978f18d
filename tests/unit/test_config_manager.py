"""
Unit tests for ConfigManager.

Tests built-in defaults, YAML deep-merging, dot-notation reads and runtime
overrides.
"""

import pytest

from zdefense.core.config.manager import ConfigManager


@pytest.mark.unit
class TestConfigManagerDefaults:
    """Test behaviour without any YAML files."""

    def test_builtin_defaults(self):
        config = ConfigManager()

        assert config.get("progression.base_xp_per_level") == 1000
        assert config.get("cosmetics.default_loadout_name") == "Default"
        assert config.get_float("events.listener_timeout_seconds", 1.0) == 5.0

    def test_missing_key_returns_default(self):
        config = ConfigManager()

        assert config.get("progression.unknown", 42) == 42
        assert config.get("nope.nested.key") is None

    def test_missing_directory_keeps_defaults(self, tmp_path):
        """A config directory that does not exist is not an error."""
        config = ConfigManager(config_dir=tmp_path / "absent")
        config.load()

        assert config.get("progression.base_xp_per_level") == 1000
        assert config.loaded_files == []


@pytest.mark.unit
class TestConfigManagerYAML:
    """Test loading YAML files from the config directory."""

    def test_yaml_overrides_defaults(self, tmp_path):
        (tmp_path / "progression.yaml").write_text(
            "progression:\n  base_xp_per_level: 500\n", encoding="utf-8"
        )
        config = ConfigManager(config_dir=tmp_path)
        config.load()

        assert config.get_int("progression.base_xp_per_level", 1000) == 500
        assert config.loaded_files == ["progression.yaml"]

    def test_deep_merge_keeps_sibling_keys(self, tmp_path):
        """Merging one nested key leaves the other defaults in place."""
        (tmp_path / "cosmetics.yml").write_text(
            "cosmetics:\n  extra: true\n", encoding="utf-8"
        )
        config = ConfigManager(config_dir=tmp_path)
        config.load()

        assert config.get("cosmetics.extra") is True
        assert config.get("cosmetics.default_loadout_name") == "Default"

    def test_malformed_yaml_is_skipped(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("progression: [unclosed\n", encoding="utf-8")
        config = ConfigManager(config_dir=tmp_path)
        config.load()

        assert config.get("progression.base_xp_per_level") == 1000
        assert config.loaded_files == []


@pytest.mark.unit
class TestConfigManagerOverrides:
    """Test runtime overrides."""

    def test_override_wins_and_clears(self):
        config = ConfigManager()
        config.set_override("progression.base_xp_per_level", 250)

        assert config.get_int("progression.base_xp_per_level", 1000) == 250

        config.clear_overrides()
        assert config.get_int("progression.base_xp_per_level", 1000) == 1000

    def test_non_numeric_value_falls_back(self):
        config = ConfigManager()
        config.set_override("progression.base_xp_per_level", "lots")

        assert config.get_int("progression.base_xp_per_level", 1000) == 1000
