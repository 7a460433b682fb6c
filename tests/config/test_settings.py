"""
Tests for QA configuration loading.

These tests verify:
1. Defaults and derived paths
2. YAML loading and the errors raised for bad files
3. Environment overrides
4. Screenshot option merging
"""

from __future__ import annotations

from pathlib import Path

import pytest


class TestDefaults:
    """Test the default configuration."""

    def test_defaults(self) -> None:
        """Defaults match the conventional project layout."""
        from specqa.config import QAConfig

        config = QAConfig()

        assert config.base_url == "http://localhost:3001"
        assert config.default_timeout_ms == 30_000
        assert config.max_retries == 2
        assert config.specs_dir == Path(".kiro/specs")
        assert config.report_file == Path("QA/Tests-Summary.md")
        assert config.mcp_server_url is None

    def test_script_and_asset_paths(self) -> None:
        """Scripts live at {scripts}/{spec}/{spec}-test.{ext}."""
        from specqa.config import QAConfig

        config = QAConfig(scripts_dir=Path("out/scripts"), assets_dir=Path("out/assets"))

        assert config.script_path("password-toggle") == Path(
            "out/scripts/password-toggle/password-toggle-test.py"
        )
        assert config.asset_dir("password-toggle") == Path("out/assets/password-toggle")

    def test_retries_are_bounded(self) -> None:
        """max_retries outside 0..10 is rejected."""
        from pydantic import ValidationError

        from specqa.config import QAConfig

        with pytest.raises(ValidationError):
            QAConfig(max_retries=-1)


class TestFromYaml:
    """Test loading configuration from YAML."""

    def test_load(self, tmp_path) -> None:
        """Values in the file override defaults, including nested options."""
        from specqa.config import QAConfig

        config_file = tmp_path / "qa.yaml"
        config_file.write_text(
            "base_url: http://localhost:8080\n"
            "max_retries: 0\n"
            "screenshot:\n"
            "  format: jpeg\n"
            "  quality: 70\n",
            encoding="utf-8",
        )

        config = QAConfig.from_yaml(config_file)

        assert config.base_url == "http://localhost:8080"
        assert config.max_retries == 0
        assert config.screenshot.format == "jpeg"
        assert config.screenshot.max_width == 1920

    def test_empty_file_gives_defaults(self, tmp_path) -> None:
        """An empty YAML file is an empty mapping."""
        from specqa.config import QAConfig

        config_file = tmp_path / "qa.yaml"
        config_file.write_text("", encoding="utf-8")

        assert QAConfig.from_yaml(config_file) == QAConfig()

    @pytest.mark.parametrize(
        ("content", "message"),
        [
            ("base_url: [unclosed\n", "Invalid YAML"),
            ("- a\n- b\n", "must contain a mapping"),
            ("max_retries: many\n", "Invalid configuration"),
        ],
    )
    def test_invalid_files(self, tmp_path, content: str, message: str) -> None:
        """Malformed or invalid files raise ConfigError."""
        from specqa.config import QAConfig
        from specqa.exceptions import ConfigError

        config_file = tmp_path / "qa.yaml"
        config_file.write_text(content, encoding="utf-8")

        with pytest.raises(ConfigError, match=message) as exc_info:
            QAConfig.from_yaml(config_file)

        assert exc_info.value.stage == "configuration"

    def test_missing_file(self, tmp_path) -> None:
        """A missing file raises ConfigError."""
        from specqa.config import QAConfig
        from specqa.exceptions import ConfigError

        with pytest.raises(ConfigError, match="not found"):
            QAConfig.from_yaml(tmp_path / "absent.yaml")


class TestFromEnv:
    """Test environment overrides."""

    def test_env_overrides(self, monkeypatch) -> None:
        """SPECQA_* variables override the base configuration."""
        from specqa.config import QAConfig

        monkeypatch.setenv("SPECQA_BASE_URL", "http://staging.local")
        monkeypatch.setenv("SPECQA_MAX_RETRIES", "4")
        monkeypatch.setenv("MCP_PLAYWRIGHT_SERVER_URL", "http://localhost:8931/mcp")

        config = QAConfig.from_env(QAConfig(step_delay_ms=100))

        assert config.base_url == "http://staging.local"
        assert config.max_retries == 4
        assert config.mcp_server_url == "http://localhost:8931/mcp"
        assert config.step_delay_ms == 100

    def test_invalid_env_value(self, monkeypatch) -> None:
        """An unparseable value raises ConfigError."""
        from specqa.config import QAConfig
        from specqa.exceptions import ConfigError

        monkeypatch.setenv("SPECQA_TIMEOUT_MS", "soon")

        with pytest.raises(ConfigError, match="Invalid environment configuration"):
            QAConfig.from_env()


class TestScreenshotOptions:
    """Test screenshot option merging."""

    def test_merged_overrides(self) -> None:
        """Caller options win over defaults; the original is untouched."""
        from specqa.config import ScreenshotOptions

        defaults = ScreenshotOptions()
        merged = defaults.merged({"full_page": True, "quality": 60})

        assert merged.full_page is True
        assert merged.quality == 60
        assert merged.format == "png"
        assert defaults.full_page is False

    def test_merged_without_overrides(self) -> None:
        """No overrides returns an equal copy."""
        from specqa.config import ScreenshotOptions

        defaults = ScreenshotOptions(format="jpeg")

        assert defaults.merged(None) == defaults
