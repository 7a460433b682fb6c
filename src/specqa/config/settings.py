"""QA pipeline configuration.

This module provides:
1. ScreenshotOptions - Default capture options merged under caller overrides
2. BrowserOptions - Browser session options passed to Playwright MCP
3. QAConfig - The single configuration surface consumed by the pipeline

Values come from three layers, later layers winning:
- Field defaults below
- An optional YAML file (QAConfig.from_yaml)
- SPECQA_* environment variables (QAConfig.from_env)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from specqa.exceptions import ConfigError

logger = logging.getLogger(__name__)

# Environment variable -> QAConfig field
ENV_OVERRIDES: dict[str, str] = {
    "SPECQA_BASE_URL": "base_url",
    "SPECQA_TIMEOUT_MS": "default_timeout_ms",
    "SPECQA_MAX_RETRIES": "max_retries",
    "SPECQA_SPECS_DIR": "specs_dir",
    "SPECQA_SCRIPTS_DIR": "scripts_dir",
    "SPECQA_ASSETS_DIR": "assets_dir",
    "SPECQA_REPORT_FILE": "report_file",
    "MCP_PLAYWRIGHT_SERVER_URL": "mcp_server_url",
}


class ScreenshotOptions(BaseModel):
    """Screenshot capture options.

    Attributes:
        full_page: Capture the full scrollable page instead of the viewport
        quality: Encoder quality (1-100)
        format: Image format (png or jpeg)
        max_width: Images wider than this are downscaled
        max_height: Images taller than this are downscaled
    """

    full_page: bool = Field(default=False, description="Capture full page")
    quality: int = Field(default=90, ge=1, le=100, description="Encoder quality")
    format: Literal["png", "jpeg"] = Field(default="png", description="Image format")
    max_width: int = Field(default=1920, gt=0, description="Maximum width in pixels")
    max_height: int = Field(default=1080, gt=0, description="Maximum height in pixels")

    def merged(self, overrides: dict[str, Any] | None) -> ScreenshotOptions:
        """Return a copy with caller-supplied options merged over these."""
        if not overrides:
            return self.model_copy()
        return self.model_validate({**self.model_dump(), **overrides})


class BrowserOptions(BaseModel):
    """Browser session options."""

    browser: Literal["chromium", "firefox", "webkit"] = Field(default="chromium")
    headless: bool = Field(default=True)
    viewport_width: int = Field(default=1920, gt=0)
    viewport_height: int = Field(default=1080, gt=0)
    ignore_https_errors: bool = Field(default=True)
    slow_mo: int = Field(default=0, ge=0, description="Delay between actions in ms")


class QAConfig(BaseModel):
    """Configuration for the QA pipeline.

    Attributes:
        base_url: Origin of the application under test
        default_timeout_ms: Timeout for element waits and network-bound actions
        max_retries: Retries per failed step (total attempts = max_retries + 1)
        step_delay_ms: Pause between steps, 0 disables it
        specs_dir: Root directory holding one folder per specification
        scripts_dir: Root directory for generated test scripts
        assets_dir: Root directory for screenshot assets
        report_file: Path of the cumulative markdown report
        script_extension: File extension of generated scripts
        screenshot: Default screenshot options
        browser: Browser session options
        mcp_server_url: Playwright MCP server URL (None disables MCP)
        mcp_timeout: Playwright MCP request timeout in seconds
    """

    base_url: str = Field(default="http://localhost:3001", description="Application URL")
    default_timeout_ms: int = Field(default=30_000, gt=0, description="Step timeout")
    max_retries: int = Field(default=2, ge=0, le=10, description="Max step retries")
    step_delay_ms: int = Field(default=0, ge=0, description="Delay between steps")
    specs_dir: Path = Field(default=Path(".kiro/specs"))
    scripts_dir: Path = Field(default=Path("QA/scripts"))
    assets_dir: Path = Field(default=Path("QA/assets"))
    report_file: Path = Field(default=Path("QA/Tests-Summary.md"))
    script_extension: str = Field(default="py", min_length=1)
    screenshot: ScreenshotOptions = Field(default_factory=ScreenshotOptions)
    browser: BrowserOptions = Field(default_factory=BrowserOptions)
    mcp_server_url: str | None = Field(default=None)
    mcp_timeout: float = Field(default=60.0, gt=0)

    @classmethod
    def from_yaml(cls, path: Path | str) -> QAConfig:
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML file

        Returns:
            QAConfig built from the file contents

        Raises:
            ConfigError: If the file is missing, malformed or invalid
        """
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            with config_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")

        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e

        logger.info("Loaded QA configuration from %s", config_path)
        return config

    @classmethod
    def from_env(cls, base: QAConfig | None = None) -> QAConfig:
        """Overlay SPECQA_* environment variables on a base configuration.

        Args:
            base: Configuration to start from (defaults when None)

        Returns:
            New QAConfig with environment overrides applied

        Raises:
            ConfigError: If an environment value is invalid
        """
        data = (base or cls()).model_dump()
        for env_name, field_name in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                data[field_name] = value

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid environment configuration: {e}") from e

    def script_path(self, spec_name: str) -> Path:
        """Return {scripts_dir}/{spec}/{spec}-test.{ext}."""
        return self.scripts_dir / spec_name / f"{spec_name}-test.{self.script_extension}"

    def asset_dir(self, spec_name: str) -> Path:
        """Return {assets_dir}/{spec}."""
        return self.assets_dir / spec_name
