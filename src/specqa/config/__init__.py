"""Configuration for the QA pipeline.

This package contains configuration for:
- Application under test (base URL, timeouts, retries)
- Artifact locations (specs, scripts, assets, report)
- Screenshot and browser defaults
"""

from .settings import BrowserOptions, QAConfig, ScreenshotOptions

__all__ = ["BrowserOptions", "QAConfig", "ScreenshotOptions"]
