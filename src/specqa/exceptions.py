"""
QA pipeline exceptions.

Every failure the pipeline surfaces to a caller derives from QAError and
names the pipeline stage it came from. Parse gaps and generation gaps are
not exceptions; they degrade to empty results instead.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class QAError(Exception):
    """
    Base exception for the QA pipeline.

    Attributes:
        message: Human-readable description of the failure
        stage: Pipeline stage that raised it (spec-analysis, test-generation,
            test-execution, report-generation, configuration)
    """

    message: str
    stage: str = "qa"

    def __post_init__(self) -> None:
        """Initialize the exception with the message."""
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


@dataclass
class ConfigError(QAError):
    """Raised when the QA configuration cannot be loaded or is invalid."""

    stage: str = "configuration"


@dataclass
class SpecNotFoundError(QAError):
    """Raised when a specification folder does not exist."""

    spec_name: str | None = None
    stage: str = "spec-analysis"


@dataclass
class SpecReadError(QAError):
    """Raised when a specification folder exists but cannot be read."""

    spec_name: str | None = None
    stage: str = "spec-analysis"


@dataclass
class ScriptGenerationError(QAError):
    """Raised when a test script cannot be generated or saved."""

    spec_name: str | None = None
    stage: str = "test-generation"


@dataclass
class BrowserSetupError(QAError):
    """Raised when the browser session cannot be initialized.

    Fatal for the current execute_test call; no partial TestResult is built.
    """

    stage: str = "test-execution"


@dataclass
class BrowserActionError(QAError):
    """Raised by a browser integration when a single action fails."""

    action: str | None = None
    stage: str = "test-execution"


@dataclass
class ScreenshotError(QAError):
    """Raised when a screenshot cannot be captured or written."""

    step_id: str | None = None
    stage: str = "test-execution"


@dataclass
class ReportGenerationError(QAError):
    """Raised when the summary report cannot be written."""

    stage: str = "report-generation"
