"""Pydantic models for the QA pipeline.

This module defines the records that flow through the four pipeline stages:

- Spec analysis: EARSMatch, AcceptanceCriterion, Requirement, SpecFiles, SpecMetadata
- Script generation: TestAction, TestStep, TestMetadata, TestScript
- Execution: StepResult, TestResult, ScreenshotMetadata, AssetDirectoryInfo
- Reporting: SpecSection, QASummary, QAIssue, ReportData, QARunResult

Data flows strictly forward: document text -> criteria -> script/steps ->
execution results -> report. A stage never edits records produced by an
earlier stage.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------


class TestCategory(str, Enum):
    """Category assigned to an acceptance criterion by keyword classification."""

    __test__ = False

    UI_INTERACTION = "ui-interaction"
    FORM_VALIDATION = "form-validation"
    NAVIGATION = "navigation"
    ACCESSIBILITY = "accessibility"


class RequirementPattern(str, Enum):
    """EARS sentence templates recognised by the analyzer."""

    WHEN_THEN = "WHEN_THEN"
    IF_THEN = "IF_THEN"


class ActionType(str, Enum):
    """Browser action kinds a TestStep can carry."""

    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    WAIT = "wait"
    ASSERT = "assert"
    SCREENSHOT = "screenshot"


class StepStatus(str, Enum):
    """Terminal status of one executed step."""

    PASSED = "Passed"
    FAILED = "Failed"
    SKIPPED = "Skipped"


class OverallStatus(str, Enum):
    """Status of one executed script. Failed iff any step failed."""

    PASSED = "Passed"
    FAILED = "Failed"


class SectionStatus(str, Enum):
    """Status of a spec section. Mixed iff its results disagree."""

    PASSED = "Passed"
    FAILED = "Failed"
    MIXED = "Mixed"


class SpecStatus(str, Enum):
    """Completion status of a specification folder, derived from tasks.md."""

    COMPLETED = "completed"
    IN_PROGRESS = "in-progress"
    NOT_STARTED = "not-started"


class QAIssueType(str, Enum):
    """Pipeline stage a recorded issue belongs to."""

    SPEC_ANALYSIS = "spec-analysis"
    TEST_GENERATION = "test-generation"
    TEST_EXECUTION = "test-execution"
    REPORT_GENERATION = "report-generation"


# -----------------------------------------------------------------------------
# Spec analysis
# -----------------------------------------------------------------------------


class SpecFiles(BaseModel):
    """Raw contents of a specification folder."""

    requirements: str = Field(description="requirements.md contents")
    design: str = Field(default="", description="design.md contents")
    tasks: str = Field(default="", description="tasks.md contents")


class SpecMetadata(BaseModel):
    """Metadata describing a specification folder.

    Attributes:
        name: Folder name of the specification
        path: Folder path
        status: Completion status derived from tasks.md checkboxes
        last_modified: Newest modification time across the spec files
        has_requirements: Whether requirements.md exists
        has_design: Whether design.md exists
        has_tasks: Whether tasks.md exists
    """

    name: str
    path: Path
    status: SpecStatus
    last_modified: datetime
    has_requirements: bool = False
    has_design: bool = False
    has_tasks: bool = False


class EARSMatch(BaseModel):
    """A sentence matched against an EARS template.

    Attributes:
        pattern: Which template matched
        condition: Text between WHEN/IF and THEN
        system: Subject between THEN and SHALL
        response: Behavior after SHALL
        full_match: The whole matched sentence
    """

    pattern: RequirementPattern
    condition: str
    system: str
    response: str
    full_match: str


class AcceptanceCriterion(BaseModel):
    """One acceptance criterion extracted from a specification.

    Immutable once created. Criteria with testable=False are carried for
    traceability but produce no test steps.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="<requirementNumber>.<criterionIndex>")
    description: str = Field(description="The full criterion sentence")
    testable: bool = Field(description="Whether the behavior is UI-observable")
    category: TestCategory = Field(description="Classified test category")
    requirement_id: str = Field(description="Owning requirement number")
    user_story: str = Field(default="", description="Owning requirement's user story")
    steps: list[TestStep] = Field(default_factory=list, description="Pre-built steps")
    ears: EARSMatch | None = Field(default=None, description="Parsed EARS parts")


class Requirement(BaseModel):
    """A requirement section with its user story and acceptance criteria."""

    id: str
    user_story: str = ""
    acceptance_criteria: list[AcceptanceCriterion] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Script generation
# -----------------------------------------------------------------------------


class TestAction(BaseModel):
    """A tagged browser action.

    Variants by type:
        navigate(value=url)
        click(selector, options)
        type(selector, value, options)
        wait(selector) or wait(duration_ms)
        assert(selector, options={"validation": kind})
        screenshot()
    """

    __test__ = False

    type: ActionType
    selector: str | None = None
    value: str | None = None
    duration_ms: int | None = Field(default=None, ge=0)
    timeout: int | None = Field(default=None, gt=0, description="Timeout in ms")
    options: dict[str, Any] = Field(default_factory=dict)


class TestStep(BaseModel):
    """One step of a test script. Script order is execution order."""

    __test__ = False

    id: str
    description: str
    action: TestAction
    expected_result: str = ""
    screenshot_name: str = ""
    category: TestCategory
    timeout: int | None = Field(default=None, gt=0)


class TestMetadata(BaseModel):
    """Metadata attached to a generated script."""

    __test__ = False

    spec_name: str
    generated_at: datetime
    version: str = "1.0.0"
    total_steps: int = 0
    estimated_duration: int = Field(default=0, description="Estimated runtime in ms")


class TestScript(BaseModel):
    """A generated test script.

    `steps` is the structured plan the runner drives; `content` is derived
    executable source and is never re-parsed.
    """

    __test__ = False

    file_name: str
    spec_name: str
    content: str
    steps: list[TestStep] = Field(default_factory=list)
    metadata: TestMetadata


# -----------------------------------------------------------------------------
# Execution
# -----------------------------------------------------------------------------


class StepResult(BaseModel):
    """Result of executing one TestStep."""

    step_id: str
    description: str
    expected_result: str = ""
    status: StepStatus
    screenshot: str | None = None
    error_message: str | None = None
    attempts: int = Field(default=1, ge=0)
    execution_time: float = Field(default=0.0, description="Duration in ms")
    timestamp: datetime


class TestResult(BaseModel):
    """Result of executing one TestScript.

    Invariants:
        steps map 1:1 and in order to the script's TestSteps
        screenshots == the non-empty step screenshots, in order
        overall_status is Failed iff any step failed
    """

    __test__ = False

    spec_name: str
    test_script: str = Field(description="File name of the executed script")
    steps: list[StepResult] = Field(default_factory=list)
    overall_status: OverallStatus = OverallStatus.PASSED
    execution_time: float = Field(default=0.0, description="Duration in ms")
    screenshots: list[str] = Field(default_factory=list)
    start_time: datetime
    end_time: datetime
    error_summary: str | None = None


class ScreenshotMetadata(BaseModel):
    """A captured screenshot file."""

    filename: str
    path: str
    file_size: int = 0
    step_id: str
    spec_name: str
    captured_at: datetime
    width: int | None = None
    height: int | None = None


class AssetDirectoryStructure(BaseModel):
    """Directories and sidecar file for one specification's assets."""

    spec_name: str
    asset_dir: Path
    screenshot_dir: Path
    error_dir: Path
    metadata_file: Path


class AssetDirectoryInfo(BaseModel):
    """Summary of one specification's asset directory."""

    exists: bool
    screenshot_count: int = 0
    total_size: int = 0
    last_updated: datetime | None = None


# -----------------------------------------------------------------------------
# Reporting
# -----------------------------------------------------------------------------


class SpecSection(BaseModel):
    """All TestResults sharing one spec name."""

    spec_name: str
    description: str
    test_results: list[TestResult] = Field(default_factory=list)
    overall_status: SectionStatus
    last_executed: datetime
    screenshot_count: int = 0
    execution_time: float = 0.0


class QASummary(BaseModel):
    """Aggregate counters for a report."""

    total_specs: int = 0
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0
    execution_time: float = 0.0
    screenshots_captured: int = 0


class QAIssue(BaseModel):
    """A non-fatal problem recorded during a pipeline run."""

    type: QAIssueType
    message: str
    spec_name: str | None = None
    step_id: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)
    stack: str | None = None


class ReportData(BaseModel):
    """Everything needed to render the summary report."""

    generated_at: datetime
    summary: QASummary = Field(default_factory=QASummary)
    spec_sections: list[SpecSection] = Field(default_factory=list)
    pending_specs: list[str] = Field(
        default_factory=list,
        description="Specifications that exist but have no results yet",
    )
    errors: list[QAIssue] = Field(default_factory=list)


class QARunResult(BaseModel):
    """Result of a complete pipeline run."""

    success: bool
    spec_name: str
    test_results: list[TestResult] = Field(default_factory=list)
    summary: QASummary = Field(default_factory=QASummary)
    pending_specs: list[str] = Field(default_factory=list)
    errors: list[QAIssue] = Field(default_factory=list)
    report_path: str | None = None


AcceptanceCriterion.model_rebuild()
