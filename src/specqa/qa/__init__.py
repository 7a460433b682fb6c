"""QA pipeline: specification analysis, script generation, execution and reporting.

Stages, in data-flow order:
- SpecAnalyzer: EARS acceptance criteria from requirements.md
- TestScriptGenerator: step plan plus a standalone pytest/Playwright module
- TestRunner: executes the step plan through a BrowserIntegration
- ScreenshotManager: evidence screenshots and per-spec asset metadata
- ReportGenerator: the cumulative Tests-Summary.md report

Exports:
    QAPipeline: LangGraph workflow running all stages
    SpecAnalyzer, TestScriptGenerator, TestRunner, ScreenshotManager,
    ReportGenerator: The individual stages
    BrowserIntegration, MCPPlaywrightBrowser: Browser boundary

Example:
    from specqa.config import QAConfig
    from specqa.qa import QAPipeline

    pipeline = QAPipeline.from_config(QAConfig.from_env())
    result = await pipeline.run("password-toggle")
    if result.success:
        print("All checks passed!")
"""

from specqa.qa.analyzer import SpecAnalyzer
from specqa.qa.browser import BrowserIntegration, MCPPlaywrightBrowser
from specqa.qa.generator import TestScriptGenerator
from specqa.qa.pipeline import QAPipeline
from specqa.qa.report import ReportGenerator
from specqa.qa.runner import TestRunner
from specqa.qa.screenshots import ScreenshotManager
from specqa.qa.spec_files import SpecRepository
from specqa.qa.state import PipelineState

__all__ = [
    "BrowserIntegration",
    "MCPPlaywrightBrowser",
    "PipelineState",
    "QAPipeline",
    "ReportGenerator",
    "ScreenshotManager",
    "SpecAnalyzer",
    "SpecRepository",
    "TestRunner",
    "TestScriptGenerator",
]
