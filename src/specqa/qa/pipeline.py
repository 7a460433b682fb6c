"""QA pipeline orchestration using LangGraph.

This module wires the four stages into one workflow:

    START -> scan_specs -> [conditional]
                           |-> process_spec -> [loop per spec]
                           |                   |-> write_report -> END
                           |-> error -> END

process_spec reads, parses, generates, saves and executes one spec. A
failure in any of those stages is recorded as a QAIssue plus a synthetic
Failed TestResult; the remaining specs still run. Specs without testable
criteria are listed as pending in the report.

The browser session is set up by the first execution and torn down before
the report is written.
"""

from __future__ import annotations

import logging
import traceback
import uuid
from datetime import datetime
from typing import Any

from langgraph.graph import END, START, StateGraph

from specqa.config import QAConfig
from specqa.exceptions import ConfigError, QAError, SpecNotFoundError
from specqa.logging_config import run_id_var
from specqa.mcp import MCPClient
from specqa.qa.analyzer import SpecAnalyzer
from specqa.qa.browser import BrowserIntegration, MCPPlaywrightBrowser
from specqa.qa.generator import TestScriptGenerator
from specqa.qa.models import (
    OverallStatus,
    QAIssue,
    QAIssueType,
    QARunResult,
    TestResult,
)
from specqa.qa.report import ReportGenerator
from specqa.qa.runner import TestRunner
from specqa.qa.screenshots import ScreenshotManager
from specqa.qa.spec_files import SpecRepository
from specqa.qa.state import PipelineState

logger = logging.getLogger(__name__)

# Graph steps besides process_spec: scan_specs, write_report, plus headroom
GRAPH_STEP_OVERHEAD = 10


class QAPipeline:
    """Runs the complete QA process for one or all completed specs.

    Attributes:
        config: QA configuration
        repository: Spec folder access
        analyzer: SpecAnalyzer for criteria extraction
        generator: TestScriptGenerator for scripts
        runner: TestRunner owning the browser session
        reporter: ReportGenerator for the summary report
        graph: Compiled LangGraph workflow

    Example:
        pipeline = QAPipeline.from_config(QAConfig.from_env())
        result = await pipeline.run()
        print(result.summary.failed_tests)
    """

    def __init__(
        self,
        config: QAConfig,
        browser: BrowserIntegration,
        runner: TestRunner | None = None,
        reporter: ReportGenerator | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: QA configuration
            browser: Browser integration used for execution and screenshots
            runner: Optional TestRunner (built from browser when None)
            reporter: Optional ReportGenerator (built from config when None)
        """
        self.config = config
        self.repository = SpecRepository(config.specs_dir)
        self.analyzer = SpecAnalyzer(self.repository)
        self.generator = TestScriptGenerator(config)
        self.runner = runner or TestRunner(
            browser,
            ScreenshotManager(browser, config.assets_dir, config.screenshot),
            config,
        )
        self.reporter = reporter or ReportGenerator(
            config.report_file,
            scripts_dir=config.scripts_dir,
            specs_dir=config.specs_dir,
        )
        self.graph = self._build_graph()

    @classmethod
    def from_config(cls, config: QAConfig) -> QAPipeline:
        """Build a pipeline driving the Playwright MCP server.

        Raises:
            ConfigError: If no MCP server URL is configured
        """
        if not config.mcp_server_url:
            raise ConfigError(
                "Playwright MCP server URL is not configured "
                "(set mcp_server_url or MCP_PLAYWRIGHT_SERVER_URL)"
            )
        client = MCPClient(
            server_url=config.mcp_server_url,
            server_name="playwright",
            timeout=config.mcp_timeout,
        )
        return cls(config, MCPPlaywrightBrowser(client))

    def _build_graph(self) -> Any:
        """Build the LangGraph pipeline workflow.

        Returns:
            Compiled LangGraph workflow
        """
        workflow = StateGraph(PipelineState)

        workflow.add_node("scan_specs", self._scan_specs_node)
        workflow.add_node("process_spec", self._process_spec_node)
        workflow.add_node("write_report", self._write_report_node)

        workflow.add_edge(START, "scan_specs")
        workflow.add_conditional_edges(
            "scan_specs",
            self._route_after_scan,
            {
                "process_spec": "process_spec",
                "error": END,
            },
        )
        workflow.add_conditional_edges(
            "process_spec",
            self._route_after_process,
            {
                "process_spec": "process_spec",
                "write_report": "write_report",
            },
        )
        workflow.add_edge("write_report", END)

        return workflow.compile()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def run(self, spec_name: str | None = None) -> QARunResult:
        """Execute the QA process for one spec, or for every completed spec.

        Args:
            spec_name: Spec to process (None processes all completed specs)

        Returns:
            QARunResult with per-spec results, summary and recorded issues

        Raises:
            SpecNotFoundError: If no completed spec exists or spec_name is unknown
            ReportGenerationError: If the report cannot be written
        """
        token = run_id_var.set(str(uuid.uuid4())[:8])
        try:
            logger.info("Starting QA run for %s", spec_name or "all completed specs")

            initial_state: PipelineState = {
                "requested_spec": spec_name,
                "spec_names": [],
                "current_index": 0,
                "test_results": [],
                "pending_specs": [],
                "errors": [],
                "status": "scanning",
                "error": None,
                "report_path": None,
            }
            recursion_limit = len(self.repository.scan_specs()) + GRAPH_STEP_OVERHEAD
            final_state = await self.graph.ainvoke(
                initial_state,
                config={"recursion_limit": recursion_limit},
            )

            if final_state["status"] == "error":
                raise SpecNotFoundError(
                    final_state["error"] or "No specifications found",
                    spec_name=spec_name,
                )

            results: list[TestResult] = final_state["test_results"]
            errors: list[QAIssue] = final_state["errors"]
            summary = self.reporter.generate_summary(results)
            run_result = QARunResult(
                success=summary.failed_tests == 0 and not errors,
                spec_name=spec_name or "all",
                test_results=results,
                summary=summary,
                pending_specs=final_state["pending_specs"],
                errors=errors,
                report_path=final_state["report_path"],
            )
            logger.info(
                "QA run complete: %d passed, %d failed, %d skipped, %d pending",
                summary.passed_tests,
                summary.failed_tests,
                summary.skipped_tests,
                len(run_result.pending_specs),
            )
            return run_result
        finally:
            run_id_var.reset(token)

    def validate_system(self) -> dict[str, Any]:
        """Check that the configured directories exist.

        Returns:
            Dictionary with "valid" (bool) and "issues" (list of messages)
        """
        checks = (
            ("Specs directory", self.config.specs_dir),
            ("QA scripts directory", self.config.scripts_dir),
            ("QA assets directory", self.config.assets_dir),
        )
        issues = [f"{label} not found: {path}" for label, path in checks if not path.is_dir()]
        for issue in issues:
            logger.warning(issue)
        return {"valid": not issues, "issues": issues}

    def get_specs_status(self) -> list[str]:
        """List the completed specs a run would process."""
        return self.analyzer.scan_specs(completed_only=True)

    # -------------------------------------------------------------------------
    # Workflow Nodes
    # -------------------------------------------------------------------------

    async def _scan_specs_node(self, state: PipelineState) -> dict[str, Any]:
        available = self.analyzer.scan_specs(completed_only=True)
        if not available:
            return {
                "status": "error",
                "error": f"No completed specifications found in {self.config.specs_dir}",
            }

        requested = state["requested_spec"]
        if requested is None:
            targets = available
        elif requested in available:
            targets = [requested]
        else:
            return {
                "status": "error",
                "error": f"Specification '{requested}' not found or not completed",
            }

        logger.info("Processing %d specification(s): %s", len(targets), ", ".join(targets))
        return {"spec_names": targets, "current_index": 0, "status": "processing"}

    async def _process_spec_node(self, state: PipelineState) -> dict[str, Any]:
        index = state["current_index"]
        spec_name = state["spec_names"][index]
        updates: dict[str, Any] = {"current_index": index + 1}

        try:
            files = self.repository.read_spec_files(spec_name)
            criteria = self.analyzer.extract_criteria(files.requirements)
            if not any(c.testable for c in criteria):
                logger.info("No testable acceptance criteria in %s", spec_name)
                updates["pending_specs"] = [*state["pending_specs"], spec_name]
                return updates

            script, path = self.generator.generate_and_save(criteria, spec_name)
            logger.info("Executing %s (%d criteria)", path, len(criteria))
            result = await self.runner.execute_test(script, spec_name)
        except Exception as e:
            logger.error("Failed to process %s: %s", spec_name, e)
            issue = QAIssue(
                type=self._issue_type(e),
                message=str(e),
                spec_name=spec_name,
                stack=traceback.format_exc(),
            )
            now = datetime.now()
            result = TestResult(
                spec_name=spec_name,
                test_script="",
                overall_status=OverallStatus.FAILED,
                start_time=now,
                end_time=now,
                error_summary=str(e),
            )
            updates["errors"] = [*state["errors"], issue]

        updates["test_results"] = [*state["test_results"], result]
        return updates

    async def _write_report_node(self, state: PipelineState) -> dict[str, Any]:
        await self.runner.teardown_browser()
        path = self.reporter.update_tests_summary(
            state["test_results"],
            pending_specs=state["pending_specs"],
            errors=state["errors"],
        )
        return {"status": "complete", "report_path": str(path)}

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    @staticmethod
    def _route_after_scan(state: PipelineState) -> str:
        return "error" if state["status"] == "error" else "process_spec"

    @staticmethod
    def _route_after_process(state: PipelineState) -> str:
        if state["current_index"] < len(state["spec_names"]):
            return "process_spec"
        return "write_report"

    @staticmethod
    def _issue_type(error: Exception) -> QAIssueType:
        if isinstance(error, QAError):
            if error.stage in {t.value for t in QAIssueType}:
                return QAIssueType(error.stage)
        return QAIssueType.TEST_EXECUTION
