"""Markdown report generation.

The report is regenerated wholesale from the results supplied on each run:

    # Tests Summary
    ## Specification Tests Overview    one row per spec
    ## <Spec Name>                     one detail section per spec
    ## Errors                          pipeline issues, when any
    ## Future Automated Tests          when no spec has results or some are pending

There is no incremental patching; every call to update_tests_summary fully
overwrites the report file.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path

from specqa.exceptions import ReportGenerationError
from specqa.qa.models import (
    OverallStatus,
    QAIssue,
    QASummary,
    ReportData,
    SectionStatus,
    SpecSection,
    StepStatus,
    TestResult,
)

logger = logging.getLogger(__name__)

STATUS_ICONS: dict[str, str] = {
    "Passed": "✅",
    "Failed": "❌",
    "Mixed": "⚠️",
    "Skipped": "⏭️",
}

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_spec_name(spec_name: str) -> str:
    """Title-case a spec name: password-toggle -> Password Toggle."""
    return " ".join(word[:1].upper() + word[1:] for word in spec_name.split("-") if word)


def anchor(spec_name: str) -> str:
    """Markdown anchor for a spec's detail heading."""
    return re.sub(r"[^a-z0-9]+", "-", format_spec_name(spec_name).lower()).strip("-")


def cell(text: str | None) -> str:
    """Make text safe for a markdown table cell."""
    return " ".join((text or "").split()).replace("|", "\\|")


class ReportGenerator:
    """Groups TestResults by specification and renders the summary report.

    Attributes:
        report_file: Destination markdown file
        scripts_dir: Root of generated scripts, shown in each section
        specs_dir: Root of specification folders, shown in each section
        clock: Returns the report generation time
    """

    def __init__(
        self,
        report_file: Path | str,
        scripts_dir: Path | str = "QA/scripts",
        specs_dir: Path | str = ".kiro/specs",
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.report_file = Path(report_file)
        self.scripts_dir = Path(scripts_dir)
        self.specs_dir = Path(specs_dir)
        self.clock = clock

    # -------------------------------------------------------------------------
    # Aggregation
    # -------------------------------------------------------------------------

    def organize_by_specs(self, results: Iterable[TestResult]) -> list[SpecSection]:
        """Group results by spec name, in first-seen order.

        Results within a section keep their input order.
        """
        groups: dict[str, list[TestResult]] = {}
        for result in results:
            groups.setdefault(result.spec_name, []).append(result)

        return [
            SpecSection(
                spec_name=spec_name,
                description=self._describe(spec_name, grouped),
                test_results=grouped,
                overall_status=self._section_status(grouped),
                last_executed=max(r.end_time for r in grouped),
                screenshot_count=sum(len(r.screenshots) for r in grouped),
                execution_time=sum(r.execution_time for r in grouped),
            )
            for spec_name, grouped in groups.items()
        ]

    def generate_summary(self, results: list[TestResult]) -> QASummary:
        """Count results by outcome.

        A result whose steps were all skipped counts as skipped; a result
        without steps counts by its overall status.
        """
        skipped = [
            r for r in results
            if r.steps and all(s.status == StepStatus.SKIPPED for s in r.steps)
        ]
        counted = [r for r in results if not any(r is s for s in skipped)]
        return QASummary(
            total_specs=len({r.spec_name for r in results}),
            total_tests=len(results),
            passed_tests=sum(1 for r in counted if r.overall_status == OverallStatus.PASSED),
            failed_tests=sum(1 for r in counted if r.overall_status == OverallStatus.FAILED),
            skipped_tests=len(skipped),
            execution_time=sum(r.execution_time for r in results),
            screenshots_captured=sum(len(r.screenshots) for r in results),
        )

    @staticmethod
    def _section_status(results: list[TestResult]) -> SectionStatus:
        statuses = {r.overall_status for r in results}
        if statuses == {OverallStatus.PASSED}:
            return SectionStatus.PASSED
        if statuses == {OverallStatus.FAILED}:
            return SectionStatus.FAILED
        return SectionStatus.MIXED

    @staticmethod
    def _describe(spec_name: str, results: list[TestResult]) -> str:
        total_steps = sum(len(r.steps) for r in results)
        return (
            f"Automated testing for {format_spec_name(spec_name)} specification with "
            f"{total_steps} test steps. Validates the acceptance criteria defined in "
            f"its requirements document."
        )

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def generate_spec_section(self, result: TestResult) -> str:
        """Render one TestResult as a standalone markdown section."""
        lines = [
            f"### {format_spec_name(result.spec_name)}",
            "",
            "#### Description",
            f"Automated test execution for the {result.spec_name} specification.",
            "",
            "#### Script",
            f"- {self._script_path(result)}",
            "",
            "#### Steps",
            "",
            *self._step_table(result),
            "",
        ]
        return "\n".join(lines) + "\n"

    def generate_markdown_report(self, data: ReportData) -> str:
        """Render the complete report. Never returns an empty string."""
        lines = [
            "# Tests Summary",
            "",
            f"*Last updated: {data.generated_at.strftime(DATE_FORMAT)}*",
            "",
            "## Specification Tests Overview",
            "",
            "| Specification | Tests | Status | Last Executed |",
            "| ------------- | ----- | ------ | ------------- |",
        ]
        for section in data.spec_sections:
            link = f"[{format_spec_name(section.spec_name)}](#{anchor(section.spec_name)})"
            lines.append(
                f"| {link} | {len(section.test_results)} | "
                f"{STATUS_ICONS[section.overall_status.value]} | "
                f"{section.last_executed.strftime(DATE_FORMAT)} |"
            )

        summary = data.summary
        lines += [
            "",
            f"**Totals:** {summary.total_tests} tests across {summary.total_specs} specs, "
            f"{summary.passed_tests} passed, {summary.failed_tests} failed, "
            f"{summary.skipped_tests} skipped, {summary.screenshots_captured} screenshots, "
            f"{summary.execution_time / 1000:.2f}s",
            "",
            "---",
            "",
        ]

        for section in data.spec_sections:
            lines += self._detailed_section(section)

        if data.errors:
            lines += self._errors_section(data.errors)

        if not data.spec_sections or data.pending_specs:
            lines += self._future_tests_section(data.pending_specs)

        return "\n".join(lines).rstrip() + "\n"

    def _detailed_section(self, section: SpecSection) -> list[str]:
        status = section.overall_status.value
        lines = [
            f"## {format_spec_name(section.spec_name)}",
            "",
            f"**Specification:** `{(self.specs_dir / section.spec_name).as_posix()}/`  ",
            f"**Status:** {STATUS_ICONS[status]} {status}  ",
            f"**Tests:** {len(section.test_results)}  ",
            f"**Screenshots:** {section.screenshot_count}  ",
            f"**Execution Time:** {section.execution_time / 1000:.2f}s  ",
            f"**Last Executed:** {section.last_executed.strftime(DATE_FORMAT)}",
            "",
            "### Description",
            section.description,
            "",
        ]
        for index, result in enumerate(section.test_results, start=1):
            if len(section.test_results) > 1:
                lines += [f"#### Test {index}: {result.test_script}", ""]
            lines += [f"**Script:** {self._script_path(result)}", "", "##### Steps", ""]
            lines += self._step_table(result)
            if result.error_summary:
                lines += ["", f"**Errors:** {cell(result.error_summary)}"]
            lines.append("")
        return lines

    def _step_table(self, result: TestResult) -> list[str]:
        lines = [
            "| Step | Description | Expected | Actual | Screenshot | Status |",
            "| ---- | ----------- | -------- | ------ | ---------- | ------ |",
        ]
        for number, step in enumerate(result.steps, start=1):
            actual = step.error_message or (
                "Skipped" if step.status == StepStatus.SKIPPED else "Executed successfully"
            )
            screenshot = (
                f"![Step {number}]({self._relative(step.screenshot)})"
                if step.screenshot
                else "No screenshot"
            )
            lines.append(
                f"| {number} | {cell(step.description)} | {cell(step.expected_result)} | "
                f"{cell(actual)} | {screenshot} | "
                f"{STATUS_ICONS[step.status.value]} {step.status.value} |"
            )
        return lines

    @staticmethod
    def _errors_section(errors: list[QAIssue]) -> list[str]:
        lines = [
            "## Errors",
            "",
            "| Stage | Specification | Step | Message |",
            "| ----- | ------------- | ---- | ------- |",
        ]
        for issue in errors:
            lines.append(
                f"| {issue.type.value} | {cell(issue.spec_name) or '-'} | "
                f"{cell(issue.step_id) or '-'} | {cell(issue.message)} |"
            )
        lines.append("")
        return lines

    def _future_tests_section(self, pending_specs: list[str]) -> list[str]:
        lines = [
            "## Future Automated Tests",
            "",
            "Specifications will appear here once they have test results.",
            "",
        ]
        if pending_specs:
            lines += ["### Pending Specifications", ""]
            lines += [f"- {format_spec_name(name)} (`{name}`)" for name in pending_specs]
        else:
            lines.append(
                f"Completed specifications in `{self.specs_dir.as_posix()}/` are "
                f"detected automatically and tested for:"
            )
            lines += [
                "",
                "- User interface interactions",
                "- Form validation",
                "- Navigation",
                "- Accessibility",
            ]
        lines.append("")
        return lines

    def _script_path(self, result: TestResult) -> str:
        return (self.scripts_dir / result.spec_name / result.test_script).as_posix()

    def _relative(self, path: str) -> str:
        """Path relative to the report's directory, with forward slashes."""
        target = Path(path)
        base = self.report_file.parent
        if target.is_absolute() != base.is_absolute():
            target, base = target.absolute(), base.absolute()
        return Path(os.path.relpath(target, base)).as_posix()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def build_report_data(
        self,
        results: list[TestResult],
        pending_specs: Iterable[str] = (),
        errors: Iterable[QAIssue] = (),
    ) -> ReportData:
        return ReportData(
            generated_at=self.clock(),
            summary=self.generate_summary(results),
            spec_sections=self.organize_by_specs(results),
            pending_specs=list(pending_specs),
            errors=list(errors),
        )

    def update_tests_summary(
        self,
        results: list[TestResult],
        pending_specs: Iterable[str] = (),
        errors: Iterable[QAIssue] = (),
    ) -> Path:
        """Regenerate the report file from the supplied results.

        Returns:
            Path of the written report

        Raises:
            ReportGenerationError: If the report cannot be rendered or written
        """
        try:
            data = self.build_report_data(results, pending_specs, errors)
            content = self.generate_markdown_report(data)
            self._write_atomic(content)
        except Exception as e:
            logger.error("Failed to update %s: %s", self.report_file, e)
            raise ReportGenerationError(f"Report generation failed: {e}") from e

        logger.info(
            "%s updated with %d spec sections",
            self.report_file,
            len(data.spec_sections),
        )
        return self.report_file

    def _write_atomic(self, content: str) -> None:
        """Write via a sibling temp file so readers never see a partial report."""
        self.report_file.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.report_file.with_name(f".{self.report_file.name}.tmp")
        try:
            tmp.write_text(content, encoding="utf-8")
            tmp.replace(self.report_file)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
