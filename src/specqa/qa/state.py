"""Pipeline state definition for the QA LangGraph workflow.

The state tracks:
- The requested spec (None for all completed specs) and the resolved targets
- The index of the spec being processed
- Accumulated TestResults, pending specs and recorded issues
- Final status, error and report path
"""

from __future__ import annotations

from typing import TypedDict

from specqa.qa.models import QAIssue, TestResult


class PipelineState(TypedDict):
    """State schema for the QA pipeline workflow.

    Attributes:
        requested_spec: Spec to process, or None for every completed spec
        spec_names: Specs resolved by the scan, in processing order
        current_index: Index into spec_names of the next spec to process
        test_results: One TestResult per processed spec
        pending_specs: Specs without testable criteria ("future tests")
        errors: Issues recorded while processing specs
        status: Workflow status (scanning, processing, complete, error)
        error: Fatal error message (None if no error)
        report_path: Written report file, once the report node ran
    """

    requested_spec: str | None
    spec_names: list[str]
    current_index: int
    test_results: list[TestResult]
    pending_specs: list[str]
    errors: list[QAIssue]
    status: str
    error: str | None
    report_path: str | None
