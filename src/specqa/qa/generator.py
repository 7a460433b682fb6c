"""Test script generation from acceptance criteria.

This module provides the TestScriptGenerator class, which turns analyzed
acceptance criteria into a TestScript:

1. Classify each testable criterion into a TestCategory
2. Expand it into one primary step for its category
3. Append one screenshot step per criterion for evidence
4. Render the step plan into a standalone pytest module

Non-testable criteria contribute no steps. Selectors are best-effort; they
are validated when the runner executes the plan, not here.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from specqa.config import QAConfig
from specqa.exceptions import ScriptGenerationError
from specqa.qa.classifier import classify
from specqa.qa.models import (
    AcceptanceCriterion,
    ActionType,
    TestAction,
    TestCategory,
    TestMetadata,
    TestScript,
    TestStep,
)
from specqa.qa.templates import render_script

logger = logging.getLogger(__name__)

# Estimated cost of any step, plus a per-category surcharge
STEP_BASELINE_MS = 2000
CATEGORY_WEIGHT_MS: dict[TestCategory, int] = {
    TestCategory.UI_INTERACTION: 0,
    TestCategory.FORM_VALIDATION: 500,
    TestCategory.ACCESSIBILITY: 500,
    TestCategory.NAVIGATION: 3000,
}

# Nouns naming a clickable control, in the order they are looked for
CONTROL_WORDS = ("toggle", "switch", "checkbox", "button", "link", "tab", "menu", "icon")
TOGGLE_WORDS = frozenset({"toggle", "switch", "checkbox"})

STOP_WORDS = frozenset(
    {"the", "a", "an", "user", "users", "clicks", "click", "taps", "presses", "on", "any", "this", "that"}
)

URL_PATH = re.compile(r"(?<![\w/])(/[A-Za-z0-9][\w\-/]*)")


def kebab(text: str) -> str:
    """Lower-case text with every run of non-alphanumerics replaced by '-'."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


class TestScriptGenerator:
    """Generates and persists test scripts for a specification.

    Attributes:
        config: QA configuration (base URL, timeouts, script/asset roots)
        clock: Returns the generation timestamp

    Example:
        generator = TestScriptGenerator(QAConfig())
        script = generator.generate_test_script(criteria, "password-toggle")
        path = generator.save_test_script(script)
    """

    __test__ = False

    def __init__(
        self,
        config: QAConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config or QAConfig()
        self.clock = clock

    def classify_acceptance_criteria(self, description: str) -> TestCategory:
        """Return the test category for a criterion description."""
        return classify(description)

    def generate_test_script(
        self,
        criteria: list[AcceptanceCriterion],
        spec_name: str,
    ) -> TestScript:
        """Generate a TestScript for a specification.

        Args:
            criteria: Analyzed acceptance criteria (non-testable ones are skipped)
            spec_name: Specification name

        Returns:
            TestScript with the step plan and rendered source

        Raises:
            ScriptGenerationError: If the script cannot be built
        """
        try:
            steps: list[TestStep] = []
            for criterion in criteria:
                if criterion.testable:
                    steps.extend(self._steps_for_criterion(criterion))
            steps = self._unique_step_ids(steps)

            metadata = TestMetadata(
                spec_name=spec_name,
                generated_at=self.clock(),
                total_steps=len(steps),
                estimated_duration=self.estimate_duration(steps),
            )
            script = TestScript(
                file_name=self.config.script_path(spec_name).name,
                spec_name=spec_name,
                content=render_script(steps, spec_name, metadata, self.config),
                steps=steps,
                metadata=metadata,
            )
        except Exception as e:
            raise ScriptGenerationError(
                f"Failed to generate test script for {spec_name}: {e}",
                spec_name=spec_name,
            ) from e

        logger.info(
            "Generated test script for %s: %d steps, ~%dms",
            spec_name,
            metadata.total_steps,
            metadata.estimated_duration,
        )
        return script

    def estimate_duration(self, steps: list[TestStep]) -> int:
        """Sum of the per-step baseline and each step's category weight, in ms."""
        return sum(STEP_BASELINE_MS + CATEGORY_WEIGHT_MS.get(s.category, 0) for s in steps)

    @staticmethod
    def _unique_step_ids(steps: list[TestStep]) -> list[TestStep]:
        """Suffix repeated step ids with -2, -3, ... so every id is unique."""
        seen: set[str] = set()
        unique: list[TestStep] = []
        for step in steps:
            step_id = step.id
            n = 1
            while step_id in seen:
                n += 1
                step_id = f"{step.id}-{n}"
            seen.add(step_id)

            if step_id != step.id:
                logger.warning("Duplicate step id %s renamed to %s", step.id, step_id)
                screenshot_name = step.screenshot_name
                if screenshot_name.endswith(f"{step.id}.png"):
                    screenshot_name = screenshot_name[: -len(f"{step.id}.png")] + f"{step_id}.png"
                step = step.model_copy(update={"id": step_id, "screenshot_name": screenshot_name})
            unique.append(step)
        return unique

    # -------------------------------------------------------------------------
    # Step expansion
    # -------------------------------------------------------------------------

    def _steps_for_criterion(self, criterion: AcceptanceCriterion) -> list[TestStep]:
        if criterion.steps:
            primary = list(criterion.steps)
        else:
            category = criterion.category or self.classify_acceptance_criteria(
                criterion.description
            )
            builders = {
                TestCategory.UI_INTERACTION: self._ui_interaction_step,
                TestCategory.FORM_VALIDATION: self._form_validation_step,
                TestCategory.NAVIGATION: self._navigation_step,
                TestCategory.ACCESSIBILITY: self._accessibility_step,
            }
            primary = [builders[category](criterion)]

        return [*primary, self._screenshot_step(criterion)]

    def _ui_interaction_step(self, criterion: AcceptanceCriterion) -> TestStep:
        token, control = self._control_token(criterion)
        suffix = "toggle" if control in TOGGLE_WORDS else "click"
        return self._step(
            criterion,
            f"{criterion.id}-{suffix}",
            f"Click element for: {criterion.description}",
            TestAction(
                type=ActionType.CLICK,
                selector=self._selector(token),
                timeout=self.config.default_timeout_ms,
            ),
            "Element should toggle state successfully"
            if suffix == "toggle"
            else "Element should be clicked successfully",
        )

    def _form_validation_step(self, criterion: AcceptanceCriterion) -> TestStep:
        return self._step(
            criterion,
            f"{criterion.id}-validate",
            f"Validate form for: {criterion.description}",
            TestAction(type=ActionType.ASSERT, selector="form", options={"validation": True}),
            "Form validation should work as expected",
        )

    def _navigation_step(self, criterion: AcceptanceCriterion) -> TestStep:
        return self._step(
            criterion,
            f"{criterion.id}-navigate",
            f"Navigate for: {criterion.description}",
            TestAction(
                type=ActionType.NAVIGATE,
                value=self._navigation_url(criterion.description),
                timeout=self.config.default_timeout_ms,
            ),
            "Navigation should complete successfully",
        )

    def _accessibility_step(self, criterion: AcceptanceCriterion) -> TestStep:
        return self._step(
            criterion,
            f"{criterion.id}-a11y",
            f"Check accessibility for: {criterion.description}",
            TestAction(
                type=ActionType.ASSERT,
                selector="[aria-label], [role]",
                options={"accessibility": True},
            ),
            "Accessibility requirements should be met",
        )

    def _screenshot_step(self, criterion: AcceptanceCriterion) -> TestStep:
        return self._step(
            criterion,
            f"{criterion.id}-screenshot",
            f"Capture screenshot after: {criterion.description}",
            TestAction(type=ActionType.SCREENSHOT),
            "Screenshot should be captured",
        )

    def _step(
        self,
        criterion: AcceptanceCriterion,
        step_id: str,
        description: str,
        action: TestAction,
        expected_result: str,
    ) -> TestStep:
        return TestStep(
            id=step_id,
            description=description,
            action=action,
            expected_result=expected_result,
            screenshot_name=f"{criterion.requirement_id}-{step_id}.png",
            category=criterion.category,
            timeout=action.timeout,
        )

    # -------------------------------------------------------------------------
    # Heuristics
    # -------------------------------------------------------------------------

    def _control_token(self, criterion: AcceptanceCriterion) -> tuple[str | None, str | None]:
        """Find '<subject> <control>' in the condition, e.g. 'password toggle'.

        Returns:
            (kebab token such as "password-toggle", control word), or (None, None)
        """
        text = criterion.ears.condition if criterion.ears else criterion.description
        words = re.findall(r"[a-z0-9]+", text.lower())
        for control in CONTROL_WORDS:
            if control not in words:
                continue
            index = words.index(control)
            subject = words[index - 1] if index > 0 else ""
            if subject and subject not in STOP_WORDS and subject not in CONTROL_WORDS:
                suffix = "toggle" if control in TOGGLE_WORDS else control
                return kebab(f"{subject} {suffix}"), control
            return None, control
        return None, None

    @staticmethod
    def _selector(token: str | None) -> str:
        if token is None:
            return 'button, [role="button"]'
        subject = token.rsplit("-", 1)[0]
        return f'[data-testid="{token}"], .{token}, button[aria-label*="{subject}"]'

    def _navigation_url(self, description: str) -> str:
        match = URL_PATH.search(description)
        if match:
            return self.config.base_url.rstrip("/") + match.group(1).rstrip("/.")
        return self.config.base_url

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def create_test_structure(self, spec_name: str) -> None:
        """Create the script and asset directories for a specification."""
        self.config.script_path(spec_name).parent.mkdir(parents=True, exist_ok=True)
        self.config.asset_dir(spec_name).mkdir(parents=True, exist_ok=True)
        logger.debug("Created test structure for %s", spec_name)

    def save_test_script(self, script: TestScript) -> Path:
        """Write a script to {scripts_dir}/{spec}/{spec}-test.{ext}.

        Raises:
            ScriptGenerationError: If the file cannot be written
        """
        path = self.config.script_path(script.spec_name)
        try:
            self.create_test_structure(script.spec_name)
            path.write_text(script.content, encoding="utf-8")
        except OSError as e:
            raise ScriptGenerationError(
                f"Failed to save test script for {script.spec_name}: {e}",
                spec_name=script.spec_name,
            ) from e

        logger.info("Test script saved: %s", path)
        return path

    def generate_and_save(
        self,
        criteria: list[AcceptanceCriterion],
        spec_name: str,
    ) -> tuple[TestScript, Path]:
        """Generate a script and write it; returns both."""
        script = self.generate_test_script(criteria, spec_name)
        return script, self.save_test_script(script)
