"""Step-plan execution against a browser integration.

Each step moves Pending -> Running -> Passed | Failed. A failing action is
retried up to max_retries times with no backoff; if every attempt fails the
step is Failed and the remaining steps still run. A screenshot is taken after
every step, and failed steps additionally get an error screenshot plus an
error-details file.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime

from specqa.config import QAConfig
from specqa.exceptions import BrowserActionError, BrowserSetupError, ScreenshotError
from specqa.qa.browser import BrowserIntegration
from specqa.qa.models import (
    ActionType,
    OverallStatus,
    StepResult,
    StepStatus,
    TestResult,
    TestScript,
    TestStep,
)
from specqa.qa.screenshots import ScreenshotManager

logger = logging.getLogger(__name__)


class TestRunner:
    """Executes TestScripts sequentially against one browser session.

    The runner owns the session between setup_browser() and
    teardown_browser(); it never pools or shares it.

    Attributes:
        browser: Browser integration driving the application under test
        screenshots: ScreenshotManager for evidence (None disables captures)
        config: QA configuration (retries, timeouts, step delay)
        clock: Returns timestamps recorded in results

    Example:
        runner = TestRunner(browser, ScreenshotManager(browser, "QA/assets"))
        await runner.setup_browser()
        try:
            result = await runner.execute_test(script, "password-toggle")
        finally:
            await runner.teardown_browser()
    """

    __test__ = False

    def __init__(
        self,
        browser: BrowserIntegration,
        screenshots: ScreenshotManager | None = None,
        config: QAConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.browser = browser
        self.screenshots = screenshots
        self.config = config or QAConfig()
        self.clock = clock
        self._ready = False

    @property
    def max_retries(self) -> int:
        return self.config.max_retries

    @property
    def is_ready(self) -> bool:
        return self._ready

    # -------------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------------

    async def setup_browser(self) -> None:
        """Initialize the session with one liveness check. No-op when ready.

        Raises:
            BrowserSetupError: If the liveness check fails
        """
        if self._ready:
            logger.debug("Browser already initialized")
            return

        try:
            await self.browser.snapshot()
        except Exception as e:
            raise BrowserSetupError(f"Browser setup failed: {e}") from e

        self._ready = True
        logger.info("Browser session ready")

    async def teardown_browser(self) -> None:
        """Release the session. Never raises; always clears the ready flag."""
        try:
            await self.browser.close()
        except Exception as e:
            logger.warning("Error while closing browser: %s", e)
        finally:
            self._ready = False
        logger.info("Browser session closed")

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute_test(self, script: TestScript, spec_name: str | None = None) -> TestResult:
        """Execute every step of a script, in order.

        Args:
            script: Script whose step plan is executed
            spec_name: Name recorded on the result (defaults to script.spec_name)

        Returns:
            TestResult with one StepResult per TestStep

        Raises:
            BrowserSetupError: If the session cannot be initialized
        """
        spec_name = spec_name or script.spec_name
        await self.setup_browser()

        logger.info("Executing %s (%d steps)", script.file_name, len(script.steps))
        start_time = self.clock()
        started = time.perf_counter()

        results: list[StepResult] = []
        for index, step in enumerate(script.steps):
            results.append(await self.execute_step(step, spec_name))
            if self.config.step_delay_ms and index < len(script.steps) - 1:
                await asyncio.sleep(self.config.step_delay_ms / 1000)

        failed = [r for r in results if r.status == StepStatus.FAILED]
        result = TestResult(
            spec_name=spec_name,
            test_script=script.file_name,
            steps=results,
            overall_status=OverallStatus.FAILED if failed else OverallStatus.PASSED,
            execution_time=(time.perf_counter() - started) * 1000,
            screenshots=[r.screenshot for r in results if r.screenshot],
            start_time=start_time,
            end_time=self.clock(),
            error_summary=(
                f"{len(failed)} of {len(results)} steps failed" if failed else None
            ),
        )

        logger.info(
            "%s finished: %s (%d passed, %d failed)",
            spec_name,
            result.overall_status.value,
            len(results) - len(failed),
            len(failed),
        )
        return result

    async def execute_step(self, step: TestStep, spec_name: str) -> StepResult:
        """Run one step with retries, then capture its screenshot."""
        started = time.perf_counter()
        error: Exception | None = None
        attempts = 0

        for attempt in range(self.max_retries + 1):
            attempts = attempt + 1
            try:
                await self.execute_action(step)
            except Exception as e:
                error = e
                logger.warning(
                    "Step %s attempt %d/%d failed: %s",
                    step.id,
                    attempts,
                    self.max_retries + 1,
                    e,
                )
            else:
                error = None
                break

        screenshot = await self.capture_screenshot(step.id, spec_name)
        if error is None:
            status = StepStatus.PASSED
            error_message = None
        else:
            status = StepStatus.FAILED
            error_message = f"Failed after {self.max_retries} retries: {error}"
            error_shot = await self._capture_error_screenshot(step.id, spec_name, error_message)
            screenshot = error_shot or screenshot

        return StepResult(
            step_id=step.id,
            description=step.description,
            expected_result=step.expected_result,
            status=status,
            screenshot=screenshot or None,
            error_message=error_message,
            attempts=attempts,
            execution_time=(time.perf_counter() - started) * 1000,
            timestamp=self.clock(),
        )

    async def execute_action(self, step: TestStep) -> None:
        """Dispatch one attempt of a step's action to the browser.

        Raises:
            BrowserActionError: If the action fails or an assertion does not hold
        """
        action = step.action
        timeout = step.timeout or action.timeout or self.config.default_timeout_ms

        if action.type == ActionType.NAVIGATE:
            await self.browser.navigate(action.value or self.config.base_url, timeout_ms=timeout)
        elif action.type == ActionType.CLICK:
            await self._bounded(
                self.browser.click(self._require_selector(step), action.options or None),
                timeout,
                step,
            )
        elif action.type == ActionType.TYPE:
            await self._bounded(
                self.browser.type(
                    self._require_selector(step), action.value or "", action.options or None
                ),
                timeout,
                step,
            )
        elif action.type == ActionType.WAIT:
            if action.selector is None:
                # Pure delay, no automation call
                await asyncio.sleep((action.duration_ms or 0) / 1000)
            else:
                await self.browser.wait_for(selector=action.selector, timeout_ms=timeout)
        elif action.type == ActionType.ASSERT:
            if not await self.validate_result(step):
                raise BrowserActionError(
                    f"Assertion failed: element not found: {action.selector}",
                    action="assert",
                )
        elif action.type == ActionType.SCREENSHOT:
            # The post-step capture is the evidence
            return

    async def validate_result(self, step: TestStep) -> bool:
        """Existence check for the step's selector; True when there is none."""
        if not step.action.selector:
            return True
        return await self.browser.element_exists(step.action.selector)

    async def capture_screenshot(self, step_id: str, spec_name: str) -> str:
        """Capture an evidence screenshot; failures degrade to an empty path."""
        if self.screenshots is None:
            return ""
        try:
            metadata = await self.screenshots.capture_screenshot(step_id, spec_name)
        except ScreenshotError as e:
            logger.warning("Screenshot for step %s failed: %s", step_id, e)
            return ""
        return metadata.path

    async def _capture_error_screenshot(self, step_id: str, spec_name: str, message: str) -> str:
        if self.screenshots is None:
            return ""
        try:
            metadata = await self.screenshots.capture_error_screenshot(step_id, spec_name, message)
        except ScreenshotError as e:
            logger.warning("Error screenshot for step %s failed: %s", step_id, e)
            return ""
        return metadata.path

    @staticmethod
    async def _bounded(call: Awaitable[None], timeout_ms: int, step: TestStep) -> None:
        """Await a browser interaction, failing it after timeout_ms."""
        try:
            await asyncio.wait_for(call, timeout=timeout_ms / 1000)
        except TimeoutError as e:
            raise BrowserActionError(
                f"{step.action.type.value} on {step.action.selector} timed out after {timeout_ms}ms",
                action=step.action.type.value,
            ) from e

    @staticmethod
    def _require_selector(step: TestStep) -> str:
        if not step.action.selector:
            raise BrowserActionError(
                f"Step {step.id} has no selector for {step.action.type.value}",
                action=step.action.type.value,
            )
        return step.action.selector
