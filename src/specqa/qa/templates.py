"""Source rendering for generated test scripts.

A generated script is a standalone pytest module driving Playwright's sync
API. It is derived from the structured step plan and is never parsed back;
TestRunner executes the plan, not this source.
"""

from __future__ import annotations

import re

from specqa.config import QAConfig
from specqa.qa.models import ActionType, TestMetadata, TestStep

INDENT = "    "

HEADER = '''"""Automated QA test script for {spec_name}.

Generated on: {generated_at}
Total steps: {total_steps}
Estimated duration: {estimated_duration}ms
"""

from __future__ import annotations

from pathlib import Path

from playwright.sync_api import Page, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

BASE_URL = {base_url!r}
DEFAULT_TIMEOUT_MS = {timeout}
MAX_RETRIES = {max_retries}
ASSETS_DIR = Path({assets_dir!r})
VIEWPORT = {{"width": {width}, "height": {height}}}


class {class_name}:
    """{spec_name} - automated QA tests."""

    def setup_method(self) -> None:
        self._playwright = sync_playwright().start()
        self.browser = self._playwright.{browser}.launch(headless={headless}, slow_mo={slow_mo})
        self.page = self.browser.new_page(
            viewport=VIEWPORT,
            ignore_https_errors={ignore_https_errors},
        )
        self.page.set_default_timeout(DEFAULT_TIMEOUT_MS)

    def teardown_method(self) -> None:
        self.page.close()
        self.browser.close()
        self._playwright.stop()

    def test_complete_flow(self) -> None:
        page = self.page
'''

HELPERS = '''

def capture_screenshot(page: Page, step_id: str) -> Path:
    ASSETS_DIR.mkdir(parents=True, exist_ok=True)
    path = ASSETS_DIR / f"{step_id}.png"
    page.screenshot(path=str(path), full_page={full_page})
    print(f"Screenshot captured: {path}")
    return path


def wait_for_element(page: Page, selector: str, timeout: int = DEFAULT_TIMEOUT_MS) -> bool:
    try:
        page.wait_for_selector(selector, timeout=timeout)
        return True
    except PlaywrightTimeoutError:
        print(f"Element not found: {selector}")
        return False


def safe_click(page: Page, selector: str, retries: int = MAX_RETRIES) -> bool:
    for _ in range(retries + 1):
        element = page.locator(selector).first
        if wait_for_element(page, selector) and element.is_visible():
            element.click()
            return True
        page.wait_for_timeout(500)
    return False


def safe_type(page: Page, selector: str, text: str, retries: int = MAX_RETRIES) -> bool:
    for _ in range(retries + 1):
        element = page.locator(selector).first
        if wait_for_element(page, selector) and element.is_visible():
            element.fill(text)
            return True
        page.wait_for_timeout(500)
    return False
'''


def class_name_for(spec_name: str) -> str:
    """Return a pytest-collectable class name, e.g. password-toggle -> TestPasswordToggle."""
    parts = [part for part in re.split(r"[^A-Za-z0-9]+", spec_name) if part]
    return "Test" + "".join(part[:1].upper() + part[1:] for part in parts)


def render_step(step: TestStep, base_url: str) -> list[str]:
    """Render one step block as source lines, without indentation."""
    action = step.action
    comment = " ".join(step.description.split())
    lines = [f"# Step {step.id}: {comment}", f"print({f'Step {step.id}: {comment}'!r})"]

    if action.type == ActionType.SCREENSHOT:
        lines.append(f"capture_screenshot(page, {step.id!r})")
        return lines

    if action.type == ActionType.NAVIGATE:
        body = [f'page.goto({(action.value or base_url)!r}, wait_until="networkidle")']
    elif action.type == ActionType.CLICK:
        body = [
            f"assert safe_click(page, {action.selector!r}), {f'Could not click {action.selector}'!r}",
            "page.wait_for_timeout(1000)",
        ]
    elif action.type == ActionType.TYPE:
        body = [
            f"assert safe_type(page, {action.selector!r}, {(action.value or '')!r}), "
            f"{f'Could not type into {action.selector}'!r}",
        ]
    elif action.type == ActionType.WAIT and action.selector is None:
        body = [f"page.wait_for_timeout({action.duration_ms or 0})"]
    else:
        selector = action.selector or "body"
        body = [f"assert wait_for_element(page, {selector!r}), {f'Element not found: {selector}'!r}"]

    lines.append("try:")
    lines.extend(INDENT + line for line in body)
    lines.append("except Exception:")
    lines.append(INDENT + f"capture_screenshot(page, {f'{step.id}-error'!r})")
    lines.append(INDENT + "raise")
    lines.append(f"capture_screenshot(page, {step.id!r})")
    return lines


def render_script(
    steps: list[TestStep],
    spec_name: str,
    metadata: TestMetadata,
    config: QAConfig,
) -> str:
    """Render the complete pytest module for a step plan."""
    header = HEADER.format(
        spec_name=spec_name,
        generated_at=metadata.generated_at.isoformat(),
        total_steps=metadata.total_steps,
        estimated_duration=metadata.estimated_duration,
        base_url=config.base_url,
        timeout=config.default_timeout_ms,
        max_retries=config.max_retries,
        assets_dir=config.asset_dir(spec_name).as_posix(),
        width=config.browser.viewport_width,
        height=config.browser.viewport_height,
        class_name=class_name_for(spec_name),
        browser=config.browser.browser,
        headless=config.browser.headless,
        slow_mo=config.browser.slow_mo,
        ignore_https_errors=config.browser.ignore_https_errors,
    )

    body: list[str] = []
    for step in steps:
        if body:
            body.append("")
        body.extend(render_step(step, config.base_url))
    if not body:
        body = ['print("No testable acceptance criteria")']

    indent = INDENT * 2
    steps_code = "\n".join(indent + line if line else "" for line in body)
    helpers = HELPERS.replace("{full_page}", str(config.screenshot.full_page))
    return header + steps_code + "\n" + helpers
