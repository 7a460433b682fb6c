"""Shared fixtures for the specqa test suite."""

from __future__ import annotations

import asyncio
from io import BytesIO
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from specqa.exceptions import BrowserActionError


def png_bytes(width: int = 40, height: int = 30) -> bytes:
    """Encode a solid-colour PNG of the given size."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeBrowser:
    """In-memory BrowserIntegration that records every call.

    Attributes:
        calls: (method, args) tuples in call order
        fail_actions: Action names that always raise BrowserActionError
        existing: Selectors element_exists answers True for
        fail_snapshot: Makes snapshot() raise
        fail_screenshot: Makes screenshot() raise
        screenshot_error: Raised by screenshot() instead, when set
        click_delay: Seconds click() hangs before returning
    """

    def __init__(self, image: bytes | None = None) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_actions: set[str] = set()
        self.existing: set[str] = set()
        self.fail_snapshot = False
        self.fail_screenshot = False
        self.screenshot_error: Exception | None = None
        self.click_delay = 0.0
        self.image = image if image is not None else png_bytes()

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if method in self.fail_actions:
            raise BrowserActionError(f"{method} failed", action=method)

    async def navigate(self, url: str, timeout_ms: int | None = None) -> None:
        self._record("navigate", url, timeout_ms)

    async def click(self, selector: str, options: dict[str, Any] | None = None) -> None:
        self._record("click", selector)
        if self.click_delay:
            await asyncio.sleep(self.click_delay)

    async def type(
        self,
        selector: str,
        text: str,
        options: dict[str, Any] | None = None,
    ) -> None:
        self._record("type", selector, text)

    async def screenshot(self, path: str, options: dict[str, Any] | None = None) -> bytes | None:
        self.calls.append(("screenshot", (path,)))
        if self.screenshot_error is not None:
            raise self.screenshot_error
        if self.fail_screenshot:
            raise BrowserActionError("screenshot failed", action="screenshot")
        return self.image

    async def snapshot(self) -> Any:
        self.calls.append(("snapshot", ()))
        if self.fail_snapshot:
            raise BrowserActionError("browser not reachable", action="snapshot")
        return {"role": "document"}

    async def wait_for(
        self,
        selector: str | None = None,
        time_ms: int | None = None,
        timeout_ms: int = 30_000,
    ) -> None:
        self._record("wait_for", selector, time_ms, timeout_ms)

    async def element_exists(self, selector: str) -> bool:
        self.calls.append(("element_exists", (selector,)))
        return selector in self.existing

    async def evaluate(self, expression: str, selector: str | None = None) -> Any:
        self._record("evaluate", expression)
        return None

    async def close(self) -> None:
        self._record("close")


@pytest.fixture
def fake_browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def qa_config(tmp_path: Path):
    """QAConfig rooted in a temporary directory."""
    from specqa.config import QAConfig

    return QAConfig(
        specs_dir=tmp_path / "specs",
        scripts_dir=tmp_path / "QA" / "scripts",
        assets_dir=tmp_path / "QA" / "assets",
        report_file=tmp_path / "QA" / "Tests-Summary.md",
    )


PASSWORD_TOGGLE_REQUIREMENTS = """# Requirements Document

## Introduction

Users can reveal the password they are typing.

### Requirement 1

**User Story:** As a user, I want to see my password, so that I can check it.

#### Acceptance Criteria

1. WHEN user clicks the password toggle button THEN the system SHALL show the password text
2. WHEN the password is visible THEN the system SHALL display an eye-off icon

### Requirement 2

**User Story:** As an operator, I want passwords kept private.

#### Acceptance Criteria

1. IF the password is stored THEN the system SHALL persist it encrypted at rest
"""


def write_spec(
    specs_dir: Path,
    name: str,
    requirements: str = PASSWORD_TOGGLE_REQUIREMENTS,
    tasks: str = "- [x] 1. Build the toggle\n- [x] 2. Add tests\n",
    design: str = "# Design\n",
) -> Path:
    """Create a spec folder with the three spec files."""
    spec_dir = specs_dir / name
    spec_dir.mkdir(parents=True, exist_ok=True)
    (spec_dir / "requirements.md").write_text(requirements, encoding="utf-8")
    (spec_dir / "design.md").write_text(design, encoding="utf-8")
    (spec_dir / "tasks.md").write_text(tasks, encoding="utf-8")
    return spec_dir


@pytest.fixture
def spec_writer():
    """Return write_spec for tests that build spec folders."""
    return write_spec


@pytest.fixture
def make_png():
    """Return png_bytes for tests that need real image data."""
    return png_bytes


@pytest.fixture
def password_toggle_requirements() -> str:
    return PASSWORD_TOGGLE_REQUIREMENTS
