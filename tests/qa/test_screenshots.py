"""
Tests for the ScreenshotManager.

These tests verify:
1. Deterministic, sanitized file names
2. Asset layout and the metadata.json sidecar
3. Error screenshots and their details file
4. Downscaling oversized captures with Pillow
5. Directory info and age-based cleanup
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone

import pytest
from PIL import Image

FIXED_TIME = datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)


def _manager(browser, tmp_path, options=None, moment=FIXED_TIME):
    from specqa.qa.screenshots import ScreenshotManager

    return ScreenshotManager(browser, tmp_path / "assets", options, clock=lambda: moment)


# =============================================================================
# Test naming
# =============================================================================


class TestNaming:
    """Test file naming helpers."""

    def test_filename_timestamp(self) -> None:
        """':' and '.' in the ISO timestamp become '-'."""
        from specqa.qa.screenshots import filename_timestamp

        assert filename_timestamp(FIXED_TIME) == "2025-01-02T03-04-05-678Z"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("1.1-toggle", "1-1-toggle"),
            ("a b/c", "a-b-c"),
            ("password-toggle", "password-toggle"),
            ("x..y", "x-y"),
        ],
    )
    def test_sanitize(self, value: str, expected: str) -> None:
        from specqa.qa.screenshots import sanitize

        assert sanitize(value) == expected

    def test_names_are_deterministic(self, fake_browser, tmp_path) -> None:
        """Same spec, step and time give the same name."""
        manager = _manager(fake_browser, tmp_path)

        first = manager.screenshot_filename("password-toggle", "1.1-toggle", FIXED_TIME)
        second = manager.screenshot_filename("password-toggle", "1.1-toggle", FIXED_TIME)

        assert first == second == "password-toggle-step-1-1-toggle-2025-01-02T03-04-05-678Z.png"
        assert manager.error_screenshot_filename("password-toggle", "1.1-toggle", FIXED_TIME) == (
            "password-toggle-error-1-1-toggle-2025-01-02T03-04-05-678Z.png"
        )


# =============================================================================
# Test capture
# =============================================================================


class TestCapture:
    """Test evidence and error captures."""

    @pytest.mark.asyncio
    async def test_capture_writes_file_and_sidecar(self, fake_browser, tmp_path) -> None:
        """A capture lands in screenshots/ and is recorded in metadata.json."""
        manager = _manager(fake_browser, tmp_path)

        metadata = await manager.capture_screenshot("1.1-toggle", "password-toggle")

        screenshot_dir = tmp_path / "assets" / "password-toggle" / "screenshots"
        assert metadata.path == str(screenshot_dir / metadata.filename)
        assert (screenshot_dir / metadata.filename).read_bytes() == fake_browser.image
        assert metadata.step_id == "1.1-toggle"
        assert (metadata.width, metadata.height) == (40, 30)

        sidecar = json.loads(
            (tmp_path / "assets" / "password-toggle" / "metadata.json").read_text(encoding="utf-8")
        )
        assert sidecar["spec_name"] == "password-toggle"
        assert sidecar["total_screenshots"] == 1
        assert sidecar["total_file_size"] == metadata.file_size
        assert sidecar["screenshots"][0]["filename"] == metadata.filename

    @pytest.mark.asyncio
    async def test_error_capture(self, fake_browser, tmp_path) -> None:
        """Error captures go to errors/ with a details file."""
        manager = _manager(fake_browser, tmp_path)

        metadata = await manager.capture_error_screenshot(
            "1.1-toggle", "password-toggle", "Element not found"
        )

        error_dir = tmp_path / "assets" / "password-toggle" / "errors"
        assert metadata.step_id == "1.1-toggle-error"
        assert metadata.filename.startswith("password-toggle-error-1-1-toggle-")
        assert (error_dir / metadata.filename).is_file()

        details = json.loads((error_dir / "1-1-toggle-error-details.json").read_text(encoding="utf-8"))
        assert details["step_id"] == "1.1-toggle"
        assert details["error_message"] == "Element not found"
        assert details["screenshot_path"] == metadata.path

    @pytest.mark.asyncio
    async def test_oversized_capture_is_downscaled(self, fake_browser, tmp_path, make_png) -> None:
        """Images above the maximum size keep their aspect ratio."""
        from specqa.config import ScreenshotOptions

        fake_browser.image = make_png(400, 300)
        manager = _manager(fake_browser, tmp_path, ScreenshotOptions(max_width=200, max_height=200))

        metadata = await manager.capture_screenshot("1.1-toggle", "password-toggle")

        assert (metadata.width, metadata.height) == (200, 150)
        with Image.open(metadata.path) as image:
            assert image.size == (200, 150)

    @pytest.mark.asyncio
    async def test_jpeg_option(self, fake_browser, tmp_path) -> None:
        """Caller options select the extension."""
        manager = _manager(fake_browser, tmp_path)

        metadata = await manager.capture_screenshot(
            "1.1-toggle", "password-toggle", {"format": "jpeg"}
        )

        assert metadata.filename.endswith(".jpg")

    @pytest.mark.asyncio
    async def test_browser_failure_raises(self, fake_browser, tmp_path) -> None:
        """A failing browser capture raises ScreenshotError."""
        from specqa.exceptions import ScreenshotError

        fake_browser.fail_screenshot = True
        manager = _manager(fake_browser, tmp_path)

        with pytest.raises(ScreenshotError) as exc_info:
            await manager.capture_screenshot("1.1-toggle", "password-toggle")

        assert exc_info.value.step_id == "1.1-toggle"

    @pytest.mark.asyncio
    async def test_no_image_and_no_file_raises(self, fake_browser, tmp_path) -> None:
        """When the browser returns nothing, the file must exist."""
        from specqa.exceptions import ScreenshotError

        fake_browser.image = None
        manager = _manager(fake_browser, tmp_path)

        with pytest.raises(ScreenshotError, match="no image"):
            await manager.capture_screenshot("1.1-toggle", "password-toggle")

    @pytest.mark.asyncio
    async def test_unexpected_browser_error_is_wrapped(self, fake_browser, tmp_path) -> None:
        """Errors other than BrowserActionError also surface as ScreenshotError."""
        from specqa.exceptions import ScreenshotError

        fake_browser.screenshot_error = ValueError("Incorrect padding")
        manager = _manager(fake_browser, tmp_path)

        with pytest.raises(ScreenshotError, match="Incorrect padding") as exc_info:
            await manager.capture_screenshot("1.1-toggle", "password-toggle")

        assert exc_info.value.step_id == "1.1-toggle"

    @pytest.mark.asyncio
    async def test_unwritable_assets_root_raises(self, fake_browser, tmp_path) -> None:
        from specqa.exceptions import ScreenshotError
        from specqa.qa.screenshots import ScreenshotManager

        blocker = tmp_path / "assets"
        blocker.write_text("not a directory", encoding="utf-8")
        manager = ScreenshotManager(fake_browser, blocker)

        with pytest.raises(ScreenshotError, match="Failed to prepare assets"):
            await manager.capture_error_screenshot("1.1-toggle", "password-toggle", "boom")

        assert fake_browser.count("screenshot") == 0


# =============================================================================
# Test queries and maintenance
# =============================================================================


class TestAssetQueries:
    """Test sidecar reads, directory info and cleanup."""

    def test_missing_directory(self, fake_browser, tmp_path) -> None:
        """An unknown spec reports exists=False."""
        info = _manager(fake_browser, tmp_path).get_asset_directory_info("ghost")

        assert info.exists is False
        assert info.screenshot_count == 0

    def test_corrupt_sidecar_reads_as_empty(self, fake_browser, tmp_path) -> None:
        """An unreadable metadata.json is treated as empty."""
        manager = _manager(fake_browser, tmp_path)
        structure = manager.create_asset_structure("password-toggle")
        structure.metadata_file.write_text("{not json", encoding="utf-8")

        assert manager.list_screenshots("password-toggle") == []

    @pytest.mark.asyncio
    async def test_directory_info(self, fake_browser, tmp_path) -> None:
        """Only captures still on disk are counted."""
        manager = _manager(fake_browser, tmp_path)
        kept = await manager.capture_screenshot("1.1-toggle", "password-toggle")
        removed = await manager.capture_screenshot("1.1-screenshot", "password-toggle")
        os.remove(removed.path)

        info = manager.get_asset_directory_info("password-toggle")

        assert info.exists is True
        assert info.screenshot_count == 1
        assert info.total_size == kept.file_size
        assert info.last_updated == FIXED_TIME

    @pytest.mark.asyncio
    async def test_cleanup_old_screenshots(self, fake_browser, tmp_path) -> None:
        """Files older than the cutoff are deleted and pruned from the sidecar."""
        now = datetime(2025, 1, 10, tzinfo=timezone.utc)
        manager = _manager(fake_browser, tmp_path, moment=now)
        old = await manager.capture_screenshot("1.1-toggle", "password-toggle")
        recent = await manager.capture_error_screenshot("1.2-click", "password-toggle", "boom")

        nine_days_ago = datetime(2025, 1, 1, tzinfo=timezone.utc).timestamp()
        one_day_ago = datetime(2025, 1, 9, tzinfo=timezone.utc).timestamp()
        os.utime(old.path, (nine_days_ago, nine_days_ago))
        os.utime(recent.path, (one_day_ago, one_day_ago))
        details = tmp_path / "assets" / "password-toggle" / "errors" / "1-2-click-error-details.json"
        os.utime(details, (one_day_ago, one_day_ago))

        deleted = manager.cleanup_old_screenshots("password-toggle")

        assert deleted == 1
        assert [s.filename for s in manager.list_screenshots("password-toggle")] == [recent.filename]

    def test_cleanup_without_assets(self, fake_browser, tmp_path) -> None:
        """Cleaning an unknown spec deletes nothing."""
        assert _manager(fake_browser, tmp_path).cleanup_old_screenshots("ghost") == 0
