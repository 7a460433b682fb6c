"""Screenshot capture and per-spec asset bookkeeping.

Layout for one specification:

    {assets_dir}/{spec}/
        screenshots/   evidence shots, one per executed step
        errors/        failure shots plus <stepId>-error-details.json
        metadata.json  sidecar listing every capture

File names are deterministic apart from the timestamp segment:

    {spec}-step-{step}-{timestamp}.png
    {spec}-error-{step}-{timestamp}.png

Dependencies:
- Pillow (PIL): downscaling and re-encoding oversized captures
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path
from typing import Any

from PIL import Image

from specqa.config import ScreenshotOptions
from specqa.exceptions import ScreenshotError
from specqa.qa.browser import BrowserIntegration
from specqa.qa.models import (
    AssetDirectoryInfo,
    AssetDirectoryStructure,
    ScreenshotMetadata,
)

logger = logging.getLogger(__name__)

SCREENSHOT_DIR_NAME = "screenshots"
ERROR_DIR_NAME = "errors"
METADATA_FILE_NAME = "metadata.json"

# Files above this size are kept but logged
MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024

DEFAULT_MAX_AGE_MS = 7 * 24 * 60 * 60 * 1000

_UNSAFE = re.compile(r"[^A-Za-z0-9-]+")


def sanitize(value: str) -> str:
    """Replace every run of characters other than [A-Za-z0-9-] with one hyphen."""
    return _UNSAFE.sub("-", value)


def filename_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with ':' and '.' replaced by '-'.

    Example: 2025-01-02T03:04:05.678Z -> 2025-01-02T03-04-05-678Z
    """
    utc = moment.astimezone(timezone.utc)
    iso = utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScreenshotManager:
    """Captures evidence screenshots and maintains the per-spec sidecar.

    Attributes:
        browser: Browser integration used for captures
        assets_dir: Root of all spec asset directories
        default_options: Options merged under caller-supplied ones
        clock: Returns the current time; used for names and cleanup
    """

    def __init__(
        self,
        browser: BrowserIntegration,
        assets_dir: Path | str,
        default_options: ScreenshotOptions | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.browser = browser
        self.assets_dir = Path(assets_dir)
        self.default_options = default_options or ScreenshotOptions()
        self.clock = clock

    # -------------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------------

    def asset_structure(self, spec_name: str) -> AssetDirectoryStructure:
        asset_dir = self.assets_dir / spec_name
        return AssetDirectoryStructure(
            spec_name=spec_name,
            asset_dir=asset_dir,
            screenshot_dir=asset_dir / SCREENSHOT_DIR_NAME,
            error_dir=asset_dir / ERROR_DIR_NAME,
            metadata_file=asset_dir / METADATA_FILE_NAME,
        )

    def create_asset_structure(self, spec_name: str) -> AssetDirectoryStructure:
        """Create the asset directories and an empty sidecar if missing."""
        structure = self.asset_structure(spec_name)
        structure.screenshot_dir.mkdir(parents=True, exist_ok=True)
        structure.error_dir.mkdir(parents=True, exist_ok=True)
        if not structure.metadata_file.exists():
            self._write_sidecar(structure.metadata_file, self._empty_sidecar(spec_name))
        return structure

    def _prepare_assets(self, spec_name: str, step_id: str) -> AssetDirectoryStructure:
        try:
            return self.create_asset_structure(spec_name)
        except OSError as e:
            raise ScreenshotError(
                f"Failed to prepare assets for {spec_name}: {e}",
                step_id=step_id,
            ) from e

    def screenshot_filename(self, spec_name: str, step_id: str, moment: datetime, ext: str = "png") -> str:
        return f"{sanitize(spec_name)}-step-{sanitize(step_id)}-{filename_timestamp(moment)}.{ext}"

    def error_screenshot_filename(
        self, spec_name: str, step_id: str, moment: datetime, ext: str = "png"
    ) -> str:
        return f"{sanitize(spec_name)}-error-{sanitize(step_id)}-{filename_timestamp(moment)}.{ext}"

    # -------------------------------------------------------------------------
    # Capture
    # -------------------------------------------------------------------------

    async def capture_screenshot(
        self,
        step_id: str,
        spec_name: str,
        options: dict[str, Any] | None = None,
    ) -> ScreenshotMetadata:
        """Capture an evidence screenshot for a step.

        Args:
            step_id: Step identifier
            spec_name: Specification name
            options: Overrides merged over the default options

        Returns:
            ScreenshotMetadata for the written file

        Raises:
            ScreenshotError: If the capture or the write fails
        """
        merged = self.default_options.merged(options)
        structure = self._prepare_assets(spec_name, step_id)
        moment = self.clock()
        filename = self.screenshot_filename(spec_name, step_id, moment, self._extension(merged))
        path = structure.screenshot_dir / filename

        metadata = await self._capture(path, step_id, step_id, spec_name, moment, merged)
        self._append_to_sidecar(structure, metadata)
        logger.debug("Captured screenshot %s for step %s", filename, step_id)
        return metadata

    async def capture_error_screenshot(
        self,
        step_id: str,
        spec_name: str,
        error_message: str,
    ) -> ScreenshotMetadata:
        """Capture a failure screenshot and write its error-details file.

        The returned metadata carries step_id suffixed with "-error".

        Raises:
            ScreenshotError: If the capture or the writes fail
        """
        merged = self.default_options
        structure = self._prepare_assets(spec_name, step_id)
        moment = self.clock()
        filename = self.error_screenshot_filename(spec_name, step_id, moment, self._extension(merged))
        path = structure.error_dir / filename

        metadata = await self._capture(
            path, f"{step_id}-error", step_id, spec_name, moment, merged
        )

        details_file = structure.error_dir / f"{sanitize(step_id)}-error-details.json"
        details = {
            "step_id": step_id,
            "error_message": error_message,
            "timestamp": moment.isoformat(),
            "screenshot_path": str(path),
        }
        try:
            details_file.write_text(json.dumps(details, indent=2), encoding="utf-8")
        except OSError as e:
            raise ScreenshotError(
                f"Failed to write error details for step {step_id}: {e}",
                step_id=step_id,
            ) from e

        self._append_to_sidecar(structure, metadata)
        logger.info("Captured error screenshot %s for step %s", filename, step_id)
        return metadata

    async def _capture(
        self,
        path: Path,
        recorded_step_id: str,
        step_id: str,
        spec_name: str,
        moment: datetime,
        options: ScreenshotOptions,
    ) -> ScreenshotMetadata:
        try:
            data = await self.browser.screenshot(str(path), options.model_dump())
            if data is not None:
                path.write_bytes(data)
            elif not path.exists():
                raise ScreenshotError(
                    f"Browser returned no image for step {step_id}",
                    step_id=step_id,
                )
            width, height = self._optimize(path, options)
            file_size = path.stat().st_size
        except ScreenshotError:
            raise
        except Exception as e:
            raise ScreenshotError(
                f"Failed to capture screenshot for step {step_id}: {e}",
                step_id=step_id,
            ) from e

        if file_size > MAX_FILE_SIZE_BYTES:
            logger.warning(
                "Screenshot %s is %.1fMB, above the %dMB limit",
                path.name,
                file_size / (1024 * 1024),
                MAX_FILE_SIZE_BYTES // (1024 * 1024),
            )

        return ScreenshotMetadata(
            filename=path.name,
            path=str(path),
            file_size=file_size,
            step_id=recorded_step_id,
            spec_name=spec_name,
            captured_at=moment,
            width=width,
            height=height,
        )

    @staticmethod
    def _extension(options: ScreenshotOptions) -> str:
        return "jpg" if options.format == "jpeg" else "png"

    @staticmethod
    def _optimize(path: Path, options: ScreenshotOptions) -> tuple[int, int]:
        """Downscale to the configured maximum and re-encode in place.

        Returns:
            (width, height) after optimization
        """
        with Image.open(path) as image:
            image.load()
            width, height = image.size
            if width <= options.max_width and height <= options.max_height:
                return width, height

            image.thumbnail((options.max_width, options.max_height))
            buffer = BytesIO()
            if options.format == "jpeg":
                image.convert("RGB").save(buffer, format="JPEG", quality=options.quality)
            else:
                image.save(buffer, format="PNG", optimize=True)
            size = image.size

        path.write_bytes(buffer.getvalue())
        logger.debug("Downscaled %s from %dx%d to %dx%d", path.name, width, height, *size)
        return size

    # -------------------------------------------------------------------------
    # Sidecar
    # -------------------------------------------------------------------------

    @staticmethod
    def _empty_sidecar(spec_name: str) -> dict[str, Any]:
        return {
            "spec_name": spec_name,
            "screenshots": [],
            "total_screenshots": 0,
            "total_file_size": 0,
            "last_updated": None,
        }

    def _read_sidecar(self, structure: AssetDirectoryStructure) -> dict[str, Any]:
        """Read metadata.json; a missing or corrupt file reads as empty."""
        try:
            data = json.loads(structure.metadata_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return self._empty_sidecar(structure.spec_name)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable sidecar %s: %s", structure.metadata_file, e)
            return self._empty_sidecar(structure.spec_name)
        if not isinstance(data, dict):
            return self._empty_sidecar(structure.spec_name)
        data.setdefault("screenshots", [])
        return data

    @staticmethod
    def _write_sidecar(metadata_file: Path, data: dict[str, Any]) -> None:
        metadata_file.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")

    def _append_to_sidecar(
        self,
        structure: AssetDirectoryStructure,
        metadata: ScreenshotMetadata,
    ) -> None:
        data = self._read_sidecar(structure)
        data["screenshots"].append(metadata.model_dump(mode="json"))
        self._store_sidecar(structure, data)

    def _store_sidecar(self, structure: AssetDirectoryStructure, data: dict[str, Any]) -> None:
        data["total_screenshots"] = len(data["screenshots"])
        data["total_file_size"] = sum(s.get("file_size", 0) for s in data["screenshots"])
        data["last_updated"] = self.clock().isoformat()
        try:
            self._write_sidecar(structure.metadata_file, data)
        except OSError as e:
            raise ScreenshotError(f"Failed to update {structure.metadata_file}: {e}") from e

    # -------------------------------------------------------------------------
    # Queries and maintenance
    # -------------------------------------------------------------------------

    def list_screenshots(self, spec_name: str) -> list[ScreenshotMetadata]:
        """Return the sidecar's captures, oldest first."""
        structure = self.asset_structure(spec_name)
        return [
            ScreenshotMetadata.model_validate(entry)
            for entry in self._read_sidecar(structure)["screenshots"]
        ]

    def get_asset_directory_info(self, spec_name: str) -> AssetDirectoryInfo:
        """Summarize a spec's assets from the sidecar and the files still on disk."""
        structure = self.asset_structure(spec_name)
        if not structure.asset_dir.is_dir():
            return AssetDirectoryInfo(exists=False)

        data = self._read_sidecar(structure)
        live = [s for s in data["screenshots"] if Path(s.get("path", "")).is_file()]
        last_updated = data.get("last_updated")
        return AssetDirectoryInfo(
            exists=True,
            screenshot_count=len(live),
            total_size=sum(s.get("file_size", 0) for s in live),
            last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
        )

    def cleanup_old_screenshots(
        self,
        spec_name: str,
        max_age_ms: int = DEFAULT_MAX_AGE_MS,
    ) -> int:
        """Delete captures older than max_age_ms and prune them from the sidecar.

        Returns:
            Number of files deleted
        """
        structure = self.asset_structure(spec_name)
        cutoff = self.clock().timestamp() - max_age_ms / 1000

        deleted = 0
        for directory in (structure.screenshot_dir, structure.error_dir):
            if not directory.is_dir():
                continue
            for path in directory.iterdir():
                if path.is_file() and path.stat().st_mtime < cutoff:
                    path.unlink()
                    deleted += 1
                    logger.debug("Deleted old file: %s", path)

        if structure.metadata_file.exists():
            data = self._read_sidecar(structure)
            kept = [s for s in data["screenshots"] if Path(s.get("path", "")).is_file()]
            if len(kept) != len(data["screenshots"]):
                data["screenshots"] = kept
                self._store_sidecar(structure, data)

        logger.info("Cleaned up %d old files for %s", deleted, spec_name)
        return deleted
