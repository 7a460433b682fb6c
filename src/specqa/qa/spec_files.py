"""Specification folder access.

A specification lives in `<specs_dir>/<spec_name>/` and holds
requirements.md, design.md and tasks.md. Completion status is read from the
markdown checkboxes in tasks.md.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from specqa.exceptions import SpecNotFoundError, SpecReadError
from specqa.qa.models import SpecFiles, SpecMetadata, SpecStatus

logger = logging.getLogger(__name__)

REQUIREMENTS_FILE = "requirements.md"
DESIGN_FILE = "design.md"
TASKS_FILE = "tasks.md"

# Archived specs are kept here and never scanned
ARCHIVE_DIR_NAME = "Done"


class SpecRepository:
    """Reads specification folders from disk.

    Attributes:
        specs_dir: Root directory holding one folder per specification
    """

    def __init__(self, specs_dir: Path | str) -> None:
        self.specs_dir = Path(specs_dir)

    def spec_dir(self, spec_name: str) -> Path:
        return self.specs_dir / spec_name

    def scan_specs(self) -> list[str]:
        """List specification folder names, sorted.

        Returns:
            Folder names, excluding the archive folder; [] if specs_dir is missing
        """
        if not self.specs_dir.is_dir():
            logger.warning("Specs directory not found: %s", self.specs_dir)
            return []

        names = sorted(
            entry.name
            for entry in self.specs_dir.iterdir()
            if entry.is_dir() and entry.name != ARCHIVE_DIR_NAME
        )
        logger.debug("Found %d spec folders in %s", len(names), self.specs_dir)
        return names

    def read_spec_files(self, spec_name: str) -> SpecFiles:
        """Read the three spec files of a specification.

        Missing design.md or tasks.md read as empty strings.

        Raises:
            SpecNotFoundError: If the specification folder does not exist
            SpecReadError: If requirements.md is missing or unreadable
        """
        spec_dir = self.spec_dir(spec_name)
        if not spec_dir.is_dir():
            raise SpecNotFoundError(
                f"Specification '{spec_name}' not found in {self.specs_dir}",
                spec_name=spec_name,
            )

        try:
            requirements = (spec_dir / REQUIREMENTS_FILE).read_text(encoding="utf-8")
        except OSError as e:
            raise SpecReadError(
                f"Failed to read spec files for {spec_name}: {e}",
                spec_name=spec_name,
            ) from e

        return SpecFiles(
            requirements=requirements,
            design=self._read_optional(spec_dir / DESIGN_FILE),
            tasks=self._read_optional(spec_dir / TASKS_FILE),
        )

    def get_spec_metadata(self, spec_name: str) -> SpecMetadata:
        """Describe a specification folder.

        Raises:
            SpecNotFoundError: If the specification folder does not exist
        """
        spec_dir = self.spec_dir(spec_name)
        if not spec_dir.is_dir():
            raise SpecNotFoundError(
                f"Specification '{spec_name}' not found in {self.specs_dir}",
                spec_name=spec_name,
            )

        files = {
            name: spec_dir / name for name in (REQUIREMENTS_FILE, DESIGN_FILE, TASKS_FILE)
        }
        present = {name: path.is_file() for name, path in files.items()}

        last_modified = datetime.fromtimestamp(0)
        for name, path in files.items():
            if present[name]:
                mtime = datetime.fromtimestamp(path.stat().st_mtime)
                last_modified = max(last_modified, mtime)

        if all(present.values()):
            status = self._status_from_tasks(self._read_optional(files[TASKS_FILE]))
        elif any(present.values()):
            status = SpecStatus.IN_PROGRESS
        else:
            status = SpecStatus.NOT_STARTED

        return SpecMetadata(
            name=spec_name,
            path=spec_dir,
            status=status,
            last_modified=last_modified,
            has_requirements=present[REQUIREMENTS_FILE],
            has_design=present[DESIGN_FILE],
            has_tasks=present[TASKS_FILE],
        )

    @staticmethod
    def _status_from_tasks(tasks: str) -> SpecStatus:
        has_completed = "- [x]" in tasks
        has_incomplete = "- [ ]" in tasks
        if has_completed and not has_incomplete:
            return SpecStatus.COMPLETED
        if has_completed or has_incomplete:
            return SpecStatus.IN_PROGRESS
        return SpecStatus.NOT_STARTED

    @staticmethod
    def _read_optional(path: Path) -> str:
        if not path.is_file():
            return ""
        return path.read_text(encoding="utf-8")
