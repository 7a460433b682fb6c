"""Specification analyzer.

This module provides the SpecAnalyzer class, which extracts acceptance
criteria from a requirements document written with EARS-style sentences:

- WHEN <condition> THEN <subject> SHALL <behavior>
- IF <condition> THEN <subject> SHALL <behavior>

Matching is case-insensitive and tolerant of soft line breaks. Text that
matches neither template is ignored; an empty or unparseable document yields
no criteria rather than an error.

Example:
    analyzer = SpecAnalyzer()
    requirements = analyzer.parse_requirements('''
        ### Requirement 1

        **User Story:** As a user, I want to see my password.

        #### Acceptance Criteria

        1. WHEN user clicks the password toggle button THEN the system SHALL
           show the password text
    ''')
    assert requirements[0].acceptance_criteria[0].id == "1.1"
"""

from __future__ import annotations

import logging
import re
from typing import ClassVar

from specqa.qa.classifier import classify
from specqa.qa.models import (
    AcceptanceCriterion,
    EARSMatch,
    Requirement,
    RequirementPattern,
    SpecMetadata,
    SpecStatus,
)
from specqa.qa.spec_files import SpecRepository

logger = logging.getLogger(__name__)


class SpecAnalyzer:
    """Parser for EARS-style requirements documents.

    Attributes:
        repository: Optional SpecRepository for folder-level operations

    Example:
        analyzer = SpecAnalyzer()
        criteria = analyzer.extract_criteria(text)
    """

    # Requirement headers: "### Requirement 3" (the number becomes the id)
    REQUIREMENT_HEADER: ClassVar[re.Pattern[str]] = re.compile(
        r"^\s*#{2,4}\s*Requirement\s+(\d+)\b[^\n]*$",
        re.IGNORECASE | re.MULTILINE,
    )

    USER_STORY: ClassVar[re.Pattern[str]] = re.compile(
        r"\*\*User Story:?\*\*:?\s*(.+?)\s*(?:\n|$)",
        re.IGNORECASE,
    )

    # A numbered or bulleted list item starts a new block
    LIST_ITEM: ClassVar[re.Pattern[str]] = re.compile(r"^\s*(?:\d+[.)]|[-*+])\s+")

    # One EARS sentence. The behavior runs until the next EARS sentence,
    # a sentence-ending period/semicolon, or the end of the block.
    EARS_SENTENCE: ClassVar[re.Pattern[str]] = re.compile(
        r"\b(?P<keyword>WHEN|IF)\s+(?P<condition>.+?)\s*,?\s+THEN\s+"
        r"(?P<system>.+?)\s+SHALL\s+(?P<response>.+?)"
        r"(?=\s+(?:WHEN|IF)\s+.+?\s+THEN\s+.+?\s+SHALL\s|[.;](?:\s|$)|$)",
        re.IGNORECASE,
    )

    # Behavior vocabulary that a browser can observe
    UI_OBSERVABLE: ClassVar[re.Pattern[str]] = re.compile(
        r"\b(?:display|show|shown|hide|hidden|render|appear|disappear|visib|invisib"
        r"|navigat|redirect|open|close|click|tap|press|type|enter|submit|validat"
        r"|enable|disable|select|check|toggl|focus|highlight|announc|load|reload"
        r"|refresh|scroll|expand|collaps|updat|chang|switch|present|prompt|alert"
        r"|message|error|warn|indicat|icon|button|field|page|screen|modal|dialog"
        r"|menu|label|text|input|keyboard|aria|tooltip|notif|save|delet|remov"
        r"|adds?\b|added|creat|export|import|download|upload|reset|clear|drag|drop"
        r"|sort|filter|list|mark|restor|redraw|reposition|animat)",
        re.IGNORECASE,
    )

    def __init__(self, repository: SpecRepository | None = None) -> None:
        """Initialize the analyzer.

        Args:
            repository: SpecRepository used by scan_specs/get_spec_metadata
        """
        self.repository = repository

    # -------------------------------------------------------------------------
    # Document parsing
    # -------------------------------------------------------------------------

    def parse_requirements(self, text: str) -> list[Requirement]:
        """Parse a requirements document into requirements with criteria.

        Args:
            text: Requirements markdown

        Returns:
            Requirements that yielded at least one criterion, in document order
        """
        if not text or not text.strip():
            return []

        requirements: list[Requirement] = []
        for requirement_id, section in self._split_sections(text):
            user_story = self._extract_user_story(section)
            criteria = self._extract_criteria(section, requirement_id, user_story)
            if criteria:
                requirements.append(
                    Requirement(
                        id=requirement_id,
                        user_story=user_story,
                        acceptance_criteria=criteria,
                    )
                )

        logger.info(
            "Parsed %d requirements with %d acceptance criteria",
            len(requirements),
            sum(len(r.acceptance_criteria) for r in requirements),
        )
        return requirements

    def extract_criteria(self, text: str) -> list[AcceptanceCriterion]:
        """Return every criterion of a document, flattened across requirements."""
        return [
            criterion
            for requirement in self.parse_requirements(text)
            for criterion in requirement.acceptance_criteria
        ]

    def parse_ears(self, sentence: str) -> EARSMatch | None:
        """Match a single sentence against the EARS templates.

        Args:
            sentence: Candidate sentence

        Returns:
            EARSMatch for the first EARS sentence found, or None
        """
        match = self.EARS_SENTENCE.search(self._normalize(sentence))
        return self._to_ears(match) if match else None

    def is_testable(self, ears: EARSMatch) -> bool:
        """Whether the behavior clause names something a browser can observe.

        Heuristic: pure policy or back-end statements return False.
        """
        return self.UI_OBSERVABLE.search(ears.response) is not None

    def classify_acceptance_criteria(self, description: str) -> str:
        """Return the category value for a criterion description."""
        return classify(description).value

    def _split_sections(self, text: str) -> list[tuple[str, str]]:
        headers = list(self.REQUIREMENT_HEADER.finditer(text))
        if not headers:
            return [("1", text)]

        sections: list[tuple[str, str]] = []
        preface = text[: headers[0].start()]
        if preface.strip():
            sections.append(("0", preface))

        for index, header in enumerate(headers):
            end = headers[index + 1].start() if index + 1 < len(headers) else len(text)
            sections.append((header.group(1), text[header.end() : end]))
        return sections

    def _extract_user_story(self, section: str) -> str:
        match = self.USER_STORY.search(section)
        return match.group(1).strip() if match else ""

    def _extract_criteria(
        self,
        section: str,
        requirement_id: str,
        user_story: str,
    ) -> list[AcceptanceCriterion]:
        criteria: list[AcceptanceCriterion] = []
        for block in self._split_blocks(section):
            for match in self.EARS_SENTENCE.finditer(block):
                ears = self._to_ears(match)
                criteria.append(
                    AcceptanceCriterion(
                        id=f"{requirement_id}.{len(criteria) + 1}",
                        description=ears.full_match,
                        testable=self.is_testable(ears),
                        category=classify(ears.full_match),
                        requirement_id=requirement_id,
                        user_story=user_story,
                        ears=ears,
                    )
                )
        return criteria

    def _split_blocks(self, section: str) -> list[str]:
        """Split a section into list items and paragraphs, joining soft breaks."""
        blocks: list[str] = []
        current: list[str] = []

        def flush() -> None:
            if current:
                blocks.append(self._normalize(" ".join(current)))
                current.clear()

        for line in section.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                flush()
                continue
            if self.LIST_ITEM.match(line):
                flush()
                current.append(self.LIST_ITEM.sub("", line, count=1).strip())
            else:
                current.append(stripped)
        flush()
        return blocks

    @staticmethod
    def _normalize(text: str) -> str:
        return re.sub(r"\s+", " ", text.replace("**", "")).strip()

    @staticmethod
    def _to_ears(match: re.Match[str]) -> EARSMatch:
        keyword = match.group("keyword").upper()
        return EARSMatch(
            pattern=(
                RequirementPattern.WHEN_THEN
                if keyword == "WHEN"
                else RequirementPattern.IF_THEN
            ),
            condition=match.group("condition").strip(),
            system=match.group("system").strip(),
            response=match.group("response").strip(),
            full_match=match.group(0).strip(),
        )

    # -------------------------------------------------------------------------
    # Folder-level operations
    # -------------------------------------------------------------------------

    def scan_specs(self, completed_only: bool = True) -> list[str]:
        """List specification folders, optionally only completed ones."""
        repository = self._require_repository()
        names = repository.scan_specs()
        if not completed_only:
            return names
        return [
            name
            for name in names
            if repository.get_spec_metadata(name).status == SpecStatus.COMPLETED
        ]

    def get_spec_metadata(self, spec_name: str) -> SpecMetadata:
        return self._require_repository().get_spec_metadata(spec_name)

    def _require_repository(self) -> SpecRepository:
        if self.repository is None:
            raise ValueError("SpecAnalyzer was created without a SpecRepository")
        return self.repository
