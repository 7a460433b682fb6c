"""
Tests for the SpecAnalyzer.

These tests verify:
1. EARS sentence extraction (WHEN/IF ... THEN ... SHALL ...)
2. Requirement grouping, ids and user stories
3. Soft line breaks and case-insensitive matching
4. Testability heuristic
5. Completed-spec scanning through a SpecRepository
"""

from __future__ import annotations

import pytest

# =============================================================================
# Test EARS extraction
# =============================================================================


class TestEARSExtraction:
    """Test extraction of EARS sentences."""

    def test_single_sentence_without_headers(self) -> None:
        """A bare sentence becomes criterion 1.1 of requirement 1."""
        from specqa.qa.analyzer import SpecAnalyzer
        from specqa.qa.models import TestCategory

        text = (
            "WHEN user clicks the password toggle button THEN the system SHALL "
            "show the password text"
        )
        requirements = SpecAnalyzer().parse_requirements(text)

        assert len(requirements) == 1
        assert requirements[0].id == "1"
        criterion = requirements[0].acceptance_criteria[0]
        assert criterion.id == "1.1"
        assert criterion.description == text
        assert criterion.testable is True
        assert criterion.category == TestCategory.UI_INTERACTION
        assert criterion.requirement_id == "1"
        assert criterion.steps == []

    def test_soft_line_breaks_are_joined(self) -> None:
        """A criterion wrapped over several lines is one sentence."""
        from specqa.qa.analyzer import SpecAnalyzer

        text = """
1. WHEN the user clicks the save button
   THEN the system
   SHALL show a confirmation message
"""
        criteria = SpecAnalyzer().extract_criteria(text)

        assert len(criteria) == 1
        assert criteria[0].description == (
            "WHEN the user clicks the save button THEN the system SHALL "
            "show a confirmation message"
        )

    def test_matching_is_case_insensitive(self) -> None:
        """Lower-case keywords are recognised."""
        from specqa.qa.analyzer import SpecAnalyzer

        criteria = SpecAnalyzer().extract_criteria(
            "when the menu opens then the app shall highlight the first item"
        )

        assert len(criteria) == 1
        assert criteria[0].ears is not None
        assert criteria[0].ears.system == "the app"

    def test_two_sentences_in_one_paragraph(self) -> None:
        """Each EARS sentence yields its own criterion."""
        from specqa.qa.analyzer import SpecAnalyzer
        from specqa.qa.models import RequirementPattern

        text = (
            "WHEN the dialog opens THEN the system SHALL focus the close button. "
            "IF the session expires THEN the system SHALL redirect to the login page."
        )
        criteria = SpecAnalyzer().extract_criteria(text)

        assert [c.id for c in criteria] == ["1.1", "1.2"]
        assert criteria[0].ears.response == "focus the close button"
        assert criteria[1].ears.pattern == RequirementPattern.IF_THEN
        assert criteria[1].description.endswith("redirect to the login page")

    def test_comma_before_then(self) -> None:
        """A comma before THEN is not part of the condition."""
        from specqa.qa.analyzer import SpecAnalyzer

        ears = SpecAnalyzer().parse_ears(
            "IF the email is invalid, THEN the form SHALL display an error message"
        )

        assert ears is not None
        assert ears.condition == "the email is invalid"
        assert ears.system == "the form"
        assert ears.response == "display an error message"

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   \n\n  ",
            "The system should probably show something.",
            "WHILE the page loads THEN the system SHALL show a spinner",
            "# Requirements\n\n### Requirement 1\n\nNo criteria yet.",
        ],
    )
    def test_non_matching_text_yields_nothing(self, text: str) -> None:
        """Text without WHEN/IF sentences produces no criteria."""
        from specqa.qa.analyzer import SpecAnalyzer

        assert SpecAnalyzer().extract_criteria(text) == []

    def test_parse_ears_returns_none_for_plain_text(self) -> None:
        """parse_ears answers None when nothing matches."""
        from specqa.qa.analyzer import SpecAnalyzer

        assert SpecAnalyzer().parse_ears("Just a description.") is None


# =============================================================================
# Test requirement grouping
# =============================================================================


class TestRequirementGrouping:
    """Test requirement sections, ids and user stories."""

    def test_requirements_document(self, password_toggle_requirements: str) -> None:
        """Header numbers become requirement ids, with one-based criteria."""
        from specqa.qa.analyzer import SpecAnalyzer

        requirements = SpecAnalyzer().parse_requirements(password_toggle_requirements)

        assert [r.id for r in requirements] == ["1", "2"]
        assert [c.id for c in requirements[0].acceptance_criteria] == ["1.1", "1.2"]
        assert [c.id for c in requirements[1].acceptance_criteria] == ["2.1"]
        assert requirements[0].user_story.startswith("As a user, I want to see my password")
        assert requirements[1].acceptance_criteria[0].user_story == (
            "As an operator, I want passwords kept private."
        )

    def test_sentences_before_first_header_belong_to_requirement_zero(self) -> None:
        """EARS text ahead of the first header is requirement 0."""
        from specqa.qa.analyzer import SpecAnalyzer

        text = """
WHEN the app starts THEN the system SHALL show the splash screen

### Requirement 4

1. WHEN the user clicks help THEN the system SHALL open the help panel
"""
        requirements = SpecAnalyzer().parse_requirements(text)

        assert [r.id for r in requirements] == ["0", "4"]
        assert requirements[1].acceptance_criteria[0].id == "4.1"

    def test_requirements_without_criteria_are_dropped(self) -> None:
        """Only requirements with at least one criterion are returned."""
        from specqa.qa.analyzer import SpecAnalyzer

        text = """
### Requirement 1

Background only.

### Requirement 2

1. WHEN the user presses Enter THEN the form SHALL submit
"""
        requirements = SpecAnalyzer().parse_requirements(text)

        assert [r.id for r in requirements] == ["2"]

    def test_criteria_count_matches_sentence_count(self) -> None:
        """The number of criteria equals the number of EARS sentences."""
        from specqa.qa.analyzer import SpecAnalyzer

        sentences = [
            "WHEN a row is selected THEN the table SHALL highlight the row",
            "IF the upload fails THEN the system SHALL show an error",
            "WHEN the filter changes THEN the list SHALL refresh",
        ]
        text = "### Requirement 1\n\n" + "\n".join(
            f"{i}. {s}" for i, s in enumerate(sentences, start=1)
        )

        assert len(SpecAnalyzer().extract_criteria(text)) == len(sentences)


# =============================================================================
# Test testability and classification
# =============================================================================


class TestTestability:
    """Test the UI-observable testability heuristic."""

    def test_policy_statement_is_not_testable(self) -> None:
        """Back-end behaviour without UI vocabulary is not testable."""
        from specqa.qa.analyzer import SpecAnalyzer

        criteria = SpecAnalyzer().extract_criteria(
            "IF the password is stored THEN the system SHALL persist it encrypted at rest"
        )

        assert len(criteria) == 1
        assert criteria[0].testable is False

    def test_ui_behaviour_is_testable(self) -> None:
        """Behaviour naming something visible is testable."""
        from specqa.qa.analyzer import SpecAnalyzer

        criteria = SpecAnalyzer().extract_criteria(
            "WHEN the user hovers THEN the button SHALL display a tooltip"
        )

        assert criteria[0].testable is True

    def test_classify_acceptance_criteria(self) -> None:
        """Classification returns the category value."""
        from specqa.qa.analyzer import SpecAnalyzer

        analyzer = SpecAnalyzer()

        assert analyzer.classify_acceptance_criteria("redirect to the dashboard") == "navigation"
        assert analyzer.classify_acceptance_criteria("toggle the switch") == "ui-interaction"


# =============================================================================
# Test folder-level operations
# =============================================================================


class TestSpecScanning:
    """Test scanning specs through a repository."""

    def test_scan_specs_completed_only(self, tmp_path, spec_writer) -> None:
        """Only specs whose tasks are all checked are returned by default."""
        from specqa.qa.analyzer import SpecAnalyzer
        from specqa.qa.spec_files import SpecRepository

        spec_writer(tmp_path, "password-toggle")
        spec_writer(tmp_path, "export-archive", tasks="- [x] 1. Done\n- [ ] 2. Todo\n")

        analyzer = SpecAnalyzer(SpecRepository(tmp_path))

        assert analyzer.scan_specs() == ["password-toggle"]
        assert analyzer.scan_specs(completed_only=False) == [
            "export-archive",
            "password-toggle",
        ]

    def test_get_spec_metadata_delegates(self, tmp_path, spec_writer) -> None:
        """Metadata comes from the repository."""
        from specqa.qa.analyzer import SpecAnalyzer
        from specqa.qa.models import SpecStatus
        from specqa.qa.spec_files import SpecRepository

        spec_writer(tmp_path, "password-toggle")

        metadata = SpecAnalyzer(SpecRepository(tmp_path)).get_spec_metadata("password-toggle")

        assert metadata.status == SpecStatus.COMPLETED

    def test_scan_without_repository_raises(self) -> None:
        """Folder operations need a repository."""
        from specqa.qa.analyzer import SpecAnalyzer

        with pytest.raises(ValueError, match="SpecRepository"):
            SpecAnalyzer().scan_specs()
