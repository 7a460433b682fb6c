"""Keyword classification of acceptance criteria.

Classification walks CLASSIFICATION_RULES in order and returns the category
of the first rule whose predicate matches; UI interaction is the fallback.
New categories are new entries in the list.

The current order (navigation, form validation, accessibility) is provisional:
a criterion mentioning both a page and a keyboard is classified as navigation.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from specqa.qa.models import TestCategory

Predicate = Callable[[str], bool]


def contains_any(*keywords: str) -> Predicate:
    """Build a predicate matching any keyword at a word start, any suffix allowed."""
    pattern = re.compile(
        r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")",
        re.IGNORECASE,
    )

    def predicate(text: str) -> bool:
        return pattern.search(text) is not None

    return predicate


CLASSIFICATION_RULES: Sequence[tuple[Predicate, TestCategory]] = (
    (contains_any("navigate", "page", "redirect"), TestCategory.NAVIGATION),
    (contains_any("submit", "validate", "required field"), TestCategory.FORM_VALIDATION),
    (contains_any("aria", "screen reader", "keyboard"), TestCategory.ACCESSIBILITY),
)

DEFAULT_CATEGORY = TestCategory.UI_INTERACTION


def classify(
    description: str,
    rules: Sequence[tuple[Predicate, TestCategory]] = CLASSIFICATION_RULES,
) -> TestCategory:
    """Return the category of the first matching rule.

    Args:
        description: Criterion text
        rules: Ordered (predicate, category) pairs

    Returns:
        The matched category, or UI_INTERACTION when nothing matches
    """
    for predicate, category in rules:
        if predicate(description):
            return category
    return DEFAULT_CATEGORY
