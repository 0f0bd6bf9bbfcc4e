# ruff: noqa: S101
"""Tests for the rule-based transaction classifier."""

import pytest

from budgetflow.categorization import (
    CATEGORY_COLORS,
    FALLBACK_CATEGORY,
    NEUTRAL_COLOR,
    classify,
)


class TestClassify:
    """Keyword rules, precedence and the fallback."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("description", "category"),
        [
            ("Grocery Store", "Food & Dining"),
            ("Salary Deposit", "Income"),
            ("Netflix Subscription", "Entertainment"),
            ("Gas Station", "Transportation"),
            ("Online Shopping", "Shopping"),
            ("Restaurant", "Food & Dining"),
            ("British Gas Direct Debit", "Utilities"),
            ("Boots Pharmacy", "Healthcare"),
        ],
    )
    def test_dashboard_descriptions(self, description: str, category: str) -> None:
        """Descriptions seen on the dashboard land in their expected category."""
        assert classify(description).category == category

    @pytest.mark.unit
    def test_matching_is_case_insensitive(self) -> None:
        """Case and surrounding whitespace do not change the result."""
        assert classify("  NETFLIX   subscription ").category == "Entertainment"
        assert classify("netflix").category == "Entertainment"

    @pytest.mark.unit
    def test_first_matching_rule_wins(self) -> None:
        """A meal delivery mentioning Uber is food, not transport."""
        assert classify("UBER EATS London").category == "Food & Dining"
        assert classify("UBER TRIP").category == "Transportation"

    @pytest.mark.unit
    @pytest.mark.parametrize("description", ["", None, "   ", "XYZ Ltd 00231"])
    def test_unmatched_falls_back_to_other(self, description: str | None) -> None:
        """Empty and unknown descriptions get the neutral fallback."""
        result = classify(description)
        assert result.category == FALLBACK_CATEGORY
        assert result.color_hint == NEUTRAL_COLOR

    @pytest.mark.unit
    def test_color_hint_follows_category(self) -> None:
        """Every classification carries its category's color."""
        result = classify("Spotify Premium")
        assert result.color_hint == CATEGORY_COLORS["Entertainment"]

    @pytest.mark.unit
    def test_classification_is_deterministic(self) -> None:
        """Repeated calls return equal results."""
        descriptions = ["Tesco Metro", "TfL Travel", "Council Tax", "Amazon.co.uk"]
        first = [classify(d) for d in descriptions]
        second = [classify(d) for d in descriptions]
        assert first == second
