"""Transaction categorization.

Rule-based, local categorization of transactions from their descriptions.
``classify`` is the single source of category truth in BudgetFlow.
"""

from .rules import CATEGORY_COLORS, FALLBACK_CATEGORY, NEUTRAL_COLOR, classify

__all__ = ["CATEGORY_COLORS", "FALLBACK_CATEGORY", "NEUTRAL_COLOR", "classify"]
