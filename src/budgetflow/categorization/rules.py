"""Deterministic transaction categorization.

Bank feeds rarely carry a usable category, so one is inferred from the
transaction description with an ordered keyword table. The classifier is a
pure function of the description text: transactions are re-fetched and
re-classified on every sync, and stored categories stay stable without any
migration step.
"""

from __future__ import annotations

import re

from ..models import Classification

FALLBACK_CATEGORY = "Other"
NEUTRAL_COLOR = "#6b7280"

CATEGORY_COLORS: dict[str, str] = {
    "Income": "#22c55e",
    "Food & Dining": "#f97316",
    "Transportation": "#eab308",
    "Entertainment": "#3b82f6",
    "Utilities": "#06b6d4",
    "Healthcare": "#10b981",
    "Shopping": "#8b5cf6",
    FALLBACK_CATEGORY: NEUTRAL_COLOR,
}


# Ordering matters: earlier matches win.
_RULES: list[tuple[str, re.Pattern[str]]] = [
    ("Income", re.compile(r"\bSALARY\b|\bPAYROLL\b|\bWAGES?\b|\bDIVIDENDS?\b|\bPENSION\b")),
    # Ahead of Transportation so "UBER EATS" is a meal, not a ride.
    (
        "Food & Dining",
        re.compile(
            r"\bGROCER(?:Y|IES)\b|\bSUPERMARKET\b|\bRESTAURANTS?\b|\bCAFE\b|\bCOFFEE\b"
            r"|\bBAKERY\b|\bTAKEAWAY\b|\bDELIVEROO\b|\bJUST\s+EAT\b|\bUBER\s+EATS\b"
            r"|\bSTARBUCKS\b|\bTESCO\b|\bSAINSBURY'?S?\b|\bALDI\b|\bLIDL\b"
        ),
    ),
    # Ahead of Utilities so "GAS STATION" is fuel, not the gas bill.
    (
        "Transportation",
        re.compile(
            r"\bGAS\s+STATION\b|\bFUEL\b|\bPETROL\b|\bDIESEL\b|\bUBER\b|\bLYFT\b"
            r"|\bTAXI\b|\bTRAINS?\b|\bRAIL\b|\bBUS\b|\bMETRO\b|\bTFL\b|\bPARKING\b"
            r"|\bAIRLINES?\b"
        ),
    ),
    (
        "Entertainment",
        re.compile(
            r"\bNETFLIX\b|\bSPOTIFY\b|\bDISNEY\b|\bHULU\b|\bYOUTUBE\b|\bCINEMA\b"
            r"|\bTHEATRE\b|\bTHEATER\b|\bCONCERT\b|\bTICKETMASTER\b|\bSTEAM\b"
            r"|\bPLAYSTATION\b|\bXBOX\b"
        ),
    ),
    (
        "Utilities",
        re.compile(
            r"\bELECTRIC(?:ITY)?\b|\bWATER\b|\bGAS\b|\bENERGY\b|\bBROADBAND\b"
            r"|\bINTERNET\b|\bMOBILE\b|\bPHONE\b|\bCOUNCIL\s+TAX\b|\bUTILIT(?:Y|IES)\b"
        ),
    ),
    (
        "Healthcare",
        re.compile(
            r"\bPHARMACY\b|\bCHEMIST\b|\bDOCTORS?\b|\bDENT(?:AL|IST)\b|\bHOSPITAL\b"
            r"|\bCLINIC\b|\bNHS\b|\bOPTICIANS?\b"
        ),
    ),
    (
        "Shopping",
        re.compile(
            r"\bSHOP(?:PING)?\b|\bSTORE\b|\bAMAZON\b|\bEBAY\b|\bARGOS\b|\bIKEA\b"
            r"|\bRETAIL\b"
        ),
    ),
]


def _norm(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").strip().upper())


def classify(description: str | None) -> Classification:
    """Classify a transaction description.

    Args:
        description: Raw description text from the bank feed.

    Returns:
        Classification with the first matching rule's category, or the
        ``Other`` fallback with a neutral color hint.
    """
    text = _norm(description or "")
    if text:
        for category, pattern in _RULES:
            if pattern.search(text):
                return Classification(
                    category=category, color_hint=CATEGORY_COLORS[category]
                )
    return Classification(category=FALLBACK_CATEGORY, color_hint=NEUTRAL_COLOR)
