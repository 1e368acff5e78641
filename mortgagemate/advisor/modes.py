"""
Advisor mode state machine and analysis-intent detection.
"""

from enum import Enum
from typing import Optional

from .scoring import ScoringStrategy, is_ready


class Mode(str, Enum):
    DATA_GATHERING = "data_gathering"
    ANALYSIS = "analysis"
    FOLLOWUP = "followup"


# Over-inclusive on purpose: a false positive only costs a readiness check.
ANALYSIS_KEYWORDS = (
    "analyze",
    "analyse",
    "analysis",
    "recommend",
    "advice",
    "what should i do",
    "help me decide",
    "best option",
    "compare",
    "should i switch",
    "remortgage",
    "better deal",
    "save money",
    "calculate",
)


def is_requesting_analysis(text: str) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in ANALYSIS_KEYWORDS)


def next_mode(
    fields: dict,
    explicit_analysis_requested: bool,
    has_prior_analysis: bool,
    strategy: Optional[ScoringStrategy] = None,
) -> Mode:
    """
    Pure transition function, re-evaluated every turn.

    A prior analysis pins the session to followup. Otherwise analysis
    needs both an explicit request and a ready FieldSet.
    """
    if has_prior_analysis:
        return Mode.FOLLOWUP
    if explicit_analysis_requested and is_ready(fields, strategy):
        return Mode.ANALYSIS
    return Mode.DATA_GATHERING
