"""
Completeness scoring.

Two schemes exist and are kept apart on purpose:
  uniform  — share of Required + Important fields present. Analysis needs every Required field.
  weighted — Required fields worth 10, Important fields worth 5. Analysis needs score >= threshold.

They can disagree on readiness for the same FieldSet. Pick one with SCORING_STRATEGY.
"""

from enum import Enum
from typing import Optional

from ..core.config import get_settings
from .fields import CRITICAL_FIELDS, IMPORTANT_FIELDS, REQUIRED_FIELDS, is_present

REQUIRED_WEIGHT = 10
IMPORTANT_WEIGHT = 5


class ScoringStrategy(str, Enum):
    UNIFORM = "uniform"
    WEIGHTED = "weighted"


def _percent(earned: int, possible: int) -> int:
    """100 * earned / possible, rounded half-up, in integer arithmetic."""
    if possible <= 0:
        return 0
    return (200 * earned + possible) // (2 * possible)


def score_uniform(fields: dict) -> int:
    present = sum(1 for name in CRITICAL_FIELDS if is_present(fields, name))
    return _percent(present, len(CRITICAL_FIELDS))


def score_weighted(fields: dict) -> int:
    earned = sum(REQUIRED_WEIGHT for name in REQUIRED_FIELDS if is_present(fields, name))
    earned += sum(IMPORTANT_WEIGHT for name in IMPORTANT_FIELDS if is_present(fields, name))
    possible = REQUIRED_WEIGHT * len(REQUIRED_FIELDS) + IMPORTANT_WEIGHT * len(IMPORTANT_FIELDS)
    return _percent(earned, possible)


def has_all_required(fields: dict) -> bool:
    return all(is_present(fields, name) for name in REQUIRED_FIELDS)


def get_strategy(value: Optional[str] = None) -> ScoringStrategy:
    """Resolve a strategy name, defaulting to SCORING_STRATEGY. Unknown names raise ValueError."""
    if value is None:
        value = get_settings().scoring_strategy
    return ScoringStrategy(value.strip().lower())


def completeness_score(fields: dict, strategy: Optional[ScoringStrategy] = None) -> int:
    strategy = strategy or get_strategy()
    if strategy is ScoringStrategy.WEIGHTED:
        return score_weighted(fields)
    return score_uniform(fields)


def is_ready(
    fields: dict,
    strategy: Optional[ScoringStrategy] = None,
    threshold: Optional[int] = None,
) -> bool:
    """The readiness predicate gating analysis mode."""
    strategy = strategy or get_strategy()
    if strategy is ScoringStrategy.WEIGHTED:
        if threshold is None:
            threshold = get_settings().analysis_score_threshold
        return score_weighted(fields) >= threshold
    return has_all_required(fields)
