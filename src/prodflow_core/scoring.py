"""RICE / WSJF prioritization scores and idea ordering."""
import math
from datetime import datetime
from typing import Iterable, Optional

DEFAULT_TIME_CRITICALITY = 3

SCORING_METHODS = ("rice", "wsjf")


def round_half_up(value: float, places: int = 1) -> float:
    """Round half away from zero for positive scores (2.25 -> 2.3, not 2.2)."""
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor


def rice_score(reach, impact, confidence, effort) -> float:
    """
    RICE = reach × impact × confidence / effort, rounded to one decimal.

    Returns 0 when effort is zero or missing.
    """
    if not effort:
        return 0.0
    return round_half_up((reach or 0) * (impact or 0) * (confidence or 0) / effort)


def wsjf_score(impact, effort, time_criticality=DEFAULT_TIME_CRITICALITY) -> float:
    """
    WSJF = (business value + time criticality) / job size, rounded to one decimal.

    Impact stands in for business value and effort for job size. Returns 0 when
    effort is zero or missing.
    """
    if not effort:
        return 0.0
    if time_criticality is None:
        time_criticality = DEFAULT_TIME_CRITICALITY
    return round_half_up(((impact or 0) + time_criticality) / effort)


def idea_score(idea, method: str = "rice") -> Optional[float]:
    """
    Score an idea, or None when it lacks the inputs for ``method``.

    RICE needs all four inputs; WSJF needs impact and effort.
    """
    if method == "rice":
        inputs = (idea.reach_score, idea.impact_score, idea.confidence_score, idea.effort_score)
        if any(value is None for value in inputs):
            return None
        return rice_score(*inputs)
    if method == "wsjf":
        if idea.impact_score is None or idea.effort_score is None:
            return None
        return wsjf_score(idea.impact_score, idea.effort_score)
    raise ValueError(f"Unknown scoring method: {method}")


def sort_ideas(ideas: Iterable, method: str = "rice") -> list:
    """
    Order ideas by score, highest first.

    Unscored ideas follow every scored one. Equal scores keep creation order
    (oldest first), then id, so the ordering is deterministic.
    """
    def key(idea):
        score = idea_score(idea, method)
        created_at = idea.created_at or datetime.min
        if score is None:
            return (1, 0.0, created_at, str(idea.id))
        return (0, -score, created_at, str(idea.id))

    return sorted(ideas, key=key)
