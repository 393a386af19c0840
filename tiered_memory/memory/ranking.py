"""
Composite ranking of search hits.

compositeScore = clamp01(0.5 * search + 0.3 * importance + 0.2 * recency + bonus)
where recency decays as exp(-age_days / 30) and bonus rewards short-term
mirrors, self-descriptive user context and any caller boost.
"""

import math
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from tiered_memory.core.database import utcnow
from tiered_memory.models.schemas import RankedResult

SEARCH_WEIGHT = 0.5
IMPORTANCE_WEIGHT = 0.3
RECENCY_WEIGHT = 0.2

SHORT_TERM_BONUS = 0.05
USER_CONTEXT_BONUS = 0.05

RECENCY_DECAY_DAYS = 30.0
SECONDS_PER_DAY = 86400.0


def clamp01(value) -> float:
    """Clamp to [0, 1]; None, NaN and non-numbers become 0."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


def _as_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def recency_score(created_at: Optional[datetime], now: Optional[datetime] = None) -> float:
    """
    Exponential recency decay.

    Args:
        created_at: Memory creation time; naive values are taken as UTC
        now: Reference time, defaults to the current UTC time

    Returns:
        float: 1.0 at age 0, exp(-1) at 30 days; 0 for a missing timestamp

    Example:
        >>> recency_score(utcnow())
        1.0
    """
    if not isinstance(created_at, datetime):
        return 0.0
    reference = _as_naive_utc(now or utcnow())
    age_days = max(0.0, (reference - _as_naive_utc(created_at)).total_seconds() / SECONDS_PER_DAY)
    return clamp01(math.exp(-age_days / RECENCY_DECAY_DAYS))


def composite_score(
    search_score: float,
    importance_score: float,
    recency: float,
    is_short_term: bool = False,
    is_user_context: bool = False,
    boost: float = 0.0
) -> float:
    """
    Weighted blend of relevance, importance and recency plus bonuses.

    Inputs are clamped to [0, 1] before weighting. The bonus is added
    unclamped, so large boosts saturate the result at 1.0.

    Returns:
        float: Composite score in [0, 1]
    """
    bonus = 0.0
    if is_short_term:
        bonus += SHORT_TERM_BONUS
    if is_user_context:
        bonus += USER_CONTEXT_BONUS
    try:
        bonus += float(boost or 0.0)
    except (TypeError, ValueError):
        pass

    base = (
        clamp01(search_score) * SEARCH_WEIGHT
        + clamp01(importance_score) * IMPORTANCE_WEIGHT
        + clamp01(recency) * RECENCY_WEIGHT
    )
    return clamp01(base + bonus)


def rank_results(
    results: Iterable[RankedResult],
    now: Optional[datetime] = None,
    boost: float = 0.0
) -> List[RankedResult]:
    """
    Score and order search hits.

    Ties on composite score are broken by memory_id ascending so equal
    scores always come back in the same order.

    Args:
        results: Hits with search_score, importance_score, created_at and tier flags
        now: Reference time for recency
        boost: Extra bonus applied to every hit

    Returns:
        List[RankedResult]: New results with recency and composite scores, best first
    """
    now = now or utcnow()
    ranked = []
    for result in results:
        recency = recency_score(result.created_at, now)
        ranked.append(result.model_copy(update={
            "recency_score": recency,
            "composite_score": composite_score(
                result.search_score,
                result.importance_score,
                recency,
                is_short_term=result.is_short_term,
                is_user_context=result.is_user_context,
                boost=boost
            )
        }))

    ranked.sort(key=lambda item: (-item.composite_score, item.memory_id))
    return ranked
