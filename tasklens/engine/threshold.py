"""Quality threshold selection.

Drops scored tasks whose composite score falls below a fraction of the
maximum achievable score. The fraction is either fixed by the user or, in
adaptive mode, chosen from the number of expanded keywords: the more
keywords, the lower the per-task match density, so the lower the bar.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

from tasklens.config import Settings
from tasklens.engine.scoring import ActiveComponents, max_score
from tasklens.models import constants
from tasklens.models.query import ScoredTask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdResult:
    kept: List[ScoredTask]
    threshold: float
    max_score: float
    fraction: float
    safety_valve_used: bool = False


def adaptive_fraction(keyword_count: int) -> float:
    """Fraction of the maximum score required, by expanded keyword count."""
    for minimum, fraction in constants.ADAPTIVE_THRESHOLD_BUCKETS:
        if keyword_count >= minimum:
            return fraction
    return constants.ADAPTIVE_THRESHOLD_FLOOR


def _top_by_composite(scored: Sequence[ScoredTask], limit: int) -> List[ScoredTask]:
    """Top `limit` tasks by composite score, returned in input order."""
    ranked = sorted(range(len(scored)), key=lambda i: -scored[i].composite)[:limit]
    return [scored[i] for i in sorted(ranked)]


def select_quality(
    scored: Sequence[ScoredTask],
    active: ActiveComponents,
    settings: Settings,
    *,
    keyword_count: int,
    has_keywords: bool,
) -> ThresholdResult:
    """Apply the quality threshold and the optional relevance floor.

    Args:
        scored: Scored tasks, in the order they should be kept
        active: Active scoring components (defines the maximum score)
        settings: Threshold mode, relevance floor and AI context budget
        keyword_count: Number of expanded keywords in the query
        has_keywords: Whether the query supplied keywords at all

    Returns:
        ThresholdResult; kept tasks keep their input order
    """
    maximum = max_score(active, settings.scoring)
    adaptive = settings.adaptive_threshold
    fraction = adaptive_fraction(keyword_count) if adaptive else settings.quality_filter_strength
    threshold = maximum * fraction

    kept = [s for s in scored if s.composite >= threshold]
    logger.debug(
        f"Quality filter (threshold: {threshold:.2f} = {fraction:.0%} of {maximum:.2f}): "
        f"{len(scored)} -> {len(kept)} tasks"
    )

    relevance_floor = settings.minimum_relevance_score > 0.0
    if relevance_floor and has_keywords:
        before = len(kept)
        kept = [s for s in kept if s.relevance >= settings.minimum_relevance_score]
        logger.debug(
            f"Relevance filter (min score: {settings.minimum_relevance_score:.2f}): {before} -> {len(kept)} tasks"
        )

    # Safety valve: only when the user has set neither a threshold nor a floor
    if adaptive and not relevance_floor:
        target = min(settings.max_tasks_for_ai, len(scored))
        if len(kept) < target:
            kept = _top_by_composite(scored, settings.max_tasks_for_ai)
            logger.info(f"Quality filter kept too few tasks; using top {len(kept)} by score instead")
            return ThresholdResult(kept, threshold, maximum, fraction, safety_valve_used=True)

    return ThresholdResult(kept, threshold, maximum, fraction)
