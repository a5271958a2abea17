"""Multi-factor scoring for tasklens.

Three components, each a plain function of the task:
- relevance: fraction of core keywords matched (weighted by the core weight)
  plus fraction of all expanded keywords matched, in [0, core_weight + 1]
- due date: step function over five urgency tiers
- priority: step function over P1..P4 and none

Only active components count towards the composite score and towards the
maximum possible score used for thresholding.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence

from tasklens.config import ScoringSettings
from tasklens.models import constants
from tasklens.models.query import ParsedQuery, ScoredTask, SortCriterion
from tasklens.models.task import Task
from tasklens.query.stop_words import contains_cjk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveComponents:
    relevance: bool = False
    due_date: bool = False
    priority: bool = False

    def any(self) -> bool:
        return self.relevance or self.due_date or self.priority


def resolve_active_components(parsed: ParsedQuery, sort_order: Iterable[SortCriterion]) -> ActiveComponents:
    """Decide which components take part in scoring.

    Relevance is active only when the query supplied keywords; a relevance
    sort alone does not activate it. Due date and priority are active when
    the query filtered on them or they appear in the sort order.
    """
    order = [SortCriterion(c) for c in sort_order]
    return ActiveComponents(
        relevance=bool(parsed.keywords),
        due_date=parsed.criteria.has_due_date_filter() or SortCriterion.DUE_DATE in order,
        priority=parsed.criteria.has_priority_filter() or SortCriterion.PRIORITY in order,
    )


def deduplicate_keywords(keywords: Iterable[str]) -> List[str]:
    """Remove duplicates and CJK keywords contained in a longer CJK keyword.

    Latin substrings are kept ("fix" and "fixed" are both counted); for CJK,
    "开发" inside "软件开发" would double count the same characters.
    """
    unique: List[str] = []
    for keyword in keywords:
        k = keyword.strip().lower()
        if k and k not in unique:
            unique.append(k)

    kept: List[str] = []
    for k in sorted(unique, key=len, reverse=True):
        if contains_cjk(k) and any(contains_cjk(longer) and k in longer for longer in kept):
            continue
        kept.append(k)
    return [k for k in unique if k in kept]


def relevance_score(
    text: str,
    core_keywords: Sequence[str],
    keywords: Sequence[str],
    core_weight: float = constants.RELEVANCE_CORE_WEIGHT,
) -> float:
    """Relevance of a task text to the query keywords, in [0, core_weight + 1]."""
    expanded = deduplicate_keywords(keywords)
    core = deduplicate_keywords(core_keywords) or expanded
    if not expanded:
        expanded = core
    if not expanded:
        return 0.0

    lowered = text.lower()
    core_ratio = sum(1 for k in core if k in lowered) / len(core)
    all_ratio = sum(1 for k in expanded if k in lowered) / len(expanded)
    return core_ratio * core_weight + all_ratio


def due_date_score(due: Optional[date], today: date, scoring: ScoringSettings) -> float:
    """Urgency tier score for a due date."""
    if due is None:
        return scoring.due_date_none
    days = (due - today).days
    if days < 0:
        return scoring.due_date_overdue
    if days <= constants.DUE_SOON_DAYS:
        return scoring.due_date_within_7_days
    if days <= constants.DUE_MONTH_DAYS:
        return scoring.due_date_within_month
    return scoring.due_date_later


def priority_score(priority: Optional[int], scoring: ScoringSettings) -> float:
    if priority == 1:
        return scoring.priority_p1
    if priority == 2:
        return scoring.priority_p2
    if priority == 3:
        return scoring.priority_p3
    if priority == 4:
        return scoring.priority_p4
    return scoring.priority_none


def max_score(active: ActiveComponents, scoring: ScoringSettings) -> float:
    """Highest composite score any task could reach with these components."""
    total = 0.0
    if active.relevance:
        total += (scoring.relevance_core_weight + 1.0) * scoring.relevance_coefficient
    if active.due_date:
        total += max(scoring.due_date_tiers) * scoring.due_date_coefficient
    if active.priority:
        total += max(scoring.priority_tiers) * scoring.priority_coefficient
    return total


def score_task(
    task: Task,
    active: ActiveComponents,
    scoring: ScoringSettings,
    *,
    keywords: Sequence[str] = (),
    core_keywords: Sequence[str] = (),
    today: Optional[date] = None,
) -> ScoredTask:
    """Score one task. Inactive components are reported as 0."""
    today = today or date.today()
    relevance = (
        relevance_score(task.text, core_keywords, keywords, scoring.relevance_core_weight)
        if active.relevance
        else 0.0
    )
    due = due_date_score(task.due_date, today, scoring) if active.due_date else 0.0
    priority = priority_score(task.priority, scoring) if active.priority else 0.0
    composite = (
        relevance * scoring.relevance_coefficient
        + due * scoring.due_date_coefficient
        + priority * scoring.priority_coefficient
    )
    return ScoredTask(task=task, relevance=relevance, due_date=due, priority=priority, composite=composite)


def score_tasks(
    tasks: Sequence[Task],
    active: ActiveComponents,
    scoring: ScoringSettings,
    *,
    keywords: Sequence[str] = (),
    core_keywords: Sequence[str] = (),
    today: Optional[date] = None,
) -> List[ScoredTask]:
    """Score every task, preserving input order.

    Args:
        tasks: Tasks to score
        active: Which components take part
        scoring: Coefficients and tier constants
        keywords: Expanded query keywords
        core_keywords: Query keywords before expansion
        today: Reference day for due-date tiers

    Returns:
        One ScoredTask per task, same order
    """
    today = today or date.today()
    scored = [
        score_task(t, active, scoring, keywords=keywords, core_keywords=core_keywords, today=today)
        for t in tasks
    ]
    logger.debug(
        f"Scored {len(scored)} tasks (relevance={active.relevance}, due_date={active.due_date}, "
        f"priority={active.priority})"
    )
    return scored
