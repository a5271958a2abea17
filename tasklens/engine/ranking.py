"""Multi-criteria ranking for tasklens.

Sorts tasks by the configured sort order. The first criterion on which two
tasks differ decides; tasks equal on every criterion keep their input order.
"""

from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from tasklens.models.query import ScoredTask, SortCriterion, normalize_sort_order
from tasklens.models.task import Task

__all__ = ["normalize_sort_order", "sort_scored", "sort_tasks"]


def _relevance_sort_key(scored: ScoredTask) -> float:
    """Get sort key for relevance (higher composite score first).

    Args:
        scored: Scored task

    Returns:
        Negated composite score
    """
    return -scored.composite


def _due_date_sort_key(scored: ScoredTask) -> tuple:
    """Get sort key for due date.

    Tasks with due dates come before those without.
    Among tasks with due dates, earlier dates come first.

    Args:
        scored: Scored task

    Returns:
        Tuple for sorting: (has_due_date: 0 or 1, ordinal or 0)
    """
    due = scored.task.due_date
    if due:
        return (0, due.toordinal())
    return (1, 0)


def _priority_sort_key(scored: ScoredTask) -> tuple:
    """Get sort key for priority: 1 first, 4 last, no priority after 4."""
    priority = scored.task.priority
    if priority is None:
        return (1, 0)
    return (0, priority)


def _created_sort_key(scored: ScoredTask) -> tuple:
    """Get sort key for creation date: newest first, undated last."""
    created = scored.task.created_date
    if created:
        return (0, -created.toordinal())
    return (1, 0)


def _alphabetical_sort_key(scored: ScoredTask) -> str:
    return scored.task.text.casefold()


_SORT_KEYS: Dict[SortCriterion, Callable[[ScoredTask], object]] = {
    SortCriterion.RELEVANCE: _relevance_sort_key,
    SortCriterion.DUE_DATE: _due_date_sort_key,
    SortCriterion.PRIORITY: _priority_sort_key,
    SortCriterion.CREATED: _created_sort_key,
    SortCriterion.ALPHABETICAL: _alphabetical_sort_key,
}


def sort_scored(scored: Sequence[ScoredTask], sort_order: Iterable) -> List[ScoredTask]:
    """Sort scored tasks by the given criteria chain.

    This function is deterministic and stable - tasks identical on every
    criterion keep their relative input order.

    Args:
        scored: Scored tasks to sort
        sort_order: Sort criteria (enum members or their names), most significant first

    Returns:
        New list in ranked order
    """
    keys = [_SORT_KEYS[c] for c in normalize_sort_order(sort_order)]
    if not keys:
        return list(scored)
    return sorted(scored, key=lambda s: tuple(key(s) for key in keys))


def sort_tasks(
    tasks: Sequence[Task],
    sort_order: Iterable,
    scores: Optional[Mapping[str, float]] = None,
) -> List[Task]:
    """Sort plain tasks; `scores` maps task id to composite score for relevance."""
    scores = scores or {}
    wrapped = [ScoredTask(task=t, composite=scores.get(t.id, 0.0)) for t in tasks]
    return [s.task for s in sort_scored(wrapped, sort_order)]
