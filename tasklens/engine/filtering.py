"""Compound filtering of tasks against FilterCriteria.

A task is kept iff it satisfies every present field. List values OR
together within a field. Filtering never reorders or modifies tasks, and
each task is judged on its own; a subtask does not inherit anything from
its parent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from tasklens.config import Settings
from tasklens.models.query import PRIORITY_ANY, PRIORITY_NONE, DateRange, FilterCriteria
from tasklens.models.task import StatusCategory, Task
from tasklens.query.dates import keyword_window, parse_date, parse_relative_offset, resolve_anchor
from tasklens.query.status import resolve_status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _FilterContext:
    settings: Settings
    today: date


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else [value]


def _matches_priority(task: Task, value: Any, ctx: _FilterContext) -> bool:
    if value == PRIORITY_ANY:
        return task.priority is not None and 1 <= task.priority <= 4
    if value == PRIORITY_NONE:
        return task.priority is None
    wanted = _as_list(value)
    if task.priority is None:
        return PRIORITY_NONE in wanted
    return task.priority in wanted


def _matches_status_value(task: Task, value: str, ctx: _FilterContext) -> bool:
    categories = ctx.settings.status_categories
    match = resolve_status(value, categories)
    if match is None:
        return task.status_category.lower() == value.strip().lower()
    if match.symbol is not None and task.status_symbol is not None:
        return task.status_symbol == match.symbol
    if match.category == StatusCategory.OTHER.value:
        return task.status_category == match.category or task.status_category not in categories
    return task.status_category == match.category


def _matches_status(task: Task, value: Any, ctx: _FilterContext) -> bool:
    """OR over plain values, then exclude anything a '!'-prefixed value matches."""
    values = _as_list(value)
    # a lone "!" is a checkbox symbol
    excluded = [v[1:].strip() for v in values if v.startswith("!") and len(v) > 1]
    wanted = [v for v in values if not (v.startswith("!") and len(v) > 1)]
    if wanted and not any(_matches_status_value(task, v, ctx) for v in wanted):
        return False
    return not any(_matches_status_value(task, v, ctx) for v in excluded)


def matches_due_value(due: Optional[date], value: str, today: date, week_start: int = 0) -> bool:
    """Check one due-date filter value (keyword, offset or date) against a due date.

    A leading '!' negates the value; a task without a due date is therefore
    "not overdue".
    """
    keyword = (value or "").strip().lower()
    if keyword.startswith("!"):
        return not matches_due_value(due, keyword[1:], today, week_start)

    if keyword in ("any", "all"):
        return due is not None
    if keyword in ("none", "no date", "nodate"):
        return due is None
    if due is None:
        return False

    if keyword == "today":
        return due == today
    if keyword == "tomorrow":
        return due == today + timedelta(days=1)
    if keyword == "yesterday":
        return due == today - timedelta(days=1)
    if keyword == "overdue":
        return due < today
    if keyword == "future":
        return due > today

    try:
        window = keyword_window(keyword, today, week_start)
        if window:
            return window[0] <= due <= window[1]
        target = parse_relative_offset(keyword, today) or parse_date(keyword, today, week_start)
    except (OverflowError, ValueError) as e:
        logger.debug(f"Due date filter value {value!r} is out of range: {e}")
        return False
    if target is None:
        logger.debug(f"Unrecognized due date filter value: {value!r}")
        return False
    return due == target


def _matches_due_date(task: Task, value: Any, ctx: _FilterContext) -> bool:
    return any(
        matches_due_value(task.due_date, v, ctx.today, ctx.settings.week_start)
        for v in _as_list(value)
    )


def resolve_bound(bound: Optional[str], today: date, week_start: int = 0) -> Optional[date]:
    """Resolve one side of a DateRange (anchor, offset or date)."""
    if not bound:
        return None
    text = bound.strip().lower()
    return resolve_anchor(text, today, week_start) or parse_date(text, today, week_start)


def matches_date_range(dates: Iterable[Optional[date]], date_range: DateRange, today: date, week_start: int = 0) -> bool:
    """True if any of `dates` falls inside the inclusive range.

    An empty range only requires a date to be present.
    """
    start = resolve_bound(date_range.start, today, week_start)
    end = resolve_bound(date_range.end, today, week_start)
    if date_range.start and start is None:
        logger.warning(f"Ignoring unparseable range start: {date_range.start!r}")
    if date_range.end and end is None:
        logger.warning(f"Ignoring unparseable range end: {date_range.end!r}")
    for d in dates:
        if d is None:
            continue
        if start is not None and d < start:
            continue
        if end is not None and d > end:
            continue
        return True
    return False


def _matches_due_date_range(task: Task, value: DateRange, ctx: _FilterContext) -> bool:
    return matches_date_range([task.due_date], value, ctx.today, ctx.settings.week_start)


def _matches_date_range(task: Task, value: DateRange, ctx: _FilterContext) -> bool:
    dates = [task.due_date, task.created_date, task.completed_date]
    return matches_date_range(dates, value, ctx.today, ctx.settings.week_start)


def _normalize_folder(path: str) -> str:
    return path.replace("\\", "/").strip().strip("/").lower()


def _matches_folder(task: Task, value: str, ctx: _FilterContext) -> bool:
    if not task.folder:
        return False
    wanted = _normalize_folder(value)
    folder = _normalize_folder(task.folder)
    return folder == wanted or folder.startswith(wanted + "/")


def _normalize_tag(tag: str) -> str:
    return tag.strip().lstrip("#").lower()


def _matches_tags(task: Task, value: Sequence[str], ctx: _FilterContext) -> bool:
    task_tags = {_normalize_tag(t) for t in task.all_tags()}
    return any(_normalize_tag(t) in task_tags for t in value)


def _matches_keywords(task: Task, value: Sequence[str], ctx: _FilterContext) -> bool:
    text = task.text.lower()
    return any(k.lower() in text for k in value if k)


def _matches_recurring(task: Task, value: bool, ctx: _FilterContext) -> bool:
    return task.recurring == value


def _matches_subtask(task: Task, value: bool, ctx: _FilterContext) -> bool:
    return task.is_subtask == value


_FIELD_PREDICATES: Dict[str, Callable[[Task, Any, _FilterContext], bool]] = {
    "priority": _matches_priority,
    "due_date": _matches_due_date,
    "due_date_range": _matches_due_date_range,
    "date_range": _matches_date_range,
    "status": _matches_status,
    "folder": _matches_folder,
    "tags": _matches_tags,
    "keywords": _matches_keywords,
    "recurring": _matches_recurring,
    "subtask": _matches_subtask,
}


def matches(
    task: Task,
    criteria: FilterCriteria,
    settings: Optional[Settings] = None,
    *,
    today: Optional[date] = None,
) -> bool:
    """Check a single task against every present field of criteria."""
    ctx = _FilterContext(settings=settings or Settings(), today=today or date.today())
    return all(
        _FIELD_PREDICATES[name](task, getattr(criteria, name), ctx)
        for name in criteria.present_fields()
    )


def filter_tasks(
    tasks: Sequence[Task],
    criteria: FilterCriteria,
    settings: Optional[Settings] = None,
    *,
    today: Optional[date] = None,
) -> List[Task]:
    """Keep the tasks that satisfy every present field of criteria.

    Args:
        tasks: Tasks to filter (not modified)
        criteria: Filter criteria; absent fields impose no constraint
        settings: Settings supplying status categories and week start
        today: Reference day for date keywords (defaults to date.today())

    Returns:
        Matching tasks in their original order
    """
    ctx = _FilterContext(settings=settings or Settings(), today=today or date.today())
    result = list(tasks)
    for name in criteria.present_fields():
        value = getattr(criteria, name)
        before = len(result)
        result = [task for task in result if _FIELD_PREDICATES[name](task, value, ctx)]
        logger.debug(f"{name} filter ({value}): {before} -> {len(result)} tasks")
    return result
