"""Data models for tasklens."""

from tasklens.models.task import Task, StatusCategory
from tasklens.models.query import (
    ChatMessage,
    DateRange,
    FilterCriteria,
    ParsedQuery,
    QueryResult,
    ScoredTask,
    SearchMode,
    SortCriterion,
)

__all__ = [
    "Task",
    "StatusCategory",
    "ChatMessage",
    "DateRange",
    "FilterCriteria",
    "ParsedQuery",
    "QueryResult",
    "ScoredTask",
    "SearchMode",
    "SortCriterion",
]
