"""Filtering, scoring and ranking engine for tasklens."""

from tasklens.engine.filtering import filter_tasks, matches
from tasklens.engine.scoring import ActiveComponents, resolve_active_components, score_tasks
from tasklens.engine.threshold import ThresholdResult, select_quality
from tasklens.engine.ranking import sort_scored, sort_tasks
from tasklens.engine.recommendations import Reconciliation, reconcile
from tasklens.engine.pipeline import run_query

__all__ = [
    "filter_tasks",
    "matches",
    "ActiveComponents",
    "resolve_active_components",
    "score_tasks",
    "ThresholdResult",
    "select_quality",
    "sort_scored",
    "sort_tasks",
    "Reconciliation",
    "reconcile",
    "run_query",
]
