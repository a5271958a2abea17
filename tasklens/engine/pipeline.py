"""Query pipeline for tasklens.

parse -> filter -> score -> quality threshold -> sort -> (chat) commentary.

Degradation rules:
- the model being unavailable falls back to deterministic parsing; the
  failure becomes a visible warning only in chat mode when nothing matched
- a rejected or missing configuration always propagates to the caller
- no matching tasks is a normal result with a reason string
"""

import logging
from datetime import date
from typing import List, Optional, Sequence

from tasklens.config import Settings
from tasklens.engine.filtering import filter_tasks
from tasklens.engine.ranking import sort_scored
from tasklens.engine.recommendations import reconcile
from tasklens.engine.scoring import resolve_active_components, score_tasks
from tasklens.engine.threshold import select_quality
from tasklens.errors import ModelUnavailable
from tasklens.integrations.model_providers import ModelProvider, build_provider
from tasklens.models.query import ChatMessage, ParsedQuery, QueryResult, SearchMode
from tasklens.models.task import Task
from tasklens.query.prompts import build_chat_message, build_chat_system_prompt, build_task_context
from tasklens.query.semantic_parser import parse, parse_simple

logger = logging.getLogger(__name__)

MODEL_UNAVAILABLE_WARNING = (
    "The AI model could not be reached; results use standard query syntax and plain keywords only."
)
FALLBACK_WARNING = (
    "The AI response did not reference any listed task; showing the top {count} ranked task(s) instead."
)


def describe_criteria(parsed: ParsedQuery) -> str:
    """Human-readable summary of the active filters, e.g. "priority: 1; due: overdue"."""
    criteria = parsed.criteria
    parts: List[str] = []
    labels = {
        "priority": "priority",
        "due_date": "due",
        "status": "status",
        "folder": "folder",
        "tags": "tags",
        "keywords": "keywords",
        "recurring": "recurring",
        "subtask": "subtask",
    }
    for name in criteria.present_fields():
        value = getattr(criteria, name)
        if name in ("due_date_range", "date_range"):
            label = "due" if name == "due_date_range" else "date"
            if value.start:
                parts.append(f"{label} after: {value.start}")
            if value.end:
                parts.append(f"{label} before: {value.end}")
            if value.is_empty():
                parts.append(f"{label}: any")
            continue
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        parts.append(f"{labels[name]}: {value}")
    return "; ".join(parts) if parts else "your query"


def _trim_history(history: Sequence[ChatMessage], limit: int) -> List[ChatMessage]:
    if limit <= 0:
        return []
    return list(history)[-limit:]


async def run_query(
    query: str,
    tasks: Sequence[Task],
    settings: Settings,
    *,
    mode: Optional[SearchMode] = None,
    provider: Optional[ModelProvider] = None,
    history: Sequence[ChatMessage] = (),
    today: Optional[date] = None,
) -> QueryResult:
    """Answer one query against a task collection.

    Args:
        query: Raw query text
        tasks: Read-only task snapshot
        settings: Settings for every stage
        mode: simple, smart or chat (defaults to settings.default_mode)
        provider: Model provider; built from settings when needed and not given
        history: Earlier chat turns, sent with the commentary request
        today: Reference day for date handling

    Returns:
        QueryResult, empty with a reason when nothing matched

    Raises:
        ConfigurationInvalid: If the model provider is misconfigured
    """
    mode = SearchMode(mode or settings.default_mode)
    today = today or date.today()
    warnings: List[str] = []
    model_failure: Optional[str] = None

    if mode != SearchMode.SIMPLE and provider is None:
        provider = build_provider(settings.provider)

    if mode == SearchMode.SIMPLE:
        parsed = parse_simple(query, settings, today=today)
    else:
        try:
            parsed = await parse(query, settings, provider, today=today)
        except ModelUnavailable as e:
            logger.warning(f"Query parsing degraded to standard syntax: {e}")
            model_failure = str(e)
            parsed = parse_simple(query, settings, today=today).model_copy(update={"parser_error": model_failure})

    filtered = filter_tasks(tasks, parsed.criteria, settings, today=today)
    logger.debug(f"Filtered {len(tasks)} -> {len(filtered)} tasks")
    if not filtered:
        if mode == SearchMode.CHAT and model_failure:
            warnings.append(MODEL_UNAVAILABLE_WARNING)
        return QueryResult(
            mode=mode,
            parsed_query=parsed,
            reason=f"No tasks found matching {describe_criteria(parsed)}.",
            warnings=warnings,
        )

    active = resolve_active_components(parsed, settings.sort_order)
    scored = score_tasks(
        filtered,
        active,
        settings.scoring,
        keywords=parsed.keywords,
        core_keywords=parsed.core_keywords,
        today=today,
    )
    quality = select_quality(
        scored,
        active,
        settings,
        keyword_count=len(parsed.keywords),
        has_keywords=bool(parsed.keywords),
    )
    ranked = sort_scored(quality.kept, settings.sort_order)

    result = QueryResult(
        mode=mode,
        parsed_query=parsed,
        total_filtered=len(filtered),
        total_after_quality=len(ranked),
        warnings=warnings,
    )
    if not ranked:
        if mode == SearchMode.CHAT and model_failure:
            result.warnings.append(MODEL_UNAVAILABLE_WARNING)
        result.reason = f"No tasks matching {describe_criteria(parsed)} met the quality threshold."
        return result

    if mode != SearchMode.CHAT or model_failure:
        result.tasks = ranked[: settings.max_direct_results]
        return result

    context_tasks = ranked[: settings.max_tasks_for_ai]
    result.tasks = context_tasks
    try:
        response = await provider.complete(
            build_chat_system_prompt(settings),
            _trim_history(history, settings.max_chat_history),
            build_chat_message(query, build_task_context(context_tasks, settings)),
        )
    except ModelUnavailable as e:
        # Ranked tasks exist, so the failure is logged rather than shown
        logger.warning(f"Commentary unavailable, returning ranked tasks only: {e}")
        return result

    reconciliation = reconcile(response, context_tasks, max_recommendations=settings.max_recommendations)
    result.recommended = reconciliation.recommended
    result.response_text = reconciliation.rewritten_text
    result.used_fallback = reconciliation.used_fallback
    if reconciliation.used_fallback:
        result.warnings.append(FALLBACK_WARNING.format(count=len(reconciliation.recommended)))
    return result
