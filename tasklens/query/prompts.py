"""Prompt text for the language model calls.

Two calls exist: query understanding (returns JSON) and chat commentary over
a numbered task list (returns prose with [TASK_N] references).
"""

import json
from datetime import date
from typing import Sequence

from tasklens.config import Settings
from tasklens.models.query import ScoredTask
from tasklens.query.status import status_vocabulary
from tasklens.query.stop_words import INTERNAL_STOP_WORDS

QUERY_PARSER_SYSTEM_PROMPT = "You are a multilingual task query parser. Respond only with valid JSON."

# Query understanding prompt template
QUERY_PROMPT_TEMPLATE = """Today is {today}. Parse this task search query into JSON.

Query: "{query}"

Return a JSON object with these fields (omit fields that do not apply):
- "coreKeywords": the user's own content words, before any expansion
- "keywords": the core keywords plus up to {expansions} synonyms per keyword in EACH of these languages: {languages}
- "priority": 1-4, a list of those, "any" or "none"
- "dueDate": one of {due_keywords}, a relative offset like "+3d", or a date YYYY-MM-DD
- "dueDateRange": {{"start": "YYYY-MM-DD", "end": "YYYY-MM-DD"}} (either side optional)
- "status": one of the category keys below, or a list of them
- "folder": a folder path
- "tags": a list of tags without '#'
- "detectedLanguage": the language of the query
- "confidence": 0.0-1.0
- "correctedTypos": list of "wrong->right" corrections you applied

Status categories and the terms that mean them:
{status_terms}

Never put these words in keywords: {stop_words}
Do not treat words describing a property (e.g. "urgent", "due", "completed") as keywords when you set that property.

Example response:
{{"coreKeywords": ["fix", "bug"], "keywords": ["fix", "repair", "bug", "defect", "修复", "错误"], "priority": 1, "detectedLanguage": "English", "confidence": 0.9}}

Respond only with the JSON object, no other text."""

CHAT_INSTRUCTIONS = """Recommend the most relevant tasks for the user's request from the list below.
Reference every task you mention by its ID exactly as shown, e.g. [TASK_3].
Only reference tasks from this list. Recommend at most {max_recommendations} tasks.
Tasks are listed in ranked order ({sort_order}).
{language_instruction}"""

_DUE_KEYWORDS = ["today", "tomorrow", "overdue", "future", "week", "next-week", "month", "any", "none"]


def build_query_prompt(query: str, settings: Settings, today: date) -> str:
    """User message asking the model to parse `query`."""
    vocabulary = status_vocabulary(settings.status_categories)
    status_terms = "\n".join(f"- {key}: {', '.join(terms)}" for key, terms in vocabulary.items())
    stop_words = sorted(set(INTERNAL_STOP_WORDS) | {w.lower() for w in settings.stop_words})
    return QUERY_PROMPT_TEMPLATE.format(
        today=today.isoformat(),
        query=query.replace('"', "'"),
        expansions=settings.expansions_per_language,
        languages=", ".join(settings.query_languages),
        due_keywords=json.dumps(_DUE_KEYWORDS, ensure_ascii=False),
        status_terms=status_terms,
        stop_words=", ".join(stop_words),
    )


def build_task_context(tasks: Sequence[ScoredTask], settings: Settings) -> str:
    """Numbered task list shown to the model; [TASK_1] is the first task."""
    if not tasks:
        return "No tasks found matching your query."

    lines = [f"Found {len(tasks)} relevant task(s):", ""]
    for index, scored in enumerate(tasks, start=1):
        task = scored.task
        category = settings.status_categories.get(task.status_category)
        metadata = [f"Status: {category.display_name if category else task.status_category}"]
        if task.priority:
            metadata.append(f"Priority: {task.priority}")
        if task.due_date:
            metadata.append(f"Due: {task.due_date.isoformat()}")
        if task.created_date:
            metadata.append(f"Created: {task.created_date.isoformat()}")
        if task.completed_date:
            metadata.append(f"Completed: {task.completed_date.isoformat()}")
        if task.folder:
            metadata.append(f"Folder: {task.folder}")
        if task.tags:
            metadata.append(f"Tags: {', '.join(task.tags)}")
        lines.append(f"[TASK_{index}] {task.text}")
        lines.append(f"  {' | '.join(metadata)}")
        lines.append("")
    return "\n".join(lines)


def build_chat_system_prompt(settings: Settings) -> str:
    if settings.response_language == "auto":
        language_instruction = "Respond in the same language as the user's request."
    else:
        language_instruction = f"Respond in {settings.response_language}."
    instructions = CHAT_INSTRUCTIONS.format(
        max_recommendations=settings.max_recommendations,
        sort_order=", ".join(str(getattr(c, "value", c)) for c in settings.sort_order),
        language_instruction=language_instruction,
    )
    return f"{settings.system_prompt}\n\n{instructions}"


def build_chat_message(query: str, task_context: str) -> str:
    return f"{task_context}\nUser request: {query}"
