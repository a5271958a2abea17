"""Status value resolution.

Maps whatever a user (or the model) wrote for a status, such as a category
key, a display name, an alias, a checkbox symbol or a common word in one of
the supported languages, to a configured category key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from tasklens.config import StatusCategorySettings

# Built-in terms, consulted after the configured tables
DEFAULT_STATUS_TERMS: Dict[str, List[str]] = {
    "open": ["open", "todo", "new", "unstarted", "incomplete", "not started", "to do",
             "待办", "未完成", "öppen"],
    "inProgress": ["inprogress", "in-progress", "in progress", "wip", "working", "ongoing",
                   "current", "进行中", "正在做", "pågående"],
    "completed": ["completed", "done", "finished", "closed", "resolved", "complete",
                  "完成", "已完成", "klar", "färdig"],
    "cancelled": ["cancelled", "canceled", "abandoned", "dropped", "discarded", "rejected",
                  "取消", "已取消", "avbruten"],
}


@dataclass(frozen=True)
class StatusMatch:
    category: str
    symbol: Optional[str] = None  # set when the value was a raw checkbox symbol


def resolve_status(value: str, categories: Mapping[str, StatusCategorySettings]) -> Optional[StatusMatch]:
    """Resolve one raw status value.

    Order: category key, display name, configured alias, checkbox symbol,
    built-in term. Comparison is case-insensitive except for symbols.

    Returns:
        StatusMatch, or None if the value names no configured category
    """
    if value is None:
        return None
    lowered = value.strip().lower()

    for key, category in categories.items():
        if lowered and lowered == key.lower():
            return StatusMatch(key)
    for key, category in categories.items():
        if lowered and lowered == category.display_name.strip().lower():
            return StatusMatch(key)
    for key, category in categories.items():
        if lowered and lowered in (a.strip().lower() for a in category.aliases):
            return StatusMatch(key)

    # Symbols are compared unstripped: " " is the open checkbox
    for candidate in (value, value.strip()):
        for key, category in categories.items():
            if candidate in category.symbols:
                return StatusMatch(key, symbol=candidate)

    for key, terms in DEFAULT_STATUS_TERMS.items():
        if key in categories and lowered in terms:
            return StatusMatch(key)
    return None


def status_vocabulary(categories: Mapping[str, StatusCategorySettings]) -> Dict[str, List[str]]:
    """Terms per category key, for prompting the model."""
    vocabulary: Dict[str, List[str]] = {}
    for key, category in categories.items():
        terms: List[str] = []
        for term in [key, category.display_name, *category.aliases, *DEFAULT_STATUS_TERMS.get(key, [])]:
            if term and term.lower() not in (t.lower() for t in terms):
                terms.append(term)
        vocabulary[key] = terms
    return vocabulary
