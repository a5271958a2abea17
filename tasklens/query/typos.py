"""Correction of common misspellings in free query text.

Used on the deterministic path, where no model is available to fix typos.
Only whole words found in COMMON_TYPOS are replaced, and the replacement
follows the case of the original word (URGANT -> URGENT, Urgant -> Urgent).
"""

import logging
import re
from typing import List, Tuple

logger = logging.getLogger(__name__)

COMMON_TYPOS = {
    # task words
    "taks": "task",
    "tasl": "task",
    "taskk": "task",
    "tsak": "task",
    "takss": "tasks",
    "tassks": "tasks",
    # priority
    "priorty": "priority",
    "priortiy": "priority",
    "priorit": "priority",
    "piority": "priority",
    "priorites": "priorities",
    "prioritys": "priorities",
    # status
    "opne": "open",
    "openn": "open",
    "complated": "completed",
    "compelted": "completed",
    "copleted": "completed",
    "compleated": "completed",
    "complet": "complete",
    "progres": "progress",
    "proggress": "progress",
    # urgency
    "urgant": "urgent",
    "urgnet": "urgent",
    "urgemt": "urgent",
    "urget": "urgent",
    "critcal": "critical",
    "criticla": "critical",
    "importent": "important",
    "imporant": "important",
    "imprtant": "important",
    # dates
    "overdu": "overdue",
    "overdeu": "overdue",
    "tommorow": "tomorrow",
    "tommorrow": "tomorrow",
    "tomorow": "tomorrow",
    "todya": "today",
    "toady": "today",
    # everyday work vocabulary
    "paymant": "payment",
    "payemnt": "payment",
    "systme": "system",
    "sytem": "system",
    "sysem": "system",
    "desing": "design",
    "desgin": "design",
    "developement": "development",
    "devlopment": "development",
    "recieve": "receive",
    "reciept": "receipt",
    "seperete": "separate",
    "seperately": "separately",
    "definately": "definitely",
    "occured": "occurred",
    "occurence": "occurrence",
}

_WORD_RE = re.compile(r"[^\W\d_]+")


def _match_case(original: str, replacement: str) -> str:
    if original.isupper() and len(original) > 1:
        return replacement.upper()
    if original[0].isupper():
        return replacement[0].upper() + replacement[1:]
    return replacement


def correct_typos(text: str) -> Tuple[str, List[str]]:
    """Replace known misspellings in text.

    Args:
        text: Free text (standard syntax already removed)

    Returns:
        Tuple of (corrected text, corrections as "wrong->right" in order of
        first appearance)
    """
    corrections: List[str] = []

    def _fix(m: re.Match) -> str:
        word = m.group(0)
        replacement = COMMON_TYPOS.get(word.lower())
        if replacement is None:
            return word
        fixed = _match_case(word, replacement)
        note = f"{word}->{fixed}"
        if note not in corrections:
            corrections.append(note)
        return fixed

    corrected = _WORD_RE.sub(_fix, text or "")
    if corrections:
        logger.debug(f"Corrected typos: {corrections}")
    return corrected, corrections
