"""Recover a JSON object from free-form language model output.

Models wrap JSON in reasoning blocks, markdown fences and chatty prose. The
recovery steps run from most to least specific and stop at the first one
that yields a JSON object.
"""

import json
import logging
import re
from typing import Any, Dict, Iterator, Optional, Sequence

from tasklens.errors import ModelResponseMalformed

logger = logging.getLogger(__name__)

# Keys a query-understanding response is expected to carry
EXPECTED_KEYS = (
    "keywords",
    "coreKeywords",
    "priority",
    "dueDate",
    "dueDateRange",
    "status",
    "folder",
    "tags",
)

_REASONING_RE = re.compile(r"<(think|thinking|reasoning|thought)>.*?</\1>", re.I | re.S)
_UNCLOSED_REASONING_RE = re.compile(r"^\s*<(?:think|thinking|reasoning|thought)>.*?(?=\{)", re.I | re.S)
_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.I | re.S)
_HEADING_RE = re.compile(r"^#{1,6}\s", re.M)


def strip_reasoning(text: str) -> str:
    """Remove <think>, <reasoning> and <thought> blocks."""
    cleaned = _REASONING_RE.sub("", text or "")
    # A reasoning block cut off before its closing tag
    return _UNCLOSED_REASONING_RE.sub("", cleaned)


def _loads_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(candidate)
    except (json.JSONDecodeError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def _balanced_candidates(text: str) -> Iterator[str]:
    """Yield every brace-balanced substring, in order of its opening brace."""
    for start, char in enumerate(text):
        if char != "{":
            continue
        depth = 0
        in_string = False
        escaped = False
        for end in range(start, len(text)):
            c = text[end]
            if in_string:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_string = False
                continue
            if c == '"':
                in_string = True
            elif c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    yield text[start:end + 1]
                    break


def has_expected_key(obj: Dict[str, Any], expected: Sequence[str] = EXPECTED_KEYS) -> bool:
    return any(key in obj for key in expected)


def extract_json_object(text: str, expected: Sequence[str] = EXPECTED_KEYS) -> Dict[str, Any]:
    """Recover the JSON object from a raw model response.

    Args:
        text: Raw response text
        expected: Keys that identify the object we are looking for

    Returns:
        The decoded object

    Raises:
        ModelResponseMalformed: If no step yields a JSON object
    """
    cleaned = strip_reasoning(text).strip()
    if _HEADING_RE.search(cleaned):
        logger.warning("Model response contains markdown headings; expected bare JSON")

    fence = _FENCE_RE.search(cleaned)
    if fence:
        obj = _loads_object(fence.group(1))
        if obj is not None:
            return obj

    first_parsed: Optional[Dict[str, Any]] = None
    for candidate in _balanced_candidates(cleaned):
        obj = _loads_object(candidate)
        if obj is None:
            continue
        if has_expected_key(obj, expected):
            return obj
        if first_parsed is None:
            first_parsed = obj
    if first_parsed is not None:
        return first_parsed

    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        obj = _loads_object(cleaned[start:end + 1])
        if obj is not None:
            return obj

    obj = _loads_object(cleaned)
    if obj is not None:
        return obj

    logger.warning(f"Could not recover JSON from model response ({len(text or '')} chars)")
    raise ModelResponseMalformed("No JSON object found in model response", raw_text=text or "")
