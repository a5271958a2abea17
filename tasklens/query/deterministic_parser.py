"""Deterministic extractor for the standard query syntax.

Recognizes explicit filter syntax in a query (p1, s:done, ##project, #tag,
search:"...", d:today, due before: 2025-01-31, overdue, !recurring, !p1, ...)
and removes it, leaving the free text for keyword understanding.

It is total: unknown text passes through untouched, and the same input
always yields the same output. Rules run in a fixed order over the original
text; a match overlapping a span already consumed by an earlier rule is
ignored, and when two rules target the same field the earlier rule wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from tasklens.config import Settings
from tasklens.models.query import PRIORITY_ANY, PRIORITY_NONE, DateRange, FilterCriteria
from tasklens.query.dates import normalize_due_value, parse_date, resolve_anchor
from tasklens.query.status import resolve_status

logger = logging.getLogger(__name__)

Span = Tuple[int, int]

# Returned by an interpreter when the text matched the pattern but is not valid syntax
_NOT_RECOGNIZED = object()

OPERATOR_NAMES = {"&": "and", "|": "or", "!": "not"}

_PRIORITY_WORDS = {
    "high": 1, "highest": 1, "urgent": 1,
    "medium": 2,
    "low": 3,
    "lowest": 4,
    "all": PRIORITY_ANY, "any": PRIORITY_ANY,
    "none": PRIORITY_NONE,
}

# Date argument of a range phrase: ISO date, offset, "in 3 days", "2 weeks ago",
# "next week", or a single token such as "tomorrow", "friday" or "month-end".
_DATE_ARG = (
    r"(?P<arg>\d{4}[-/.]\d{1,2}[-/.]\d{1,2}"
    r"|[+-]?\d+\s*[dwmy]\b"
    r"|in\s+\d+\s+(?:day|week|month|year)s?\b"
    r"|\d+\s+(?:day|week|month|year)s?\s+ago\b"
    r"|(?:next|this|last)\s+[a-z]+\b"
    r"|[^\s&|]+)"
)

_VALUE_LIST = r"(?:\"(?P<dq>[^\"]+)\"|'(?P<sq>[^']+)'|(?P<bare>[^\s&|]+))"


@dataclass(frozen=True)
class RuleMatch:
    """One recognized span and the value it produced."""
    rule: str
    span: Span
    value: Any


@dataclass(frozen=True)
class ExtractionResult:
    criteria: FilterCriteria
    residual: str
    matches: Tuple[RuleMatch, ...] = ()
    operators: Tuple[str, ...] = ()

    @property
    def syntax_fields(self) -> List[str]:
        return self.criteria.present_fields()


@dataclass
class _Context:
    settings: Settings
    today: date


def _first(values: List[Any]) -> Any:
    return values[0]


@dataclass(frozen=True)
class RecognizerRule:
    """A named recognizer.

    `interpret` turns one regex match into a value (None means recognized but
    contributing nothing); `merge` folds all values of the rule into the
    field value.
    """
    name: str
    target: Optional[str]
    pattern: re.Pattern
    interpret: Callable[[re.Match, _Context], Any]
    merge: Callable[[List[Any]], Any] = _first


def _group_value(m: re.Match) -> str:
    return m.group("dq") or m.group("sq") or m.group("bare") or ""


def _single_or_list(values: List[Any]) -> Any:
    flat: List[Any] = []
    for value in values:
        for item in value if isinstance(value, list) else [value]:
            if item not in flat:
                flat.append(item)
    if not flat:
        return None
    return flat[0] if len(flat) == 1 else flat


# --- interpreters -----------------------------------------------------------

def _negate_priority(value: Any) -> Any:
    """Complement a priority value; unprioritized tasks fall on the other side."""
    if value == PRIORITY_ANY:
        return PRIORITY_NONE
    if value == PRIORITY_NONE:
        return PRIORITY_ANY
    excluded = value if isinstance(value, list) else [value]
    remaining = [level for level in range(1, 5) if level not in excluded]
    return remaining + [PRIORITY_NONE] if remaining else PRIORITY_NONE


def _interpret_priority(m: re.Match, ctx: _Context) -> Any:
    value = _interpret_priority_value(m)
    if m.group("neg") and value is not _NOT_RECOGNIZED:
        return _negate_priority(value)
    return value


def _interpret_priority_value(m: re.Match) -> Any:
    if m.group("level"):
        return int(m.group("level"))
    levels: List[int] = []
    for part in m.group("plist").split(","):
        token = part.strip().lower()
        if token.isdigit() and 1 <= int(token) <= 4:
            level = int(token)
        elif token in _PRIORITY_WORDS:
            level = _PRIORITY_WORDS[token]
        else:
            return _NOT_RECOGNIZED
        if isinstance(level, str):
            return level
        if level not in levels:
            levels.append(level)
    return levels or _NOT_RECOGNIZED


def _merge_priority(values: List[Any]) -> Any:
    sentinels = [v for v in values if isinstance(v, str)]
    levels = _single_or_list([v for v in values if not isinstance(v, str)])
    if levels is not None:
        return levels
    return sentinels[0] if sentinels else None


def _interpret_status(m: re.Match, ctx: _Context) -> Any:
    raw = _group_value(m)
    resolved = [v.strip() for v in raw.split(",") if resolve_status(v, ctx.settings.status_categories)]
    if not resolved:
        logger.debug(f"Status token {m.group(0)!r} names no known category")
        return None
    if m.group("neg"):
        return ["!" + v for v in resolved]
    return resolved


def _interpret_project(m: re.Match, ctx: _Context) -> Any:
    return m.group("name").strip("/")


def _interpret_tag(m: re.Match, ctx: _Context) -> Any:
    tag = m.group("tag").strip("/")
    if not tag or tag.isdigit():
        return _NOT_RECOGNIZED
    return tag


def _interpret_search(m: re.Match, ctx: _Context) -> Any:
    phrase = _group_value(m).strip()
    return phrase or _NOT_RECOGNIZED


def _interpret_due(m: re.Match, ctx: _Context) -> Any:
    values = [
        normalize_due_value(v, ctx.today, ctx.settings.week_start)
        for v in _group_value(m).split(",")
        if v.strip()
    ]
    return values or _NOT_RECOGNIZED


def _interpret_range_bound(m: re.Match, ctx: _Context) -> Any:
    arg = m.group("arg").strip().lower()
    if resolve_anchor(arg, ctx.today, ctx.settings.week_start):
        bound = arg
    else:
        parsed = parse_date(arg, ctx.today, ctx.settings.week_start)
        if parsed is None:
            return _NOT_RECOGNIZED
        bound = parsed.isoformat()
    side = "end" if m.group("dir").lower() == "before" else "start"
    return (side, bound)


def _merge_range(values: List[Any]) -> DateRange:
    bounds: Dict[str, str] = {}
    for side, bound in values:
        bounds.setdefault(side, bound)
    return DateRange(**bounds)


def _negatable(asserted: Any, negated: Any) -> Callable[[re.Match, _Context], Any]:
    def interpret(m: re.Match, ctx: _Context) -> Any:
        return negated if m.group("neg") else asserted
    return interpret


def _interpret_operator(m: re.Match, ctx: _Context) -> Any:
    return OPERATOR_NAMES[m.group(0)]


# --- rules, in evaluation order ---------------------------------------------

RULES: Sequence[RecognizerRule] = (
    RecognizerRule(
        "priority",
        "priority",
        re.compile(
            r"(?<![\w#])(?P<neg>!\s*)?"
            r"(?:(?:p|priority):\s*(?P<plist>[^\s&|]+)|p(?P<level>[1-4])\b)",
            re.I,
        ),
        _interpret_priority,
        _merge_priority,
    ),
    RecognizerRule(
        "status",
        "status",
        re.compile(r"(?<![\w#])(?P<neg>!\s*)?(?:s|status):\s*" + _VALUE_LIST, re.I),
        _interpret_status,
        _single_or_list,
    ),
    RecognizerRule(
        "project",
        "folder",
        re.compile(r"(?<!#)##+(?P<name>[\w/\-]+)"),
        _interpret_project,
    ),
    RecognizerRule(
        "search",
        "keywords",
        re.compile(r"(?<![\w#])search:\s*" + _VALUE_LIST, re.I),
        _interpret_search,
        lambda values: list(dict.fromkeys(values)),
    ),
    RecognizerRule(
        "due",
        "due_date",
        re.compile(r"(?<![\w#])(?:d|due):\s*" + _VALUE_LIST, re.I),
        _interpret_due,
        _single_or_list,
    ),
    RecognizerRule(
        "due_range",
        "due_date_range",
        re.compile(r"\bdue\s+(?P<dir>before|after):\s*" + _DATE_ARG, re.I),
        _interpret_range_bound,
        _merge_range,
    ),
    RecognizerRule(
        "date_range",
        "date_range",
        re.compile(r"(?<!due\s)\bdate\s+(?P<dir>before|after):\s*" + _DATE_ARG, re.I),
        _interpret_range_bound,
        _merge_range,
    ),
    RecognizerRule(
        "overdue",
        "due_date",
        re.compile(r"(?P<neg>!\s*)?\b(?:overdue|over\s+due|od)\b", re.I),
        _negatable("overdue", "!overdue"),
    ),
    RecognizerRule(
        "no_date",
        "due_date",
        re.compile(r"(?P<neg>!\s*)?\bno\s+(?:due\s+)?date\b", re.I),
        _negatable("none", "any"),
    ),
    RecognizerRule(
        "recurring",
        "recurring",
        re.compile(r"(?P<neg>!\s*)?\brecurring\b", re.I),
        _negatable(True, False),
    ),
    RecognizerRule(
        "subtask",
        "subtask",
        re.compile(r"(?P<neg>!\s*)?\bsubtasks?\b", re.I),
        _negatable(True, False),
    ),
    RecognizerRule(
        "no_priority",
        "priority",
        re.compile(r"\bno\s+priority\b", re.I),
        lambda m, ctx: PRIORITY_NONE,
    ),
    RecognizerRule(
        "tag",
        "tags",
        re.compile(r"(?<![\w#])#(?P<tag>[\w/\-]+)"),
        _interpret_tag,
        lambda values: list(dict.fromkeys(values)),
    ),
    RecognizerRule(
        "operator",
        None,
        re.compile(r"[&|!]"),
        _interpret_operator,
        lambda values: values,
    ),
)


def _overlaps(span: Span, consumed: List[Span]) -> bool:
    return any(span[0] < end and start < span[1] for start, end in consumed)


def _remove_spans(text: str, spans: List[Span]) -> str:
    pieces = []
    cursor = 0
    for start, end in sorted(spans):
        if start > cursor:
            pieces.append(text[cursor:start])
        cursor = max(cursor, end)
    pieces.append(text[cursor:])
    # Keep a separator where a span sat between two words
    return re.sub(r"\s+", " ", " ".join(pieces)).strip()


def extract(query: str, *, settings: Optional[Settings] = None, today: Optional[date] = None) -> ExtractionResult:
    """Extract standard syntax from a query.

    Args:
        query: Raw query text
        settings: Settings supplying status categories and week start
        today: Reference day for relative dates (defaults to date.today())

    Returns:
        ExtractionResult with partial criteria and the residual text. The
        residual is the query itself when nothing was recognized.
    """
    query = query or ""
    ctx = _Context(settings=settings or Settings(), today=today or date.today())

    consumed: List[Span] = []
    matches: List[RuleMatch] = []
    assigned: Dict[str, Any] = {}
    operators: List[str] = []

    for rule in RULES:
        values: List[Any] = []
        for m in rule.pattern.finditer(query):
            span = m.span()
            if _overlaps(span, consumed):
                continue
            value = rule.interpret(m, ctx)
            if value is _NOT_RECOGNIZED:
                continue
            consumed.append(span)
            matches.append(RuleMatch(rule.name, span, value))
            if value is not None:
                values.append(value)

        if not values:
            continue
        if rule.target is None:
            operators.extend(rule.merge(values))
            continue
        merged = rule.merge(values)
        if merged is None:
            continue
        if rule.target in assigned:
            logger.debug(f"Rule {rule.name} ignored: {rule.target} already set")
            continue
        assigned[rule.target] = merged

    if not matches:
        return ExtractionResult(criteria=FilterCriteria(), residual=query)

    criteria = FilterCriteria(**assigned)
    residual = _remove_spans(query, consumed)
    logger.debug(f"Extracted {criteria.present_fields()} from query, residual={residual!r}")
    return ExtractionResult(
        criteria=criteria,
        residual=residual,
        matches=tuple(matches),
        operators=tuple(dict.fromkeys(operators)),
    )
