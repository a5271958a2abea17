"""Query-side data models for tasklens.

FilterCriteria is what the filter engine evaluates, ParsedQuery wraps it with
keywords and provenance, and ScoredTask / QueryResult carry ranking output.
"""

from typing import List, Optional, Union
from enum import Enum
from pydantic import BaseModel, Field, field_validator

from tasklens.models.task import Task


class SortCriterion(str, Enum):
    """Sort criteria, applied in the configured order."""
    RELEVANCE = "relevance"
    DUE_DATE = "dueDate"
    PRIORITY = "priority"
    CREATED = "created"
    ALPHABETICAL = "alphabetical"


class SearchMode(str, Enum):
    """How a query is answered.

    SIMPLE never calls the model, SMART uses it for query understanding only,
    CHAT additionally asks it to comment on the ranked tasks.
    """
    SIMPLE = "simple"
    SMART = "smart"
    CHAT = "chat"


_SORT_CRITERIA_BY_NAME = {c.value.lower(): c for c in SortCriterion}


def normalize_sort_order(values) -> List[SortCriterion]:
    """Turn names or enum members into an ordered, deduplicated sort order.

    Unknown names are dropped.
    """
    order: List[SortCriterion] = []
    for value in values or []:
        if isinstance(value, SortCriterion):
            criterion = value
        else:
            criterion = _SORT_CRITERIA_BY_NAME.get(str(value).strip().lower())
            if criterion is None:
                continue
        if criterion not in order:
            order.append(criterion)
    return order


PRIORITY_ANY = "any"
PRIORITY_NONE = "none"


class DateRange(BaseModel):
    """Inclusive date range; either side may be missing.

    Each side is an ISO date, a relative offset (+3d) or an anchor (week-start).
    """
    start: Optional[str] = None
    end: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.start and not self.end


class FilterCriteria(BaseModel):
    """Structured filter. Present fields AND together, list values OR internally."""

    priority: Optional[Union[int, List[Union[int, str]], str]] = Field(
        None, description="1-4, a list of those (which may include 'none'), or the sentinels 'any' / 'none'"
    )
    due_date: Optional[Union[str, List[str]]] = Field(
        None, description="Date keyword, relative offset or ISO date; '!' prefix negates"
    )
    due_date_range: Optional[DateRange] = Field(None, description="Range over the due date")
    date_range: Optional[DateRange] = Field(None, description="Range over any of the task's dates")
    status: Optional[Union[str, List[str]]] = Field(None, description="Category keys, aliases or symbols")
    folder: Optional[str] = Field(None, description="Folder path prefix")
    tags: Optional[List[str]] = Field(None, description="Tags, any of which must match")
    keywords: Optional[List[str]] = Field(None, description="Keywords, any of which must appear in the text")
    recurring: Optional[bool] = Field(None, description="Require (or exclude) recurring tasks")
    subtask: Optional[bool] = Field(None, description="Require (or exclude) subtasks")

    @field_validator("priority")
    @classmethod
    def _normalize_priority(cls, v):
        if v is None:
            return None
        if isinstance(v, str):
            value = v.strip().lower()
            if value == "all":
                return PRIORITY_ANY
            if value in (PRIORITY_ANY, PRIORITY_NONE):
                return value
            if not value.isdigit():
                raise ValueError(f"Unsupported priority value: {v!r}")
            v = int(value)
        if isinstance(v, list):
            out: List[Union[int, str]] = []
            for p in v:
                if isinstance(p, str):
                    p = p.strip().lower()
                    if p != PRIORITY_NONE:
                        if not p.isdigit():
                            raise ValueError(f"Unsupported priority value: {p!r}")
                        p = int(p)
                if p != PRIORITY_NONE and not 1 <= p <= 4:
                    raise ValueError(f"Priority must be between 1 and 4, got {p}")
                if p not in out:
                    out.append(p)
            return out
        if not 1 <= v <= 4:
            raise ValueError(f"Priority must be between 1 and 4, got {v}")
        return v

    def present_fields(self) -> List[str]:
        """Names of the fields that constrain the result, in declaration order."""
        present = []
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, (list, str)) and len(value) == 0:
                continue
            if isinstance(value, DateRange) and value.is_empty() and name != "due_date_range":
                continue
            present.append(name)
        return present

    def has_due_date_filter(self) -> bool:
        return self.due_date not in (None, "", []) or self.due_date_range is not None

    def has_priority_filter(self) -> bool:
        return self.priority not in (None, "", [])

    def has_filters(self) -> bool:
        """True when any field other than keywords is present."""
        return any(name != "keywords" for name in self.present_fields())


class ParsedQuery(BaseModel):
    """Result of query understanding: criteria plus keywords and provenance."""

    original_query: str
    residual_text: str = ""
    core_keywords: List[str] = Field(default_factory=list, description="Keywords before expansion")
    criteria: FilterCriteria = Field(default_factory=FilterCriteria)
    syntax_fields: List[str] = Field(default_factory=list, description="Fields set by the syntax extractor")
    model_fields: List[str] = Field(default_factory=list, description="Fields taken from the model")
    operators: List[str] = Field(default_factory=list, description="Boolean glyphs seen in the query")
    confidence: Optional[float] = None
    detected_language: Optional[str] = None
    corrected_typos: List[str] = Field(default_factory=list)
    used_model: bool = False
    parser_error: Optional[str] = None

    @property
    def keywords(self) -> List[str]:
        """Expanded keywords (core keywords included)."""
        return list(self.criteria.keywords or [])


class ScoredTask(BaseModel):
    """A task with its component scores and composite score."""

    task: Task
    relevance: float = 0.0
    due_date: float = 0.0
    priority: float = 0.0
    composite: float = 0.0


class ChatMessage(BaseModel):
    """One turn of conversation history passed in by the host."""

    role: str = Field(..., pattern="^(user|assistant)$")
    content: str


class QueryResult(BaseModel):
    """Everything the pipeline hands back for one query."""

    mode: SearchMode
    parsed_query: ParsedQuery
    tasks: List[ScoredTask] = Field(default_factory=list, description="Ranked tasks, trimmed to the display budget")
    recommended: List[ScoredTask] = Field(default_factory=list, description="Tasks the model recommended (chat mode)")
    response_text: Optional[str] = Field(None, description="Model commentary with task references renumbered")
    reason: Optional[str] = Field(None, description="Why the result is empty, when it is")
    warnings: List[str] = Field(default_factory=list)
    total_filtered: int = 0
    total_after_quality: int = 0
    used_fallback: bool = False

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
