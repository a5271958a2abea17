"""Query understanding for tasklens.

Standard syntax is extracted deterministically first. Only the text left over
is sent to the language model, which returns keywords (expanded across the
configured languages) and any properties it recognized. The two results are
merged structurally: a field the extractor set is never replaced by a model
value.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from tasklens.config import Settings
from tasklens.errors import ModelResponseMalformed
from tasklens.integrations.model_providers import ModelProvider
from tasklens.models.query import DateRange, FilterCriteria, ParsedQuery
from tasklens.query.dates import normalize_due_value
from tasklens.query.deterministic_parser import ExtractionResult, extract
from tasklens.query.json_recovery import EXPECTED_KEYS, extract_json_object, has_expected_key
from tasklens.query.prompts import QUERY_PARSER_SYSTEM_PROMPT, build_query_prompt
from tasklens.query.status import resolve_status
from tasklens.query.stop_words import filter_stop_words, tokenize
from tasklens.query.typos import correct_typos

logger = logging.getLogger(__name__)

_PRIORITY_WORDS = {"high": 1, "urgent": 1, "medium": 2, "low": 3, "all": "any", "any": "any", "none": "none"}


def _coerce_priority_item(value: Any) -> Union[int, str]:
    if isinstance(value, bool):
        raise ValueError("boolean priority")
    if isinstance(value, (int, float)) and float(value).is_integer() and 1 <= int(value) <= 4:
        return int(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token.startswith("p") and token[1:].isdigit():
            token = token[1:]
        if token.isdigit() and 1 <= int(token) <= 4:
            return int(token)
        if token in _PRIORITY_WORDS:
            return _PRIORITY_WORDS[token]
    raise ValueError(f"Unsupported priority {value!r}")


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if isinstance(v, (str, int, float)) and not isinstance(v, bool)]
    raise ValueError("expected a string or a list of strings")


class ModelQueryResult(BaseModel):
    """Typed, partial view of the model's query-understanding JSON.

    Every field is optional. `decode()` validates field by field so a bad
    value only costs that one field.
    """

    core_keywords: List[str] = Field(default_factory=list, alias="coreKeywords")
    keywords: List[str] = Field(default_factory=list)
    priority: Optional[Union[int, List[int], str]] = None
    due_date: Optional[Union[str, List[str]]] = Field(None, alias="dueDate")
    due_date_range: Optional[DateRange] = Field(None, alias="dueDateRange")
    status: Optional[Union[str, List[str]]] = None
    folder: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    detected_language: Optional[str] = Field(None, alias="detectedLanguage")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    corrected_typos: List[str] = Field(default_factory=list, alias="correctedTypos")

    class Config:
        """Pydantic configuration."""
        populate_by_name = True

    @field_validator("core_keywords", "keywords", "corrected_typos", "tags", mode="before")
    @classmethod
    def _lists(cls, v):
        return _string_list(v)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, v):
        if v is None:
            return None
        if isinstance(v, (list, tuple)):
            items = [_coerce_priority_item(p) for p in v]
            levels = [p for p in items if isinstance(p, int)]
            if levels:
                return list(dict.fromkeys(levels))
            return items[0] if items else None
        return _coerce_priority_item(v)

    @field_validator("due_date", "status", mode="before")
    @classmethod
    def _scalar_or_list(cls, v):
        if v is None or isinstance(v, str):
            return v or None
        values = _string_list(v)
        return values or None

    @classmethod
    def decode(cls, payload: Dict[str, Any]) -> Tuple["ModelQueryResult", List[str]]:
        """Validate each known field on its own.

        Returns:
            (result, names of the fields that were dropped as invalid)
        """
        accepted: Dict[str, Any] = {}
        dropped: List[str] = []
        for name, info in cls.model_fields.items():
            for key in (info.alias, name):
                if key and key in payload:
                    break
            else:
                continue
            if payload[key] is None:
                continue
            try:
                cls.model_validate({name: payload[key]})
            except ValidationError:
                dropped.append(key)
                continue
            accepted[name] = payload[key]
        if dropped:
            logger.warning(f"Dropped invalid fields from model response: {dropped}")
        return cls.model_validate(accepted), dropped


def _expand_keywords(core: Sequence[str], keywords: Sequence[str]) -> List[str]:
    """Core keywords first, then the rest of the expansion, without duplicates."""
    out: List[str] = []
    seen = set()
    for word in [*core, *keywords]:
        key = word.lower()
        if key not in seen:
            seen.add(key)
            out.append(word)
    return out


def _model_criteria(result: ModelQueryResult, settings: Settings, today: date) -> Dict[str, Any]:
    """Filter fields from the model, normalized and with unusable values removed."""
    fields: Dict[str, Any] = {}
    if result.priority is not None:
        fields["priority"] = result.priority
    if result.due_date:
        values = result.due_date if isinstance(result.due_date, list) else [result.due_date]
        normalized = [normalize_due_value(v, today, settings.week_start) for v in values]
        fields["due_date"] = normalized[0] if len(normalized) == 1 else normalized
    if result.due_date_range is not None and not result.due_date_range.is_empty():
        fields["due_date_range"] = result.due_date_range
    if result.status:
        values = result.status if isinstance(result.status, list) else [result.status]
        keys: List[str] = []
        for value in values:
            match = resolve_status(value, settings.status_categories)
            if match is None:
                logger.debug(f"Ignoring unknown status from model: {value!r}")
            elif match.category not in keys:
                keys.append(match.category)
        if keys:
            fields["status"] = keys[0] if len(keys) == 1 else keys
    if result.folder and result.folder.strip():
        fields["folder"] = result.folder.strip().strip("/")
    tags = [t.strip().lstrip("#") for t in result.tags if t.strip().lstrip("#")]
    if tags:
        fields["tags"] = tags
    return fields


def _syntax_values(extraction: ExtractionResult) -> Dict[str, Any]:
    return {name: getattr(extraction.criteria, name) for name in extraction.syntax_fields}


def _from_extraction(
    query: str,
    extraction: ExtractionResult,
    keywords: Sequence[str] = (),
    *,
    corrected_typos: Sequence[str] = (),
    used_model: bool = False,
    parser_error: Optional[str] = None,
) -> ParsedQuery:
    """ParsedQuery built from the extractor plus deterministic keywords."""
    values = _syntax_values(extraction)
    syntax_keywords = list(values.get("keywords") or [])
    all_keywords = _expand_keywords(syntax_keywords, keywords)
    if all_keywords:
        values["keywords"] = all_keywords
    return ParsedQuery(
        original_query=query,
        residual_text=extraction.residual.strip(),
        core_keywords=all_keywords,
        criteria=FilterCriteria(**values),
        syntax_fields=extraction.syntax_fields,
        operators=list(extraction.operators),
        corrected_typos=list(corrected_typos),
        used_model=used_model,
        parser_error=parser_error,
    )


def _plain_keywords(text: str, settings: Settings) -> Tuple[List[str], List[str]]:
    """Keywords from free text without a model: typo-corrected, segmented, stop-word filtered."""
    corrected, corrections = correct_typos(text)
    return tokenize(corrected, settings.stop_words), corrections


def parse_simple(query: str, settings: Settings, *, today: Optional[date] = None) -> ParsedQuery:
    """Deterministic query understanding: extracted syntax plus residual tokens as keywords."""
    extraction = extract(query, settings=settings, today=today or date.today())
    tokens, corrections = _plain_keywords(extraction.residual, settings)
    return _from_extraction(query, extraction, tokens, corrected_typos=corrections)


async def parse(
    query: str,
    settings: Settings,
    provider: ModelProvider,
    *,
    today: Optional[date] = None,
) -> ParsedQuery:
    """Understand a query, asking the model only about the non-syntax text.

    Args:
        query: Raw query text
        settings: Settings (languages, vocabularies, stop words)
        provider: Model provider to ask
        today: Reference day for relative dates

    Returns:
        ParsedQuery with extractor fields taking precedence over model fields

    Raises:
        ModelUnavailable: If the provider could not answer
        ConfigurationInvalid: If the provider rejected the credentials
    """
    today = today or date.today()
    extraction = extract(query, settings=settings, today=today)
    residual = extraction.residual.strip()

    if not residual:
        logger.debug("Query is entirely standard syntax; model not called")
        return _from_extraction(query, extraction)

    prompt = build_query_prompt(residual, settings, today)
    raw = await provider.complete(QUERY_PARSER_SYSTEM_PROMPT, [], prompt)

    try:
        payload = extract_json_object(raw)
    except ModelResponseMalformed as e:
        logger.warning(f"Falling back to plain keywords: {e}")
        tokens, corrections = _plain_keywords(residual, settings)
        return _from_extraction(
            query,
            extraction,
            tokens,
            corrected_typos=corrections,
            used_model=True,
            parser_error=str(e),
        )

    parser_error = None
    if not has_expected_key(payload):
        parser_error = f"Model response has none of the expected fields {list(EXPECTED_KEYS)}"
        logger.warning(parser_error)

    result, _ = ModelQueryResult.decode(payload)
    core = filter_stop_words(result.core_keywords, settings.stop_words)
    keywords = _expand_keywords(core, filter_stop_words(result.keywords, settings.stop_words))
    model_fields = _model_criteria(result, settings, today)
    corrected_typos = list(result.corrected_typos)

    if not keywords and not model_fields:
        logger.info("Model returned no keywords or filters; using query tokens")
        core, corrections = _plain_keywords(residual, settings)
        keywords = list(core)
        corrected_typos.extend(c for c in corrections if c not in corrected_typos)

    if keywords:
        model_fields["keywords"] = keywords

    syntax_values = _syntax_values(extraction)
    if "keywords" in syntax_values:
        core = list(syntax_values["keywords"])
    merged = {**model_fields, **syntax_values}

    parsed = ParsedQuery(
        original_query=query,
        residual_text=residual,
        core_keywords=core,
        criteria=FilterCriteria(**merged),
        syntax_fields=extraction.syntax_fields,
        model_fields=[name for name in model_fields if name not in syntax_values],
        operators=list(extraction.operators),
        confidence=result.confidence,
        detected_language=result.detected_language,
        corrected_typos=corrected_typos,
        used_model=True,
        parser_error=parser_error,
    )
    logger.debug(
        f"Parsed query: syntax={parsed.syntax_fields}, model={parsed.model_fields}, "
        f"{len(parsed.keywords)} keywords"
    )
    return parsed
