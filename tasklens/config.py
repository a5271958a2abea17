"""Configuration for tasklens.

Settings are a plain pydantic value passed explicitly to every pipeline stage.
`load_settings()` builds one from environment variables (a `.env` file is
honoured through python-dotenv); nothing else in the package reads the
environment.
"""

import os
import logging
from enum import Enum
from typing import Dict, List, Mapping, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from dotenv import load_dotenv

from tasklens.errors import ConfigurationInvalid
from tasklens.models import constants
from tasklens.models.query import SearchMode, SortCriterion, normalize_sort_order

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ProviderName(str, Enum):
    """Supported language model providers."""
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"
    ANTHROPIC = "anthropic"


DEFAULT_MODELS: Dict[str, str] = {
    ProviderName.OPENAI.value: "gpt-4o-mini",
    ProviderName.OPENROUTER.value: "openai/gpt-4o-mini",
    ProviderName.OLLAMA.value: "llama3.1",
    ProviderName.ANTHROPIC.value: "claude-3-5-haiku-latest",
}

DEFAULT_API_BASES: Dict[str, str] = {
    ProviderName.OPENAI.value: "https://api.openai.com/v1",
    ProviderName.OPENROUTER.value: "https://openrouter.ai/api/v1",
    ProviderName.OLLAMA.value: "http://localhost:11434/v1",
    ProviderName.ANTHROPIC.value: "https://api.anthropic.com/v1",
}

# Environment variable holding the API key for each provider
API_KEY_ENV_VARS: Dict[str, str] = {
    ProviderName.OPENAI.value: "OPENAI_API_KEY",
    ProviderName.OPENROUTER.value: "OPENROUTER_API_KEY",
    ProviderName.ANTHROPIC.value: "ANTHROPIC_API_KEY",
}

DEFAULT_SYSTEM_PROMPT = (
    "You are a task assistant. Focus ONLY on the user's existing tasks. "
    "Do not create new content or provide generic advice. Help users find, "
    "prioritize, and manage their actual tasks. Reference tasks using [TASK_X] IDs. "
    "Be concise and actionable."
)


class ProviderSettings(BaseModel):
    """Language model provider settings."""

    name: ProviderName = Field(ProviderName.OPENAI, description="Provider to call")
    model: Optional[str] = Field(None, description="Model name; provider default when empty")
    api_key: Optional[str] = Field(None, description="API key (not needed for ollama)")
    api_base: Optional[str] = Field(None, description="Base URL; provider default when empty")
    temperature: float = Field(0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(2000, ge=1)
    timeout_seconds: float = Field(60.0, gt=0.0)

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS[ProviderName(self.name).value]

    @property
    def resolved_api_base(self) -> str:
        return (self.api_base or DEFAULT_API_BASES[ProviderName(self.name).value]).rstrip("/")

    @property
    def requires_api_key(self) -> bool:
        return ProviderName(self.name) != ProviderName.OLLAMA


class ScoringSettings(BaseModel):
    """Coefficients and tier constants for the scoring engine."""

    relevance_coefficient: float = Field(constants.RELEVANCE_COEFFICIENT, ge=0.0)
    due_date_coefficient: float = Field(constants.DUE_DATE_COEFFICIENT, ge=0.0)
    priority_coefficient: float = Field(constants.PRIORITY_COEFFICIENT, ge=0.0)
    relevance_core_weight: float = Field(constants.RELEVANCE_CORE_WEIGHT, ge=0.0)

    due_date_overdue: float = Field(constants.DUE_DATE_OVERDUE, ge=0.0)
    due_date_within_7_days: float = Field(constants.DUE_DATE_WITHIN_7_DAYS, ge=0.0)
    due_date_within_month: float = Field(constants.DUE_DATE_WITHIN_MONTH, ge=0.0)
    due_date_later: float = Field(constants.DUE_DATE_LATER, ge=0.0)
    due_date_none: float = Field(constants.DUE_DATE_NONE, ge=0.0)

    priority_p1: float = Field(constants.PRIORITY_P1, ge=0.0)
    priority_p2: float = Field(constants.PRIORITY_P2, ge=0.0)
    priority_p3: float = Field(constants.PRIORITY_P3, ge=0.0)
    priority_p4: float = Field(constants.PRIORITY_P4, ge=0.0)
    priority_none: float = Field(constants.PRIORITY_NONE, ge=0.0)

    @property
    def due_date_tiers(self) -> List[float]:
        return [
            self.due_date_overdue,
            self.due_date_within_7_days,
            self.due_date_within_month,
            self.due_date_later,
            self.due_date_none,
        ]

    @property
    def priority_tiers(self) -> List[float]:
        return [
            self.priority_p1,
            self.priority_p2,
            self.priority_p3,
            self.priority_p4,
            self.priority_none,
        ]

    @model_validator(mode="after")
    def _validate_monotonic_tiers(self):
        for label, tiers in (("due date", self.due_date_tiers), ("priority", self.priority_tiers)):
            for higher, lower in zip(tiers, tiers[1:]):
                if lower > higher:
                    raise ValueError(f"{label} tier constants must not increase with lower urgency: {tiers}")
        return self


class StatusCategorySettings(BaseModel):
    """One status category: display name, alias terms and checkbox symbols."""

    display_name: str
    aliases: List[str] = Field(default_factory=list)
    symbols: List[str] = Field(default_factory=list)

    @field_validator("aliases", mode="before")
    @classmethod
    def _split_aliases(cls, v):
        if isinstance(v, str):
            return [a.strip() for a in v.split(",") if a.strip()]
        return v


def default_status_categories() -> Dict[str, StatusCategorySettings]:
    return {
        "open": StatusCategorySettings(display_name="Open", symbols=[" ", ""]),
        "inProgress": StatusCategorySettings(display_name="In progress", symbols=["/", "~"]),
        "completed": StatusCategorySettings(display_name="Completed", symbols=["x", "X"]),
        "cancelled": StatusCategorySettings(display_name="Cancelled", symbols=["-"]),
        "other": StatusCategorySettings(display_name="Other", symbols=[]),
    }


class Settings(BaseModel):
    """Everything the pipeline needs to answer one query."""

    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    status_categories: Dict[str, StatusCategorySettings] = Field(default_factory=default_status_categories)

    stop_words: List[str] = Field(default_factory=list, description="Extra stop words on top of the built-in set")
    query_languages: List[str] = Field(default_factory=lambda: list(constants.DEFAULT_QUERY_LANGUAGES))
    expansions_per_language: int = Field(constants.EXPANSIONS_PER_LANGUAGE, ge=1, le=20)
    week_start: int = Field(0, ge=0, le=6, description="First day of the week, 0 = Monday")

    max_direct_results: int = Field(constants.MAX_DIRECT_RESULTS, ge=1)
    max_tasks_for_ai: int = Field(constants.MAX_TASKS_FOR_AI, ge=1)
    max_recommendations: int = Field(constants.MAX_RECOMMENDATIONS, ge=1)
    max_chat_history: int = Field(50, ge=0)

    quality_filter_strength: float = Field(0.0, ge=0.0, le=1.0, description="0 means adaptive")
    minimum_relevance_score: float = Field(0.0, ge=0.0, description="0 disables the relevance floor")

    sort_order: List[SortCriterion] = Field(
        default_factory=lambda: [SortCriterion.RELEVANCE, SortCriterion.DUE_DATE, SortCriterion.PRIORITY]
    )
    default_mode: SearchMode = SearchMode.SMART
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    response_language: str = Field("auto", description="'auto' answers in the language of the query")

    @field_validator("sort_order", mode="before")
    @classmethod
    def _normalize_sort_order(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        return normalize_sort_order(v)

    @field_validator("status_categories")
    @classmethod
    def _require_categories(cls, v):
        if not v:
            raise ValueError("At least one status category is required")
        return v

    @property
    def adaptive_threshold(self) -> bool:
        return self.quality_filter_strength <= 0.0


def _split_list(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables.

    Args:
        environ: Mapping to read instead of os.environ (used by tests)

    Returns:
        Validated Settings

    Raises:
        ConfigurationInvalid: If any variable holds an unusable value
    """
    env = os.environ if environ is None else environ

    try:
        provider_name = ProviderName((env.get("TASKLENS_PROVIDER") or "openai").strip().lower())
    except ValueError:
        raise ConfigurationInvalid(f"Unknown provider: {env.get('TASKLENS_PROVIDER')!r}")

    key_var = API_KEY_ENV_VARS.get(provider_name.value)
    api_key = env.get("TASKLENS_API_KEY") or (env.get(key_var) if key_var else None)

    provider: Dict[str, object] = {
        "name": provider_name,
        "model": env.get("TASKLENS_MODEL") or None,
        "api_key": api_key or None,
        "api_base": env.get("TASKLENS_API_BASE") or None,
    }
    if env.get("TASKLENS_TIMEOUT"):
        provider["timeout_seconds"] = env["TASKLENS_TIMEOUT"]

    values: Dict[str, object] = {"provider": provider}
    simple_vars = {
        "TASKLENS_QUALITY_FILTER": "quality_filter_strength",
        "TASKLENS_MIN_RELEVANCE": "minimum_relevance_score",
        "TASKLENS_MAX_DIRECT_RESULTS": "max_direct_results",
        "TASKLENS_MAX_TASKS_FOR_AI": "max_tasks_for_ai",
        "TASKLENS_MAX_RECOMMENDATIONS": "max_recommendations",
        "TASKLENS_EXPANSIONS_PER_LANGUAGE": "expansions_per_language",
        "TASKLENS_WEEK_START": "week_start",
        "TASKLENS_MODE": "default_mode",
        "TASKLENS_SORT_ORDER": "sort_order",
        "TASKLENS_RESPONSE_LANGUAGE": "response_language",
    }
    for var, field in simple_vars.items():
        if env.get(var):
            values[field] = env[var].strip()

    languages = _split_list(env.get("TASKLENS_QUERY_LANGUAGES"))
    if languages:
        values["query_languages"] = languages
    stop_words = _split_list(env.get("TASKLENS_STOP_WORDS"))
    if stop_words:
        values["stop_words"] = stop_words

    try:
        settings = Settings(**values)
    except ValueError as e:
        # pydantic's ValidationError is a ValueError
        raise ConfigurationInvalid(f"Invalid settings: {e}") from e

    logger.debug(
        f"Loaded settings: provider={provider_name.value}, model={settings.provider.resolved_model}, "
        f"mode={settings.default_mode}"
    )
    return settings
