"""Tests for the end-to-end query pipeline."""

import json
from datetime import date

import pytest

from tasklens.engine.pipeline import FALLBACK_WARNING, MODEL_UNAVAILABLE_WARNING, describe_criteria, run_query
from tasklens.errors import ConfigurationInvalid, ModelUnavailable
from tasklens.models.query import ChatMessage, FilterCriteria, ParsedQuery, SearchMode

PARSE_FIX_BUG = json.dumps({"coreKeywords": ["fix", "bug"], "keywords": ["fix", "bug"]})


@pytest.fixture
def bug_tasks(make_task):
    """Two bug-fixing tasks and one unrelated task."""
    return [
        make_task(text="Fix login bug", priority=1, due_date=date(2025, 1, 10)),
        make_task(text="Fix signup bug", priority=2),
        make_task(text="Water plants", priority=1, due_date=date(2025, 1, 5)),
    ]


class TestDescribeCriteria:
    """Test the human-readable filter summary."""

    def test_fields_joined(self):
        """Present fields are listed in order."""
        parsed = ParsedQuery(original_query="p1 overdue", criteria=FilterCriteria(priority=1, due_date="overdue"))
        assert describe_criteria(parsed) == "priority: 1; due: overdue"

    def test_no_fields(self):
        """An empty query is described generically."""
        assert describe_criteria(ParsedQuery(original_query="")) == "your query"


class TestRunQuery:
    """Test run_query across the three modes."""

    @pytest.mark.asyncio
    async def test_simple_mode(self, bug_tasks, settings, today):
        """Simple mode filters on syntax and tokens without a provider."""
        result = await run_query("fix bug p1", bug_tasks, settings, mode=SearchMode.SIMPLE, today=today)
        assert result.mode == "simple"
        assert [s.task.text for s in result.tasks] == ["Fix login bug"]
        assert result.parsed_query.used_model is False

    @pytest.mark.asyncio
    async def test_pure_syntax_skips_model(self, bug_tasks, settings, today, stub_provider):
        """p1 overdue in smart mode never calls the model."""
        provider = stub_provider()
        result = await run_query("p1 overdue", bug_tasks, settings, provider=provider, today=today)
        assert provider.calls == []
        assert [s.task.text for s in result.tasks] == ["Water plants", "Fix login bug"]

    @pytest.mark.asyncio
    async def test_smart_mode_ranks_by_score(self, bug_tasks, settings, today, stub_provider):
        """Keyword matches are filtered and ranked, most urgent first."""
        provider = stub_provider(PARSE_FIX_BUG)
        result = await run_query("fix bug", bug_tasks, settings, mode=SearchMode.SMART, provider=provider, today=today)
        assert [s.task.text for s in result.tasks] == ["Fix login bug", "Fix signup bug"]
        assert result.total_filtered == 2
        assert result.response_text is None
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_no_match_reason(self, bug_tasks, settings, today, stub_provider):
        """An empty filter result is a normal result with a reason."""
        result = await run_query("p4 overdue", bug_tasks, settings, provider=stub_provider(), today=today)
        assert result.tasks == []
        assert result.reason == "No tasks found matching priority: 4; due: overdue."
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_quality_threshold_reason(self, bug_tasks, settings, today):
        """Tasks that all miss an explicit threshold produce their own reason."""
        settings.quality_filter_strength = 1.0
        result = await run_query("p2", bug_tasks, settings, mode=SearchMode.SIMPLE, today=today)
        assert result.tasks == []
        assert result.total_filtered == 1
        assert result.reason == "No tasks matching priority: 2 met the quality threshold."

    @pytest.mark.asyncio
    async def test_model_unavailable_degrades_silently_in_smart_mode(self, bug_tasks, settings, today, stub_provider):
        """Smart mode falls back to deterministic parsing without a warning."""
        provider = stub_provider(ModelUnavailable("connection refused"))
        result = await run_query("fix bug", bug_tasks, settings, provider=provider, today=today)
        assert [s.task.text for s in result.tasks] == ["Fix login bug", "Fix signup bug"]
        assert result.parsed_query.parser_error == "connection refused"
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_model_unavailable_warns_in_chat_when_empty(self, bug_tasks, settings, today, stub_provider):
        """Chat mode surfaces the failure when nothing matched."""
        provider = stub_provider(ModelUnavailable("timeout"))
        result = await run_query("zebra", bug_tasks, settings, mode=SearchMode.CHAT, provider=provider, today=today)
        assert result.tasks == []
        assert result.reason == "No tasks found matching keywords: zebra."
        assert result.warnings == [MODEL_UNAVAILABLE_WARNING]

    @pytest.mark.asyncio
    async def test_model_unavailable_in_chat_returns_ranked_tasks(self, bug_tasks, settings, today, stub_provider):
        """With matches, a parse failure skips commentary and returns the ranking."""
        provider = stub_provider(ModelUnavailable("timeout"))
        result = await run_query("fix bug", bug_tasks, settings, mode=SearchMode.CHAT, provider=provider, today=today)
        assert len(result.tasks) == 2
        assert result.response_text is None
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_chat_mode_recommendations(self, bug_tasks, settings, today, stub_provider):
        """Chat mode sends the numbered list and maps references back."""
        provider = stub_provider(PARSE_FIX_BUG, "Start with [TASK_2], then [TASK_1].")
        history = [
            ChatMessage(role="user", content="hi"),
            ChatMessage(role="assistant", content="hello"),
            ChatMessage(role="user", content="what now"),
        ]
        settings.max_chat_history = 2

        result = await run_query(
            "fix bug", bug_tasks, settings, mode=SearchMode.CHAT, provider=provider, history=history, today=today
        )

        assert [s.task.text for s in result.recommended] == ["Fix signup bug", "Fix login bug"]
        assert result.response_text == "Start with **Task 1**, then **Task 2**."
        assert result.used_fallback is False
        chat_call = provider.calls[1]
        assert "[TASK_1] Fix login bug" in chat_call["user_message"]
        assert "User request: fix bug" in chat_call["user_message"]
        assert [m.content for m in chat_call["history"]] == ["hello", "what now"]

    @pytest.mark.asyncio
    async def test_chat_fallback_warning(self, bug_tasks, settings, today, stub_provider):
        """Commentary without references falls back to the top tasks with a warning."""
        provider = stub_provider(PARSE_FIX_BUG, "Both look important.")
        result = await run_query("fix bug", bug_tasks, settings, mode=SearchMode.CHAT, provider=provider, today=today)
        assert result.used_fallback is True
        assert [s.task.text for s in result.recommended] == ["Fix login bug", "Fix signup bug"]
        assert result.warnings == [FALLBACK_WARNING.format(count=2)]

    @pytest.mark.asyncio
    async def test_commentary_failure_keeps_tasks(self, bug_tasks, settings, today, stub_provider):
        """A failed commentary call still returns the ranked tasks."""
        provider = stub_provider(PARSE_FIX_BUG, ModelUnavailable("rate limited", status_code=429))
        result = await run_query("fix bug", bug_tasks, settings, mode=SearchMode.CHAT, provider=provider, today=today)
        assert len(result.tasks) == 2
        assert result.recommended == []
        assert result.response_text is None

    @pytest.mark.asyncio
    async def test_missing_api_key_propagates(self, bug_tasks, settings, today):
        """Configuration errors are never degraded."""
        with pytest.raises(ConfigurationInvalid):
            await run_query("fix bug", bug_tasks, settings, mode=SearchMode.SMART, today=today)

    @pytest.mark.asyncio
    async def test_direct_results_budget(self, make_task, settings, today):
        """Smart and simple modes cap the list at max_direct_results."""
        settings.max_direct_results = 3
        tasks = [make_task(text=f"report {i}") for i in range(10)]
        result = await run_query("report", tasks, settings, mode=SearchMode.SIMPLE, today=today)
        assert len(result.tasks) == 3
        assert result.total_after_quality == 10

    @pytest.mark.asyncio
    async def test_unreachable_due_offset(self, bug_tasks, settings, today):
        """A due offset past the calendar is an empty result, not an error."""
        result = await run_query("d:+99999999d", bug_tasks, settings, mode=SearchMode.SIMPLE, today=today)
        assert result.tasks == []
        assert result.reason == "No tasks found matching due: +99999999d."

    @pytest.mark.asyncio
    async def test_negated_priority_in_simple_mode(self, bug_tasks, settings, today):
        """!p1 drops the P1 tasks instead of being read as an operator."""
        result = await run_query("!p1 bug", bug_tasks, settings, mode=SearchMode.SIMPLE, today=today)
        assert [s.task.text for s in result.tasks] == ["Fix signup bug"]
        assert result.parsed_query.operators == []
