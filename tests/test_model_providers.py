"""Tests for language model providers (no network)."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from tasklens.config import ProviderSettings
from tasklens.errors import ConfigurationInvalid, ModelUnavailable
from tasklens.integrations.model_providers import (
    AnthropicProvider,
    OpenAICompatibleProvider,
    build_messages,
    build_provider,
)
from tasklens.models.query import ChatMessage

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _status_error(cls, status_code, body=None):
    response = httpx.Response(status_code, request=_REQUEST)
    return cls("error", response=response, body=body)


def _openai_provider(create):
    client = MagicMock()
    client.chat.completions.create = create
    return OpenAICompatibleProvider(ProviderSettings(api_key="sk-test"), client=client)


class TestBuildMessages:
    """Test chat message assembly."""

    def test_order(self):
        """System prompt, then history, then the new message."""
        history = [ChatMessage(role="user", content="hi"), ChatMessage(role="assistant", content="hello")]
        messages = build_messages("sys", history, "now")
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"] == "now"


class TestOpenAICompatibleProvider:
    """Test the OpenAI chat completions strategy with a mocked client."""

    @pytest.mark.asyncio
    async def test_returns_content(self):
        """The first choice's content is returned."""
        response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content='{"keywords": []}'))])
        create = AsyncMock(return_value=response)
        provider = _openai_provider(create)

        text = await provider.complete("sys", [], "query")

        assert text == '{"keywords": []}'
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    @pytest.mark.asyncio
    async def test_no_choices(self):
        """An empty choice list yields empty text."""
        provider = _openai_provider(AsyncMock(return_value=SimpleNamespace(choices=[])))
        assert await provider.complete("sys", [], "query") == ""

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Network failures become ModelUnavailable."""
        provider = _openai_provider(AsyncMock(side_effect=openai.APIConnectionError(request=_REQUEST)))
        with pytest.raises(ModelUnavailable):
            await provider.complete("sys", [], "query")

    @pytest.mark.asyncio
    async def test_rejected_key(self):
        """401 is a configuration problem, not an outage."""
        error = _status_error(openai.AuthenticationError, 401)
        provider = _openai_provider(AsyncMock(side_effect=error))
        with pytest.raises(ConfigurationInvalid):
            await provider.complete("sys", [], "query")

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        """429 becomes ModelUnavailable carrying the status code."""
        error = _status_error(openai.RateLimitError, 429, body={"code": "insufficient_quota"})
        provider = _openai_provider(AsyncMock(side_effect=error))
        with pytest.raises(ModelUnavailable) as exc_info:
            await provider.complete("sys", [], "query")
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_server_error(self):
        """5xx becomes ModelUnavailable."""
        error = _status_error(openai.InternalServerError, 503)
        provider = _openai_provider(AsyncMock(side_effect=error))
        with pytest.raises(ModelUnavailable) as exc_info:
            await provider.complete("sys", [], "query")
        assert exc_info.value.status_code == 503


class TestAnthropicProvider:
    """Test the Anthropic strategy against an httpx mock transport."""

    def _provider(self, handler):
        settings = ProviderSettings(name="anthropic", api_key="sk-ant")
        return AnthropicProvider(settings, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_request_and_response(self):
        """System prompt goes in its own field and text blocks are joined."""
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"content": [{"type": "text", "text": "Do "}, {"type": "text", "text": "[TASK_1]"}]},
            )

        text = await self._provider(handler).complete("sys", [ChatMessage(role="user", content="hi")], "now")

        assert text == "Do [TASK_1]"
        assert seen["url"] == "https://api.anthropic.com/v1/messages"
        assert seen["headers"]["x-api-key"] == "sk-ant"
        assert seen["headers"]["anthropic-version"] == "2023-06-01"
        assert seen["body"]["system"] == "sys"
        assert seen["body"]["messages"] == [
            {"role": "user", "content": "hi"},
            {"role": "user", "content": "now"},
        ]

    @pytest.mark.asyncio
    async def test_rejected_key(self):
        """401 is a configuration problem."""
        provider = self._provider(lambda request: httpx.Response(401, json={"error": {}}))
        with pytest.raises(ConfigurationInvalid):
            await provider.complete("sys", [], "now")

    @pytest.mark.asyncio
    async def test_overloaded(self):
        """5xx becomes ModelUnavailable."""
        provider = self._provider(lambda request: httpx.Response(529, json={"error": {}}))
        with pytest.raises(ModelUnavailable) as exc_info:
            await provider.complete("sys", [], "now")
        assert exc_info.value.status_code == 529

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Transport errors become ModelUnavailable."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ModelUnavailable):
            await self._provider(handler).complete("sys", [], "now")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [[1, 2], "text", {"content": 5}])
    async def test_unexpected_body(self, body):
        """A JSON body that is not a message object becomes ModelUnavailable."""
        provider = self._provider(lambda request: httpx.Response(200, json=body))
        with pytest.raises(ModelUnavailable):
            await provider.complete("sys", [], "now")


class TestBuildProvider:
    """Test provider selection."""

    def test_missing_key(self):
        """Providers that need a key refuse to build without one."""
        with pytest.raises(ConfigurationInvalid):
            build_provider(ProviderSettings(name="openai"))

    def test_ollama_needs_no_key(self):
        """Ollama is reached through the OpenAI-compatible strategy without a key."""
        provider = build_provider(ProviderSettings(name="ollama"))
        assert isinstance(provider, OpenAICompatibleProvider)
        assert provider.model == "llama3.1"

    def test_anthropic(self):
        """Anthropic gets its own strategy."""
        provider = build_provider(ProviderSettings(name="anthropic", api_key="sk-ant"))
        assert isinstance(provider, AnthropicProvider)
