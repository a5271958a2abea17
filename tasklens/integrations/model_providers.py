"""Language model providers for tasklens.

One strategy class per wire protocol. `build_provider()` picks the strategy
once from the settings, so pipeline code only ever sees `ModelProvider`.

Failures are mapped onto the tasklens error taxonomy:
- missing or rejected credentials -> ConfigurationInvalid
- network errors, timeouts, rate limits, server errors -> ModelUnavailable
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

import httpx
from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    AsyncOpenAI,
)

from tasklens.config import ProviderName, ProviderSettings
from tasklens.errors import ConfigurationInvalid, ModelUnavailable
from tasklens.models.query import ChatMessage

logger = logging.getLogger(__name__)

ANTHROPIC_API_VERSION = "2023-06-01"

_AUTH_STATUS_CODES = (401, 403)


def build_messages(
    system_prompt: str, history: Sequence[ChatMessage], user_message: str
) -> List[Dict[str, str]]:
    """Chat-completions message list: system, prior turns, then the new message."""
    messages = [{"role": "system", "content": system_prompt}]
    messages.extend({"role": m.role, "content": m.content} for m in history)
    messages.append({"role": "user", "content": user_message})
    return messages


class ModelProvider(ABC):
    """Opaque "ask the language model" capability."""

    def __init__(self, settings: ProviderSettings):
        self.settings = settings
        self.model = settings.resolved_model

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        history: Sequence[ChatMessage],
        user_message: str,
    ) -> str:
        """Send one request and return the raw response text.

        Raises:
            ConfigurationInvalid: If the provider rejects the credentials
            ModelUnavailable: If the provider cannot be reached or fails
        """


class OpenAICompatibleProvider(ModelProvider):
    """OpenAI, OpenRouter and Ollama, all through the OpenAI chat completions API."""

    def __init__(self, settings: ProviderSettings, client: Optional[AsyncOpenAI] = None):
        super().__init__(settings)
        # Ollama ignores the key but the SDK requires one
        api_key = settings.api_key or "ollama"
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=settings.resolved_api_base,
            timeout=settings.timeout_seconds,
            max_retries=0,
        )

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[ChatMessage],
        user_message: str,
    ) -> str:
        provider = ProviderName(self.settings.name).value
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=build_messages(system_prompt, history, user_message),
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
            )
        except APIConnectionError as e:
            # Includes APITimeoutError
            logger.warning(f"{provider} unreachable: {type(e).__name__}")
            raise ModelUnavailable(f"Could not reach {provider}") from e
        except APIStatusError as e:
            error_code = getattr(e, "code", None)
            status_code = getattr(e, "status_code", None)
            if status_code in _AUTH_STATUS_CODES:
                logger.error(f"{provider} rejected the API key ({status_code})")
                raise ConfigurationInvalid(f"{provider} rejected the configured API key") from e
            if error_code == "insufficient_quota":
                logger.warning(f"{provider} API quota insufficient. Please check billing.")
            elif status_code == 429:
                logger.warning(f"{provider} API rate limit exceeded.")
            else:
                # Don't log full error message as it might contain sensitive info
                logger.error(f"{provider} API error: {status_code or 'unknown'} ({error_code or 'unknown'})")
            raise ModelUnavailable(f"{provider} request failed", status_code=status_code) from e
        except APIError as e:
            logger.error(f"{provider} API error: {type(e).__name__}")
            raise ModelUnavailable(f"{provider} request failed") from e

        if not response.choices:
            logger.warning(f"{provider} returned no choices")
            return ""
        content = response.choices[0].message.content or ""
        logger.debug(f"{provider} responded with {len(content)} chars")
        return content


class AnthropicProvider(ModelProvider):
    """Anthropic Messages API over httpx."""

    def __init__(self, settings: ProviderSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(settings)
        self.url = f"{settings.resolved_api_base}/messages"
        self.transport = transport

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[ChatMessage],
        user_message: str,
    ) -> str:
        payload = {
            "model": self.model,
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
            "system": system_prompt,
            # Anthropic takes the system prompt separately
            "messages": build_messages(system_prompt, history, user_message)[1:],
        }
        headers = {
            "x-api-key": self.settings.api_key or "",
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.settings.timeout_seconds, transport=self.transport) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"anthropic unreachable: {type(e).__name__}")
            raise ModelUnavailable("Could not reach anthropic") from e

        if response.status_code in _AUTH_STATUS_CODES:
            logger.error(f"anthropic rejected the API key ({response.status_code})")
            raise ConfigurationInvalid("anthropic rejected the configured API key")
        if response.status_code >= 400:
            logger.error(f"anthropic API error: {response.status_code}")
            raise ModelUnavailable("anthropic request failed", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise ModelUnavailable("anthropic returned a non-JSON body") from e
        blocks = data.get("content") if isinstance(data, dict) else None
        if not isinstance(blocks, list):
            logger.error(f"anthropic returned an unexpected body: {type(data).__name__}")
            raise ModelUnavailable("anthropic returned an unexpected body")
        text = "".join(b.get("text", "") for b in blocks if isinstance(b, dict) and b.get("type") == "text")
        logger.debug(f"anthropic responded with {len(text)} chars")
        return text


def build_provider(settings: ProviderSettings) -> ModelProvider:
    """Select the provider strategy for the configured provider.

    Raises:
        ConfigurationInvalid: If a provider that needs a key has none
    """
    name = ProviderName(settings.name)
    if settings.requires_api_key and not settings.api_key:
        raise ConfigurationInvalid(f"No API key configured for provider '{name.value}'")
    if name == ProviderName.ANTHROPIC:
        return AnthropicProvider(settings)
    return OpenAICompatibleProvider(settings)
