"""AI client interface and provider abstraction."""

import logging
import os
from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel, Field

from brew_resolver.core.errors import ConfigError

logger = logging.getLogger(__name__)

# Environment variables holding each provider's API key, first match wins
API_KEY_ENV_VARS = {
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "openai": ("OPENAI_API_KEY",),
}


class AIProvider(str, Enum):
    """Supported AI providers."""

    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


class GroundedResponse(BaseModel):
    """Raw answer of a web-grounded generation."""

    text: str
    sources: list[str] = Field(default_factory=list)
    search_queries: list[str] = Field(default_factory=list)


class AIClient(ABC):
    """Abstract base class for AI providers with a web search tool."""

    provider: AIProvider
    model: str

    @abstractmethod
    async def generate_grounded(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.1,
        max_output_tokens: int = 4096,
    ) -> GroundedResponse:
        """
        Generate text with the provider's web search tool enabled.

        Args:
            prompt: The user prompt.
            system: Optional system instructions.
            temperature: Sampling temperature.
            max_output_tokens: Output token cap.

        Returns:
            GroundedResponse with the model text and the web sources it used.

        Raises:
            Provider SDK errors are propagated to the caller.
        """
        pass


def get_ai_client(
    provider: AIProvider | str,
    api_key: str,
    model: str | None = None,
) -> AIClient:
    """
    Factory function to get an AI client for the specified provider.

    Args:
        provider: The AI provider to use.
        api_key: The API key for the provider.
        model: Optional model name override.

    Returns:
        An AIClient instance for the specified provider.

    Raises:
        ValueError: If the provider is not supported.
    """
    if isinstance(provider, str):
        provider = AIProvider(provider.lower())

    if provider == AIProvider.GEMINI:
        from brew_resolver.services.ai.providers.gemini import GeminiClient

        return GeminiClient(api_key=api_key, model=model)
    elif provider == AIProvider.ANTHROPIC:
        from brew_resolver.services.ai.providers.anthropic import AnthropicClient

        return AnthropicClient(api_key=api_key, model=model)
    elif provider == AIProvider.OPENAI:
        from brew_resolver.services.ai.providers.openai import OpenAIClient

        return OpenAIClient(api_key=api_key, model=model)
    else:
        raise ValueError(f"Unsupported AI provider: {provider}")


def get_ai_client_from_env(
    provider: str | None = None,
    model: str | None = None,
) -> AIClient | None:
    """
    Build the AI client configured in the environment.

    The provider comes from the argument, then AI_PROVIDER, then defaults to
    Gemini. The model comes from the argument, then AI_MODEL.

    Returns:
        The client, or None when no API key is set for the provider.

    Raises:
        ConfigError: If the provider name is unknown.
    """
    name = (provider or os.environ.get("AI_PROVIDER") or AIProvider.GEMINI.value).lower()
    try:
        resolved = AIProvider(name)
    except ValueError as e:
        raise ConfigError(f"Unknown AI provider: {name}") from e

    api_key = next(
        (os.environ[var] for var in API_KEY_ENV_VARS[resolved.value] if os.environ.get(var)),
        None,
    )
    if not api_key:
        logger.warning(f"No API key for {resolved.value}; grounded search disabled")
        return None

    return get_ai_client(resolved, api_key, model or os.environ.get("AI_MODEL"))
