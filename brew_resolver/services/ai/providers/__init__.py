"""AI provider implementations."""

from brew_resolver.services.ai.providers.anthropic import AnthropicClient
from brew_resolver.services.ai.providers.gemini import GeminiClient
from brew_resolver.services.ai.providers.openai import OpenAIClient

__all__ = ["AnthropicClient", "GeminiClient", "OpenAIClient"]
