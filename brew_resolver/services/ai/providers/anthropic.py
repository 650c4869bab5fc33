"""Anthropic (Claude) AI provider implementation."""

import logging

import anthropic

from brew_resolver.services.ai.client import AIClient, AIProvider, GroundedResponse

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 5}


class AnthropicClient(AIClient):
    """Anthropic Claude client using the server-side web search tool."""

    provider = AIProvider.ANTHROPIC

    def __init__(self, api_key: str, model: str | None = None):
        """
        Initialize the Anthropic client.

        Args:
            api_key: Anthropic API key.
            model: Model name (defaults to claude-sonnet-4-20250514).
        """
        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        self.model = model or DEFAULT_MODEL

    async def generate_grounded(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.1,
        max_output_tokens: int = 4096,
    ) -> GroundedResponse:
        """Generate with the web_search server tool."""
        kwargs = {}
        if system:
            kwargs["system"] = system
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=max_output_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            tools=[WEB_SEARCH_TOOL],
            **kwargs,
        )

        texts: list[str] = []
        sources: list[str] = []
        queries: list[str] = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
                for citation in getattr(block, "citations", None) or []:
                    url = getattr(citation, "url", None)
                    if url and url not in sources:
                        sources.append(url)
            elif block.type == "server_tool_use":
                query = (block.input or {}).get("query")
                if query:
                    queries.append(query)
            elif block.type == "web_search_tool_result" and isinstance(block.content, list):
                for result in block.content:
                    url = getattr(result, "url", None)
                    if url and url not in sources:
                        sources.append(url)

        # The JSON answer is the last text block; earlier ones narrate the searches
        text = texts[-1] if texts else ""
        logger.info(f"Anthropic grounded response: {len(text)} chars, {len(sources)} source(s), {len(queries)} query(ies)")
        return GroundedResponse(text=text, sources=sources, search_queries=queries)
