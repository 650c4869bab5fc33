"""OpenAI AI provider implementation."""

import logging

import openai

from brew_resolver.services.ai.client import AIClient, AIProvider, GroundedResponse

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4.1"


class OpenAIClient(AIClient):
    """OpenAI client using the Responses API web search tool."""

    provider = AIProvider.OPENAI

    def __init__(self, api_key: str, model: str | None = None):
        """
        Initialize the OpenAI client.

        Args:
            api_key: OpenAI API key.
            model: Model name (defaults to gpt-4.1).
        """
        self.client = openai.AsyncOpenAI(api_key=api_key)
        self.model = model or DEFAULT_MODEL

    async def generate_grounded(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.1,
        max_output_tokens: int = 4096,
    ) -> GroundedResponse:
        """Generate with the web_search tool."""
        kwargs = {}
        if system:
            kwargs["instructions"] = system
        response = await self.client.responses.create(
            model=self.model,
            input=prompt,
            tools=[{"type": "web_search"}],
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            **kwargs,
        )

        sources: list[str] = []
        queries: list[str] = []
        for item in response.output:
            if item.type == "web_search_call":
                query = getattr(getattr(item, "action", None), "query", None)
                if query:
                    queries.append(query)
            elif item.type == "message":
                for content in item.content:
                    for annotation in getattr(content, "annotations", None) or []:
                        if annotation.type == "url_citation" and annotation.url not in sources:
                            sources.append(annotation.url)

        text = response.output_text or ""
        logger.info(f"OpenAI grounded response: {len(text)} chars, {len(sources)} source(s), {len(queries)} query(ies)")
        return GroundedResponse(text=text, sources=sources, search_queries=queries)
