"""Google Gemini AI provider implementation."""

import logging

from google import genai
from google.genai import types

from brew_resolver.services.ai.client import AIClient, AIProvider, GroundedResponse

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


class GeminiClient(AIClient):
    """Gemini client using the Google Search grounding tool."""

    provider = AIProvider.GEMINI

    def __init__(self, api_key: str, model: str | None = None):
        """
        Initialize the Gemini client.

        Args:
            api_key: Gemini API key.
            model: Model name (defaults to gemini-2.5-flash).
        """
        self.client = genai.Client(api_key=api_key)
        self.model = model or DEFAULT_MODEL

    async def generate_grounded(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.1,
        max_output_tokens: int = 4096,
    ) -> GroundedResponse:
        """Generate with Google Search grounding."""
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=system,
                temperature=temperature,
                max_output_tokens=max_output_tokens,
                tools=[types.Tool(google_search=types.GoogleSearch())],
            ),
        )

        text = response.text or ""
        sources: list[str] = []
        queries: list[str] = []
        candidate = response.candidates[0] if response.candidates else None
        metadata = candidate.grounding_metadata if candidate else None
        if metadata is not None:
            for chunk in metadata.grounding_chunks or []:
                if chunk.web is not None and chunk.web.uri:
                    sources.append(chunk.web.uri)
            queries = list(metadata.web_search_queries or [])

        logger.info(f"Gemini grounded response: {len(text)} chars, {len(sources)} source(s), {len(queries)} query(ies)")
        return GroundedResponse(text=text, sources=sources, search_queries=queries)
