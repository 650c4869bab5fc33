"""
Grounded AI Search Service
==========================

One web-grounded model call that returns facts about a beer and the brewery
that produces it. Model output is free text that is supposed to be JSON;
this module recovers the JSON from the usual defects (code fences,
citation markers, truncated source lists, trailing commas) and maps it to
candidates.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any
from urllib.parse import urlparse

from brew_resolver.core.enums import SourceKind
from brew_resolver.core.errors import GroundedResponseError
from brew_resolver.core.schema import BeerCandidate, BeerFacts, BreweryCandidate, BreweryFacts
from brew_resolver.ingestion.config import GroundedSearchConfig
from brew_resolver.services.ai.client import AIClient
from brew_resolver.services.ai.prompts import SYSTEM_PROMPT, build_grounded_search_prompt

logger = logging.getLogger(__name__)

CITE_MARKER_RE = re.compile(r"\s*\[cite:\s*[\d,\s]+\]")
CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")
SOURCES_KEY_RE = re.compile(r'"sources"\s*:\s*\[')


class DailyLimiter:
    """In-process counter of grounded calls, reset at local midnight."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.count = 0
        self.day = date.today()

    def _roll_over(self) -> None:
        today = date.today()
        if today != self.day:
            logger.info(f"Resetting grounded search counter for {today}")
            self.day = today
            self.count = 0

    @property
    def remaining(self) -> int:
        self._roll_over()
        return max(0, self.limit - self.count)

    @property
    def reset_time(self) -> datetime:
        return datetime.combine(self.day + timedelta(days=1), time.min)

    def try_acquire(self) -> bool:
        """Count one call; False when the daily limit is exhausted."""
        self._roll_over()
        if self.count >= self.limit:
            return False
        self.count += 1
        return True


def clean_model_text(text: str) -> str:
    """Strip code fences, control characters and citation markers."""
    cleaned = text.strip()
    fence = re.search(r"```(?:json)?\s*(.*?)```", cleaned, re.DOTALL)
    if fence and "{" in fence.group(1):
        cleaned = fence.group(1)
    cleaned = cleaned.replace("```json", "").replace("```", "")
    cleaned = CONTROL_CHARS_RE.sub("", cleaned)
    cleaned = CITE_MARKER_RE.sub("", cleaned)
    return cleaned.strip()


def strip_sources_array(text: str) -> str:
    """
    Cut the "sources" array and everything after it.

    Grounding redirect URLs in that array are often truncated mid-string;
    source URLs come from the grounding metadata instead.
    """
    match = SOURCES_KEY_RE.search(text)
    if not match:
        return text
    return text[: match.start()].rstrip().rstrip(",")


def balance_brackets(text: str) -> str:
    """Close any objects, arrays or string left open at the end of the text."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]" and stack:
            stack.pop()
    if in_string:
        text += '"'
    return text + "".join(reversed(stack))


def remove_trailing_commas(text: str) -> str:
    return TRAILING_COMMA_RE.sub(r"\1", text)


def extract_first_object(text: str) -> str | None:
    """First balanced {...} block in the text."""
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def parse_model_json(text: str) -> dict[str, Any]:
    """
    Recover a JSON object from model output.

    Args:
        text: Raw model text

    Returns:
        Parsed object

    Raises:
        GroundedResponseError: If no attempt yields a JSON object
    """
    cleaned = strip_sources_array(clean_model_text(text))
    start = cleaned.find("{")
    if start > 0:
        cleaned = cleaned[start:]

    attempts = [
        cleaned,
        remove_trailing_commas(balance_brackets(cleaned)),
    ]
    first = extract_first_object(cleaned)
    if first:
        attempts.append(remove_trailing_commas(first))

    for attempt in attempts:
        try:
            parsed = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise GroundedResponseError(f"Could not parse model JSON ({len(text)} chars): {text[:200]!r}")


def is_redirect_url(url: str | None, redirect_hosts: list[str]) -> bool:
    if not url:
        return False
    host = urlparse(url).netloc.lower()
    return any(marker in host or marker in url for marker in redirect_hosts)


@dataclass
class GroundedSearchResult:
    """Outcome of a grounded search."""

    success: bool
    confidence: float = 0.0
    brewery: BreweryFacts | None = None
    beer: BeerFacts | None = None
    sources: list[str] = field(default_factory=list)
    search_queries: list[str] = field(default_factory=list)
    rate_limited: bool = False
    reason: str | None = None

    def brewery_candidate(self) -> BreweryCandidate | None:
        """The brewery facts as a GROUNDED_SEARCH candidate."""
        if not self.success or self.brewery is None or not self.brewery.name:
            return None
        return BreweryCandidate(
            source_kind=SourceKind.GROUNDED_SEARCH,
            confidence=self.confidence,
            facts=self.brewery,
            source_refs=list(self.sources),
        )

    def beer_candidate(self) -> BeerCandidate | None:
        """The beer facts as a GROUNDED_SEARCH candidate."""
        if not self.success or self.beer is None:
            return None
        return BeerCandidate(
            source_kind=SourceKind.GROUNDED_SEARCH,
            confidence=self.confidence,
            facts=self.beer,
            source_refs=list(self.sources),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "confidence": self.confidence,
            "brewery": self.brewery.model_dump() if self.brewery else None,
            "beer": self.beer.model_dump() if self.beer else None,
            "sources": self.sources,
            "search_queries": self.search_queries,
            "rate_limited": self.rate_limited,
            "reason": self.reason,
        }


class GroundedAISearch:
    """
    Combined beer + brewery lookup through a web-grounded model.

    Never raises: a missing client, the daily limit, timeouts, provider
    errors and unparseable answers all come back as success=False.
    """

    def __init__(
        self,
        client: AIClient | None,
        config: GroundedSearchConfig | None = None,
        limiter: DailyLimiter | None = None,
    ) -> None:
        self.client = client
        self.config = config or GroundedSearchConfig()
        self.limiter = limiter or DailyLimiter(self.config.daily_limit)

    @property
    def available(self) -> bool:
        return self.client is not None and self.config.enabled

    async def search(self, beer_name: str, brewery_hint: str | None = None) -> GroundedSearchResult:
        """
        Search for a beer and its brewery.

        Args:
            beer_name: Beer name as read from the label
            brewery_hint: Brewery name as read from the label, if any

        Returns:
            GroundedSearchResult; success requires confidence >= min_confidence
        """
        if not self.available:
            return GroundedSearchResult(success=False, reason="Grounded search not configured")
        if not beer_name or not beer_name.strip():
            return GroundedSearchResult(success=False, reason="Empty beer name")

        if not self.limiter.try_acquire():
            logger.warning(f"Grounded search daily limit ({self.limiter.limit}) reached; skipping '{beer_name}'")
            return GroundedSearchResult(
                success=False,
                rate_limited=True,
                reason=f"Daily limit of {self.limiter.limit} calls reached. Reset: {self.limiter.reset_time.isoformat()}",
            )

        logger.info(
            f"Grounded search for beer '{beer_name}' (hint: {brewery_hint!r}, "
            f"{self.limiter.remaining} call(s) left today)"
        )
        try:
            response = await asyncio.wait_for(
                self.client.generate_grounded(
                    build_grounded_search_prompt(beer_name, brewery_hint),
                    system=SYSTEM_PROMPT,
                    temperature=self.config.temperature,
                    max_output_tokens=self.config.max_output_tokens,
                ),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Grounded search timed out after {self.config.timeout}s for '{beer_name}'")
            return GroundedSearchResult(success=False, reason=f"Timeout after {self.config.timeout}s")
        except Exception as e:
            logger.error(f"Grounded search provider error for '{beer_name}': {e}")
            return GroundedSearchResult(success=False, reason=f"Provider error: {e}")

        try:
            data = parse_model_json(response.text)
        except GroundedResponseError as e:
            logger.warning(str(e))
            return GroundedSearchResult(
                success=False,
                sources=response.sources,
                search_queries=response.search_queries,
                reason="Unparseable model answer",
            )

        return self._to_result(data, response.sources, response.search_queries)

    def _to_result(
        self,
        data: dict[str, Any],
        sources: list[str],
        search_queries: list[str],
    ) -> GroundedSearchResult:
        try:
            confidence = max(0.0, min(1.0, float(data.get("confidence") or 0.0)))
        except (TypeError, ValueError):
            confidence = 0.0

        if not data.get("found") or confidence < self.config.min_confidence:
            reason = data.get("reason") or f"Confidence {confidence:.2f} below {self.config.min_confidence}"
            logger.info(f"Grounded search found nothing usable: {reason}")
            return GroundedSearchResult(
                success=False,
                confidence=confidence,
                sources=sources,
                search_queries=search_queries,
                reason=reason,
            )

        brewery = BreweryFacts.model_validate(data["brewery"]) if isinstance(data.get("brewery"), dict) else None
        beer = BeerFacts.model_validate(data["beer"]) if isinstance(data.get("beer"), dict) else None

        if brewery is not None and brewery.logo_url:
            logo = brewery.logo_url
            if logo.startswith("data:") or not logo.startswith("http") or is_redirect_url(logo, self.config.redirect_hosts):
                logger.debug(f"Dropping unusable logo URL {logo[:80]}")
                brewery = brewery.model_copy(update={"logo_url": None})

        logger.info(
            f"Grounded search succeeded (confidence {confidence:.2f}): "
            f"brewery={brewery.name if brewery else None!r}, beer={beer.name if beer else None!r}"
        )
        return GroundedSearchResult(
            success=True,
            confidence=confidence,
            brewery=brewery,
            beer=beer,
            sources=sources,
            search_queries=search_queries,
        )
