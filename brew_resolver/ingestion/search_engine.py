"""
Search Engine Scraper Module
============================

Queries public HTML search engines (DuckDuckGo, with Bing as fallback) and
picks the result that looks like a brewery's official website.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import random
from dataclasses import asdict, dataclass
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup

from brew_resolver.ingestion.config import SearchEngineConfig
from brew_resolver.ingestion.crawler import Crawler
from brew_resolver.ingestion.similarity import significant_tokens

logger = logging.getLogger(__name__)

# Markers of anti-bot interstitials instead of a result page
BOT_MARKERS = (
    "captcha",
    "anomaly-modal",
    "unusual traffic",
    "traffico insolito",
    "are you a robot",
    "bots use duckduckgo",
)


@dataclass
class SearchResult:
    """A single organic search result."""

    title: str
    url: str
    snippet: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return asdict(self)


def decode_duckduckgo_url(href: str) -> str:
    """Unwrap a DuckDuckGo redirect link (//duckduckgo.com/l/?uddg=...)."""
    if href.startswith("//"):
        href = "https:" + href
    parsed = urlparse(href)
    if "duckduckgo.com" in parsed.netloc and parsed.path.startswith("/l/"):
        target = parse_qs(parsed.query).get("uddg")
        if target:
            return target[0]
    return href


def decode_bing_url(href: str) -> str:
    """Unwrap a Bing click-tracking link (bing.com/ck/a?...&u=a1<base64url>)."""
    parsed = urlparse(href)
    if "bing.com" not in parsed.netloc or not parsed.path.startswith("/ck/"):
        return href
    encoded = parse_qs(parsed.query).get("u", [""])[0]
    if not encoded.startswith("a1"):
        return href
    payload = encoded[2:]
    payload += "=" * (-len(payload) % 4)
    try:
        return base64.urlsafe_b64decode(payload).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        logger.debug(f"Could not decode Bing redirect: {href}")
        return href


def is_bot_page(html: str) -> bool:
    """Detect captcha / anti-bot pages."""
    lowered = html.lower()
    return any(marker in lowered for marker in BOT_MARKERS)


def parse_duckduckgo(html: str) -> list[SearchResult]:
    """Parse a DuckDuckGo HTML result page."""
    soup = BeautifulSoup(html, "lxml")
    results = []
    for block in soup.select("div.result"):
        link = block.select_one("a.result__a")
        if link is None or not link.get("href"):
            continue
        snippet = block.select_one(".result__snippet")
        results.append(
            SearchResult(
                title=link.get_text(" ", strip=True),
                url=decode_duckduckgo_url(link["href"]),
                snippet=snippet.get_text(" ", strip=True) if snippet else "",
            )
        )
    if not results:
        # Some layouts drop the result wrapper
        for link in soup.select("a.result__a"):
            if link.get("href"):
                results.append(
                    SearchResult(
                        title=link.get_text(" ", strip=True),
                        url=decode_duckduckgo_url(link["href"]),
                    )
                )
    return [r for r in results if r.url.startswith("http")]


def parse_bing(html: str) -> list[SearchResult]:
    """Parse a Bing result page."""
    soup = BeautifulSoup(html, "lxml")
    results = []
    for block in soup.select("li.b_algo"):
        link = block.select_one("h2 a")
        if link is None or not link.get("href"):
            continue
        snippet = block.select_one(".b_caption p")
        results.append(
            SearchResult(
                title=link.get_text(" ", strip=True),
                url=decode_bing_url(link["href"]),
                snippet=snippet.get_text(" ", strip=True) if snippet else "",
            )
        )
    return [r for r in results if r.url.startswith("http")]


def domain_of(url: str) -> str:
    """Host of a URL without a leading www."""
    host = urlparse(url).netloc.lower().split(":")[0]
    return host[4:] if host.startswith("www.") else host


def is_excluded(url: str, excluded_domains: list[str]) -> bool:
    """True if the URL belongs to an excluded domain or one of its subdomains."""
    host = domain_of(url)
    return any(host == d or host.endswith("." + d) for d in excluded_domains)


def pick_official_site(
    results: list[SearchResult],
    names: list[str | None],
    excluded_domains: list[str],
) -> SearchResult | None:
    """
    Select the result most likely to be the official website.

    A result qualifies when it is not on an excluded domain (rating sites,
    social networks, encyclopedias, marketplaces) and its host or title
    shares a significant token with one of the given names.

    Args:
        results: Search results in engine order
        names: Brewery and/or beer names to match against
        excluded_domains: Domains never considered official

    Returns:
        The first qualifying result, or None
    """
    tokens: set[str] = set()
    for name in names:
        tokens |= significant_tokens(name)
    if not tokens:
        return None

    for result in results:
        if is_excluded(result.url, excluded_domains):
            continue
        host = domain_of(result.url)
        haystack = significant_tokens(result.title) | significant_tokens(host.replace(".", " "))
        if tokens & haystack or any(token in host.replace("-", "") for token in tokens):
            return result
    return None


class SearchEngineScraper:
    """
    Scrapes organic results from HTML search engines.

    Never raises on network failures: an unreachable engine or a bot
    challenge yields an empty list.
    """

    def __init__(self, crawler: Crawler, config: SearchEngineConfig | None = None) -> None:
        self.crawler = crawler
        self.config = config or SearchEngineConfig()

    async def _polite_delay(self) -> None:
        delay_ms = random.randint(self.config.min_delay_ms, max(self.config.min_delay_ms, self.config.max_delay_ms))
        await asyncio.sleep(delay_ms / 1000)

    async def search(self, query: str) -> list[SearchResult]:
        """
        Search the web.

        Args:
            query: Free-text query

        Returns:
            Up to max_results results; empty when nothing was found
        """
        results = await self._search_duckduckgo(query)
        if not results:
            logger.info(f"No DuckDuckGo results for '{query}', trying Bing")
            results = await self._search_bing(query)

        logger.info(f"Search '{query}' returned {len(results)} result(s)")
        return results[: self.config.max_results]

    async def _search_duckduckgo(self, query: str) -> list[SearchResult]:
        await self._polite_delay()
        fetch = await self.crawler.fetch(
            self.config.primary_url, timeout=self.config.timeout, params={"q": query, "kl": "it-it"}
        )
        if not fetch.success:
            logger.warning(f"DuckDuckGo search failed for '{query}': {fetch.error}")
            return []
        html = fetch.text
        if is_bot_page(html):
            logger.warning(f"DuckDuckGo returned a bot challenge for '{query}'")
            return []
        return parse_duckduckgo(html)

    async def _search_bing(self, query: str) -> list[SearchResult]:
        await self._polite_delay()
        fetch = await self.crawler.fetch(
            self.config.fallback_url,
            timeout=self.config.timeout,
            params={"q": query, "setlang": "it", "cc": "IT"},
        )
        if not fetch.success:
            logger.warning(f"Bing search failed for '{query}': {fetch.error}")
            return []
        html = fetch.text
        if is_bot_page(html):
            logger.warning(f"Bing returned a bot challenge for '{query}'")
            return []
        return parse_bing(html)

    async def find_official_site(
        self,
        query: str,
        names: list[str | None],
    ) -> SearchResult | None:
        """Search and pick the official-looking result."""
        results = await self.search(query)
        picked = pick_official_site(results, names, self.config.excluded_domains)
        if picked is None:
            logger.info(f"No official site among results for '{query}'")
        else:
            logger.info(f"Official site for '{query}': {picked.url}")
        return picked
