"""
Web Crawler Module
==================

Provides HTTP fetching for the enrichment strategies with per-domain rate
limiting, optional robots.txt compliance and content hashing.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import httpx

from brew_resolver.ingestion.config import GlobalConfig

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Result of fetching a URL."""

    url: str
    content: bytes
    content_hash: str
    mime_type: str
    status_code: int
    fetched_at: datetime
    final_url: str | None = None
    encoding: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        """Check if fetch was successful."""
        return self.error is None and 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        """Decoded body."""
        return self.content.decode(self.encoding or "utf-8", errors="replace")

    @classmethod
    def failed(cls, url: str, error: str, status_code: int = 0) -> FetchResult:
        """Build a failed result."""
        return cls(
            url=url,
            content=b"",
            content_hash="",
            mime_type="",
            status_code=status_code,
            fetched_at=datetime.now(timezone.utc),
            error=error,
        )


class TokenBucket:
    """
    Token bucket rate limiter for per-domain rate limiting.

    Allows bursting up to burst_limit requests, then enforces
    the steady-state rate of requests_per_second.
    """

    def __init__(self, requests_per_second: float, burst_limit: int) -> None:
        self.requests_per_second = requests_per_second
        self.burst_limit = burst_limit
        self.tokens = float(burst_limit)
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Take a token, sleeping until one is available."""
        async with self._lock:
            now = time.monotonic()
            self.tokens = min(
                self.burst_limit,
                self.tokens + (now - self.last_update) * self.requests_per_second,
            )
            self.last_update = now

            if self.tokens < 1.0:
                await asyncio.sleep((1.0 - self.tokens) / self.requests_per_second)
                self.tokens = 0.0
                self.last_update = time.monotonic()
            else:
                self.tokens -= 1.0


class RobotsChecker:
    """
    Robots.txt parser and cache.

    Parsed files are cached per host. A missing or unreachable robots.txt
    allows everything.
    """

    def __init__(self, client: httpx.AsyncClient, user_agent: str) -> None:
        self.client = client
        self.user_agent = user_agent
        self._cache: dict[str, RobotFileParser | None] = {}
        self._lock = asyncio.Lock()

    async def _fetch_robots(self, host: str, scheme: str) -> RobotFileParser | None:
        try:
            response = await self.client.get(
                f"{scheme}://{host}/robots.txt",
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Failed to fetch robots.txt for {host}: {e}")
            return None

        if response.status_code != 200:
            return None
        parser = RobotFileParser()
        parser.parse(response.text.splitlines())
        return parser

    async def is_allowed(self, url: str) -> bool:
        """Check if a URL may be fetched."""
        parsed = urlparse(url)
        async with self._lock:
            if parsed.netloc not in self._cache:
                self._cache[parsed.netloc] = await self._fetch_robots(
                    parsed.netloc, parsed.scheme or "https"
                )

        parser = self._cache.get(parsed.netloc)
        if parser is None:
            return True
        return parser.can_fetch(self.user_agent, url)


class Crawler:
    """
    Rate-limited HTTP fetcher shared by the search and extraction strategies.

    The httpx client is created by the caller (the worker on startup, or a
    test with a MockTransport) and is not closed here.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: GlobalConfig | None = None,
    ) -> None:
        self.client = client
        self.config = config or GlobalConfig()
        self._rate_limiters: dict[str, TokenBucket] = {}
        self._robots_checker = (
            RobotsChecker(client, self.config.user_agent) if self.config.respect_robots else None
        )

    def _get_rate_limiter(self, host: str) -> TokenBucket:
        if host not in self._rate_limiters:
            self._rate_limiters[host] = TokenBucket(
                requests_per_second=self.config.rate_limit.requests_per_second,
                burst_limit=self.config.rate_limit.burst_limit,
            )
        return self._rate_limiters[host]

    @staticmethod
    def compute_hash(content: bytes) -> str:
        """Hex-encoded SHA-256 of content."""
        return hashlib.sha256(content).hexdigest()

    async def fetch(
        self,
        url: str,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> FetchResult:
        """
        Fetch a URL.

        Network failures never raise; they come back as a FetchResult with
        an error.

        Args:
            url: URL to fetch
            timeout: Per-request timeout in seconds (defaults to config)
            headers: Extra request headers
            params: Query parameters

        Returns:
            FetchResult with content or error
        """
        host = urlparse(url).netloc
        if not host:
            return FetchResult.failed(url, f"Invalid URL: {url}")

        if self._robots_checker and not await self._robots_checker.is_allowed(url):
            return FetchResult.failed(url, "Disallowed by robots.txt")

        await self._get_rate_limiter(host).acquire()

        request_headers = {
            "User-Agent": self.config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "it-IT,it;q=0.9,en;q=0.8",
        }
        request_headers.update(headers or {})
        timeout = timeout or self.config.request_timeout
        attempts = max(1, self.config.max_retries)

        last_error: str | None = None
        for attempt in range(attempts):
            try:
                response = await self.client.get(
                    url,
                    headers=request_headers,
                    params=params,
                    timeout=timeout,
                    follow_redirects=True,
                )
                content = response.content
                result = FetchResult(
                    url=url,
                    content=content,
                    content_hash=self.compute_hash(content),
                    mime_type=response.headers.get("content-type", "").split(";")[0].strip(),
                    status_code=response.status_code,
                    fetched_at=datetime.now(timezone.utc),
                    final_url=str(response.url),
                    encoding=response.encoding,
                )
                if not result.success:
                    result.error = f"HTTP {response.status_code}"
                return result
            except httpx.TimeoutException:
                last_error = f"Timeout after {timeout}s"
                logger.warning(f"Timeout fetching {url} (attempt {attempt + 1}/{attempts})")
            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                logger.warning(f"HTTP error fetching {url}: {e} (attempt {attempt + 1}/{attempts})")

            if attempt < attempts - 1:
                await asyncio.sleep(2**attempt)

        return FetchResult.failed(url, last_error or "Unknown error")
