"""Tests for the crawler module."""

import asyncio
import time

import httpx
import pytest

from brew_resolver.ingestion.config import GlobalConfig, RateLimitConfig
from brew_resolver.ingestion.crawler import Crawler, FetchResult, TokenBucket

from conftest import html_response


class TestTokenBucket:
    """Tests for the TokenBucket rate limiter."""

    @pytest.mark.asyncio
    async def test_initial_burst(self) -> None:
        """Test that initial requests use burst tokens."""
        bucket = TokenBucket(requests_per_second=1.0, burst_limit=5)

        start = time.monotonic()
        for _ in range(5):
            await bucket.acquire()

        assert time.monotonic() - start < 0.1

    @pytest.mark.asyncio
    async def test_rate_limiting(self) -> None:
        """Test that requests wait once the burst is spent."""
        bucket = TokenBucket(requests_per_second=10.0, burst_limit=1)
        await bucket.acquire()

        start = time.monotonic()
        await bucket.acquire()
        elapsed = time.monotonic() - start

        assert 0.05 < elapsed < 0.3

    @pytest.mark.asyncio
    async def test_token_refill(self) -> None:
        """Test that tokens refill over time."""
        bucket = TokenBucket(requests_per_second=10.0, burst_limit=2)
        await bucket.acquire()
        await bucket.acquire()

        await asyncio.sleep(0.2)

        start = time.monotonic()
        await bucket.acquire()
        assert time.monotonic() - start < 0.1


class TestFetchResult:
    """Tests for the FetchResult dataclass."""

    def test_failed(self) -> None:
        """Test a failed result is not successful."""
        result = FetchResult.failed("https://example.com", "Connection failed")
        assert result.success is False
        assert result.error == "Connection failed"

    def test_text_decoding(self) -> None:
        """Test text decodes with the response encoding."""
        result = FetchResult.failed("https://example.com", "x")
        result.content = "Città".encode("latin-1")
        result.encoding = "latin-1"
        assert result.text == "Città"


class TestCrawler:
    """Tests for the Crawler class."""

    def test_compute_hash(self) -> None:
        """Test content hash computation."""
        assert Crawler.compute_hash(b"a") == Crawler.compute_hash(b"a")
        assert Crawler.compute_hash(b"a") != Crawler.compute_hash(b"b")
        assert len(Crawler.compute_hash(b"a")) == 64

    def test_rate_limiter_per_host(self) -> None:
        """Test one limiter is kept per host."""
        config = GlobalConfig(rate_limit=RateLimitConfig(requests_per_second=3.0, burst_limit=2))
        crawler = Crawler(httpx.AsyncClient(), config)

        limiter = crawler._get_rate_limiter("example.com")

        assert crawler._get_rate_limiter("example.com") is limiter
        assert crawler._get_rate_limiter("other.com") is not limiter
        assert limiter.requests_per_second == 3.0
        assert limiter.burst_limit == 2

    def test_robots_flag(self) -> None:
        """Test the robots checker only exists when robots are respected."""
        client = httpx.AsyncClient()
        assert Crawler(client, GlobalConfig(respect_robots=True))._robots_checker is not None
        assert Crawler(client, GlobalConfig(respect_robots=False))._robots_checker is None

    @pytest.mark.asyncio
    async def test_fetch_success(self, make_crawler) -> None:
        """Test a successful fetch carries content, hash and mime type."""
        crawler = make_crawler(lambda request: html_response("<html>ok</html>"))

        result = await crawler.fetch("https://example.com/page")

        assert result.success is True
        assert result.text == "<html>ok</html>"
        assert result.mime_type == "text/html"
        assert result.content_hash == Crawler.compute_hash(b"<html>ok</html>")

    @pytest.mark.asyncio
    async def test_fetch_sends_headers_and_params(self, make_crawler) -> None:
        """Test the user agent, extra headers and query params are sent."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return html_response("ok")

        crawler = make_crawler(handler)
        await crawler.fetch("https://example.com/search", headers={"Referer": "x"}, params={"q": "tipopils"})

        assert seen[0].url.params["q"] == "tipopils"
        assert seen[0].headers["Referer"] == "x"
        assert "Mozilla" in seen[0].headers["User-Agent"]

    @pytest.mark.asyncio
    async def test_fetch_http_error_status(self, make_crawler) -> None:
        """Test a 404 is returned as an unsuccessful result."""
        crawler = make_crawler(lambda request: html_response("missing", status_code=404))

        result = await crawler.fetch("https://example.com/missing")

        assert result.success is False
        assert result.error == "HTTP 404"
        assert result.status_code == 404

    @pytest.mark.asyncio
    async def test_fetch_network_error(self, make_crawler) -> None:
        """Test a connection error never raises."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        crawler = make_crawler(handler)
        result = await crawler.fetch("https://down.example.com/")

        assert result.success is False
        assert "refused" in result.error

    @pytest.mark.asyncio
    async def test_fetch_timeout(self, make_crawler) -> None:
        """Test a timeout is reported as an error."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        crawler = make_crawler(handler)
        result = await crawler.fetch("https://slow.example.com/", timeout=1.0)

        assert result.success is False
        assert result.error.startswith("Timeout")

    @pytest.mark.asyncio
    async def test_fetch_invalid_url(self, make_crawler) -> None:
        """Test a URL without host fails without a request."""
        crawler = make_crawler(lambda request: html_response("never"))

        result = await crawler.fetch("not-a-url")

        assert result.success is False
        assert "Invalid URL" in result.error

    @pytest.mark.asyncio
    async def test_robots_disallow(self, fast_config: GlobalConfig) -> None:
        """Test robots.txt disallow rules block the fetch."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/robots.txt":
                return httpx.Response(200, text="User-agent: *\nDisallow: /private\n")
            return html_response("ok")

        fast_config.respect_robots = True
        crawler = Crawler(httpx.AsyncClient(transport=httpx.MockTransport(handler)), fast_config)

        blocked = await crawler.fetch("https://example.com/private/page")
        allowed = await crawler.fetch("https://example.com/public")

        assert blocked.success is False
        assert "robots" in blocked.error
        assert allowed.success is True
