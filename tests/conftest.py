"""Shared fixtures: temporary database, mocked HTTP and fake enrichment strategies."""

import tempfile
from pathlib import Path
from typing import Callable

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from brew_resolver.core.schema import BeerCandidate, BreweryCandidate
from brew_resolver.db.models import Base
from brew_resolver.ingestion.config import GlobalConfig, RateLimitConfig
from brew_resolver.ingestion.crawler import Crawler
from brew_resolver.ingestion.search_engine import SearchResult
from brew_resolver.services.ai.client import AIClient, AIProvider, GroundedResponse


@pytest.fixture
def temp_db_path():
    """Create a temporary database file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def engine(temp_db_path):
    """Create a test database engine."""
    engine = create_engine(f"sqlite:///{temp_db_path}", echo=False)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create a database session for testing."""
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def fast_config() -> GlobalConfig:
    """HTTP settings without rate limiting delays or retries."""
    return GlobalConfig(
        rate_limit=RateLimitConfig(requests_per_second=1000.0, burst_limit=1000),
        request_timeout=5.0,
        max_retries=1,
    )


@pytest.fixture
def make_crawler(fast_config: GlobalConfig) -> Callable[[Callable[[httpx.Request], httpx.Response]], Crawler]:
    """Build a Crawler whose requests are answered by a handler function."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> Crawler:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return Crawler(client, fast_config)

    return factory


def html_response(body: str, status_code: int = 200) -> httpx.Response:
    """An HTML response."""
    return httpx.Response(status_code, text=body, headers={"content-type": "text/html; charset=utf-8"})


class FakeAIClient(AIClient):
    """AIClient returning canned answers and recording prompts."""

    provider = AIProvider.GEMINI
    model = "fake-model"

    def __init__(self, text: str = "{}", sources: list[str] | None = None, error: Exception | None = None) -> None:
        self.text = text
        self.sources = sources or []
        self.error = error
        self.prompts: list[str] = []

    async def generate_grounded(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.1,
        max_output_tokens: int = 4096,
    ) -> GroundedResponse:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return GroundedResponse(text=self.text, sources=self.sources, search_queries=["fake query"])


class FakeSearchEngine:
    """Search engine returning a fixed official site."""

    def __init__(self, result: SearchResult | None = None) -> None:
        self.result = result
        self.queries: list[str] = []

    async def find_official_site(self, query: str, names: list[str | None]) -> SearchResult | None:
        self.queries.append(query)
        return self.result


class FakeSiteExtractor:
    """Site extractor returning canned candidates and recording calls."""

    def __init__(
        self,
        brewery: BreweryCandidate | None = None,
        logo: str | None = None,
        beer: BeerCandidate | None = None,
    ) -> None:
        self.brewery = brewery
        self.logo = logo
        self.beer = beer
        self.extracted: list[str] = []
        self.logo_requests: list[str] = []
        self.beer_requests: list[tuple[str, str]] = []

    async def extract(self, base_url: str) -> BreweryCandidate | None:
        self.extracted.append(base_url)
        return self.brewery

    async def extract_logo(self, base_url: str) -> str | None:
        self.logo_requests.append(base_url)
        return self.logo

    async def extract_beer(self, base_url: str, beer_name: str) -> BeerCandidate | None:
        self.beer_requests.append((base_url, beer_name))
        return self.beer
