"""Tests for direct website extraction."""

import httpx
import pytest

from brew_resolver.core.enums import SourceKind
from brew_resolver.ingestion.config import SiteExtractionConfig
from brew_resolver.ingestion.site_extractor import DirectSiteExtractor, beer_page_candidates, normalize_base_url

from conftest import html_response

BASE = "https://www.birrificio-italiano.it"

HOMEPAGE = """
<html><head>
<meta name="description" content="Birrificio artigianale lombardo, pionieri della birra di qualità in Italia.">
</head><body>
<header><img src="/img/logo.png"></header>
<a href="/contatti">Contatti</a>
<a href="/birre">Le nostre birre</a>
<p>Fondato nel 1996 a Lurago Marinone.</p>
</body></html>
"""

CONTACTS = """
<html><body>
<p>Email: info@birrificio-italiano.it</p>
<p>Tel: +39 031 8928321</p>
<p>Sede: Via Monte Grappa 44, 22070 Lurago (CO)</p>
</body></html>
"""

BEER_PAGE = (
    "<html><body><h1>Tipopils</h1>"
    "<p>Alc. 5,2% vol</p><p>IBU: 35</p><p>Bottiglia da 33 cl</p>"
    f"<div>{'Lorem ipsum dolor sit amet. ' * 50}</div>"
    "</body></html>"
)


def site(pages: dict[str, str]):
    """Handler serving a fixed set of paths, 404 elsewhere."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = pages.get(request.url.path)
        if body is None:
            return html_response("not found", status_code=404)
        return html_response(body)

    return handler


class TestUrls:
    """Tests for URL helpers."""

    def test_normalize_base_url(self) -> None:
        """Test a scheme is added and the path dropped."""
        assert normalize_base_url("www.example.it/chi-siamo") == "https://www.example.it"
        assert normalize_base_url("http://example.it/") == "http://example.it"

    def test_beer_page_candidates(self) -> None:
        """Test candidates use the slug and end with the homepage."""
        urls = beer_page_candidates("example.it", "Tipo Pils")

        assert urls[0] == "https://example.it/birre/tipo-pils"
        assert "https://example.it/tipo-pils" in urls
        assert urls[-1] == "https://example.it"


class TestExtractBrewery:
    """Tests for brewery extraction from a whole site."""

    @pytest.mark.asyncio
    async def test_merges_fields_across_pages(self, make_crawler) -> None:
        """Test homepage and contact page facts end up in one candidate."""
        crawler = make_crawler(site({"/": HOMEPAGE, "/contatti": CONTACTS, "/birre": "<html><p>Birre</p></html>"}))

        candidate = await DirectSiteExtractor(crawler).extract(BASE)

        assert candidate is not None
        assert candidate.source_kind == SourceKind.DIRECT_SITE
        facts = candidate.facts
        assert facts.website == BASE
        assert facts.email == "info@birrificio-italiano.it"
        assert facts.phone == "0318928321"
        assert facts.founding_year == 1996
        assert facts.legal_address == "Via Monte Grappa 44, 22070 Lurago (CO)"
        assert facts.logo_url == f"{BASE}/img/logo.png"
        assert candidate.source_refs[0].endswith("/contatti")
        assert 0.5 <= candidate.confidence <= 1.0

    @pytest.mark.asyncio
    async def test_unreachable_site(self, make_crawler) -> None:
        """Test a site that never answers yields nothing."""
        crawler = make_crawler(lambda request: html_response("", status_code=503))

        assert await DirectSiteExtractor(crawler).extract(BASE) is None

    @pytest.mark.asyncio
    async def test_empty_site(self, make_crawler) -> None:
        """Test a reachable site without any facts yields nothing."""
        crawler = make_crawler(site({"/": "<html><body><p>Coming soon</p></body></html>"}))

        assert await DirectSiteExtractor(crawler).extract(BASE) is None

    @pytest.mark.asyncio
    async def test_fallback_paths_when_no_links(self, make_crawler) -> None:
        """Test common paths are tried when the homepage has no links."""
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.path)
            if request.url.path == "/":
                return html_response("<html><body><p>Benvenuti</p></body></html>")
            if request.url.path == "/contatti":
                return html_response(CONTACTS)
            return html_response("not found", status_code=404)

        config = SiteExtractionConfig(fallback_paths=["/contatti", "/about"])
        candidate = await DirectSiteExtractor(make_crawler(handler), config).extract(BASE)

        assert "/contatti" in requested
        assert candidate is not None
        assert candidate.facts.email == "info@birrificio-italiano.it"

    @pytest.mark.asyncio
    async def test_fallback_paths_when_homepage_fails(self, make_crawler) -> None:
        """Test a broken homepage does not stop the common paths from being crawled."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/contatti":
                return html_response(CONTACTS)
            return html_response("", status_code=503)

        config = SiteExtractionConfig(fallback_paths=["/contatti", "/about"])
        candidate = await DirectSiteExtractor(make_crawler(handler), config).extract(BASE)

        assert candidate is not None
        assert candidate.facts.email == "info@birrificio-italiano.it"
        assert candidate.source_refs[0].endswith("/contatti")

    @pytest.mark.asyncio
    async def test_extract_logo(self, make_crawler) -> None:
        """Test the logo is read from the homepage only."""
        crawler = make_crawler(site({"/": HOMEPAGE}))

        assert await DirectSiteExtractor(crawler).extract_logo("birrificio-italiano.it") == (
            "https://birrificio-italiano.it/img/logo.png"
        )


class TestExtractBeer:
    """Tests for beer page extraction."""

    @pytest.mark.asyncio
    async def test_beer_page(self, make_crawler) -> None:
        """Test the beer page under /birre is found and mined."""
        crawler = make_crawler(site({"/birre/tipopils": BEER_PAGE}))

        candidate = await DirectSiteExtractor(crawler).extract_beer(BASE, "Tipopils")

        assert candidate is not None
        assert candidate.facts.name == "Tipopils"
        assert candidate.facts.alcohol_content == 5.2
        assert candidate.facts.ibu == 35
        assert candidate.facts.volume == "33 cl"
        assert candidate.source_refs[0].endswith("/birre/tipopils")

    @pytest.mark.asyncio
    async def test_short_pages_skipped(self, make_crawler) -> None:
        """Test pages below the minimum length are not used."""
        crawler = make_crawler(site({"/birre/tipopils": "<html><p>Tipopils Alc. 5,2% vol</p></html>"}))

        assert await DirectSiteExtractor(crawler).extract_beer(BASE, "Tipopils") is None

    @pytest.mark.asyncio
    async def test_page_must_mention_beer(self, make_crawler) -> None:
        """Test a long page about another beer is skipped."""
        crawler = make_crawler(site({"/birre/tipopils": BEER_PAGE.replace("Tipopils", "Extrafresh")}))

        assert await DirectSiteExtractor(crawler).extract_beer(BASE, "Tipopils") is None

    @pytest.mark.asyncio
    async def test_blank_beer_name(self, make_crawler) -> None:
        """Test a blank name never triggers requests."""
        crawler = make_crawler(lambda request: pytest.fail("no request expected"))

        assert await DirectSiteExtractor(crawler).extract_beer(BASE, "  ") is None
