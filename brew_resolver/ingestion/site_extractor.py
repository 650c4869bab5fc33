"""
Direct Site Extraction Module
=============================

Crawls a brewery's own website and mines brewery and beer facts from its
pages:
1. Fetch the homepage and rank same-site links
2. Visit the most promising pages (beers, contacts, about...)
3. Run the field extractors on each page, first value found wins
"""

from __future__ import annotations

import logging
from typing import Any, Callable
from urllib.parse import urljoin, urlparse

from brew_resolver.core.enums import SourceKind
from brew_resolver.core.schema import BeerCandidate, BeerFacts, BreweryCandidate, BreweryFacts, is_empty_value
from brew_resolver.ingestion import extractors
from brew_resolver.ingestion.config import SiteExtractionConfig
from brew_resolver.ingestion.crawler import Crawler
from brew_resolver.ingestion.extractors import ParsedPage, parse_page
from brew_resolver.ingestion.similarity import slugify

logger = logging.getLogger(__name__)

# Field name -> extractor, in the order they are tried on each page
BREWERY_FIELD_EXTRACTORS: dict[str, Callable[[ParsedPage], Any]] = {
    "email": extractors.extract_email,
    "pec_email": extractors.extract_pec,
    "phone": extractors.extract_phone,
    "fiscal_code": extractors.extract_fiscal_code,
    "rea_code": extractors.extract_rea_code,
    "excise_code": extractors.extract_excise_code,
    "founding_year": extractors.extract_founding_year,
    "description": extractors.extract_description,
    "history": extractors.extract_history,
    "size_class": extractors.extract_size_class,
    "employee_count": extractors.extract_employee_count,
    "production_volume": extractors.extract_production_volume,
    "master_brewer": extractors.extract_master_brewer,
    "social_links": extractors.extract_social_links,
    "main_products": extractors.extract_main_products,
    "awards": extractors.extract_awards,
}

BEER_FIELD_EXTRACTORS: dict[str, Callable[[ParsedPage], Any]] = {
    "alcohol_content": extractors.extract_alcohol_content,
    "ibu": extractors.extract_ibu,
    "style": extractors.extract_style,
    "sub_style": extractors.extract_sub_style,
    "volume": extractors.extract_volume,
    "ingredients": extractors.extract_ingredients,
    "tasting_notes": extractors.extract_tasting_notes,
    "nutritional_info": extractors.extract_nutritional_info,
    "price": extractors.extract_price,
    "availability": extractors.extract_availability,
}

BEER_PATH_PREFIXES = ("birre", "birra", "beers", "prodotti", "products", "", "le-nostre-birre", "our-beers")


def normalize_base_url(url: str) -> str:
    """Ensure a scheme and strip the path, keeping scheme://host."""
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def beer_page_candidates(base_url: str, beer_name: str) -> list[str]:
    """URLs where a beer page is likely to live, homepage last."""
    slug = slugify(beer_name)
    base = normalize_base_url(base_url)
    urls = [f"{base}/{prefix}/{slug}" if prefix else f"{base}/{slug}" for prefix in BEER_PATH_PREFIXES]
    urls.append(base)
    return urls


class DirectSiteExtractor:
    """
    Extracts facts from a brewery's official website.

    Page failures are logged and skipped; the extractor only returns None
    when nothing at all could be mined.
    """

    def __init__(self, crawler: Crawler, config: SiteExtractionConfig | None = None) -> None:
        self.crawler = crawler
        self.config = config or SiteExtractionConfig()

    async def _fetch_page(self, url: str) -> ParsedPage | None:
        fetch = await self.crawler.fetch(url, timeout=self.config.page_timeout)
        if not fetch.success:
            logger.warning(f"Skipping {url}: {fetch.error}")
            return None
        return parse_page(fetch.text, fetch.final_url or url)

    async def _crawl(self, base_url: str) -> list[ParsedPage]:
        """Homepage plus the highest-ranked internal pages, deduplicated by content."""
        pages: list[ParsedPage] = []
        seen_hashes: set[str] = set()
        seen_urls = {base_url.rstrip("/")}

        homepage = await self._fetch_page(base_url)
        links: list[str] = []
        if homepage is not None:
            pages.append(homepage)
            seen_hashes.add(self.crawler.compute_hash(homepage.html.encode("utf-8", errors="replace")))
            seen_urls.add(homepage.url.rstrip("/"))
            links = extractors.extract_links(homepage, base_url, limit=self.config.max_pages)
        if not links:
            links = [urljoin(base_url, path) for path in self.config.fallback_paths]
            logger.debug(f"No internal links from {base_url}, trying {len(links)} common paths")

        for url in links[: self.config.max_pages]:
            if url.rstrip("/") in seen_urls:
                continue
            seen_urls.add(url.rstrip("/"))
            page = await self._fetch_page(url)
            if page is None:
                continue
            content_hash = self.crawler.compute_hash(page.html.encode("utf-8", errors="replace"))
            if content_hash in seen_hashes:
                continue
            seen_hashes.add(content_hash)
            pages.append(page)

        logger.info(f"Crawled {len(pages)} page(s) from {base_url}")
        return pages

    async def extract(self, base_url: str) -> BreweryCandidate | None:
        """
        Extract brewery facts from a website.

        Args:
            base_url: Website root (scheme optional)

        Returns:
            DIRECT_SITE candidate with confidence = min(fields / 10, 1.0),
            or None if the site is unreachable or yields nothing
        """
        base = normalize_base_url(base_url)
        pages = await self._crawl(base)
        if not pages:
            return None

        values: dict[str, Any] = {"website": base}
        address_source: str | None = None
        best_address: tuple[str, float] | None = None

        for page in pages:
            address = extractors.extract_address(page)
            if address and (best_address is None or address[1] > best_address[1]):
                best_address = address
                address_source = page.url

            for field_name, extractor in BREWERY_FIELD_EXTRACTORS.items():
                if not is_empty_value(values.get(field_name)):
                    continue
                try:
                    value = extractor(page)
                except (ValueError, AttributeError) as e:
                    logger.debug(f"Extractor {field_name} failed on {page.url}: {e}")
                    continue
                if not is_empty_value(value):
                    values[field_name] = value

        values["logo_url"] = extractors.extract_logo_url(pages[0], base)
        if best_address:
            values["legal_address"] = best_address[0]

        found = [name for name, value in values.items() if name != "website" and not is_empty_value(value)]
        if not found:
            logger.info(f"No brewery data found on {base}")
            return None

        confidence = min(len(found) / 10, 1.0)
        logger.info(f"Extracted {len(found)} field(s) from {base} (confidence {confidence:.2f})")
        return BreweryCandidate(
            source_kind=SourceKind.DIRECT_SITE,
            confidence=confidence,
            facts=BreweryFacts(**values),
            source_refs=[address_source or base, base] if address_source != base else [base],
        )

    async def extract_logo(self, base_url: str) -> str | None:
        """Scrape only the logo from the homepage."""
        base = normalize_base_url(base_url)
        page = await self._fetch_page(base)
        if page is None:
            return None
        logo = extractors.extract_logo_url(page, base)
        if logo:
            logger.info(f"Found logo for {base}: {logo}")
        return logo

    async def extract_beer(self, base_url: str, beer_name: str) -> BeerCandidate | None:
        """
        Find and mine a beer's page on the brewery website.

        Candidate URLs are tried in order; the first page that is long enough
        and mentions the beer is used.

        Returns:
            DIRECT_SITE beer candidate with confidence = fields / 11, or None
        """
        needle = beer_name.strip().lower()
        if not needle:
            return None

        for url in beer_page_candidates(base_url, beer_name):
            page = await self._fetch_page(url)
            if page is None:
                continue
            if len(page.html) < self.config.min_beer_page_length or needle not in page.lowered:
                continue

            values: dict[str, Any] = {"name": beer_name}
            for field_name, extractor in BEER_FIELD_EXTRACTORS.items():
                value = extractor(page)
                if not is_empty_value(value):
                    values[field_name] = value
            description = extractors.extract_beer_description(page, beer_name)
            if description:
                values["description"] = description

            found = len(values) - 1
            if found == 0:
                continue
            logger.info(f"Extracted {found} beer field(s) for '{beer_name}' from {url}")
            return BeerCandidate(
                source_kind=SourceKind.DIRECT_SITE,
                confidence=min(found / 11, 1.0),
                facts=BeerFacts(**values),
                source_refs=[page.url],
            )

        logger.info(f"No page found for beer '{beer_name}' on {base_url}")
        return None
