"""
Entity Resolver Module
======================

Turns a noisy label guess into canonical brewery and beer records.

The brewery cascade, from cheapest to most expensive:
1. Local store (exact, partial, fuzzy name match)
2. Grounded AI search (one combined beer + brewery call)
3. Search engine scrape + direct website extraction, when the grounded
   candidate is not good enough or a website needs verifying
4. Logo-only scrape for known websites without a verified logo
5. Fuzzy local match on other names, borrowing the near-duplicate's website
6. Placeholder record flagged for manual review

Existing records are only ever filled in, never overwritten.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Awaitable, TypeVar

from sqlalchemy.orm import Session

from brew_resolver.core.enums import DataSource, SourceKind, ValidationStatus
from brew_resolver.core.schema import (
    BeerFacts,
    BeerRecord,
    BreweryCandidate,
    BreweryFacts,
    BreweryRecord,
    LabelGuess,
    SocialLinks,
    is_empty_value,
)
from brew_resolver.ingestion.autocorrect import Correction, NameAutocorrector
from brew_resolver.ingestion.config import PipelineConfig
from brew_resolver.ingestion.local_store import LocalStore
from brew_resolver.ingestion.quality import DataQualityScorer, QualityScore
from brew_resolver.ingestion.search_engine import SearchEngineScraper
from brew_resolver.ingestion.site_extractor import DirectSiteExtractor
from brew_resolver.services.grounded_search import GroundedAISearch, GroundedSearchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

PLACEHOLDER_REVIEW_REASON = "Brewery not found online - manual verification required"

SOURCE_TO_DATA_SOURCE = {
    SourceKind.LOCAL: DataSource.DATABASE_CACHE,
    SourceKind.FUZZY_LOCAL: DataSource.DATABASE_CACHE,
    SourceKind.GROUNDED_SEARCH: DataSource.GROUNDED_SEARCH,
    SourceKind.SEARCH_SCRAPE: DataSource.WEB_SEARCH,
    SourceKind.DIRECT_SITE: DataSource.WEB_SCRAPING,
}


def _utc_now() -> datetime:
    return datetime.now(UTC)


def update_if_empty(record: T, facts: BreweryFacts | BeerFacts | None) -> tuple[T, list[str]]:
    """
    Fill the empty fields of a record from facts.

    Populated record fields are never replaced. Social links are merged
    network by network.

    Returns:
        (updated copy of the record, names of the fields that were filled)
    """
    if facts is None:
        return record, []

    updates: dict[str, Any] = {}
    for name in type(facts).model_fields:
        new_value = getattr(facts, name)
        if is_empty_value(new_value):
            continue
        current = getattr(record, name, None)
        if isinstance(current, SocialLinks) and isinstance(new_value, SocialLinks):
            merged = current.model_copy(
                update={
                    network: link
                    for network, link in new_value.model_dump().items()
                    if link and not getattr(current, network)
                }
            )
            if merged != current:
                updates[name] = merged
        elif is_empty_value(current):
            updates[name] = new_value

    if not updates:
        return record, []
    return record.model_copy(update=updates, deep=True), list(updates)


def fallback_brewery_name(guess: LabelGuess) -> str:
    """Name for a brewery nobody could find: hint, first beer word, or 'Birrificio <beer>'."""
    if guess.brewery_name_hint:
        return guess.brewery_name_hint
    first = guess.beer_name.split()[0] if guess.beer_name.split() else ""
    if len(first) > 2:
        return first
    return f"Birrificio {guess.beer_name}"


async def _with_timeout(awaitable: Awaitable[T], timeout: float, label: str) -> T | None:
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{label} timed out after {timeout}s")
        return None


@dataclass
class BreweryResolution:
    """Outcome of resolving the brewery of one bottle."""

    record: BreweryRecord
    source_kind: SourceKind | None
    data_source: DataSource
    created: bool = False
    grounded: GroundedSearchResult | None = None
    quality: QualityScore | None = None
    notes: list[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        """False when the record is a confidence-0 placeholder."""
        return not self.record.is_placeholder

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "brewery_id": self.record.id,
            "brewery_name": self.record.name,
            "source_kind": self.source_kind.value if self.source_kind else None,
            "data_source": self.data_source.value,
            "created": self.created,
            "resolved": self.resolved,
            "quality_score": self.quality.score if self.quality else None,
            "notes": self.notes,
        }


@dataclass
class BeerResolution:
    """Outcome of resolving the beer of one bottle."""

    record: BeerRecord
    data_source: DataSource
    created: bool = False
    correction: Correction | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "beer_id": self.record.id,
            "beer_name": self.record.name,
            "data_source": self.data_source.value,
            "created": self.created,
            "name_corrected": bool(self.correction and self.correction.was_corrected),
            "original_name": self.correction.original_name if self.correction else None,
        }


@dataclass
class _Collected:
    """Facts gathered by the online strategies for one brewery."""

    candidate: BreweryCandidate | None = None
    grounded: GroundedSearchResult | None = None
    quality: QualityScore | None = None
    site_verified: bool = False
    logo_from_site: bool = False
    notes: list[str] = field(default_factory=list)


class BreweryResolver:
    """
    Resolves the brewery of a label guess to a canonical record.

    Strategies are injected so tests can swap any of them for fakes. An
    identity lookup always runs right before a record is created.
    """

    def __init__(
        self,
        session: Session,
        grounded: GroundedAISearch,
        search_engine: SearchEngineScraper,
        site_extractor: DirectSiteExtractor,
        config: PipelineConfig | None = None,
    ) -> None:
        self.session = session
        self.config = config or PipelineConfig()
        self.store = LocalStore(session, self.config.entity_resolution)
        self.grounded = grounded
        self.search_engine = search_engine
        self.site_extractor = site_extractor
        self.scorer = DataQualityScorer(self.config.quality)

    async def resolve(self, guess: LabelGuess) -> BreweryResolution:
        """
        Resolve the brewery for one bottle.

        Args:
            guess: Label guess (beer name required, brewery hint optional)

        Returns:
            BreweryResolution; never None, the last resort is a placeholder
        """
        hint = guess.brewery_name_hint
        local = self.store.find_brewery(hint) if hint else None
        if local is not None and local.record_id:
            record = self.store.get_brewery(local.record_id)
            if record is not None:
                return await self._resolve_known(guess, record, local.source_kind)

        collected = await self._collect(guess, known=None)
        if collected.candidate is not None:
            return await self._persist(guess, collected)

        borrowed = await self._borrow_near_duplicate(guess, collected)
        if borrowed is not None:
            return borrowed

        return self._persist_placeholder(guess, collected)

    async def _resolve_known(
        self,
        guess: LabelGuess,
        record: BreweryRecord,
        kind: SourceKind,
    ) -> BreweryResolution:
        """Local match: authoritative, but enriched when it lacks contacts."""
        if not record.needs_web_search and not record.is_placeholder:
            logger.info(f"Brewery '{record.name}' resolved from local store ({kind.value})")
            record = await self._ensure_logo(record)
            return BreweryResolution(record=record, source_kind=kind, data_source=DataSource.DATABASE_CACHE)

        logger.info(f"Brewery '{record.name}' found locally but has no website/email; enriching")
        collected = await self._collect(guess, known=record)
        if collected.candidate is not None:
            record = self._enrich(record, collected)
        record = await self._ensure_logo(record)
        return BreweryResolution(
            record=record,
            source_kind=collected.candidate.source_kind if collected.candidate else kind,
            data_source=record.data_source or DataSource.DATABASE_CACHE,
            grounded=collected.grounded,
            quality=collected.quality,
            notes=collected.notes,
        )

    async def _collect(self, guess: LabelGuess, known: BreweryRecord | None) -> _Collected:
        """Run grounded search, then search-engine + site extraction as needed."""
        collected = _Collected()
        name = known.name if known else guess.brewery_name_hint
        website = known.website if known else None

        if not website and (known is None or known.needs_web_search):
            collected.grounded = await self.grounded.search(guess.beer_name, name)
            collected.candidate = collected.grounded.brewery_candidate()
            if collected.grounded.rate_limited:
                collected.notes.append("grounded search rate limited")

        facts = collected.candidate.facts if collected.candidate else None
        collected.quality = self.scorer.score(facts)
        website = website or (facts.website if facts else None)
        search_name = (facts.name if facts else None) or name

        site_kind = SourceKind.DIRECT_SITE
        if not collected.quality.is_acceptable and not website:
            if search_name:
                query = f"{search_name} birrificio sito ufficiale"
            else:
                query = f"{guess.beer_name} birrificio produttore"
            picked = await self.search_engine.find_official_site(query, [search_name, guess.beer_name])
            if picked is not None:
                website = picked.url
                site_kind = SourceKind.SEARCH_SCRAPE
                collected.notes.append(f"website found via search: {picked.url}")

        needs_site = website and (
            site_kind == SourceKind.SEARCH_SCRAPE
            or not collected.quality.is_acceptable
            or self.config.site_extraction.verify_known_website
        )
        if needs_site:
            site = await _with_timeout(
                self.site_extractor.extract(website),
                self.config.site_extraction.extraction_timeout,
                f"Site extraction for {website}",
            )
            if site is not None:
                collected.site_verified = True
                collected.logo_from_site = bool(site.facts.logo_url)
                collected.candidate = self._merge_site(collected.candidate, site, site_kind, search_name)
                collected.quality = self.scorer.score(collected.candidate.facts)

        return collected

    @staticmethod
    def _merge_site(
        candidate: BreweryCandidate | None,
        site: BreweryCandidate,
        site_kind: SourceKind,
        name: str | None,
    ) -> BreweryCandidate:
        """Combine grounded facts with website facts; the scraped logo wins."""
        if candidate is None:
            facts = site.facts.model_copy(update={"name": name}) if name else site.facts
            return site.model_copy(update={"source_kind": site_kind, "facts": facts})

        facts = candidate.facts.fill_gaps(site.facts)
        if site.facts.logo_url:
            facts = facts.model_copy(update={"logo_url": site.facts.logo_url})
        refs = list(dict.fromkeys(candidate.source_refs + site.source_refs))
        return candidate.model_copy(update={"facts": facts, "source_refs": refs})

    async def _ensure_logo(self, record: BreweryRecord) -> BreweryRecord:
        """Logo-only scrape when a website is known and the logo is missing or unverified."""
        if not record.website or record.logo_verified or record.id is None:
            return record
        logo = await _with_timeout(
            self.site_extractor.extract_logo(record.website),
            self.config.site_extraction.page_timeout * 2,
            f"Logo scrape for {record.website}",
        )
        if not logo:
            return record
        record = record.model_copy(update={"logo_url": logo, "logo_verified": True})
        return self.store.breweries.update(record)

    def _enrich(self, record: BreweryRecord, collected: _Collected) -> BreweryRecord:
        """Fill gaps of an existing record; a verified logo replaces an AI one."""
        candidate = collected.candidate
        was_placeholder = record.is_placeholder
        updated, filled = update_if_empty(record, candidate.facts)

        changes: dict[str, Any] = {"last_enriched_at": _utc_now()}
        if collected.logo_from_site and not record.logo_verified:
            changes["logo_url"] = candidate.facts.logo_url
            changes["logo_verified"] = True
        if updated.website:
            changes["data_source"] = DataSource.WEB_SEARCH
            changes["validation_status"] = ValidationStatus.WEB_SCRAPED
        if was_placeholder and updated.website:
            changes["confidence_score"] = candidate.confidence or self.config.entity_resolution.confidence_with_website
            changes["needs_manual_review"] = False
            changes["review_reason"] = None

        updated = updated.model_copy(update=changes)
        logger.info(f"Enriched brewery '{record.name}' with {len(filled)} field(s): {', '.join(filled) or '-'}")
        return self.store.breweries.update(updated)

    async def _persist(self, guess: LabelGuess, collected: _Collected) -> BreweryResolution:
        """Create a record from a candidate, or enrich the one that already has its name."""
        candidate = collected.candidate
        name = candidate.facts.name or fallback_brewery_name(guess)

        existing = self.store.breweries.get_by_name(name)
        if existing is not None:
            logger.info(f"Brewery '{name}' appeared in the store meanwhile; enriching instead of creating")
            record = self._enrich(existing, collected)
            record = await self._ensure_logo(record)
            return BreweryResolution(
                record=record,
                source_kind=candidate.source_kind,
                data_source=record.data_source or SOURCE_TO_DATA_SOURCE[candidate.source_kind],
                grounded=collected.grounded,
                quality=collected.quality,
                notes=collected.notes,
            )

        thresholds = self.config.entity_resolution
        facts = candidate.facts
        has_website = not is_empty_value(facts.website)
        confidence = candidate.confidence or (
            thresholds.confidence_with_website if has_website else thresholds.confidence_without_website
        )
        verified = collected.site_verified or collected.quality.is_acceptable
        review_reason = None
        if not has_website:
            review_reason = "No official website found"
        elif not verified:
            review_reason = f"Low data quality: {collected.quality.reason}"

        data_source = SOURCE_TO_DATA_SOURCE[candidate.source_kind]
        record = BreweryRecord(
            **facts.model_copy(update={"name": name}).model_dump(),
            logo_verified=collected.logo_from_site,
            data_source=data_source,
            confidence_score=confidence,
            validation_status=ValidationStatus.WEB_SCRAPED if has_website else ValidationStatus.PENDING_VALIDATION,
            needs_manual_review=review_reason is not None,
            review_reason=review_reason,
            last_enriched_at=_utc_now(),
        )
        record = self.store.breweries.create(record)
        logger.info(
            f"Created brewery '{name}' from {candidate.source_kind.value} "
            f"(confidence {confidence:.2f}, quality {collected.quality.score})"
        )
        record = await self._ensure_logo(record)
        return BreweryResolution(
            record=record,
            source_kind=candidate.source_kind,
            data_source=data_source,
            created=True,
            grounded=collected.grounded,
            quality=collected.quality,
            notes=collected.notes,
        )

    async def _borrow_near_duplicate(self, guess: LabelGuess, collected: _Collected) -> BreweryResolution | None:
        """Last online attempt: a fuzzy local match whose website can be scraped."""
        names = [fallback_brewery_name(guess), guess.beer_name]
        for name in dict.fromkeys(names):
            match = self.store.find_brewery_fuzzy(name)
            if match is None or match.record_id is None:
                continue
            record = self.store.get_brewery(match.record_id)
            if record is None or record.is_placeholder:
                continue
            logger.info(f"Borrowing near-duplicate brewery '{record.name}' for '{name}'")
            collected.notes.append(f"fuzzy match on '{record.name}' ({match.confidence:.2f})")
            if record.website and record.needs_web_search:
                site = await _with_timeout(
                    self.site_extractor.extract(record.website),
                    self.config.site_extraction.extraction_timeout,
                    f"Site extraction for {record.website}",
                )
                if site is not None:
                    collected.candidate = site
                    collected.site_verified = True
                    collected.logo_from_site = bool(site.facts.logo_url)
                    record = self._enrich(record, collected)
            return BreweryResolution(
                record=record,
                source_kind=SourceKind.FUZZY_LOCAL,
                data_source=record.data_source or DataSource.DATABASE_CACHE,
                grounded=collected.grounded,
                quality=collected.quality,
                notes=collected.notes,
            )
        return None

    def _persist_placeholder(self, guess: LabelGuess, collected: _Collected) -> BreweryResolution:
        """Minimal confidence-0 record so the pipeline is never blocked."""
        name = fallback_brewery_name(guess)
        existing = self.store.breweries.get_by_name(name)
        if existing is not None:
            record, created = existing, False
        else:
            record = self.store.breweries.create(
                BreweryRecord(
                    name=name,
                    data_source=DataSource.AI_ANALYSIS,
                    confidence_score=0.0,
                    validation_status=ValidationStatus.PENDING_VALIDATION,
                    needs_manual_review=True,
                    review_reason=PLACEHOLDER_REVIEW_REASON,
                )
            )
            created = True
        logger.warning(f"Brewery for beer '{guess.beer_name}' not found online; placeholder '{name}'")
        return BreweryResolution(
            record=record,
            source_kind=None,
            data_source=DataSource.AI_ANALYSIS,
            created=created,
            grounded=collected.grounded,
            quality=collected.quality,
            notes=collected.notes + [PLACEHOLDER_REVIEW_REASON],
        )


class BeerResolver:
    """
    Resolves the beer of a label guess within an already resolved brewery.

    Identity is an exact case-insensitive name within the brewery, checked
    for the autocorrected name and the label name, then a label missing up
    to two edge letters. Beer facts come from the web only; the label's ABV
    and style stay in the job metadata.
    """

    def __init__(
        self,
        session: Session,
        site_extractor: DirectSiteExtractor,
        config: PipelineConfig | None = None,
    ) -> None:
        self.session = session
        self.config = config or PipelineConfig()
        self.store = LocalStore(session, self.config.entity_resolution)
        self.site_extractor = site_extractor
        self.autocorrector = NameAutocorrector(self.config.entity_resolution.max_autocorrect_distance)

    async def resolve(
        self,
        guess: LabelGuess,
        brewery: BreweryRecord,
        grounded: GroundedSearchResult | None = None,
    ) -> BeerResolution:
        """
        Resolve or create the beer.

        Args:
            guess: Label guess
            brewery: Resolved brewery record
            grounded: Grounded search result from the brewery cascade, if any

        Returns:
            BeerResolution
        """
        facts = BeerFacts()
        source = DataSource.AI_ANALYSIS
        confidence = 0.0
        grounded_beer = grounded.beer_candidate() if grounded is not None else None
        if grounded_beer is not None:
            facts = grounded_beer.facts
            source = DataSource.GROUNDED_SEARCH
            confidence = grounded_beer.confidence

        if brewery.website and not facts.has_web_data():
            site = await _with_timeout(
                self.site_extractor.extract_beer(brewery.website, guess.beer_name),
                self.config.site_extraction.extraction_timeout,
                f"Beer extraction for '{guess.beer_name}'",
            )
            if site is not None:
                facts = facts.fill_gaps(site.facts)
                if source == DataSource.AI_ANALYSIS:
                    source = DataSource.WEB_SCRAPING
                    confidence = site.confidence

        notes_text = facts.tasting_notes.as_text() if facts.tasting_notes else None
        correction = self.autocorrector.correct(guess.beer_name, facts.description, notes_text)
        name = correction.name

        facts = facts.model_copy(update={"name": name})

        existing = self.store.beers.get_by_name_and_brewery(name, brewery.id)
        if existing is None and correction.was_corrected:
            existing = self.store.beers.get_by_name_and_brewery(correction.original_name, brewery.id)
        if existing is None:
            existing = self.store.find_beer_fuzzy(name, brewery.id)

        if existing is not None:
            updated, filled = update_if_empty(existing, facts)
            if filled:
                updated = updated.model_copy(
                    update={"data_source": DataSource.LABEL_WEB, "last_enriched_at": _utc_now()}
                )
                updated = self.store.beers.update(updated)
                logger.info(f"Enriched beer '{existing.name}' with {', '.join(filled)}")
            return BeerResolution(
                record=updated,
                data_source=updated.data_source or DataSource.DATABASE_CACHE,
                correction=correction,
            )

        has_web_data = source != DataSource.AI_ANALYSIS
        record = self.store.beers.create(
            BeerRecord(
                **facts.model_dump(),
                brewery_id=brewery.id,
                data_source=source,
                confidence_score=confidence or (0.5 if has_web_data else 0.0),
                validation_status=ValidationStatus.WEB_SCRAPED if has_web_data else ValidationStatus.PENDING_VALIDATION,
                needs_manual_review=brewery.is_placeholder or not has_web_data,
                review_reason=None if has_web_data and not brewery.is_placeholder else "Beer data from label only",
                last_enriched_at=_utc_now() if has_web_data else None,
            )
        )
        self.store.breweries.add_product(brewery.id, name)
        logger.info(f"Created beer '{name}' for brewery '{brewery.name}' from {source.value}")
        return BeerResolution(record=record, data_source=source, created=True, correction=correction)
