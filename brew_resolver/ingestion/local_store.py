"""
Local Store Lookup Module
=========================

Finds breweries and beers already present in the local database, from the
cheapest to the most permissive match: exact, partial, then fuzzy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from brew_resolver.core.enums import SourceKind
from brew_resolver.core.schema import BeerCandidate, BeerRecord, BreweryCandidate, BreweryRecord
from brew_resolver.db.repositories import BeerRepository, BreweryRepository
from brew_resolver.ingestion.config import EntityResolutionConfig
from brew_resolver.ingestion.similarity import compact, fold_accents, name_similarity

logger = logging.getLogger(__name__)

# Shortest compacted name allowed to drive a substring match
MIN_PARTIAL_LENGTH = 4

# Letters a bottle curve may hide at either end of a beer name
MAX_HIDDEN_EDGE_CHARS = 2


@dataclass
class CachedBottle:
    """A beer already linked to an enriched brewery."""

    beer: BeerRecord
    brewery: BreweryRecord


def brewery_candidate(record: BreweryRecord, kind: SourceKind, confidence: float) -> BreweryCandidate:
    """Wrap a stored brewery as a candidate."""
    return BreweryCandidate(
        source_kind=kind,
        confidence=confidence,
        facts=record.to_facts(),
        source_refs=[record.website] if record.website else [],
        record_id=record.id,
    )


class LocalStore:
    """
    Lookup of canonical records in the local store.

    Matching order for breweries: case-insensitive exact name, then
    whitespace-insensitive substring, then edit-distance similarity over a
    bounded sample of records.
    """

    def __init__(self, session: Session, config: EntityResolutionConfig | None = None) -> None:
        self.session = session
        self.config = config or EntityResolutionConfig()
        self.breweries = BreweryRepository(session)
        self.beers = BeerRepository(session)

    def find_brewery(self, name: str | None) -> BreweryCandidate | None:
        """
        Find a brewery by name.

        Args:
            name: Brewery name as read or proposed

        Returns:
            LOCAL candidate for exact/partial matches, FUZZY_LOCAL for
            similarity matches, None if nothing matched
        """
        if not name or not name.strip():
            return None

        record = self.breweries.get_by_name(name)
        if record is not None:
            logger.info(f"Local exact match for brewery '{name}': {record.id}")
            return brewery_candidate(record, SourceKind.LOCAL, 1.0)

        record = self._find_partial(name)
        if record is not None:
            logger.info(f"Local partial match for brewery '{name}': '{record.name}'")
            return brewery_candidate(record, SourceKind.LOCAL, 0.9)

        return self.find_brewery_fuzzy(name)

    def find_brewery_fuzzy(self, name: str | None) -> BreweryCandidate | None:
        """Best similarity match above the fuzzy threshold, if any."""
        if not name or not name.strip():
            return None

        best: BreweryRecord | None = None
        best_score = 0.0
        for record in self.breweries.list_sample(self.config.fuzzy_sample_size):
            score = name_similarity(name, record.name)
            if score > best_score:
                best, best_score = record, score

        if best is None or best_score <= self.config.fuzzy_threshold:
            logger.info(f"No local brewery match for '{name}'")
            return None

        logger.info(f"Local fuzzy match for brewery '{name}': '{best.name}' ({best_score:.2f})")
        return brewery_candidate(best, SourceKind.FUZZY_LOCAL, best_score)

    def _find_partial(self, name: str) -> BreweryRecord | None:
        needle = compact(name)
        if len(needle) < MIN_PARTIAL_LENGTH:
            return None

        for record in self.breweries.search_by_name(name, limit=5):
            return record

        # Whitespace-insensitive containment ("Birra Baladin" vs "BirraBaladin")
        for record in self.breweries.list_sample(self.config.fuzzy_sample_size):
            if needle in compact(record.name):
                return record
        return None

    def get_brewery(self, brewery_id: str) -> BreweryRecord | None:
        """Load a brewery record by id."""
        return self.breweries.get_by_id(brewery_id)

    def find_beer_by_name_and_brewery(self, name: str, brewery_id: str) -> BeerCandidate | None:
        """Exact case-insensitive beer match scoped to one brewery."""
        record = self.beers.get_by_name_and_brewery(name, brewery_id)
        if record is None:
            return None
        return BeerCandidate(
            source_kind=SourceKind.LOCAL,
            confidence=1.0,
            facts=record.to_facts(),
            record_id=record.id,
            brewery_record_id=brewery_id,
        )

    def find_beer_fuzzy(self, name: str, brewery_id: str) -> BeerRecord | None:
        """
        Beer of one brewery whose name the label shows only partly.

        Matches, in order: the stored name starts with the label name, ends
        with it, or equals it once accents, punctuation and spaces are
        dropped. Prefix and suffix matches allow at most
        MAX_HIDDEN_EDGE_CHARS missing letters ("Sudigir" -> "Sudigiri").
        """
        label = name.lower().strip()
        folded = fold_accents(compact(name))
        if len(folded) < MIN_PARTIAL_LENGTH or not brewery_id:
            return None

        beers = [beer for beer in self.beers.list_by_brewery(brewery_id) if beer.name]

        def hidden(stored: str, shown: str) -> bool:
            return 0 < len(stored) - len(shown) <= MAX_HIDDEN_EDGE_CHARS

        checks = [
            ("prefix", lambda stored: stored.startswith(label) and hidden(stored, label)),
            ("suffix", lambda stored: stored.endswith(label) and hidden(stored, label)),
        ]
        for kind, check in checks:
            for beer in beers:
                if check(beer.name.lower().strip()):
                    logger.info(f"Local {kind} match for beer '{name}': '{beer.name}'")
                    return beer

        for beer in beers:
            stored = fold_accents(compact(beer.name))
            if stored == folded or (stored.startswith(folded) and hidden(stored, folded)):
                logger.info(f"Local normalized match for beer '{name}': '{beer.name}'")
                return beer
        return None

    def find_beer_linked_to_any_brewery(self, beer_name: str) -> CachedBottle | None:
        """
        Fast-path lookup of a beer already attached to an enriched brewery.

        Beers whose brewery is a confidence-0 placeholder are ignored.
        """
        for beer in self.beers.find_by_name(beer_name):
            brewery = self.breweries.get_by_id(beer.brewery_id)
            if brewery is None or brewery.is_placeholder:
                continue
            logger.info(f"Cache hit for beer '{beer_name}' at brewery '{brewery.name}'")
            return CachedBottle(beer=beer, brewery=brewery)
        return None
