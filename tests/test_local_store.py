"""Tests for local store lookups."""

from sqlalchemy.orm import Session

from brew_resolver.core.enums import SourceKind
from brew_resolver.core.schema import BeerRecord, BreweryRecord
from brew_resolver.db.repositories import BeerRepository, BreweryRepository
from brew_resolver.ingestion.config import EntityResolutionConfig
from brew_resolver.ingestion.local_store import LocalStore


def _brewery(session: Session, name: str, **fields) -> BreweryRecord:
    created = BreweryRepository(session).create(BreweryRecord(name=name, confidence_score=0.8, **fields))
    session.commit()
    return created


class TestFindBrewery:
    """Tests for brewery matching."""

    def test_exact_match_ignores_case(self, session: Session) -> None:
        """Test exact matches are case-insensitive and fully confident."""
        record = _brewery(session, "Birrificio Italiano")

        candidate = LocalStore(session).find_brewery("birrificio italiano")

        assert candidate is not None
        assert candidate.source_kind == SourceKind.LOCAL
        assert candidate.record_id == record.id
        assert candidate.confidence == 1.0

    def test_partial_match(self, session: Session) -> None:
        """Test a hint contained in a stored name matches."""
        record = _brewery(session, "Birrificio Baladin S.r.l.")

        candidate = LocalStore(session).find_brewery("Baladin")

        assert candidate is not None
        assert candidate.source_kind == SourceKind.LOCAL
        assert candidate.record_id == record.id

    def test_partial_match_ignores_spaces(self, session: Session) -> None:
        """Test 'Birra Baladin' matches a stored 'BirraBaladin'."""
        record = _brewery(session, "BirraBaladin")

        candidate = LocalStore(session).find_brewery("Birra Baladin")

        assert candidate is not None
        assert candidate.record_id == record.id

    def test_short_hint_skips_partial(self, session: Session) -> None:
        """Test very short hints do not drive a substring match."""
        _brewery(session, "Birrificio del Ducato")

        assert LocalStore(session).find_brewery("Duc") is None

    def test_fuzzy_match(self, session: Session) -> None:
        """Test a one-letter OCR error matches by similarity."""
        record = _brewery(session, "Lambrate")

        candidate = LocalStore(session).find_brewery("Lanbrate")

        assert candidate is not None
        assert candidate.source_kind == SourceKind.FUZZY_LOCAL
        assert candidate.record_id == record.id
        assert 0.7 < candidate.confidence < 1.0

    def test_fuzzy_threshold(self, session: Session) -> None:
        """Test dissimilar names do not match."""
        _brewery(session, "Lambrate")

        store = LocalStore(session, EntityResolutionConfig(fuzzy_threshold=0.7))
        assert store.find_brewery("Toccalmatto") is None

    def test_empty_name(self, session: Session) -> None:
        """Test blank hints never match."""
        _brewery(session, "Lambrate")

        assert LocalStore(session).find_brewery("   ") is None
        assert LocalStore(session).find_brewery(None) is None

    def test_candidate_carries_facts(self, session: Session) -> None:
        """Test the candidate exposes the stored facts and website."""
        _brewery(session, "Lambrate", website="https://www.birrificiolambrate.com")

        candidate = LocalStore(session).find_brewery("Lambrate")

        assert candidate.facts.website == "https://www.birrificiolambrate.com"
        assert candidate.source_refs == ["https://www.birrificiolambrate.com"]


class TestFindBeer:
    """Tests for beer lookups."""

    def test_scoped_to_brewery(self, session: Session) -> None:
        """Test the same beer name under another brewery does not match."""
        first = _brewery(session, "Birrificio Italiano")
        second = _brewery(session, "Lambrate")
        BeerRepository(session).create(BeerRecord(name="Tipopils", brewery_id=first.id))
        session.commit()

        store = LocalStore(session)

        assert store.find_beer_by_name_and_brewery("tipopils", first.id) is not None
        assert store.find_beer_by_name_and_brewery("Tipopils", second.id) is None

    def test_fast_path(self, session: Session) -> None:
        """Test a beer linked to a real brewery is found by name alone."""
        brewery = _brewery(session, "Birrificio Italiano", website="https://www.birrificio-italiano.it")
        beer = BeerRepository(session).create(BeerRecord(name="Tipopils", brewery_id=brewery.id))
        session.commit()

        cached = LocalStore(session).find_beer_linked_to_any_brewery("TIPOPILS")

        assert cached is not None
        assert cached.beer.id == beer.id
        assert cached.brewery.id == brewery.id

    def test_fast_path_skips_placeholders(self, session: Session) -> None:
        """Test beers attached to placeholder breweries are not reused."""
        placeholder = BreweryRepository(session).create(
            BreweryRecord(name="Unknown Brewery", confidence_score=0.0, needs_manual_review=True)
        )
        BeerRepository(session).create(BeerRecord(name="Mystery Ale", brewery_id=placeholder.id))
        session.commit()

        assert LocalStore(session).find_beer_linked_to_any_brewery("Mystery Ale") is None


class TestFindBeerFuzzy:
    """Tests for beer names partly hidden on the label."""

    def _beer(self, session: Session, brewery: BreweryRecord, name: str) -> BeerRecord:
        created = BeerRepository(session).create(BeerRecord(name=name, brewery_id=brewery.id))
        session.commit()
        return created

    def test_prefix_match(self, session: Session) -> None:
        """Test a label missing its last letter finds the stored beer."""
        brewery = _brewery(session, "Birrificio del Forte")
        beer = self._beer(session, brewery, "Sudigiri")

        match = LocalStore(session).find_beer_fuzzy("SUDIGIR", brewery.id)

        assert match is not None
        assert match.id == beer.id

    def test_suffix_match(self, session: Session) -> None:
        """Test a label missing its first letters finds the stored beer."""
        brewery = _brewery(session, "Birrificio Italiano")
        beer = self._beer(session, brewery, "L'Audace")

        match = LocalStore(session).find_beer_fuzzy("Audace", brewery.id)

        assert match is not None
        assert match.id == beer.id

    def test_normalized_match(self, session: Session) -> None:
        """Test accents, punctuation and spaces are ignored."""
        brewery = _brewery(session, "Birrificio Italiano")
        beer = self._beer(session, brewery, "Città Alta")

        match = LocalStore(session).find_beer_fuzzy("Citta-Alta", brewery.id)

        assert match is not None
        assert match.id == beer.id

    def test_too_many_hidden_letters(self, session: Session) -> None:
        """Test more than two missing letters is a different beer."""
        brewery = _brewery(session, "Birrificio del Forte")
        self._beer(session, brewery, "Sudigiri")

        assert LocalStore(session).find_beer_fuzzy("Sudig", brewery.id) is None

    def test_scoped_to_brewery(self, session: Session) -> None:
        """Test beers of other breweries never match."""
        first = _brewery(session, "Birrificio del Forte")
        second = _brewery(session, "Lambrate")
        self._beer(session, first, "Sudigiri")

        assert LocalStore(session).find_beer_fuzzy("Sudigir", second.id) is None
