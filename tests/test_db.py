"""Tests for database persistence layer."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from brew_resolver.core.enums import DataSource, ProcessingStatus, ValidationStatus
from brew_resolver.core.schema import (
    BeerRecord,
    BreweryRecord,
    RatingSlot,
    Review,
    SocialLinks,
    TastingNotes,
)
from brew_resolver.db.engine import create_db_engine, run_migrations
from brew_resolver.db.repositories import BeerRepository, BreweryRepository, ReviewRepository


class TestBreweryRepository:
    """Tests for BreweryRepository."""

    def test_create_and_get(self, session: Session) -> None:
        """Test a brewery round-trips with its JSON columns."""
        repo = BreweryRepository(session)
        created = repo.create(
            BreweryRecord(
                name="Birrificio Italiano",
                website="https://www.birrificio-italiano.it",
                founding_year=1996,
                social_links=SocialLinks(instagram="https://instagram.com/birrificioitaliano"),
                main_products=["Tipopils"],
                data_source=DataSource.WEB_SEARCH,
                validation_status=ValidationStatus.WEB_SCRAPED,
                confidence_score=0.8,
            )
        )
        session.commit()

        retrieved = repo.get_by_id(created.id)

        assert retrieved is not None
        assert retrieved.name == "Birrificio Italiano"
        assert retrieved.founding_year == 1996
        assert retrieved.social_links.instagram == "https://instagram.com/birrificioitaliano"
        assert retrieved.main_products == ["Tipopils"]
        assert retrieved.data_source == DataSource.WEB_SEARCH
        assert retrieved.validation_status == ValidationStatus.WEB_SCRAPED
        assert retrieved.created_at is not None

    def test_get_by_name_case_insensitive(self, session: Session) -> None:
        """Test name lookup ignores case and surrounding spaces."""
        repo = BreweryRepository(session)
        created = repo.create(BreweryRecord(name="Lambrate"))
        session.commit()

        assert repo.get_by_name("  LAMBRATE ").id == created.id
        assert repo.get_by_name("Lambrate Bis") is None

    def test_update(self, session: Session) -> None:
        """Test updating fields of an existing brewery."""
        repo = BreweryRepository(session)
        created = repo.create(BreweryRecord(name="Lambrate"))
        session.commit()

        updated = repo.update(created.model_copy(update={"email": "info@birrificiolambrate.com"}))
        session.commit()

        assert updated.email == "info@birrificiolambrate.com"
        assert repo.get_by_id(created.id).email == "info@birrificiolambrate.com"

    def test_update_missing(self, session: Session) -> None:
        """Test updating an unknown brewery raises."""
        with pytest.raises(ValueError):
            BreweryRepository(session).update(BreweryRecord(id="missing", name="X"))

    def test_add_product_deduplicates(self, session: Session) -> None:
        """Test a beer name is only added once, whatever its case."""
        repo = BreweryRepository(session)
        created = repo.create(BreweryRecord(name="Lambrate", main_products=["Ghisa"]))
        repo.add_product(created.id, "Montestella")
        repo.add_product(created.id, "ghisa")
        session.commit()

        assert repo.get_by_id(created.id).main_products == ["Ghisa", "Montestella"]

    def test_list_needing_review(self, session: Session) -> None:
        """Test only flagged breweries are listed."""
        repo = BreweryRepository(session)
        repo.create(BreweryRecord(name="Fine"))
        flagged = repo.create(BreweryRecord(name="Unknown", needs_manual_review=True))
        session.commit()

        assert [b.id for b in repo.list_needing_review()] == [flagged.id]
        assert repo.count() == 2


class TestBeerRepository:
    """Tests for BeerRepository."""

    def test_create_with_tasting_notes(self, session: Session) -> None:
        """Test a beer round-trips with its nested fields."""
        brewery = BreweryRepository(session).create(BreweryRecord(name="Birrificio Italiano"))
        repo = BeerRepository(session)
        created = repo.create(
            BeerRecord(
                name="Tipopils",
                brewery_id=brewery.id,
                alcohol_content=5.2,
                ingredients=["malto pils", "luppolo"],
                tasting_notes=TastingNotes(aroma="erbaceo, floreale"),
            )
        )
        session.commit()

        retrieved = repo.get_by_id(created.id)

        assert retrieved.alcohol_content == 5.2
        assert retrieved.ingredients == ["malto pils", "luppolo"]
        assert retrieved.tasting_notes.aroma == "erbaceo, floreale"
        assert [b.id for b in repo.list_by_brewery(brewery.id)] == [created.id]

    def test_find_by_name_across_breweries(self, session: Session) -> None:
        """Test beers with the same name are found under every brewery."""
        breweries = BreweryRepository(session)
        first = breweries.create(BreweryRecord(name="A"))
        second = breweries.create(BreweryRecord(name="B"))
        repo = BeerRepository(session)
        repo.create(BeerRecord(name="Pils", brewery_id=first.id))
        repo.create(BeerRecord(name="pils", brewery_id=second.id))
        session.commit()

        assert len(repo.find_by_name("PILS")) == 2
        assert repo.get_by_name_and_brewery("Pils", second.id).brewery_id == second.id


class TestReviewRepository:
    """Tests for ReviewRepository."""

    def _review(self, session: Session, *slots: RatingSlot) -> Review:
        created = ReviewRepository(session).create(Review(user_id="user-1", ratings=list(slots)))
        session.commit()
        return created

    def test_create_review_with_slots(self, session: Session) -> None:
        """Test slots are stored and returned in slot order."""
        review = self._review(session, RatingSlot(slot_index=1), RatingSlot(slot_index=0, rating=4.0))

        retrieved = ReviewRepository(session).get_by_id(review.id)

        assert [s.slot_index for s in retrieved.ratings] == [0, 1]
        assert retrieved.ratings[0].rating == 4.0
        assert retrieved.processing_status == ProcessingStatus.PENDING

    def test_mark_processing_counts_attempts(self, session: Session) -> None:
        """Test each processing start increments attempts and keeps the guesses."""
        review = self._review(session)
        repo = ReviewRepository(session)

        repo.mark_processing(review.id, [{"beer_name": "Tipopils"}])
        updated = repo.mark_processing(review.id)
        session.commit()

        assert updated.processing_status == ProcessingStatus.PROCESSING
        assert updated.processing_attempts == 2
        assert updated.label_guesses == [{"beer_name": "Tipopils"}]
        assert updated.last_processing_attempt is not None

    def test_mark_failed_and_completed(self, session: Session) -> None:
        """Test terminal states store the error, reason and bottles."""
        review = self._review(session)
        repo = ReviewRepository(session)

        repo.mark_failed(review.id, "boom")
        assert repo.get_by_id(review.id).processing_error == "boom"

        repo.mark_completed(review.id, ProcessingStatus.NEEDS_ADMIN_REVIEW, [{"beer_name": "X"}], "1 error")
        session.commit()

        retrieved = repo.get_by_id(review.id)
        assert retrieved.processing_status == ProcessingStatus.NEEDS_ADMIN_REVIEW
        assert retrieved.processing_error is None
        assert retrieved.admin_review_reason == "1 error"
        assert retrieved.processed_bottles == [{"beer_name": "X"}]
        assert retrieved.completed_at is not None

    def test_link_rating_keeps_user_content(self, session: Session) -> None:
        """Test linking never touches rating, notes or an existing label."""
        review = self._review(session, RatingSlot(slot_index=0, rating=3.5, notes="ottima", bottle_label="Mine"))
        brewery = BreweryRepository(session).create(BreweryRecord(name="Lambrate"))
        beer = BeerRepository(session).create(BeerRecord(name="Ghisa", brewery_id=brewery.id))
        repo = ReviewRepository(session)

        assert repo.link_rating(review.ratings[0].id, brewery.id, beer.id, bottle_label="Ghisa") is True
        session.commit()

        slot = repo.get_by_id(review.id).ratings[0]
        assert slot.brewery_id == brewery.id
        assert slot.beer_id == beer.id
        assert slot.rating == 3.5
        assert slot.notes == "ottima"
        assert slot.bottle_label == "Mine"

    def test_link_rating_missing_slot(self, session: Session) -> None:
        """Test linking an unknown slot reports False."""
        assert ReviewRepository(session).link_rating("missing", None, None) is False

    def test_replace_ratings(self, session: Session) -> None:
        """Test replacing slots removes the old ones."""
        review = self._review(session, RatingSlot(slot_index=0), RatingSlot(slot_index=1))
        repo = ReviewRepository(session)

        repo.replace_ratings(review.id, [RatingSlot(slot_index=0, bottle_label="Tipopils")])
        session.commit()

        ratings = repo.get_by_id(review.id).ratings
        assert len(ratings) == 1
        assert ratings[0].bottle_label == "Tipopils"

    def test_list_by_status_updated_before(self, session: Session) -> None:
        """Test stalled lookups only return reviews idle since the cutoff."""
        review = self._review(session)
        repo = ReviewRepository(session)
        repo.mark_processing(review.id)
        session.commit()

        future = datetime.now(UTC) + timedelta(minutes=5)
        past = datetime.now(UTC) - timedelta(minutes=5)

        assert [r.id for r in repo.list_by_status(ProcessingStatus.PROCESSING, updated_before=future)] == [review.id]
        assert repo.list_by_status(ProcessingStatus.PROCESSING, updated_before=past) == []
        assert repo.list_by_status(ProcessingStatus.COMPLETED) == []

    def test_missing_review_raises(self, session: Session) -> None:
        """Test state changes on an unknown review raise."""
        with pytest.raises(ValueError):
            ReviewRepository(session).mark_failed("missing", "x")


class TestMigrations:
    """Tests for the Alembic migrations."""

    def test_upgrade_creates_tables(self, temp_db_path: Path) -> None:
        """Test the migrations create every table."""
        run_migrations(temp_db_path)

        engine = create_db_engine(temp_db_path)
        try:
            tables = set(inspect(engine).get_table_names())
        finally:
            engine.dispose()

        assert {"breweries", "beers", "reviews", "review_ratings"} <= tables
