"""Repository classes for local store database operations."""

import json
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select
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
from brew_resolver.db.models import BeerDB, BreweryDB, RatingDB, ReviewDB

# Scalar columns copied 1:1 between domain records and ORM rows
_BREWERY_COLUMNS = (
    "name", "website", "legal_address", "email", "phone", "pec_email", "fiscal_code",
    "rea_code", "excise_code", "legal_form", "share_capital", "founding_year", "size_class",
    "description", "history", "employee_count", "production_volume", "master_brewer",
    "logo_url", "logo_verified", "confidence_score", "needs_manual_review", "review_reason",
    "last_enriched_at",
)

_BEER_COLUMNS = (
    "name", "style", "sub_style", "alcohol_content", "ibu", "volume", "color",
    "serving_temperature", "description", "nutritional_info", "price", "availability",
    "confidence_score", "needs_manual_review", "review_reason", "last_enriched_at",
)


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


class BreweryRepository:
    """Repository for brewery CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, brewery: BreweryRecord) -> BreweryRecord:
        """
        Create a new brewery.

        Args:
            brewery: The BreweryRecord to persist. A new id is generated if unset.

        Returns:
            The created BreweryRecord.
        """
        db_item = BreweryDB()
        if brewery.id:
            db_item.id = brewery.id
        self._apply(db_item, brewery)
        self.session.add(db_item)
        self.session.flush()
        return self._to_domain(db_item)

    def get_by_id(self, brewery_id: str) -> BreweryRecord | None:
        """Get a brewery by ID."""
        db_item = self._get_db(brewery_id)
        return self._to_domain(db_item) if db_item else None

    def get_by_name(self, name: str) -> BreweryRecord | None:
        """Get a brewery by case-insensitive exact name."""
        stmt = (
            select(BreweryDB)
            .where(func.lower(BreweryDB.name) == name.strip().lower())
            .order_by(BreweryDB.created_at)
            .limit(1)
        )
        db_item = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_item) if db_item else None

    def search_by_name(self, name: str, limit: int = 20) -> list[BreweryRecord]:
        """Search breweries by name (substring match)."""
        stmt = (
            select(BreweryDB)
            .where(BreweryDB.name.ilike(f"%{name.strip()}%"))
            .order_by(BreweryDB.name)
            .limit(limit)
        )
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(b) for b in result]

    def list_sample(self, limit: int = 100) -> list[BreweryRecord]:
        """List the most recently updated breweries, bounded by limit."""
        stmt = select(BreweryDB).order_by(BreweryDB.updated_at.desc()).limit(limit)
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(b) for b in result]

    def list_needing_review(self, limit: int = 100) -> list[BreweryRecord]:
        """List breweries flagged for manual review."""
        stmt = (
            select(BreweryDB)
            .where(BreweryDB.needs_manual_review.is_(True))
            .order_by(BreweryDB.created_at.desc())
            .limit(limit)
        )
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(b) for b in result]

    def count(self) -> int:
        """Get total count of breweries."""
        stmt = select(func.count()).select_from(BreweryDB)
        return self.session.execute(stmt).scalar() or 0

    def update(self, brewery: BreweryRecord) -> BreweryRecord:
        """
        Update an existing brewery from its domain record.

        Raises:
            ValueError: If the brewery does not exist.
        """
        db_item = self._get_db(brewery.id) if brewery.id else None
        if db_item is None:
            raise ValueError(f"Brewery with id {brewery.id} not found")
        self._apply(db_item, brewery)
        db_item.updated_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_item)

    def add_product(self, brewery_id: str, beer_name: str) -> None:
        """Append a beer name to the brewery product list if not already there."""
        db_item = self._get_db(brewery_id)
        if db_item is None:
            return
        products = json.loads(db_item.main_products_json or "[]")
        if beer_name.lower() not in {p.lower() for p in products}:
            products.append(beer_name)
            db_item.main_products_json = json.dumps(products)
            self.session.flush()

    def _get_db(self, brewery_id: str) -> BreweryDB | None:
        stmt = select(BreweryDB).where(BreweryDB.id == str(brewery_id))
        return self.session.execute(stmt).scalar_one_or_none()

    def _apply(self, db_item: BreweryDB, brewery: BreweryRecord) -> None:
        for column in _BREWERY_COLUMNS:
            setattr(db_item, column, getattr(brewery, column))
        db_item.social_links_json = json.dumps(brewery.social_links.model_dump(exclude_none=True))
        db_item.main_products_json = json.dumps(brewery.main_products)
        db_item.awards_json = json.dumps(brewery.awards)
        db_item.data_source = _enum_value(brewery.data_source)
        db_item.validation_status = _enum_value(brewery.validation_status)

    def _to_domain(self, db_item: BreweryDB) -> BreweryRecord:
        """Convert DB model to domain model."""
        data = {column: getattr(db_item, column) for column in _BREWERY_COLUMNS}
        return BreweryRecord(
            id=db_item.id,
            social_links=SocialLinks.model_validate(json.loads(db_item.social_links_json or "{}")),
            main_products=json.loads(db_item.main_products_json or "[]"),
            awards=json.loads(db_item.awards_json or "[]"),
            data_source=DataSource(db_item.data_source) if db_item.data_source else None,
            validation_status=ValidationStatus(db_item.validation_status),
            created_at=db_item.created_at,
            updated_at=db_item.updated_at,
            **data,
        )


class BeerRepository:
    """Repository for beer CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, beer: BeerRecord) -> BeerRecord:
        """
        Create a new beer.

        Args:
            beer: The BeerRecord to persist, already scoped to a brewery.

        Returns:
            The created BeerRecord.
        """
        db_item = BeerDB(brewery_id=beer.brewery_id)
        if beer.id:
            db_item.id = beer.id
        self._apply(db_item, beer)
        self.session.add(db_item)
        self.session.flush()
        return self._to_domain(db_item)

    def get_by_id(self, beer_id: str) -> BeerRecord | None:
        """Get a beer by ID."""
        db_item = self._get_db(beer_id)
        return self._to_domain(db_item) if db_item else None

    def get_by_name_and_brewery(self, name: str, brewery_id: str) -> BeerRecord | None:
        """Get a beer by case-insensitive exact name within one brewery."""
        stmt = (
            select(BeerDB)
            .where(func.lower(BeerDB.name) == name.strip().lower())
            .where(BeerDB.brewery_id == str(brewery_id))
            .order_by(BeerDB.created_at)
            .limit(1)
        )
        db_item = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_item) if db_item else None

    def find_by_name(self, name: str) -> list[BeerRecord]:
        """All beers with this exact name (case-insensitive), across breweries."""
        stmt = (
            select(BeerDB)
            .where(func.lower(BeerDB.name) == name.strip().lower())
            .order_by(BeerDB.created_at)
        )
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(b) for b in result]

    def list_by_brewery(self, brewery_id: str) -> list[BeerRecord]:
        """Get all beers of a brewery."""
        stmt = select(BeerDB).where(BeerDB.brewery_id == str(brewery_id)).order_by(BeerDB.name)
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(b) for b in result]

    def count(self) -> int:
        """Get total count of beers."""
        stmt = select(func.count()).select_from(BeerDB)
        return self.session.execute(stmt).scalar() or 0

    def update(self, beer: BeerRecord) -> BeerRecord:
        """
        Update an existing beer from its domain record.

        Raises:
            ValueError: If the beer does not exist.
        """
        db_item = self._get_db(beer.id) if beer.id else None
        if db_item is None:
            raise ValueError(f"Beer with id {beer.id} not found")
        self._apply(db_item, beer)
        db_item.updated_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_item)

    def _get_db(self, beer_id: str) -> BeerDB | None:
        stmt = select(BeerDB).where(BeerDB.id == str(beer_id))
        return self.session.execute(stmt).scalar_one_or_none()

    def _apply(self, db_item: BeerDB, beer: BeerRecord) -> None:
        for column in _BEER_COLUMNS:
            setattr(db_item, column, getattr(beer, column))
        db_item.ingredients_json = json.dumps(beer.ingredients)
        db_item.pairings_json = json.dumps(beer.pairings)
        db_item.awards_json = json.dumps(beer.awards)
        db_item.tasting_notes_json = (
            json.dumps(beer.tasting_notes.model_dump(exclude_none=True))
            if beer.tasting_notes
            else None
        )
        db_item.data_source = _enum_value(beer.data_source)
        db_item.validation_status = _enum_value(beer.validation_status)

    def _to_domain(self, db_item: BeerDB) -> BeerRecord:
        """Convert DB model to domain model."""
        data = {column: getattr(db_item, column) for column in _BEER_COLUMNS}
        notes = json.loads(db_item.tasting_notes_json) if db_item.tasting_notes_json else None
        return BeerRecord(
            id=db_item.id,
            brewery_id=db_item.brewery_id,
            ingredients=json.loads(db_item.ingredients_json or "[]"),
            pairings=json.loads(db_item.pairings_json or "[]"),
            awards=json.loads(db_item.awards_json or "[]"),
            tasting_notes=TastingNotes.model_validate(notes) if notes else None,
            data_source=DataSource(db_item.data_source) if db_item.data_source else None,
            validation_status=ValidationStatus(db_item.validation_status),
            created_at=db_item.created_at,
            updated_at=db_item.updated_at,
            **data,
        )


class ReviewRepository:
    """Repository for reviews, their rating slots and processing state."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, review: Review) -> Review:
        """
        Create a new review with its rating slots.

        Args:
            review: The Review domain model to create.

        Returns:
            The created Review.
        """
        db_review = ReviewDB(
            user_id=review.user_id,
            processing_status=review.processing_status.value,
            processing_attempts=review.processing_attempts,
            label_guesses_json=json.dumps(review.label_guesses),
            processed_bottles_json=json.dumps(review.processed_bottles),
        )
        if review.id:
            db_review.id = review.id
        db_review.ratings = [self._slot_to_db(slot) for slot in review.ratings]
        self.session.add(db_review)
        self.session.flush()
        return self._to_domain(db_review)

    def get_by_id(self, review_id: str) -> Review | None:
        """Get a review by ID, re-reading its ratings from the database."""
        db_review = self._get_db(review_id)
        if db_review is None:
            return None
        self.session.refresh(db_review)
        return self._to_domain(db_review)

    def list_by_status(
        self,
        status: ProcessingStatus,
        updated_before: datetime | None = None,
        limit: int = 100,
    ) -> list[Review]:
        """List reviews in a processing status, optionally not touched since a given time."""
        stmt = select(ReviewDB).where(ReviewDB.processing_status == status.value)
        if updated_before is not None:
            stmt = stmt.where(ReviewDB.updated_at < updated_before)
        stmt = stmt.order_by(ReviewDB.updated_at).limit(limit)
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(r) for r in result]

    def mark_processing(self, review_id: str, label_guesses: list[dict[str, Any]] | None = None) -> Review:
        """Set status to processing and count one more attempt, keeping the job input for re-runs."""
        db_review = self._require(review_id)
        if label_guesses is not None:
            db_review.label_guesses_json = json.dumps(label_guesses)
        db_review.processing_status = ProcessingStatus.PROCESSING.value
        db_review.processing_attempts = (db_review.processing_attempts or 0) + 1
        db_review.last_processing_attempt = _utc_now()
        db_review.updated_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_review)

    def mark_failed(self, review_id: str, error: str) -> None:
        """Set status to failed with the processing error."""
        db_review = self._require(review_id)
        db_review.processing_status = ProcessingStatus.FAILED.value
        db_review.processing_error = error
        db_review.updated_at = _utc_now()
        self.session.flush()

    def mark_completed(
        self,
        review_id: str,
        status: ProcessingStatus,
        processed_bottles: list[dict[str, Any]],
        admin_review_reason: str | None = None,
    ) -> None:
        """Store the terminal processing outcome and per-bottle metadata."""
        db_review = self._require(review_id)
        db_review.processing_status = status.value
        db_review.admin_review_reason = admin_review_reason
        db_review.processing_error = None
        db_review.processed_bottles_json = json.dumps(processed_bottles, default=str)
        db_review.completed_at = _utc_now()
        db_review.updated_at = _utc_now()
        self.session.flush()

    def replace_ratings(self, review_id: str, slots: list[RatingSlot]) -> None:
        """Replace all rating slots of a review."""
        db_review = self._require(review_id)
        db_review.ratings = [self._slot_to_db(slot) for slot in slots]
        self.session.flush()

    def link_rating(
        self,
        rating_id: str,
        brewery_id: str | None,
        beer_id: str | None,
        bottle_label: str | None = None,
    ) -> bool:
        """
        Attach brewery/beer references to one rating slot.

        The bottle label is only set when empty; rating and notes are
        never touched.

        Returns:
            True if the slot exists.
        """
        stmt = select(RatingDB).where(RatingDB.id == str(rating_id))
        db_rating = self.session.execute(stmt).scalar_one_or_none()
        if db_rating is None:
            return False
        db_rating.brewery_id = brewery_id
        db_rating.beer_id = beer_id
        if bottle_label and not (db_rating.bottle_label or "").strip():
            db_rating.bottle_label = bottle_label
        self.session.flush()
        return True

    def _get_db(self, review_id: str) -> ReviewDB | None:
        stmt = select(ReviewDB).where(ReviewDB.id == str(review_id))
        return self.session.execute(stmt).scalar_one_or_none()

    def _require(self, review_id: str) -> ReviewDB:
        db_review = self._get_db(review_id)
        if db_review is None:
            raise ValueError(f"Review with id {review_id} not found")
        return db_review

    @staticmethod
    def _slot_to_db(slot: RatingSlot) -> RatingDB:
        db_rating = RatingDB(
            slot_index=slot.slot_index,
            bottle_label=slot.bottle_label,
            rating=slot.rating,
            notes=slot.notes,
            brewery_id=slot.brewery_id,
            beer_id=slot.beer_id,
        )
        if slot.id:
            db_rating.id = slot.id
        return db_rating

    def _to_domain(self, db_review: ReviewDB) -> Review:
        """Convert DB model to domain model."""
        return Review(
            id=db_review.id,
            user_id=db_review.user_id,
            processing_status=ProcessingStatus(db_review.processing_status),
            processing_attempts=db_review.processing_attempts or 0,
            last_processing_attempt=db_review.last_processing_attempt,
            processing_error=db_review.processing_error,
            admin_review_reason=db_review.admin_review_reason,
            label_guesses=json.loads(db_review.label_guesses_json or "[]"),
            processed_bottles=json.loads(db_review.processed_bottles_json or "[]"),
            ratings=[
                RatingSlot(
                    id=r.id,
                    slot_index=r.slot_index,
                    bottle_label=r.bottle_label,
                    rating=r.rating,
                    notes=r.notes,
                    brewery_id=r.brewery_id,
                    beer_id=r.beer_id,
                )
                for r in sorted(db_review.ratings, key=lambda r: r.slot_index)
            ],
            completed_at=db_review.completed_at,
            created_at=db_review.created_at,
            updated_at=db_review.updated_at,
        )
