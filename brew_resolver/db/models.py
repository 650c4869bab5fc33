"""SQLAlchemy ORM models for the brewery/beer local store.

These models define the database tables:
- BreweryDB, BeerDB (canonical entities built by the enrichment pipeline)
- ReviewDB, RatingDB (user reviews and their bottle slots)
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class BreweryDB(Base):
    """
    Database model for canonical breweries.

    Identity is the case-insensitive name. Lifecycle columns record which
    source the data came from and how far it has been verified.
    """

    __tablename__ = "breweries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)
    legal_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    pec_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    fiscal_code: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    rea_code: Mapped[str | None] = mapped_column(String(30), nullable=True)
    excise_code: Mapped[str | None] = mapped_column(String(30), nullable=True)
    legal_form: Mapped[str | None] = mapped_column(String(50), nullable=True)
    share_capital: Mapped[str | None] = mapped_column(String(50), nullable=True)
    founding_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    size_class: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    history: Mapped[str | None] = mapped_column(Text, nullable=True)
    employee_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    production_volume: Mapped[str | None] = mapped_column(String(100), nullable=True)
    master_brewer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    logo_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    social_links_json: Mapped[str] = mapped_column(Text, default="{}")  # JSON object
    main_products_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    awards_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array

    # Lifecycle
    data_source: Mapped[str | None] = mapped_column(String(50), nullable=True)
    confidence_score: Mapped[float] = mapped_column(Float, default=0.0)
    validation_status: Mapped[str] = mapped_column(
        String(30), default="pending_validation", index=True
    )
    needs_manual_review: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    review_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_enriched_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    # Relationships
    beers: Mapped[list["BeerDB"]] = relationship("BeerDB", back_populates="brewery")

    def __repr__(self) -> str:
        return f"<BreweryDB(id={self.id}, name='{self.name}')>"


class BeerDB(Base):
    """
    Database model for canonical beers.

    Unique per (name, brewery), compared case-insensitively.
    """

    __tablename__ = "beers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    brewery_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("breweries.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    style: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sub_style: Mapped[str | None] = mapped_column(String(100), nullable=True)
    alcohol_content: Mapped[float | None] = mapped_column(Float, nullable=True)
    ibu: Mapped[int | None] = mapped_column(Integer, nullable=True)
    volume: Mapped[str | None] = mapped_column(String(50), nullable=True)
    color: Mapped[str | None] = mapped_column(String(100), nullable=True)
    serving_temperature: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    ingredients_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    tasting_notes_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON object
    pairings_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    nutritional_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[str | None] = mapped_column(String(50), nullable=True)
    availability: Mapped[str | None] = mapped_column(String(100), nullable=True)
    awards_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array

    # Lifecycle
    data_source: Mapped[str | None] = mapped_column(String(50), nullable=True)
    confidence_score: Mapped[float] = mapped_column(Float, default=0.0)
    validation_status: Mapped[str] = mapped_column(String(30), default="pending_validation")
    needs_manual_review: Mapped[bool] = mapped_column(Boolean, default=False)
    review_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_enriched_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    # Relationships
    brewery: Mapped["BreweryDB"] = relationship("BreweryDB", back_populates="beers")

    def __repr__(self) -> str:
        return f"<BeerDB(id={self.id}, name='{self.name}', brewery_id={self.brewery_id})>"


class ReviewDB(Base):
    """
    Database model for user reviews.

    Holds the background processing state of the enrichment job.
    """

    __tablename__ = "reviews"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    processing_status: Mapped[str] = mapped_column(String(30), default="pending", index=True)
    processing_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_processing_attempt: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    admin_review_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    label_guesses_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    processed_bottles_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    # Relationships
    ratings: Mapped[list["RatingDB"]] = relationship(
        "RatingDB",
        back_populates="review",
        cascade="all, delete-orphan",
        order_by="RatingDB.slot_index",
    )

    def __repr__(self) -> str:
        return f"<ReviewDB(id={self.id}, status={self.processing_status})>"


class RatingDB(Base):
    """
    Database model for review rating slots.

    rating and notes are user content; the pipeline only sets the
    brewery/beer references and the bottle label.
    """

    __tablename__ = "review_ratings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    review_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reviews.id"), nullable=False, index=True
    )
    slot_index: Mapped[int] = mapped_column(Integer, default=0)
    bottle_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    brewery_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("breweries.id"), nullable=True, index=True
    )
    beer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("beers.id"), nullable=True, index=True
    )

    # Relationships
    review: Mapped["ReviewDB"] = relationship("ReviewDB", back_populates="ratings")

    def __repr__(self) -> str:
        return f"<RatingDB(id={self.id}, review_id={self.review_id}, slot={self.slot_index})>"
