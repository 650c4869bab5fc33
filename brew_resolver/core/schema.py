"""Pydantic v2 models for the entity resolution pipeline.

These models define the data exchanged between pipeline stages:
- LabelGuess (noisy job input from the vision step)
- BreweryFacts, BeerFacts (partial entity facts from one source)
- BreweryCandidate, BeerCandidate (facts tagged with their source kind)
- BreweryRecord, BeerRecord, Review, RatingSlot (persisted domain objects)
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from brew_resolver.core.enums import DataSource, ProcessingStatus, SourceKind, ValidationStatus

# Placeholder strings that count as "no value" on records and candidates
EMPTY_MARKERS = {"", "null", "none", "n/a", "non specificato", "unknown"}


def is_empty_value(value: Any) -> bool:
    """Check whether a field value is missing (None, blank, placeholder, empty container)."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in EMPTY_MARKERS
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    if isinstance(value, BaseModel):
        return all(is_empty_value(v) for v in value.model_dump().values())
    return False


def _clean_str(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        if value.lower() in EMPTY_MARKERS:
            return None
    return value


def _to_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return value


def _first_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = re.search(r"\d+(?:[.,]\d+)?", str(value))
    if not match:
        return None
    return float(match.group(0).replace(",", "."))


class LabelGuess(BaseModel):
    """
    Noisy beer/brewery guess read from a bottle label.

    Every field is advisory. Only beer_name is required and even that may
    contain OCR errors.
    """

    model_config = ConfigDict(frozen=True)

    beer_name: str
    brewery_name_hint: str | None = None
    alcohol_content: str | None = None
    style: str | None = None
    volume: str | None = None
    year: int | None = None

    # Identity of the rating slot this bottle belongs to
    slot_index: int | None = None
    slot_id: str | None = None

    @field_validator("beer_name")
    @classmethod
    def beer_name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("beer_name cannot be empty")
        return " ".join(v.split())

    @field_validator("brewery_name_hint", mode="before")
    @classmethod
    def clean_hint(cls, v: Any) -> Any:
        return _clean_str(v)


class SocialLinks(BaseModel):
    """Official social network profiles of a brewery."""

    facebook: str | None = None
    instagram: str | None = None
    twitter: str | None = None
    linkedin: str | None = None
    youtube: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def clean(cls, v: Any) -> Any:
        return _clean_str(v)


class TastingNotes(BaseModel):
    """Sensory notes for a beer."""

    appearance: str | None = None
    aroma: str | None = None
    taste: str | None = None
    summary: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def clean(cls, v: Any) -> Any:
        return _clean_str(v)

    def as_text(self) -> str:
        """Join all notes into a single paragraph."""
        parts = [self.summary, self.appearance, self.aroma, self.taste]
        return " ".join(p for p in parts if p)


class _Facts(BaseModel):
    """Shared behaviour for partial entity facts."""

    model_config = ConfigDict(extra="ignore")

    def populated_fields(self) -> list[str]:
        """Names of fields that carry a value."""
        return [name for name in type(self).model_fields if not is_empty_value(getattr(self, name))]

    def fill_gaps(self, other: _Facts | None) -> _Facts:
        """
        Return a copy with empty fields taken from another set of facts.

        Populated fields of self are never replaced.
        """
        if other is None:
            return self.model_copy(deep=True)
        updates = {}
        for name in type(self).model_fields:
            if is_empty_value(getattr(self, name)):
                value = getattr(other, name, None)
                if not is_empty_value(value):
                    updates[name] = value
        return self.model_copy(update=updates, deep=True)


class BreweryFacts(_Facts):
    """Brewery facts proposed by a single source."""

    name: str | None = None
    website: str | None = None
    legal_address: str | None = None
    email: str | None = None
    phone: str | None = None
    pec_email: str | None = None
    fiscal_code: str | None = None
    rea_code: str | None = None
    excise_code: str | None = None
    legal_form: str | None = None
    share_capital: str | None = None
    founding_year: int | None = None
    size_class: str | None = None
    description: str | None = None
    history: str | None = None
    employee_count: int | None = None
    production_volume: str | None = None
    master_brewer: str | None = None
    logo_url: str | None = None
    social_links: SocialLinks = Field(default_factory=SocialLinks)
    main_products: list[str] = Field(default_factory=list)
    awards: list[str] = Field(default_factory=list)

    @field_validator(
        "name", "website", "legal_address", "email", "phone", "pec_email", "fiscal_code",
        "rea_code", "excise_code", "legal_form", "share_capital", "size_class", "description",
        "history", "production_volume", "master_brewer", "logo_url",
        mode="before",
    )
    @classmethod
    def clean_strings(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        return _clean_str(v)

    @field_validator("founding_year", "employee_count", mode="before")
    @classmethod
    def coerce_int(cls, v: Any) -> int | None:
        number = _first_number(v)
        return int(number) if number is not None else None

    @field_validator("social_links", mode="before")
    @classmethod
    def coerce_social(cls, v: Any) -> Any:
        return v if v is not None else {}

    @field_validator("main_products", "awards", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> Any:
        return _to_list(v)


class BeerFacts(_Facts):
    """Beer facts proposed by a single source."""

    name: str | None = None
    style: str | None = None
    sub_style: str | None = None
    alcohol_content: float | None = None
    ibu: int | None = None
    volume: str | None = None
    color: str | None = None
    serving_temperature: str | None = None
    description: str | None = None
    ingredients: list[str] = Field(default_factory=list)
    tasting_notes: TastingNotes | None = None
    pairings: list[str] = Field(default_factory=list)
    nutritional_info: str | None = None
    price: str | None = None
    availability: str | None = None
    awards: list[str] = Field(default_factory=list)

    @field_validator(
        "name", "style", "sub_style", "volume", "color", "serving_temperature",
        "description", "nutritional_info", "price", "availability",
        mode="before",
    )
    @classmethod
    def clean_strings(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        return _clean_str(v)

    @field_validator("alcohol_content", mode="before")
    @classmethod
    def coerce_abv(cls, v: Any) -> float | None:
        number = _first_number(v)
        if number is None or not 0 <= number <= 20:
            return None
        return number

    @field_validator("ibu", mode="before")
    @classmethod
    def coerce_ibu(cls, v: Any) -> int | None:
        number = _first_number(v)
        if number is None or not 0 <= number <= 120:
            return None
        return int(number)

    @field_validator("tasting_notes", mode="before")
    @classmethod
    def coerce_notes(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"summary": v} if v.strip() else None
        return v

    @field_validator("ingredients", "pairings", "awards", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> Any:
        return _to_list(v)

    def has_web_data(self) -> bool:
        """True if the facts carry anything beyond the name and style."""
        return any(
            not is_empty_value(value)
            for value in (
                self.ibu,
                self.tasting_notes,
                self.ingredients,
                self.color,
                self.serving_temperature,
                self.description,
            )
        )


class Candidate(BaseModel):
    """Unverified single-source proposal with a confidence."""

    source_kind: SourceKind
    confidence: float = 0.0
    source_refs: list[str] = Field(default_factory=list)
    # Id of the matched record for LOCAL / FUZZY_LOCAL candidates
    record_id: str | None = None

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        number = _first_number(v)
        if number is None:
            return 0.0
        return max(0.0, min(1.0, number))


class BreweryCandidate(Candidate):
    """Candidate carrying brewery facts."""

    entity: Literal["brewery"] = "brewery"
    facts: BreweryFacts = Field(default_factory=BreweryFacts)


class BeerCandidate(Candidate):
    """Candidate carrying beer facts."""

    entity: Literal["beer"] = "beer"
    facts: BeerFacts = Field(default_factory=BeerFacts)
    brewery_record_id: str | None = None


AnyCandidate = Annotated[BreweryCandidate | BeerCandidate, Field(discriminator="entity")]


class BreweryRecord(BreweryFacts):
    """Canonical brewery as persisted in the local store."""

    id: str | None = None
    logo_verified: bool = False
    data_source: DataSource | None = None
    confidence_score: float = 0.0
    validation_status: ValidationStatus = ValidationStatus.PENDING_VALIDATION
    needs_manual_review: bool = False
    review_reason: str | None = None
    last_enriched_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_placeholder(self) -> bool:
        """A confidence-0 record created when every strategy failed."""
        return self.confidence_score <= 0.0 and self.needs_manual_review

    @property
    def needs_web_search(self) -> bool:
        """True when the record has neither a website nor an email."""
        return is_empty_value(self.website) and is_empty_value(self.email)

    def to_facts(self) -> BreweryFacts:
        """Strip lifecycle metadata."""
        return BreweryFacts.model_validate(self.model_dump(include=set(BreweryFacts.model_fields)))


class BeerRecord(BeerFacts):
    """Canonical beer scoped to one brewery."""

    id: str | None = None
    brewery_id: str
    data_source: DataSource | None = None
    confidence_score: float = 0.0
    validation_status: ValidationStatus = ValidationStatus.PENDING_VALIDATION
    needs_manual_review: bool = False
    review_reason: str | None = None
    last_enriched_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_facts(self) -> BeerFacts:
        """Strip lifecycle metadata."""
        return BeerFacts.model_validate(self.model_dump(include=set(BeerFacts.model_fields)))


class RatingSlot(BaseModel):
    """One bottle slot of a review. Rating and notes are authored by the user."""

    id: str | None = None
    slot_index: int = 0
    bottle_label: str | None = None
    rating: float | None = None
    notes: str | None = None
    brewery_id: str | None = None
    beer_id: str | None = None

    def has_user_content(self) -> bool:
        """True if the user already wrote a rating or notes in this slot."""
        return self.rating is not None or bool(self.notes and self.notes.strip())


class Review(BaseModel):
    """User review with its rating slots and background processing state."""

    id: str | None = None
    user_id: str | None = None
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    processing_attempts: int = 0
    last_processing_attempt: datetime | None = None
    processing_error: str | None = None
    admin_review_reason: str | None = None
    label_guesses: list[dict[str, Any]] = Field(default_factory=list)
    processed_bottles: list[dict[str, Any]] = Field(default_factory=list)
    ratings: list[RatingSlot] = Field(default_factory=list)
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
