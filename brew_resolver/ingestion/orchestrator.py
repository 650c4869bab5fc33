"""
Enrichment Orchestrator Module
==============================

Runs one enrichment job: resolves every bottle of a review to canonical
brewery and beer records, links the review's rating slots to them and
records the terminal processing status.

State machine: queued -> active -> per bottle (fast path | cascade) ->
validation -> completed | needs_admin_review | failed
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from sqlalchemy.orm import Session

from brew_resolver.core.enums import DataSource, ProcessingStatus, ProgressStep
from brew_resolver.core.errors import EnrichmentJobError, ReviewNotFoundError
from brew_resolver.core.schema import BeerRecord, BreweryRecord, LabelGuess, RatingSlot
from brew_resolver.db.repositories import ReviewRepository
from brew_resolver.ingestion.config import PipelineConfig
from brew_resolver.ingestion.local_store import LocalStore
from brew_resolver.ingestion.resolver import BeerResolver, BreweryResolver
from brew_resolver.ingestion.search_engine import SearchEngineScraper
from brew_resolver.ingestion.site_extractor import DirectSiteExtractor
from brew_resolver.services.grounded_search import GroundedAISearch
from brew_resolver.services.notifications import AdminNotifier, LoggingNotifier

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, ProgressStep, str | None], Awaitable[None]]


@dataclass
class ProcessedBottle:
    """One bottle linked to its canonical brewery and beer."""

    guess: LabelGuess
    brewery: BreweryRecord
    beer: BeerRecord
    data_source: DataSource
    position: int = 0
    fast_path: bool = False
    name_corrected: bool = False
    notes: list[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        """False when the brewery is a confidence-0 placeholder."""
        return not self.brewery.is_placeholder

    @property
    def slot_index(self) -> int:
        """Slot named by the guess, else the bottle's position in the job."""
        return self.guess.slot_index if self.guess.slot_index is not None else self.position

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "label_beer_name": self.guess.beer_name,
            "label_brewery_name": self.guess.brewery_name_hint,
            "label_hints": {
                "alcohol_content": self.guess.alcohol_content,
                "style": self.guess.style,
                "volume": self.guess.volume,
            },
            "slot_index": self.slot_index,
            "brewery_id": self.brewery.id,
            "brewery_name": self.brewery.name,
            "beer_id": self.beer.id,
            "beer_name": self.beer.name,
            "data_source": self.data_source.value,
            "confidence": self.brewery.confidence_score,
            "fast_path": self.fast_path,
            "name_corrected": self.name_corrected,
            "resolved": self.resolved,
            "needs_manual_review": self.brewery.needs_manual_review,
            "review_reason": self.brewery.review_reason,
            "notes": self.notes,
        }


@dataclass
class EnrichmentResult:
    """Terminal result of an enrichment job."""

    success: bool
    review_id: str
    status: ProcessingStatus
    bottles_processed: int = 0
    errors: list[str] = field(default_factory=list)
    processing_time_ms: int = 0
    data_source: str | None = None
    bottles: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "review_id": self.review_id,
            "status": self.status.value,
            "bottles_processed": self.bottles_processed,
            "errors": self.errors,
            "processing_time_ms": self.processing_time_ms,
            "data_source": self.data_source,
            "bottles": self.bottles,
        }


async def _no_progress(percent: int, step: ProgressStep, detail: str | None) -> None:
    return None


class EnrichmentOrchestrator:
    """
    Processes the bottles of one review, sequentially.

    Per-bottle errors are collected and do not stop the job. A bottle left
    with a placeholder brewery still counts as processed; the brewery itself
    carries the manual review flag. The job fails (and EnrichmentJobError
    propagates to the queue for retry) only when no bottle reached a real
    brewery.
    """

    def __init__(
        self,
        session: Session,
        grounded: GroundedAISearch,
        search_engine: SearchEngineScraper,
        site_extractor: DirectSiteExtractor,
        config: PipelineConfig | None = None,
        notifier: AdminNotifier | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.session = session
        self.config = config or PipelineConfig()
        self.reviews = ReviewRepository(session)
        self.store = LocalStore(session, self.config.entity_resolution)
        self.brewery_resolver = BreweryResolver(session, grounded, search_engine, site_extractor, self.config)
        self.beer_resolver = BeerResolver(session, site_extractor, self.config)
        self.notifier = notifier or LoggingNotifier()
        self.progress = progress or _no_progress
        self._last_percent = 0

    async def _report(self, percent: int, step: ProgressStep, detail: str | None = None) -> None:
        percent = max(self._last_percent, min(100, percent))
        self._last_percent = percent
        await self.progress(percent, step, detail)

    async def process_review(self, review_id: str, guesses: list[LabelGuess]) -> EnrichmentResult:
        """
        Run the enrichment job for a review.

        Args:
            review_id: Review whose rating slots receive the references
            guesses: Label guesses, one per bottle

        Returns:
            EnrichmentResult with status completed or needs_admin_review

        Raises:
            ReviewNotFoundError: If the review does not exist
            EnrichmentJobError: If no bottle was resolved or the job crashed
        """
        started = time.monotonic()
        self._last_percent = 0
        if self.reviews.get_by_id(review_id) is None:
            raise ReviewNotFoundError(review_id)

        self.reviews.mark_processing(review_id, [guess.model_dump() for guess in guesses])
        self.session.commit()
        logger.info(f"Processing review {review_id} with {len(guesses)} bottle(s)")

        try:
            await self._report(10, ProgressStep.AI_ANALYSIS)
            processed, errors = await self._process_bottles(guesses)

            await self._report(70, ProgressStep.VALIDATION)
            resolved = [bottle for bottle in processed if bottle.resolved]
            if not resolved:
                failures = errors + [f"{b.guess.beer_name}: {b.brewery.review_reason}" for b in processed]
                raise EnrichmentJobError(
                    f"No bottle processed successfully. Errors: {'; '.join(failures) or 'no bottles'}",
                    failures,
                )
            placeholders = len(processed) - len(resolved)
            if placeholders:
                logger.warning(f"Review {review_id}: {placeholders} placeholder brewery(ies) left for manual review")

            await self._report(90, ProgressStep.VALIDATION)
            self._link_ratings(review_id, processed)

            if errors:
                status = ProcessingStatus.NEEDS_ADMIN_REVIEW
                reason = f"Processing completed with {len(errors)} error(s): {'; '.join(errors)}"
            else:
                status = ProcessingStatus.COMPLETED
                reason = None
            self.reviews.mark_completed(review_id, status, [b.to_dict() for b in processed], reason)
            self.session.commit()
        except EnrichmentJobError as e:
            self._fail(review_id, str(e))
            raise
        except Exception as e:
            logger.exception(f"Enrichment of review {review_id} crashed")
            self._fail(review_id, f"Unexpected error: {e}")
            raise EnrichmentJobError(f"Unexpected error: {e}") from e

        if status == ProcessingStatus.NEEDS_ADMIN_REVIEW:
            await self.notifier.notify_needs_review(review_id, errors)

        await self._report(100, ProgressStep.COMPLETED)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Review {review_id} {status.value}: {len(processed)} bottle(s) in {elapsed_ms} ms")
        return EnrichmentResult(
            success=True,
            review_id=review_id,
            status=status,
            bottles_processed=len(processed),
            errors=errors,
            processing_time_ms=elapsed_ms,
            data_source=processed[0].data_source.value if processed else None,
            bottles=[b.to_dict() for b in processed],
        )

    def _fail(self, review_id: str, error: str) -> None:
        self.session.rollback()
        self.reviews.mark_failed(review_id, error)
        self.session.commit()
        logger.error(f"Review {review_id} failed: {error}")

    async def _process_bottles(self, guesses: list[LabelGuess]) -> tuple[list[ProcessedBottle], list[str]]:
        processed: list[ProcessedBottle] = []
        errors: list[str] = []
        total = len(guesses)
        for index, guess in enumerate(guesses):
            step = ProgressStep.WEB_SEARCH if index == 0 else ProgressStep.WEB_SCRAPING
            await self._report(10 + int(index / total * 60), step, guess.beer_name)
            try:
                bottle = await self.process_bottle(guess)
                bottle.position = index
                self.session.commit()
            except Exception as e:
                self.session.rollback()
                logger.exception(f"Bottle '{guess.beer_name}' failed")
                errors.append(f"{guess.beer_name}: {e}")
                continue
            processed.append(bottle)
        return processed, errors

    async def process_bottle(self, guess: LabelGuess) -> ProcessedBottle:
        """Resolve one bottle: cache fast path first, then the full cascade."""
        cached = self.store.find_beer_linked_to_any_brewery(guess.beer_name)
        if cached is not None:
            return ProcessedBottle(
                guess=guess,
                brewery=cached.brewery,
                beer=cached.beer,
                data_source=DataSource.DATABASE_CACHE,
                fast_path=True,
            )

        brewery = await self.brewery_resolver.resolve(guess)
        beer = await self.beer_resolver.resolve(guess, brewery.record, brewery.grounded)
        return ProcessedBottle(
            guess=guess,
            brewery=brewery.record,
            beer=beer.record,
            data_source=brewery.data_source,
            name_corrected=bool(beer.correction and beer.correction.was_corrected),
            notes=brewery.notes,
        )

    def _link_ratings(self, review_id: str, processed: list[ProcessedBottle]) -> None:
        """
        Point the review's rating slots at the resolved records.

        Slots are re-read first. If the user has not written anything yet
        they are rebuilt: slots of processed bottles are replaced, other
        slots (bottles that failed) are kept as they were. Otherwise only
        the references and empty labels of matching slots are set.
        """
        review = self.reviews.get_by_id(review_id)
        if review is None:
            raise ReviewNotFoundError(review_id)

        if not any(slot.has_user_content() for slot in review.ratings):
            slots = {slot.slot_index: slot.model_copy(update={"id": None}) for slot in review.ratings}
            for bottle in processed:
                slots[bottle.slot_index] = RatingSlot(
                    slot_index=bottle.slot_index,
                    bottle_label=bottle.beer.name,
                    brewery_id=bottle.brewery.id,
                    beer_id=bottle.beer.id,
                )
            self.reviews.replace_ratings(review_id, [slots[index] for index in sorted(slots)])
            logger.info(f"Rebuilt {len(slots)} rating slot(s) of review {review_id}")
            return

        by_id = {slot.id: slot for slot in review.ratings}
        by_index = {slot.slot_index: slot for slot in review.ratings}
        for bottle in processed:
            slot = by_id.get(bottle.guess.slot_id) if bottle.guess.slot_id else None
            if slot is None:
                slot = by_index.get(bottle.slot_index)
            if slot is None or slot.id is None:
                logger.warning(f"No rating slot for bottle '{bottle.guess.beer_name}' in review {review_id}")
                continue
            self.reviews.link_rating(slot.id, bottle.brewery.id, bottle.beer.id, bottle_label=bottle.beer.name)
        logger.info(f"Linked rating slots of review {review_id} without touching user content")
