"""
Background Jobs Module
======================

Defines the arq task that enriches a review, the queue client used to
enqueue and inspect jobs, and the worker settings. Uses Redis as the job
queue backend.

arq has no job priorities, progress reporting or per-job backoff; they
are layered on top:
- priority shifts the job's score (_defer_until) by a few seconds per level
- progress is a small JSON document in Redis, only ever moving forward
- failed attempts raise Retry with an exponential defer
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Awaitable, Callable

import httpx
from arq import Retry, create_pool, cron
from arq.connections import ArqRedis, RedisSettings
from arq.constants import in_progress_key_prefix, result_key_prefix, retry_key_prefix
from arq.jobs import Job, JobStatus

from brew_resolver.core.enums import JobState, ProcessingStatus, ProgressStep
from brew_resolver.core.errors import EnrichmentJobError, ReviewNotFoundError
from brew_resolver.core.schema import LabelGuess
from brew_resolver.db.engine import get_session, init_db
from brew_resolver.db.repositories import ReviewRepository
from brew_resolver.ingestion.config import PipelineConfig, QueueConfig, get_default_config
from brew_resolver.ingestion.crawler import Crawler
from brew_resolver.ingestion.orchestrator import EnrichmentOrchestrator, EnrichmentResult, ProgressCallback
from brew_resolver.ingestion.search_engine import SearchEngineScraper
from brew_resolver.ingestion.site_extractor import DirectSiteExtractor
from brew_resolver.services.ai.client import get_ai_client_from_env
from brew_resolver.services.grounded_search import GroundedAISearch
from brew_resolver.services.notifications import LoggingNotifier

logger = logging.getLogger(__name__)

JOB_FUNCTION = "process_review"
PROGRESS_KEY = "brew_resolver:progress:{job_id}"


def get_redis_settings() -> RedisSettings:
    """Get Redis connection settings from environment."""
    return RedisSettings(
        host=os.environ.get("REDIS_HOST", "localhost"),
        port=int(os.environ.get("REDIS_PORT", "6379")),
        database=int(os.environ.get("REDIS_DB", "0")),
    )


def job_id_for(review_id: str) -> str:
    """Deterministic job id: one live job per review."""
    return f"review-{review_id}"


def retry_delay(job_try: int, backoff_seconds: int) -> int:
    """Exponential backoff: backoff, 2*backoff, 4*backoff..."""
    return backoff_seconds * 2 ** (max(1, job_try) - 1)


def priority_offset(priority: int, config: QueueConfig) -> timedelta:
    """Score shift for a priority; lower numbers run sooner."""
    return timedelta(seconds=(priority - config.default_priority) * config.priority_step_seconds)


async def set_progress(
    redis: ArqRedis,
    job_id: str,
    percent: int,
    step: ProgressStep,
    detail: str | None = None,
    ttl: int = 3600,
) -> None:
    """Store job progress; a lower percentage never replaces a higher one."""
    key = PROGRESS_KEY.format(job_id=job_id)
    current = await redis.get(key)
    if current:
        previous = json.loads(current)
        if previous.get("percent", 0) > percent:
            return
    payload = {"percent": percent, "step": step.value, "detail": detail}
    await redis.set(key, json.dumps(payload), ex=ttl)


@dataclass
class WorkerServices:
    """Long-lived clients shared by all jobs of a worker."""

    config: PipelineConfig
    http_client: httpx.AsyncClient
    grounded: GroundedAISearch
    search_engine: SearchEngineScraper
    site_extractor: DirectSiteExtractor
    notifier: LoggingNotifier

    @classmethod
    def create(cls, config: PipelineConfig | None = None) -> WorkerServices:
        """Build the HTTP client, AI client and strategies from configuration."""
        config = config or get_default_config()
        http_client = httpx.AsyncClient(follow_redirects=True)
        crawler = Crawler(http_client, config.global_config)
        ai_client = get_ai_client_from_env(config.grounded_search.provider, config.grounded_search.model)
        return cls(
            config=config,
            http_client=http_client,
            grounded=GroundedAISearch(ai_client, config.grounded_search),
            search_engine=SearchEngineScraper(crawler, config.search_engine),
            site_extractor=DirectSiteExtractor(crawler, config.site_extraction),
            notifier=LoggingNotifier(),
        )

    async def close(self) -> None:
        await self.http_client.aclose()

    async def run(
        self,
        review_id: str,
        guesses: list[LabelGuess],
        progress: ProgressCallback | None = None,
    ) -> EnrichmentResult:
        """Run one enrichment under the job timeout, in a fresh session."""
        with get_session() as session:
            orchestrator = EnrichmentOrchestrator(
                session,
                self.grounded,
                self.search_engine,
                self.site_extractor,
                self.config,
                notifier=self.notifier,
                progress=progress,
            )
            try:
                return await asyncio.wait_for(
                    orchestrator.process_review(review_id, guesses),
                    timeout=self.config.queue.job_timeout,
                )
            except asyncio.TimeoutError:
                session.rollback()
                error = f"Job timed out after {self.config.queue.job_timeout}s"
                ReviewRepository(session).mark_failed(review_id, error)
                session.commit()
                raise EnrichmentJobError(error) from None


async def process_review(ctx: dict[str, Any], review_id: str, guesses: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Enrichment task.

    Args:
        ctx: arq context (redis, job_id, job_try, services)
        review_id: Review to enrich
        guesses: LabelGuess dictionaries, one per bottle

    Returns:
        EnrichmentResult as dictionary

    Raises:
        Retry: On a failed attempt while attempts remain
        EnrichmentJobError: On the last failed attempt
    """
    services: WorkerServices = ctx["services"]
    job_id = ctx.get("job_id", job_id_for(review_id))
    job_try = ctx.get("job_try", 1)
    queue_config = services.config.queue
    redis: ArqRedis | None = ctx.get("redis")

    async def progress(percent: int, step: ProgressStep, detail: str | None) -> None:
        if redis is not None:
            await set_progress(redis, job_id, percent, step, detail, ttl=queue_config.keep_result)

    logger.info(f"Job {job_id} attempt {job_try}/{queue_config.max_tries} for review {review_id}")
    try:
        result = await services.run(review_id, [LabelGuess.model_validate(g) for g in guesses], progress)
    except ReviewNotFoundError as e:
        logger.error(f"Job {job_id}: {e}")
        return {"success": False, "review_id": review_id, "status": ProcessingStatus.FAILED.value, "errors": [str(e)]}
    except EnrichmentJobError as e:
        if job_try >= queue_config.max_tries:
            logger.error(f"Job {job_id} failed after {job_try} attempt(s): {e}")
            raise
        defer = retry_delay(job_try, queue_config.backoff_seconds)
        logger.warning(f"Job {job_id} attempt {job_try} failed, retrying in {defer}s: {e}")
        raise Retry(defer=defer) from e

    return result.to_dict()


async def sweep_stalled(ctx: dict[str, Any]) -> int:
    """
    Cron task: re-enqueue reviews stuck in processing with no live job.

    Reviews that already used all their attempts are marked failed.

    Returns:
        Number of reviews re-enqueued
    """
    services: WorkerServices = ctx["services"]
    config = services.config.queue
    queue = ReviewQueue(ctx["redis"], config)
    cutoff = datetime.now(UTC) - timedelta(seconds=config.stalled_after)

    requeued = 0
    with get_session() as session:
        reviews = ReviewRepository(session)
        for review in reviews.list_by_status(ProcessingStatus.PROCESSING, updated_before=cutoff):
            status = await Job(job_id_for(review.id), queue.redis, _queue_name=config.queue_name).status()
            if status in (JobStatus.queued, JobStatus.deferred, JobStatus.in_progress):
                continue
            if review.processing_attempts >= config.max_tries or not review.label_guesses:
                reviews.mark_failed(review.id, f"Stalled after {review.processing_attempts} attempt(s)")
                session.commit()
                logger.warning(f"Review {review.id} stalled and was marked failed")
                continue
            guesses = [LabelGuess.model_validate(g) for g in review.label_guesses]
            await queue.redis.delete(result_key_prefix + job_id_for(review.id))
            await queue.enqueue_review(review.id, guesses)
            requeued += 1
            logger.info(f"Re-enqueued stalled review {review.id}")
    return requeued


class ReviewQueue:
    """Client side of the enrichment queue."""

    def __init__(self, redis: ArqRedis, config: QueueConfig | None = None) -> None:
        self.redis = redis
        self.config = config or get_default_config().queue

    @classmethod
    async def connect(
        cls,
        settings: RedisSettings | None = None,
        config: QueueConfig | None = None,
    ) -> ReviewQueue:
        """Open a Redis pool."""
        config = config or get_default_config().queue
        redis = await create_pool(settings or get_redis_settings(), default_queue_name=config.queue_name)
        return cls(redis, config)

    async def close(self) -> None:
        await self.redis.close()

    async def enqueue_review(
        self,
        review_id: str,
        guesses: list[LabelGuess],
        priority: int | None = None,
    ) -> str:
        """
        Enqueue an enrichment job.

        Enqueuing a review that already has a live or finished job returns
        the existing job id.

        Args:
            review_id: Review to enrich
            guesses: Label guesses, one per bottle
            priority: Lower runs sooner; defaults to the configured priority

        Returns:
            Job ID
        """
        priority = self.config.default_priority if priority is None else priority
        job_id = job_id_for(review_id)
        job = await self.redis.enqueue_job(
            JOB_FUNCTION,
            review_id,
            [guess.model_dump() for guess in guesses],
            _job_id=job_id,
            _queue_name=self.config.queue_name,
            _defer_until=datetime.now(UTC) + priority_offset(priority, self.config),
        )
        if job is None:
            logger.info(f"Job {job_id} already exists; not enqueued again")
        else:
            logger.info(f"Enqueued {job_id} with priority {priority} ({len(guesses)} bottle(s))")
        return job_id

    async def get_progress(self, job_id: str) -> dict[str, Any] | None:
        raw = await self.redis.get(PROGRESS_KEY.format(job_id=job_id))
        return json.loads(raw) if raw else None

    async def get_job_status(self, job_id: str) -> dict[str, Any]:
        """
        Get the status of an enrichment job.

        Returns:
            {job_id, state, progress, attempts, result, error}
        """
        job = Job(job_id, self.redis, _queue_name=self.config.queue_name)
        status = await job.status()
        progress = await self.get_progress(job_id)
        attempts_raw = await self.redis.get(retry_key_prefix + job_id)
        attempts = int(attempts_raw) if attempts_raw else 0

        state = JobState.NOT_FOUND
        result: Any = None
        error: str | None = None
        if status == JobStatus.complete:
            info = await job.result_info()
            attempts = info.job_try if info and info.job_try else attempts
            if info is not None and info.success:
                result = info.result
                reported = result.get("status") if isinstance(result, dict) else None
                if reported == ProcessingStatus.NEEDS_ADMIN_REVIEW.value:
                    state = JobState.NEEDS_ADMIN_REVIEW
                elif reported == ProcessingStatus.FAILED.value:
                    state = JobState.FAILED
                    error = "; ".join(result.get("errors", []))
                else:
                    state = JobState.COMPLETED
            else:
                state = JobState.FAILED
                error = str(info.result) if info is not None else None
        elif status == JobStatus.in_progress:
            state = JobState.ACTIVE
        elif status in (JobStatus.queued, JobStatus.deferred):
            state = JobState.QUEUED

        return {
            "job_id": job_id,
            "state": state.value,
            "progress": progress,
            "attempts": attempts,
            "result": result,
            "error": error,
        }

    async def get_queue_stats(self) -> dict[str, int]:
        """Counts of waiting, active, completed, failed and delayed jobs."""
        now_ms = int(datetime.now(UTC).timestamp() * 1000)
        due = await self.redis.zrangebyscore(self.config.queue_name, "-inf", now_ms)
        delayed = await self.redis.zcount(self.config.queue_name, now_ms + 1, "+inf")

        active = 0
        for raw_id in due:
            job_id = raw_id.decode() if isinstance(raw_id, bytes) else raw_id
            if await self.redis.exists(in_progress_key_prefix + job_id):
                active += 1

        completed = failed = 0
        for result in await self.redis.all_job_results():
            if result.queue_name != self.config.queue_name:
                continue
            if result.success:
                completed += 1
            else:
                failed += 1

        return {
            "waiting": len(due) - active,
            "active": active,
            "completed": completed,
            "failed": failed,
            "delayed": delayed,
        }

    async def clean_queue(
        self,
        completed_grace: int | None = None,
        failed_grace: int | None = None,
    ) -> int:
        """
        Delete finished job results older than their grace period.

        Args:
            completed_grace: Seconds to keep successful results
            failed_grace: Seconds to keep failed results

        Returns:
            Number of results removed
        """
        completed_grace = self.config.completed_grace if completed_grace is None else completed_grace
        failed_grace = self.config.failed_grace if failed_grace is None else failed_grace
        now = datetime.now(UTC)

        removed = 0
        for result in await self.redis.all_job_results():
            if result.queue_name != self.config.queue_name:
                continue
            grace = completed_grace if result.success else failed_grace
            if (now - result.finish_time).total_seconds() > grace:
                await self.redis.delete(result_key_prefix + result.job_id)
                await self.redis.delete(PROGRESS_KEY.format(job_id=result.job_id))
                removed += 1
        logger.info(f"Cleaned {removed} finished job(s)")
        return removed


async def process_review_sync(
    review_id: str,
    guesses: list[LabelGuess],
    progress: Callable[[int, ProgressStep, str | None], Awaitable[None]] | None = None,
    config: PipelineConfig | None = None,
) -> EnrichmentResult:
    """
    Run an enrichment in-process (without arq).

    Useful for CLI commands with --sync flag. No retries.
    """
    services = WorkerServices.create(config)
    try:
        return await services.run(review_id, guesses, progress)
    finally:
        await services.close()


async def on_startup(ctx: dict[str, Any]) -> None:
    init_db()
    ctx["services"] = WorkerServices.create()
    logger.info("Enrichment worker started")


async def on_shutdown(ctx: dict[str, Any]) -> None:
    services: WorkerServices | None = ctx.get("services")
    if services is not None:
        await services.close()
    logger.info("Enrichment worker stopped")


_queue_config = get_default_config().queue


class WorkerSettings:
    """arq worker settings."""

    functions = [process_review]
    cron_jobs = [cron(sweep_stalled, minute=set(range(0, 60, 5)))]
    on_startup = on_startup
    on_shutdown = on_shutdown
    redis_settings = get_redis_settings()
    queue_name = _queue_config.queue_name
    max_jobs = _queue_config.max_jobs
    max_tries = _queue_config.max_tries
    # Outer guard; the job enforces its own timeout first
    job_timeout = _queue_config.job_timeout + 60
    keep_result = _queue_config.keep_result
