"""Exceptions raised by the enrichment pipeline."""


class BrewResolverError(Exception):
    """Base class for pipeline errors."""


class ConfigError(BrewResolverError):
    """Invalid or missing pipeline configuration."""


class ReviewNotFoundError(BrewResolverError):
    """The review referenced by a job does not exist."""

    def __init__(self, review_id: str) -> None:
        super().__init__(f"Review {review_id} not found")
        self.review_id = review_id


class GroundedResponseError(BrewResolverError):
    """A grounded model answer could not be turned into JSON."""


class EnrichmentJobError(BrewResolverError):
    """
    Fatal job failure.

    Raised when no bottle of a review could be resolved. The queue layer
    retries the job with backoff.
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []
