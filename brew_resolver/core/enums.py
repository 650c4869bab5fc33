"""Enums for brewery/beer records and enrichment jobs."""

from enum import Enum


class SourceKind(str, Enum):
    """Strategy that produced a candidate."""

    LOCAL = "local"
    GROUNDED_SEARCH = "grounded_search"
    SEARCH_SCRAPE = "search_scrape"
    DIRECT_SITE = "direct_site"
    FUZZY_LOCAL = "fuzzy_local"


class ValidationStatus(str, Enum):
    """How far a canonical record has been verified."""

    PENDING_VALIDATION = "pending_validation"
    WEB_SCRAPED = "web_scraped"
    VALIDATED = "validated"


class DataSource(str, Enum):
    """Origin of the data stored on a canonical record."""

    DATABASE_CACHE = "database_cache"
    AI_ANALYSIS = "ai_analysis"
    GROUNDED_SEARCH = "google_search_retrieval"
    WEB_SEARCH = "web_search"
    WEB_SCRAPING = "web_scraping"
    LABEL_WEB = "label+web"


class ProcessingStatus(str, Enum):
    """Background processing status stored on a review."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    NEEDS_ADMIN_REVIEW = "needs_admin_review"
    FAILED = "failed"


class JobState(str, Enum):
    """State of an enrichment job as reported to status pollers."""

    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    NEEDS_ADMIN_REVIEW = "needs_admin_review"
    FAILED = "failed"
    NOT_FOUND = "not_found"


class ProgressStep(str, Enum):
    """Named progress checkpoints of an enrichment job."""

    AI_ANALYSIS = "ai-analysis"
    WEB_SEARCH = "web-search"
    WEB_SCRAPING = "web-scraping"
    VALIDATION = "validation"
    COMPLETED = "completed"


class BrewerySize(str, Enum):
    """Brewery size class mined from websites."""

    MICRO = "microbirrificio"
    CRAFT = "birrificio artigianale"
    INDUSTRIAL = "industriale"
