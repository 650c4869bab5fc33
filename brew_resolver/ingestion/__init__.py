"""
brew-resolver Ingestion Framework
=================================

This package resolves the bottles read from beer labels to canonical brewery
and beer records, collecting facts from the web when the local store has no
usable match.

Pipeline Stages:
1. Fast path - Beer already linked to a brewery in the local store
2. Local match - Exact, partial, compact and fuzzy brewery name lookup
3. Grounded search - One web-grounded AI call for beer and brewery facts
4. Search engine - Official website discovery from organic results
5. Site extraction - Crawl the brewery website for contact, legal and beer facts
6. Persist - Create or fill canonical records without overwriting data
7. Link - Point the review's rating slots at the records

The orchestrator and queue live in brew_resolver.ingestion.orchestrator and
brew_resolver.ingestion.jobs.
"""

from brew_resolver.ingestion.autocorrect import Correction, NameAutocorrector
from brew_resolver.ingestion.config import PipelineConfig, get_default_config
from brew_resolver.ingestion.crawler import Crawler, FetchResult, RobotsChecker, TokenBucket
from brew_resolver.ingestion.local_store import CachedBottle, LocalStore
from brew_resolver.ingestion.quality import DataQualityScorer, QualityScore
from brew_resolver.ingestion.search_engine import SearchEngineScraper, SearchResult
from brew_resolver.ingestion.site_extractor import DirectSiteExtractor

__all__ = [
    # Config
    "PipelineConfig",
    "get_default_config",
    # Crawler
    "Crawler",
    "FetchResult",
    "TokenBucket",
    "RobotsChecker",
    # Local store
    "LocalStore",
    "CachedBottle",
    # Strategies
    "SearchEngineScraper",
    "SearchResult",
    "DirectSiteExtractor",
    # Scoring
    "DataQualityScorer",
    "QualityScore",
    "NameAutocorrector",
    "Correction",
]
