"""Brewery and beer entity resolution and enrichment pipeline."""

__version__ = "0.1.0"
