"""External service clients used by the enrichment pipeline."""
