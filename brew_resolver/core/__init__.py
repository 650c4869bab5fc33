"""Core domain types shared by the pipeline."""
