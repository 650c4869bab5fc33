"""
Data Quality Scoring Module
===========================

Scores a brewery candidate by the weighted completeness of its facts and
decides whether it is good enough to stop the resolution cascade.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from brew_resolver.core.schema import BreweryFacts, is_empty_value
from brew_resolver.ingestion.config import QualityConfig

logger = logging.getLogger(__name__)


@dataclass
class QualityScore:
    """Weighted completeness of a set of brewery facts."""

    score: int
    percentage: float
    is_acceptable: bool
    reason: str
    present_fields: list[str] = field(default_factory=list)
    missing_fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


class DataQualityScorer:
    """
    Weighted field-completeness scorer.

    A candidate is acceptable when its score reaches the threshold, or when
    it carries a website and the website rule is enabled. Adding a field
    never lowers the score.
    """

    def __init__(self, config: QualityConfig | None = None) -> None:
        self.config = config or QualityConfig()

    def score(self, facts: BreweryFacts | None) -> QualityScore:
        """
        Score brewery facts.

        Args:
            facts: Candidate facts, or None for "nothing found"

        Returns:
            QualityScore with acceptance decision and a readable reason
        """
        weights = self.config.weights
        if facts is None:
            return QualityScore(
                score=0,
                percentage=0.0,
                is_acceptable=False,
                reason="No data",
                missing_fields=list(weights),
            )

        present = [name for name in weights if not is_empty_value(getattr(facts, name, None))]
        missing = [name for name in weights if name not in present]
        score = sum(weights[name] for name in present)
        max_score = self.config.max_score
        percentage = round(score / max_score * 100, 1) if max_score else 0.0

        has_website = not is_empty_value(facts.website)
        if score >= self.config.threshold:
            acceptable, reason = True, f"Score {score}/{max_score} meets threshold {self.config.threshold}"
        elif has_website and self.config.website_always_acceptable:
            acceptable, reason = True, f"Website present (score {score}/{max_score})"
        else:
            acceptable = False
            reason = f"Score {score}/{max_score} below threshold {self.config.threshold}; missing: {', '.join(missing)}"

        logger.debug(f"Quality for '{facts.name}': {reason}")
        return QualityScore(
            score=score,
            percentage=percentage,
            is_acceptable=acceptable,
            reason=reason,
            present_fields=present,
            missing_fields=missing,
        )
