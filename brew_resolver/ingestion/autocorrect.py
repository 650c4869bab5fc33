"""
Name Autocorrection Module
==========================

Label reading often garbles a letter or two of a beer name ("Tipopilss",
"Tipo Pils" vs "Tipopils"). When a web source describes the beer, the
name it uses is the authoritative spelling. This module finds that name in
the description text and swaps it in when it is within a small edit
distance of the label reading.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any

from brew_resolver.ingestion.similarity import edit_distance, normalize

logger = logging.getLogger(__name__)

_WORD = r"[A-ZÀ-Ý][\w'’-]*"
_PHRASE = rf"{_WORD}(?:\s+{_WORD}){{0,3}}"

CANDIDATE_PATTERNS = [
    re.compile(rf"(?:is named|is called|named|called|si chiama|chiamata|denominata)\s+[\"'“«]?({_PHRASE})"),
    re.compile(rf"({_PHRASE})\s+(?:is an?|is the|è una?|è la|è il|è l')\b"),
    re.compile(r"\b([A-ZÀ-Ý][\wà-ÿ]{4,})\b"),
]


@dataclass
class Correction:
    """Outcome of an autocorrection attempt."""

    name: str
    was_corrected: bool
    original_name: str
    distance: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


def candidate_phrases(text: str) -> list[str]:
    """Proper-noun phrases that may name the beer, in pattern priority order."""
    phrases: list[str] = []
    for pattern in CANDIDATE_PATTERNS:
        for match in pattern.finditer(text):
            phrase = match.group(1).strip(" \"'”»")
            if phrase and phrase not in phrases:
                phrases.append(phrase)
    return phrases


class NameAutocorrector:
    """Corrects a label-read beer name against web descriptions."""

    def __init__(self, max_distance: int = 2) -> None:
        self.max_distance = max_distance

    def correct(
        self,
        ocr_name: str,
        description: str | None = None,
        tasting_notes: str | None = None,
    ) -> Correction:
        """
        Correct a beer name.

        For every candidate phrase, the distance is the smaller of the
        distance to the whole name and, for multi-word names, to the last
        word. A candidate qualifies when 0 < distance <= max_distance and
        the lengths differ by at most max_distance. The closest wins.

        Args:
            ocr_name: Name as read from the label
            description: Web description of the beer
            tasting_notes: Web tasting notes

        Returns:
            Correction; was_corrected is False when nothing qualified
        """
        unchanged = Correction(name=ocr_name, was_corrected=False, original_name=ocr_name)
        text = " ".join(t for t in (description, tasting_notes) if t)
        if not ocr_name or not text:
            return unchanged

        full = normalize(ocr_name)
        words = ocr_name.split()
        last = normalize(words[-1]) if len(words) > 1 else None

        best: tuple[int, str, bool] | None = None  # (distance, phrase, replaces_last_word)
        for phrase in candidate_phrases(text):
            candidate = normalize(phrase)
            if not candidate:
                continue
            if candidate == full:
                return unchanged

            options = [(edit_distance(full, candidate), len(full), False)]
            if last:
                options.append((edit_distance(last, candidate), len(last), True))

            for distance, target_length, replaces_last in options:
                if not 0 < distance <= self.max_distance:
                    continue
                if abs(len(candidate) - target_length) > self.max_distance:
                    continue
                if best is None or distance < best[0]:
                    best = (distance, phrase, replaces_last)

        if best is None:
            return unchanged

        distance, phrase, replaces_last = best
        corrected = " ".join(words[:-1] + [phrase]) if replaces_last else phrase
        logger.info(f"Autocorrected beer name '{ocr_name}' -> '{corrected}' (distance {distance})")
        return Correction(name=corrected, was_corrected=True, original_name=ocr_name, distance=distance)
