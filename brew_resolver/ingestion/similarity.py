"""
String Similarity Module
========================

Name normalization and edit-distance similarity used for matching
breweries and beers across noisy sources.
"""

from __future__ import annotations

import re
import unicodedata

_PUNCT_RE = re.compile(r"[^\w\s]", re.UNICODE)
_WS_RE = re.compile(r"\s+")

# Words that never identify a brewery on their own
STOP_TOKENS = {
    "birrificio", "birra", "birre", "brewery", "brewing", "beer", "beers",
    "company", "co", "srl", "spa", "snc", "sas", "the", "di", "del", "della",
    "il", "la", "lo", "le", "e", "and", "sito", "ufficiale", "produttore",
}


def normalize(name: str | None) -> str:
    """
    Normalize a name for comparison.

    Lowercases, trims, strips punctuation and collapses whitespace.

    Args:
        name: Raw name (may be None)

    Returns:
        Normalized name, empty string for None
    """
    if not name:
        return ""
    text = _PUNCT_RE.sub(" ", name.lower())
    return _WS_RE.sub(" ", text).strip()


def compact(name: str | None) -> str:
    """Normalize and drop all whitespace."""
    return normalize(name).replace(" ", "")


def fold_accents(text: str) -> str:
    """Replace accented characters with their ASCII base letters."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def slugify(name: str) -> str:
    """
    Build a URL slug for a beer name.

    "Tipopils Rossa" -> "tipopils-rossa", "Città" -> "citta"
    """
    text = fold_accents(normalize(name))
    return re.sub(r"[^a-z0-9]+", "-", text).strip("-")


def significant_tokens(text: str | None, min_length: int = 3) -> set[str]:
    """Tokens long enough to identify an entity, excluding generic words."""
    return {
        token
        for token in fold_accents(normalize(text)).split()
        if len(token) >= min_length and token not in STOP_TOKENS
    }


def edit_distance(a: str, b: str) -> int:
    """
    Levenshtein distance between two strings.

    Uses the two-row dynamic programming formulation.
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current[j] = min(
                previous[j] + 1,  # deletion
                current[j - 1] + 1,  # insertion
                previous[j - 1] + cost,  # substitution
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """
    Similarity in [0, 1] derived from edit distance.

    Returns (max_len - distance) / max_len, and 1.0 for two empty strings.
    """
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return (max_len - edit_distance(a, b)) / max_len


def name_similarity(a: str | None, b: str | None) -> float:
    """Similarity of two names after normalization."""
    return similarity(normalize(a), normalize(b))
