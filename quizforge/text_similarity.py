"""String similarity metrics shared by the deduplicator and the validator.

All scores are in ``[0, 1]``; 1 means identical after normalization.
"""
from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Iterable

JACCARD_WEIGHT = 0.4
EDIT_WEIGHT = 0.3
NGRAM_WEIGHT = 0.3

STOP_WORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
    "her", "was", "one", "our", "out", "has", "him", "his", "how", "its",
    "who", "did", "let", "say", "she", "too", "use", "that", "this", "with",
    "from", "they", "have", "been", "were", "will", "would", "could",
    "should", "when", "where", "what", "which", "while", "there", "their",
    "these", "those", "into", "than", "then", "them", "some", "such", "also",
    "does", "each", "other", "about", "only", "most", "more", "very",
})


def normalize(text: str) -> str:
    text = re.sub(r"[^\w\s]", "", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def content_words(text: str, min_length: int = 4) -> set[str]:
    """Lower-cased words of at least *min_length* chars that are not stop words."""
    return {
        w for w in normalize(text).split()
        if len(w) >= min_length and w not in STOP_WORDS
    }


def set_jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    sa, sb = set(a), set(b)
    union = sa | sb
    if not union:
        return 0.0
    return len(sa & sb) / len(union)


def word_jaccard(a: str, b: str) -> float:
    """Jaccard over words longer than two characters of normalized text."""
    wa = {w for w in a.split() if len(w) > 2}
    wb = {w for w in b.split() if len(w) > 2}
    return set_jaccard(wa, wb)


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def edit_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def char_ngrams(text: str, n: int = 3) -> Counter:
    return Counter(text[i:i + n] for i in range(len(text) - n + 1))


def ngram_cosine(a: str, b: str, n: int = 3) -> float:
    va, vb = char_ngrams(a, n), char_ngrams(b, n)
    dot = sum(count * vb[gram] for gram, count in va.items())
    norm = math.sqrt(sum(c * c for c in va.values())) * math.sqrt(sum(c * c for c in vb.values()))
    return dot / norm if norm else 0.0


def text_similarity(a: str, b: str) -> float:
    """Blend of word Jaccard, edit-distance similarity and trigram cosine."""
    if not a or not b:
        return 0.0
    na, nb = normalize(a), normalize(b)
    if na == nb:
        return 1.0
    return (
        word_jaccard(na, nb) * JACCARD_WEIGHT
        + edit_similarity(na, nb) * EDIT_WEIGHT
        + ngram_cosine(na, nb) * NGRAM_WEIGHT
    )
