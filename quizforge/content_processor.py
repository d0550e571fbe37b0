"""Normalize raw document text and split it into overlapping chunks."""
from __future__ import annotations

import re
from collections import Counter

from quizforge.models import ContentChunk

MIN_CONTENT_LENGTH = 100
DEFAULT_CHUNK_SIZE = 2500
DEFAULT_CHUNK_OVERLAP = 300
# A chunk may grow past chunk_size by at most this fraction to end on a sentence
MAX_SENTENCE_EXTENSION = 0.7

_UNICODE_SPACES = re.compile(r"[\u00a0\u2000-\u200b\u202f\u205f\u3000]")
_LINE_SEPARATORS = re.compile(r"[\f\u2028\u2029]")
_PAGE_NUMBER_LINE = re.compile(r"^\s*\d+\s*$", re.MULTILINE)
_PAGE_HEADER_LINE = re.compile(r"^\s*Page \d+.*$", re.MULTILINE | re.IGNORECASE)
_SENTENCE_END = re.compile(r"[.!?]")


class ContentTooShort(ValueError):
    """Raised when normalized content is too short to generate questions from."""

    def __init__(self, length: int, minimum: int = MIN_CONTENT_LENGTH):
        super().__init__(
            f"Content too short for question generation ({length} chars, need {minimum})"
        )
        self.length = length
        self.minimum = minimum


def preprocess_content(text: str) -> str:
    text = _UNICODE_SPACES.sub(" ", text)
    text = _LINE_SEPARATORS.sub("\n", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    # Page numbers and running headers left behind by PDF extraction
    text = _PAGE_NUMBER_LINE.sub("", text)
    text = _PAGE_HEADER_LINE.sub("", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def prepare_content(text: str, max_length: int | None = None) -> str:
    """Preprocess *text* and enforce the minimum (and optional maximum) length.

    Raises :class:`ContentTooShort` when fewer than ``MIN_CONTENT_LENGTH``
    characters survive normalization.
    """
    processed = preprocess_content(text)
    if len(processed) < MIN_CONTENT_LENGTH:
        raise ContentTooShort(len(processed))
    if max_length is not None and len(processed) > max_length:
        processed = processed[:max_length]
    return processed


def validate_content_length(text: str, max_length: int = 15000) -> bool:
    return MIN_CONTENT_LENGTH <= len(text) <= max_length


def chunk_content(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[ContentChunk]:
    """Split *text* into overlapping chunks that prefer sentence boundaries.

    Offsets are half-open ``[start_offset, end_offset)`` ranges into *text*;
    consecutive ranges overlap by up to *overlap* characters and together
    cover the whole string. Start offsets strictly increase.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    overlap = max(0, min(overlap, chunk_size - 1))

    if len(text) <= chunk_size:
        return [_make_chunk(0, text, 0, len(text))]

    chunks: list[ContentChunk] = []
    start = 0
    max_extension = int(chunk_size * MAX_SENTENCE_EXTENSION)
    while start < len(text):
        end = min(start + chunk_size, len(text))
        if end < len(text):
            sentence_end = _find_sentence_end(text, end)
            if sentence_end is not None and sentence_end - end <= max_extension:
                end = sentence_end

        if text[start:end].strip():
            chunks.append(_make_chunk(len(chunks), text, start, end))

        if end >= len(text):
            break
        start = max(end - overlap, start + 1)

    return chunks


def _find_sentence_end(text: str, pos: int) -> int | None:
    """Index just past the first sentence terminator at or after *pos*."""
    m = _SENTENCE_END.search(text, pos)
    return m.end() if m else None


def _make_chunk(index: int, text: str, start: int, end: int) -> ContentChunk:
    body = text[start:end].strip()
    return ContentChunk(
        id=f"chunk-{index}",
        text=body,
        start_offset=start,
        end_offset=end,
        word_count=count_words(body),
        sentence_count=count_sentences(body),
    )


def split_into_sections(content: str) -> list[str]:
    """Split a chunk into sections so consecutive batches see different text.

    Uses paragraphs longer than 100 chars when there are at least three,
    otherwise groups sentences into about three sections.
    """
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", content) if len(p.strip()) > 100]
    if len(paragraphs) >= 3:
        return paragraphs

    sections: list[str] = []
    sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", content) if len(s.strip()) > 50]
    if sentences:
        size = -(-len(sentences) // 3)
        for i in range(0, len(sentences), size):
            section = " ".join(sentences[i:i + size]).strip()
            if len(section) > 100:
                sections.append(section)
    return sections or [content]


def count_words(text: str) -> int:
    return len(text.split())


def count_sentences(text: str) -> int:
    return len(re.findall(r"[.!?]+", text))


def extract_key_phrases(text: str, max_phrases: int = 10) -> list[str]:
    words = [w for w in re.sub(r"[^\w\s]", " ", text.lower()).split() if len(w) > 3]
    return [w for w, _ in Counter(words).most_common(max_phrases)]


def _estimate_syllables(text: str) -> int:
    total = 0
    for word in re.findall(r"\b[a-z]+\b", text.lower()):
        syllables = len(re.findall(r"[aeiouy]+", word)) or 1
        if word.endswith("e"):
            syllables -= 1
        if word.endswith("le") and len(word) > 2:
            syllables += 1
        total += max(syllables, 1)
    return total


def estimate_reading_level(text: str) -> str:
    """Flesch reading ease bucketed into easy / medium / hard."""
    sentences = count_sentences(text)
    words = count_words(text)
    if sentences == 0 or words == 0:
        return "easy"
    score = 206.835 - 1.015 * (words / sentences) - 84.6 * (_estimate_syllables(text) / words)
    if score >= 60:
        return "easy"
    if score >= 30:
        return "medium"
    return "hard"


def content_stats(text: str) -> dict:
    return {
        "characters": len(text),
        "words": count_words(text),
        "sentences": count_sentences(text),
        "paragraphs": len(re.split(r"\n\s*\n", text)),
        "reading_level": estimate_reading_level(text),
        "key_phrases": extract_key_phrases(text, 5),
    }
