"""Heuristic topic, keyword and concept extraction from source content."""
from __future__ import annotations

import re
from collections import Counter

from quizforge.content_processor import estimate_reading_level
from quizforge.models import TopicExtraction
from quizforge.providers.llm_local import extract_concepts, extract_key_terms

ACADEMIC_MARKERS = (
    "research", "study", "studies", "theory", "hypothesis", "analysis",
    "evidence", "experiment", "findings", "literature", "methodology",
)
TECHNICAL_MARKERS = (
    "algorithm", "system", "software", "protocol", "implementation",
    "function", "data", "network", "server", "configuration", "interface",
)

_HEADING = re.compile(r"^[ \t]*(?:#+[ \t]*)?([A-Z][\w ,&'-]{3,60})[ \t]*:?[ \t]*$", re.MULTILINE)
_CAPITALIZED_PHRASE = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)\b")


def detect_content_type(content: str) -> str:
    words = Counter(re.findall(r"\b[a-z]+\b", content.lower()))
    academic = sum(words[m] for m in ACADEMIC_MARKERS)
    technical = sum(words[m] for m in TECHNICAL_MARKERS)
    if academic >= 3 and academic >= technical:
        return "academic"
    if technical >= 3:
        return "technical"
    return "general"


def _headings(content: str) -> list[str]:
    found = []
    for m in _HEADING.finditer(content):
        heading = m.group(1).strip()
        # Plain sentences are not headings
        if not heading.endswith(".") and len(heading.split()) <= 8:
            found.append(heading)
    return found


def extract_topics(content: str, max_topics: int = 8) -> TopicExtraction:
    """Guess the main topics of *content*.

    Topics come from headings, then repeated multi-word capitalized phrases,
    then defined concepts, then the most frequent key terms.
    """
    concepts = extract_concepts(content)
    keywords = extract_key_terms(content, limit=15)

    phrases = Counter(_CAPITALIZED_PHRASE.findall(content))
    repeated = [p for p, n in phrases.most_common() if n > 1]

    topics: list[str] = []
    seen: set[str] = set()
    for candidate in _headings(content) + repeated + concepts + [k.title() for k in keywords[:5]]:
        if candidate.lower() not in seen:
            seen.add(candidate.lower())
            topics.append(candidate)
        if len(topics) >= max_topics:
            break

    return TopicExtraction(
        topics=topics,
        keywords=keywords,
        concepts=concepts,
        difficulty=estimate_reading_level(content),
        content_type=detect_content_type(content),
    )
