"""Deterministic template-based question generator.

Needs no network and cannot fail for connectivity reasons, so it is always
the last entry of the provider chain and the source of top-up questions.
"""
from __future__ import annotations

import json
import re
from collections import Counter

from quizforge.config import LOCAL_PROVIDER_NAME
from quizforge.prompts import parse_batch_prompt
from quizforge.providers.base import LLMProvider
from quizforge.text_similarity import STOP_WORDS

MAX_TERMS = 60

# Generic words that make poor question subjects
_WEAK_TERMS = frozenset({
    "include", "includes", "many", "like", "used", "using", "make", "made",
    "well", "work", "works", "system", "systems", "might", "must", "shall",
    "often", "sometimes", "usually", "several", "thing", "things", "because",
    "however", "therefore", "although", "being", "between", "within",
    "without", "through", "during", "after", "before", "under", "over",
    "just", "even", "much", "same", "both", "either", "whether", "another",
    "first", "second", "third", "later", "early", "given", "here",
})

_CONCEPT_PATTERNS = [
    re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\s+(?:is|are)\s+(?:a|an|the)\b"),
    re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\s+refers\s+to\b"),
    re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\s+means\b"),
    re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\s+involves\b"),
]

# (category, question, correct answer, three distractors)
TEMPLATES = [
    ("purpose", "What is the fundamental purpose of {term}?",
     "{term} serves as a key component in achieving the objectives described", [
         "{term} has no specific purpose in this context",
         "{term} is used only for decorative purposes",
         "{term} contradicts the main objectives",
     ]),
    ("contribution", "How does {term} contribute to the overall subject?",
     "{term} plays an integral role in how the described subject functions", [
         "{term} operates independently without any integration",
         "{term} disrupts the normal operation of everything around it",
         "{term} is completely separate from the subject",
     ]),
    ("characteristics", "What are the key characteristics of {term}?",
     "{term} exhibits specific properties that define its behavior", [
         "{term} has no distinguishable characteristics",
         "{term} changes characteristics at random",
         "{term} mimics other unrelated elements",
     ]),
    ("context", "In what context is {term} most effectively utilized?",
     "{term} performs best under the conditions described in the content", [
         "{term} works equally well in every possible context",
         "{term} is never effective in any practical context",
         "{term} only works in theoretical scenarios",
     ]),
    ("distinction", "What distinguishes {term} from similar concepts?",
     "{term} has unique attributes that set it apart from alternatives", [
         "{term} is identical to all related concepts",
         "{term} has no distinguishing features",
         "{term} is inferior to all alternatives",
     ]),
    ("process-role", "What role does {term} play in the described process?",
     "{term} fulfills a specific function within the process framework", [
         "{term} has no role in any process",
         "{term} disrupts every process it encounters",
         "{term} replaces all other process elements",
     ]),
    ("optimization", "How can {term} be improved for better results?",
     "{term} can be enhanced through the methods suggested in the content", [
         "{term} cannot be improved under any circumstances",
         "{term} performs worse whenever it is improved",
         "{term} improvement is theoretically impossible",
     ]),
    ("applications", "What are the potential applications of {term}?",
     "{term} can be applied in the scenarios outlined in the material", [
         "{term} has no practical applications whatsoever",
         "{term} can only be used in one specific situation",
         "{term} applications are purely hypothetical",
     ]),
    ("challenges", "What challenges are associated with implementing {term}?",
     "{term} implementation requires consideration of the factors mentioned", [
         "{term} implementation faces no challenges at all",
         "{term} creates insurmountable implementation barriers",
         "{term} implementation is always straightforward",
     ]),
    ("interaction", "How does {term} interact with related elements?",
     "{term} interfaces with related elements in predictable ways", [
         "{term} never interacts with any other element",
         "{term} conflicts with every related element",
         "{term} affects unrelated elements unpredictably",
     ]),
]

_VARIATION_PREFIXES = [
    "",
    "Based on the content, ",
    "According to the material, ",
    "From the information provided, ",
    "In the context described, ",
]


def extract_concepts(content: str, limit: int = 20) -> list[str]:
    seen: dict[str, str] = {}
    for pattern in _CONCEPT_PATTERNS:
        for m in pattern.finditer(content):
            phrase = m.group(1)
            if phrase.lower() not in STOP_WORDS and phrase.lower() not in _WEAK_TERMS:
                seen.setdefault(phrase.lower(), phrase)
    return list(seen.values())[:limit]


def extract_key_terms(content: str, limit: int = MAX_TERMS) -> list[str]:
    """Content words ordered by frequency, ties broken by first appearance."""
    words = re.findall(r"\b[a-z]{4,}\b", content.lower())
    counts = Counter(w for w in words if w not in STOP_WORDS and w not in _WEAK_TERMS)
    first_seen = {}
    for i, w in enumerate(words):
        first_seen.setdefault(w, i)
    ranked = sorted(counts, key=lambda w: (-counts[w], first_seen[w]))
    return ranked[:limit]


def _terms_for(content: str) -> list[str]:
    terms: list[str] = []
    seen: set[str] = set()
    for term in extract_concepts(content) + extract_key_terms(content):
        if term.lower() not in seen:
            seen.add(term.lower())
            terms.append(term)
    return terms or ["the main concept"]


def _excerpt_for(content: str, term: str) -> str:
    sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", content) if s.strip()]
    needle = term.lower()
    for s in sentences:
        if needle in s.lower():
            return s[:300]
    return content[:200].strip()


class LocalTemplateGenerator:
    """Builds multiple-choice questions from templates filled with key terms.

    Question ``k`` (a running index) pairs template ``k % 10`` with a term
    chosen so that no (template, term) pair repeats within ``10 * len(terms)``
    consecutive indices; later cycles get a rephrasing prefix.
    """

    def build(
        self,
        content: str,
        difficulties: list[str],
        count: int,
        start: int = 0,
    ) -> list[dict]:
        terms = _terms_for(content)
        difficulties = difficulties or ["medium"]
        questions = []
        for i in range(count):
            k = start + i
            category, question, correct, wrong = TEMPLATES[k % len(TEMPLATES)]
            term = terms[(k // len(TEMPLATES) + k % len(TEMPLATES)) % len(terms)]
            cycle = k // (len(TEMPLATES) * len(terms))
            prefix = _VARIATION_PREFIXES[cycle % len(_VARIATION_PREFIXES)]

            text = question.format(term=term)
            if prefix:
                text = prefix + text[0].lower() + text[1:]

            options = [{"text": w.format(term=term), "correct": False} for w in wrong]
            # Deterministic rotation of the correct answer's position
            options.insert(k % 4, {"text": correct.format(term=term), "correct": True})

            questions.append({
                "type": "multiple-choice",
                "difficulty": difficulties[i % len(difficulties)],
                "question": text,
                "options": options,
                "explanation": (
                    f"The material presents {term} in a way that matches this "
                    f"{category.replace('-', ' ')} description; the other options contradict it."
                ),
                "topic": f"{category.replace('-', ' ').title()} Analysis - {term}",
                "keywords": [term.lower(), category],
                "source_excerpt": _excerpt_for(content, term),
            })
        return questions


class LocalTemplateProvider(LLMProvider):
    """Provider adapter around :class:`LocalTemplateGenerator`.

    Reads the source text and batch size out of the batch prompt and keeps a
    running index so successive batches use fresh template/term pairs.
    """

    def __init__(self, generator: LocalTemplateGenerator | None = None):
        self.generator = generator or LocalTemplateGenerator()
        self._cursor = 0

    def reserve(self, count: int) -> int:
        """Claim *count* indices and return the first one."""
        start = self._cursor
        self._cursor += count
        return start

    def build_questions(self, content: str, difficulties: list[str], count: int) -> list[dict]:
        return self.generator.build(content, difficulties, count, start=self.reserve(count))

    async def generate(self, prompt: str, max_tokens: int = 4096) -> str:
        content, batch_size, difficulties = parse_batch_prompt(prompt)
        return json.dumps(self.build_questions(content, difficulties, batch_size))

    def name(self) -> str:
        return LOCAL_PROVIDER_NAME
