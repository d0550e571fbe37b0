"""Near-duplicate detection and batch diversity scoring."""
from __future__ import annotations

import hashlib
import json
import logging
import re
from itertools import combinations

from quizforge.config import DEFAULTS, LOCAL_PROVIDER_NAME
from quizforge.models import DeduplicationResult, DuplicateGroup, Question
from quizforge.text_similarity import STOP_WORDS, normalize, set_jaccard, text_similarity

log = logging.getLogger("quizforge.dedup")

TEXT_WEIGHT = 0.5
OPTIONS_WEIGHT = 0.2
ANSWER_WEIGHT = 0.2  # reserved: every question shares the one supported type
TOPIC_WEIGHT = 0.05
KEYWORDS_WEIGHT = 0.05

MAX_CONCEPTS = 10

QUESTION_WORDS = frozenset({
    "what", "which", "where", "when", "why", "how", "who", "whom", "whose",
    "does", "according", "following", "best", "describes",
})

INTENT_PATTERNS = [
    re.compile(r"^what\s+(?:is|are|does|do|can|will)\b"),
    re.compile(r"^how\s+(?:does|do|can|will|is|are)\b"),
    re.compile(r"^why\s+(?:is|are|does|do)\b"),
    re.compile(r"^which\s+(?:of|is|are)\b"),
    re.compile(r"^when\s+(?:does|do|is|are)\b"),
    re.compile(r"^where\s+(?:is|are|does|do|can)\b"),
]


def is_local(question: Question) -> bool:
    return question.metadata.provider_name == LOCAL_PROVIDER_NAME


def content_hash(question: Question) -> str:
    """Stable digest of the parts of a question that define its content."""
    payload = json.dumps([
        normalize(question.text),
        question.difficulty,
        question.topic.lower(),
        sorted(k.lower() for k in question.keywords),
        [normalize(o.text) for o in question.options],
    ])
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()[:16]


def options_similarity(a: Question, b: Question) -> float:
    """Average similarity of greedily best-matched option pairs.

    Zero when the option counts differ.
    """
    if len(a.options) != len(b.options) or not a.options:
        return 0.0
    pairs = sorted(
        (
            (text_similarity(oa.text, ob.text), i, j)
            for i, oa in enumerate(a.options)
            for j, ob in enumerate(b.options)
        ),
        key=lambda p: -p[0],
    )
    used_a: set[int] = set()
    used_b: set[int] = set()
    total = 0.0
    for score, i, j in pairs:
        if i in used_a or j in used_b:
            continue
        used_a.add(i)
        used_b.add(j)
        total += score
    return total / len(a.options)


def keyword_similarity(a: list[str], b: list[str]) -> float:
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return set_jaccard((k.lower() for k in a), (k.lower() for k in b))


def extract_question_concepts(text: str) -> set[str]:
    words = [
        w for w in normalize(text).split()
        if len(w) > 3 and w not in QUESTION_WORDS and w not in STOP_WORDS
    ]
    return set(words[:MAX_CONCEPTS])


def _intent_subject(text: str) -> tuple[int, str] | None:
    lowered = text.strip().lower()
    for idx, pattern in enumerate(INTENT_PATTERNS):
        m = pattern.match(lowered)
        if m:
            subject = re.split(r"[?.!,;:]", lowered[m.end():], maxsplit=1)[0]
            return idx, subject.strip()
    return None


def intent_similarity(a: str, b: str) -> float:
    """Subject similarity of two questions asked with the same intent."""
    ia, ib = _intent_subject(a), _intent_subject(b)
    if ia is None or ib is None or ia[0] != ib[0]:
        return 0.0
    return text_similarity(ia[1], ib[1])


class QuestionDeduplicator:
    """Collapses near-duplicate questions onto a first-seen representative.

    A pair counts as duplicate when ``max(lexical, semantic)`` exceeds the
    applicable threshold: *local_threshold* when both questions come from
    the local template generator, *threshold* otherwise.
    """

    def __init__(
        self,
        threshold: float = DEFAULTS["duplicate_threshold"],
        local_threshold: float = DEFAULTS["local_duplicate_threshold"],
    ):
        self.threshold = threshold
        self.local_threshold = local_threshold

    def threshold_for(self, a: Question, b: Question) -> float:
        if is_local(a) and is_local(b):
            return self.local_threshold
        return self.threshold

    def question_similarity(self, a: Question, b: Question) -> float:
        """Weighted lexical similarity over text, options, topic and keywords."""
        if a.type != b.type:
            return 0.0
        return (
            text_similarity(a.text, b.text) * TEXT_WEIGHT
            + options_similarity(a, b) * OPTIONS_WEIGHT
            + text_similarity(a.topic, b.topic) * TOPIC_WEIGHT
            + keyword_similarity(a.keywords, b.keywords) * KEYWORDS_WEIGHT
        )

    def semantic_similarity(self, a: Question, b: Question) -> float:
        concepts = set_jaccard(extract_question_concepts(a.text), extract_question_concepts(b.text))
        return max(concepts, intent_similarity(a.text, b.text))

    def similarity(self, a: Question, b: Question) -> float:
        if a.type != b.type:
            return 0.0
        return max(self.question_similarity(a, b), self.semantic_similarity(a, b))

    def are_similar(self, a: Question, b: Question) -> bool:
        return self.similarity(a, b) > self.threshold_for(a, b)

    def deduplicate(self, questions: list[Question]) -> DeduplicationResult:
        unique: list[Question] = []
        groups: dict[str, DuplicateGroup] = {}

        for q in questions:
            best: Question | None = None
            best_score = 0.0
            for u in unique:
                score = self.similarity(q, u)
                if score > self.threshold_for(q, u) and score > best_score:
                    best, best_score = u, score
            if best is None:
                unique.append(q)
                continue
            group = groups.get(best.id)
            if group is None:
                group = groups[best.id] = DuplicateGroup(best, [], best_score)
            group.duplicates.append(q)
            group.similarity_score = max(group.similarity_score, best_score)
            log.debug("Duplicate (%.2f): %r ~ %r", best_score, q.text[:60], best.text[:60])

        removed = len(questions) - len(unique)
        if removed:
            log.info("Removed %d duplicates from %d questions", removed, len(questions))
        return DeduplicationResult(
            unique_questions=unique,
            duplicates_removed=removed,
            duplicate_groups=list(groups.values()),
        )

    def batch_diversity(self, questions: list[Question]) -> float:
        """``1 - mean pairwise similarity``; 1.0 for fewer than two questions."""
        if len(questions) < 2:
            return 1.0
        scores = [self.question_similarity(a, b) for a, b in combinations(questions, 2)]
        return min(1.0, max(0.0, 1.0 - sum(scores) / len(scores)))
