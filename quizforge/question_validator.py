"""Rule-based quality scoring for generated questions.

Every question starts at 1.0 and loses a fixed penalty per issue found:

- structure (0.15): fewer than two options, not exactly one correct option,
  very short option or question text, repeated option text
- clarity (0.1): ambiguous quantifiers, double negatives, a missing
  question mark, excessive length
- difficulty (0.1): declared difficulty at odds with the cognitive verbs used
- relevance (0.2): too few content words shared with the source text

Output of the local template generator is judged more leniently on
relevance, and only its structural problems can make it invalid.
"""
from __future__ import annotations

import re

from quizforge.deduplicator import is_local
from quizforge.models import Question, ValidationIssue, ValidationResult
from quizforge.text_similarity import content_words, normalize

PENALTIES = {
    "structure": 0.15,
    "clarity": 0.1,
    "difficulty": 0.1,
    "relevance": 0.2,
}

MIN_VALID_SCORE = 0.5
MIN_QUESTION_CHARS = 10
MIN_OPTION_CHARS = 3
MAX_QUESTION_CHARS = 500
MIN_SHARED_WORDS = 2
MIN_SHARED_WORDS_LOCAL = 1

AMBIGUOUS_WORDS = ("some", "many", "few", "often", "sometimes", "usually")
COMPLEX_TERMS = (
    "analyze", "analyse", "evaluate", "synthesize", "compare", "contrast",
    "justify", "critique", "assess", "implication", "implications",
)
_AMBIGUOUS_RE = re.compile(r"\b(?:" + "|".join(AMBIGUOUS_WORDS) + r")\b", re.IGNORECASE)
_COMPLEX_RE = re.compile(r"\b(?:" + "|".join(COMPLEX_TERMS) + r")\b", re.IGNORECASE)
_DOUBLE_NEGATIVE_RE = re.compile(
    r"\b(?:not|never|no)\b[^.?!]*\b(?:not|never|no|none|nothing|neither)\b"
    r"|\bnot\s+un\w{4,}",
    re.IGNORECASE,
)

CATEGORY_SUGGESTIONS = {
    "structure": "Make sure the question has four distinct options with exactly one correct answer.",
    "clarity": "Rephrase the question as a single precise sentence ending in a question mark.",
    "difficulty": "Align the wording with the declared difficulty level.",
    "relevance": "Ground the question in terms that appear in the source material.",
}


def _structure_issues(q: Question) -> list[ValidationIssue]:
    issues = []
    if len(q.text.strip()) < MIN_QUESTION_CHARS:
        issues.append(ValidationIssue("structure", "high", "Question text is too short",
                                      "Write a complete question"))
    if len(q.options) < 2:
        issues.append(ValidationIssue("structure", "high", "Fewer than two options",
                                      "Provide four answer options"))
    correct = sum(1 for o in q.options if o.is_correct)
    if correct != 1:
        issues.append(ValidationIssue("structure", "high",
                                      f"{correct} options marked correct, expected exactly one",
                                      "Mark exactly one option as correct"))
    for o in q.options:
        if len(o.text.strip()) < MIN_OPTION_CHARS:
            issues.append(ValidationIssue("structure", "medium", f"Option text too short: {o.text!r}",
                                          "Expand short options into full answers"))
    texts = [normalize(o.text) for o in q.options]
    if len(set(texts)) < len(texts):
        issues.append(ValidationIssue("structure", "medium", "Options repeat the same text",
                                      "Make every option distinct"))
    return issues


def _clarity_issues(q: Question) -> list[ValidationIssue]:
    issues = []
    text = q.text.strip()
    if not text.endswith("?"):
        issues.append(ValidationIssue("clarity", "medium", "Question does not end with a question mark"))
    m = _AMBIGUOUS_RE.search(text)
    if m:
        issues.append(ValidationIssue("clarity", "low", f"Ambiguous quantifier: {m.group(0)!r}",
                                      "Replace vague quantifiers with precise terms"))
    if _DOUBLE_NEGATIVE_RE.search(text):
        issues.append(ValidationIssue("clarity", "medium", "Double negative",
                                      "State the question positively"))
    if len(text) > MAX_QUESTION_CHARS:
        issues.append(ValidationIssue("clarity", "medium", f"Question is {len(text)} chars long",
                                      "Shorten the question"))
    return issues


def _difficulty_issues(q: Question) -> list[ValidationIssue]:
    complex_terms = bool(_COMPLEX_RE.search(q.text))
    if q.difficulty == "easy" and complex_terms:
        return [ValidationIssue("difficulty", "low", "Easy question uses higher-order verbs")]
    if q.difficulty == "hard" and not complex_terms and len(q.text.split()) < 10:
        return [ValidationIssue("difficulty", "low", "Hard question looks like simple recall")]
    return []


def _relevance_issues(q: Question, source_text: str, local: bool) -> list[ValidationIssue]:
    if not source_text:
        return []
    shared = content_words(q.text) & content_words(source_text)
    minimum = MIN_SHARED_WORDS_LOCAL if local else MIN_SHARED_WORDS
    if len(shared) >= minimum:
        return []
    return [ValidationIssue(
        "relevance",
        "medium" if local else "high",
        f"Question shares {len(shared)} content words with its source (minimum {minimum})",
    )]


def validate_question(question: Question, source_text: str | None = None) -> ValidationResult:
    """Score *question*; relevance is checked against *source_text* or its excerpt."""
    local = is_local(question)
    issues = (
        _structure_issues(question)
        + _clarity_issues(question)
        + _difficulty_issues(question)
        + _relevance_issues(question, source_text or question.source_excerpt, local)
    )
    score = round(max(0.0, 1.0 - sum(PENALTIES[i.type] for i in issues)), 4)

    if local:
        blocking = any(i.severity == "high" and i.type == "structure" for i in issues)
    else:
        blocking = any(i.severity == "high" for i in issues)

    suggestions: list[str] = []
    for issue in issues:
        for s in (issue.suggestion, CATEGORY_SUGGESTIONS[issue.type]):
            if s and s not in suggestions:
                suggestions.append(s)

    return ValidationResult(
        is_valid=score >= MIN_VALID_SCORE and not blocking,
        score=score,
        issues=issues,
        suggestions=suggestions,
    )


def filter_high_quality(
    questions: list[Question],
    min_score: float = 0.7,
    source_text: str | None = None,
) -> list[Question]:
    """Keep valid questions scoring at least *min_score*; records each score."""
    kept = []
    for q in questions:
        result = validate_question(q, source_text)
        q.metadata.quality_score = result.score
        if result.is_valid and result.score >= min_score:
            kept.append(q)
    return kept


def average_quality_score(questions: list[Question]) -> float:
    if not questions:
        return 0.0
    return sum(q.metadata.quality_score for q in questions) / len(questions)
