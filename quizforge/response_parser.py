"""Turn raw (often malformed) provider output into normalized questions."""
from __future__ import annotations

import json
import logging
import re
import uuid

from quizforge.deduplicator import content_hash
from quizforge.models import DIFFICULTIES, Question, QuestionMetadata, QuestionOption

_log = logging.getLogger("quizforge.parser")

OPTION_COUNT = 4
PADDING_DISTRACTORS = [
    "None of the other options is supported by the content",
    "The content does not address this",
    "This cannot be determined from the material",
    "The material states the opposite",
]


def _strip_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments that sit outside JSON strings."""
    out: list[str] = []
    i = 0
    in_str = False
    while i < len(text):
        ch = text[i]
        if in_str:
            out.append(ch)
            if ch == "\\" and i + 1 < len(text):
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_str = False
            i += 1
            continue
        if ch == '"':
            in_str = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            nl = text.find("\n", i)
            i = len(text) if nl < 0 else nl
        elif text.startswith("/*", i):
            close = text.find("*/", i + 2)
            i = len(text) if close < 0 else close + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _balanced_at(text: str, start: int, open_ch: str, close_ch: str) -> str | None:
    """Balanced ``open_ch … close_ch`` substring beginning at *start*, if closed."""
    depth = 0
    in_str = False
    escape = False
    for j in range(start, len(text)):
        ch = text[j]
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch == '"':
            in_str = not in_str
            continue
        if in_str:
            continue
        if ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return text[start:j + 1]
    return None


def _balanced_fragments(text: str, open_ch: str, close_ch: str):
    """Yield every balanced fragment starting at an ``open_ch``, in order."""
    start = text.find(open_ch)
    while start >= 0:
        fragment = _balanced_at(text, start, open_ch, close_ch)
        if fragment is not None:
            yield fragment
        start = text.find(open_ch, start + 1)


def clean_json_text(text: str) -> str:
    """Strip reasoning blocks, code fences and comments; keep the JSON part."""
    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL).strip()
    m = re.search(r"```(?:json|JSON)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
    if m:
        text = m.group(1).strip()
    elif text.startswith("```"):
        # Unterminated fence
        text = re.sub(r"^```(?:json|JSON)?\s*", "", text)
    return _strip_comments(text)


def _remove_trailing_commas(text: str) -> str:
    """Drop ``,`` before ``]``/``}`` and collapse ``,,`` outside JSON strings."""
    out: list[str] = []
    i = 0
    in_str = False
    while i < len(text):
        ch = text[i]
        if in_str:
            out.append(ch)
            if ch == "\\" and i + 1 < len(text):
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_str = False
            i += 1
            continue
        if ch == '"':
            in_str = True
        elif ch == ",":
            j = i + 1
            while j < len(text) and text[j].isspace():
                j += 1
            if j < len(text) and text[j] in ",]}":
                i += 1
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def _items_from(data) -> list[dict]:
    if isinstance(data, dict):
        # {"questions": [...]} wrapper or a single question object
        data = data.get("questions", [data])
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    return []


def extract_items(raw_text: str) -> list[dict]:
    """Return the list of question-like dicts in *raw_text*, or ``[]``.

    Arrays are tried first, in order of appearance, so bracketed prose
    ahead of the payload is skipped; objects are the fallback.
    """
    cleaned = clean_json_text(raw_text)
    empty = False
    for open_ch, close_ch in (("[", "]"), ("{", "}")):
        for fragment in _balanced_fragments(cleaned, open_ch, close_ch):
            try:
                data = json.loads(_remove_trailing_commas(fragment))
            except json.JSONDecodeError:
                continue
            items = _items_from(data)
            if items:
                return items
            empty = empty or data == []
    if not empty:
        _log.warning("Could not parse provider output (%d chars): %.200s", len(raw_text), raw_text)
    return []


def _option_from_raw(raw) -> tuple[str, bool]:
    if isinstance(raw, str):
        return raw.strip(), False
    if isinstance(raw, dict):
        text = raw.get("text") or raw.get("option") or raw.get("content") or ""
        correct = raw.get("correct", raw.get("isCorrect", raw.get("is_correct", False)))
        if isinstance(correct, str):
            correct = correct.strip().lower() in ("true", "yes", "1")
        return str(text).strip(), bool(correct)
    return "", False


def _answer_index(raw: dict, count: int) -> int | None:
    """Index named by a ``correct_index``/``answer`` field, if any."""
    ci = raw.get("correct_index", raw.get("correctIndex"))
    if isinstance(ci, str) and ci.strip().isdigit():
        ci = int(ci.strip())
    if isinstance(ci, int) and 0 <= ci < count:
        return ci
    answer = raw.get("answer", raw.get("correct_answer"))
    if isinstance(answer, str) and len(answer.strip()) == 1 and answer.strip().upper() in "ABCDEFGH":
        idx = ord(answer.strip().upper()) - ord("A")
        return idx if idx < count else None
    return None


def normalize_options(raw_options: list, raw: dict, label: str = "") -> list[tuple[str, bool]]:
    """Coerce options to exactly four with exactly one marked correct."""
    options = [_option_from_raw(o) for o in raw_options]
    options = [(t or f"Option {chr(65 + i)}", c) for i, (t, c) in enumerate(options)]

    if not any(c for _, c in options):
        idx = _answer_index(raw, len(options))
        if idx is not None:
            options[idx] = (options[idx][0], True)

    correct = [i for i, (_, c) in enumerate(options) if c]
    if len(correct) > 1:
        _log.warning("%s: %d options marked correct, keeping the first", label, len(correct))
        options = [(t, i == correct[0]) for i, (t, _) in enumerate(options)]
        correct = correct[:1]

    if len(options) > OPTION_COUNT:
        _log.warning("%s: %d options, truncating to %d", label, len(options), OPTION_COUNT)
        kept = options[:OPTION_COUNT]
        if correct and correct[0] >= OPTION_COUNT:
            kept[-1] = options[correct[0]]
        options = kept
    elif len(options) < OPTION_COUNT:
        _log.warning("%s: %d options, padding to %d", label, len(options), OPTION_COUNT)
        existing = {t.lower() for t, _ in options}
        for filler in PADDING_DISTRACTORS:
            if len(options) >= OPTION_COUNT:
                break
            if filler.lower() not in existing:
                options.append((filler, False))

    if not any(c for _, c in options):
        _log.warning("%s: no option marked correct, marking the first", label)
        options[0] = (options[0][0], True)
    return options


def _keywords(raw: dict) -> list[str]:
    keywords = raw.get("keywords")
    if isinstance(keywords, str):
        return [keywords] if keywords.strip() else []
    if isinstance(keywords, list):
        return [str(k) for k in keywords]
    return []


def _question_from_item(
    raw: dict,
    index: int,
    provider_name: str,
    chunk_id: str,
    source_excerpt: str,
    difficulties: list[str],
    processing_time_ms: int,
) -> Question | None:
    text = str(raw.get("question") or raw.get("text") or raw.get("questionText") or "").strip()
    if not text:
        _log.info("Item %d has no question text, dropping", index + 1)
        return None
    raw_options = raw.get("options") or raw.get("answers") or raw.get("choices")
    if not isinstance(raw_options, list) or not raw_options:
        _log.info("Item %d has no options list, dropping", index + 1)
        return None

    options = normalize_options(raw_options, raw, label=f"item {index + 1}")

    difficulty = str(raw.get("difficulty", "")).lower()
    if difficulty not in DIFFICULTIES:
        difficulty = difficulties[index % len(difficulties)]

    question = Question(
        id=str(uuid.uuid4()),
        text=text,
        options=[
            QuestionOption(id=str(uuid.uuid4()), text=t, is_correct=c)
            for t, c in options
        ],
        explanation=str(raw.get("explanation") or raw.get("answer_explanation") or "No explanation provided"),
        difficulty=difficulty,
        topic=str(raw.get("topic") or raw.get("subject") or "General"),
        keywords=_keywords(raw),
        source_excerpt=str(raw.get("source_excerpt") or source_excerpt[:500]),
        metadata=QuestionMetadata(
            provider_name=provider_name,
            processing_time_ms=processing_time_ms,
            source_chunk_id=chunk_id,
        ),
    )
    question.metadata.content_hash = content_hash(question)
    return question


def questions_from_items(
    items: list[dict],
    provider_name: str,
    *,
    chunk_id: str = "",
    source_excerpt: str = "",
    difficulties: list[str] | None = None,
    processing_time_ms: int = 0,
) -> list[Question]:
    """Normalize question-like dicts.

    Items without question text or options, and items whose fields cannot
    be coerced, are dropped.
    """
    difficulties = difficulties or ["medium"]
    questions: list[Question] = []
    for i, raw in enumerate(items):
        try:
            question = _question_from_item(
                raw, i, provider_name, chunk_id, source_excerpt, difficulties, processing_time_ms,
            )
        except (TypeError, ValueError, AttributeError) as e:
            _log.warning("Item %d could not be normalized, dropping: %s", i + 1, e)
            continue
        if question is not None:
            questions.append(question)

    _log.info("Parsed %d/%d items from %s", len(questions), len(items), provider_name)
    return questions


def parse_response(
    raw_text: str,
    provider_name: str,
    *,
    chunk_id: str = "",
    source_excerpt: str = "",
    difficulties: list[str] | None = None,
    processing_time_ms: int = 0,
) -> list[Question]:
    """Parse provider output into questions; never raises."""
    return questions_from_items(
        extract_items(raw_text),
        provider_name,
        chunk_id=chunk_id,
        source_excerpt=source_excerpt,
        difficulties=difficulties,
        processing_time_ms=processing_time_ms,
    )
