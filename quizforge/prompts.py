"""Prompt templates for multiple-choice batch generation."""
from __future__ import annotations

import re

CONTENT_START = "<<<CONTENT>>>"
CONTENT_END = "<<<END CONTENT>>>"

BATCH_PROMPT = """\
You are an expert educational content creator. Generate {batch_size} COMPLETELY \
UNIQUE, DIVERSE, and HIGH-QUALITY multiple-choice questions from the content below.

Diversity requirements:
- Each question MUST test a different concept, process, or detail from the content.
- Use different question stems: "What is...", "How does...", "Why is...", \
"Which of...", "When does...", "Where can...".
- Test different cognitive levels: recall, understanding, application, analysis, evaluation.
- Cover different content areas: definitions, processes, examples, relationships, causes, effects.

Multiple-choice requirements:
- Each question must have exactly 4 options.
- Exactly ONE option is correct.
- Incorrect options must be plausible but clearly wrong.
- Do not use "All of the above" or "None of the above".

Difficulty levels to use, in rotation: {difficulties}
{topics_section}
{content_start}
{content}
{content_end}

Generate exactly {batch_size} questions. Respond with ONLY a JSON array in this \
exact format, with no comments, no trailing commas and no other text:
[
  {{
    "type": "multiple-choice",
    "difficulty": "medium",
    "question": "Unique question text?",
    "options": [
      {{"text": "Option A text", "correct": false}},
      {{"text": "Option B text", "correct": true}},
      {{"text": "Option C text", "correct": false}},
      {{"text": "Option D text", "correct": false}}
    ],
    "explanation": "Why this answer is correct",
    "topic": "Specific topic tested",
    "keywords": ["keyword1", "keyword2"]
  }}
]
"""


def format_topics(topics: list[str] | None) -> str:
    if not topics:
        return ""
    return "Focus on these topics where the content supports them: " + ", ".join(topics) + "\n"


def build_batch_prompt(
    content: str,
    batch_size: int,
    difficulties: list[str],
    topics: list[str] | None = None,
) -> str:
    return BATCH_PROMPT.format(
        batch_size=batch_size,
        difficulties=", ".join(difficulties or ["medium"]),
        topics_section=format_topics(topics),
        content_start=CONTENT_START,
        content=content,
        content_end=CONTENT_END,
    )


def parse_batch_prompt(prompt: str) -> tuple[str, int, list[str]]:
    """Recover ``(content, batch_size, difficulties)`` from a batch prompt.

    Used by generators that work from the source text rather than the
    instructions. Falls back to the whole prompt, 5 questions and "medium".
    """
    content = prompt
    start = prompt.find(CONTENT_START)
    end = prompt.find(CONTENT_END)
    if start >= 0 and end > start:
        content = prompt[start + len(CONTENT_START):end].strip()

    m = re.search(r"Generate exactly (\d+) questions", prompt)
    batch_size = int(m.group(1)) if m else 5

    m = re.search(r"Difficulty levels to use, in rotation: ([a-z, ]+)", prompt)
    difficulties = [d.strip() for d in m.group(1).split(",") if d.strip()] if m else ["medium"]
    return content, batch_size, difficulties
