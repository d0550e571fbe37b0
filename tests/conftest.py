"""Shared test fixtures."""
from __future__ import annotations

import json
import uuid

import pytest

from quizforge.config import LOCAL_PROVIDER_NAME, Settings
from quizforge.models import ProviderDescriptor, Question, QuestionMetadata, QuestionOption, RateLimit

ARTICLE = """\
Photosynthesis is the process by which green plants, algae and some bacteria \
convert light energy into chemical energy. During photosynthesis, plants take in \
carbon dioxide from the air and water from the soil, and use the energy of \
sunlight to build glucose. Oxygen is released as a byproduct, which is why \
photosynthesis in plants sustains most life on Earth.

Chlorophyll is a green pigment found in the chloroplasts of plants. It absorbs \
red and blue light most strongly and reflects green light, which gives leaves \
their colour. The light energy captured by chlorophyll drives the first stage of \
photosynthesis, known as the light-dependent reactions, which take place in the \
thylakoid membranes of the chloroplast.

The light-dependent reactions split water molecules and release oxygen gas. \
They also produce two energy carriers, ATP and NADPH, which store the captured \
energy in chemical form. These carriers move into the stroma of the chloroplast, \
where the second stage of photosynthesis in plants takes place.

The Calvin cycle is the second stage of photosynthesis. It uses ATP and NADPH \
to fix carbon dioxide into organic molecules. The enzyme rubisco attaches carbon \
dioxide to a five-carbon sugar, and after a series of reactions plants produce \
glucose. Six turns of the Calvin cycle are needed to build one glucose molecule.

Environmental factors limit the rate of photosynthesis. Light intensity, carbon \
dioxide concentration and temperature all affect how quickly plants can make \
glucose. When one factor is in short supply, increasing the others has little \
effect, a principle known as the law of limiting factors.

Some plants have evolved special pathways to cope with hot, dry climates. C4 \
plants such as maize concentrate carbon dioxide around rubisco to reduce \
photorespiration, while CAM plants such as cacti open their stomata only at \
night to save water. Both adaptations make photosynthesis more efficient in \
plants that grow where water is scarce and light is intense.

Scientists study photosynthesis to improve crop yields and to design artificial \
systems that capture solar energy. Understanding how plants convert light into \
chemical energy may help engineers build better solar fuels, and it explains \
why forests and oceans are such important stores of carbon on our planet.
"""


@pytest.fixture
def article() -> str:
    """A ~2300 character article whose every paragraph mentions plants and photosynthesis."""
    return ARTICLE


@pytest.fixture
def settings():
    """Settings with no API keys and no retry backoff so tests never sleep."""
    return Settings(retry_backoff_seconds=0.0, min_batch_diversity=0.5)


def make_descriptor(
    name: str,
    priority: int,
    kind: str = "groq",
    timeout: float = 5.0,
    per_minute: int = 100,
    per_day: int = 1000,
) -> ProviderDescriptor:
    return ProviderDescriptor(
        name=name,
        kind=kind,
        max_tokens=4096,
        rate_limit=RateLimit(per_minute=per_minute, per_day=per_day),
        priority=priority,
        timeout_seconds=timeout,
    )


def make_question(
    text: str,
    options: list[str] | None = None,
    correct: int = 0,
    provider: str = "groq/test",
    topic: str = "Photosynthesis",
    keywords: list[str] | None = None,
    difficulty: str = "medium",
    source_excerpt: str = "",
) -> Question:
    options = options or ["Chlorophyll", "Hemoglobin", "Keratin", "Melanin"]
    return Question(
        id=str(uuid.uuid4()),
        text=text,
        options=[
            QuestionOption(id=str(uuid.uuid4()), text=o, is_correct=i == correct)
            for i, o in enumerate(options)
        ],
        explanation="Explained by the source text.",
        difficulty=difficulty,
        topic=topic,
        keywords=keywords if keywords is not None else ["photosynthesis"],
        source_excerpt=source_excerpt,
        metadata=QuestionMetadata(provider_name=provider),
    )


def make_local_question(text: str, **kwargs) -> Question:
    return make_question(text, provider=LOCAL_PROVIDER_NAME, **kwargs)


@pytest.fixture
def sample_question(article):
    return make_question(
        "Which pigment do plants use to absorb light energy for photosynthesis?",
        source_excerpt=article[:600],
    )


# Mutually dissimilar questions; each mentions plants and photosynthesis so it
# is relevant to every paragraph of ARTICLE.
QUESTION_BANK = [
    ("Which pigment lets plants absorb light for photosynthesis?",
     ["Chlorophyll", "Hemoglobin", "Keratin", "Melanin"], "Pigments"),
    ("Where inside the chloroplast do plants run the Calvin cycle of photosynthesis?",
     ["The stroma", "The nucleus", "The cell wall", "The vacuole"], "Calvin cycle"),
    ("What gas do plants release as a byproduct of photosynthesis?",
     ["Oxygen", "Nitrogen", "Methane", "Helium"], "Products"),
    ("Why do C4 plants concentrate carbon dioxide around rubisco during photosynthesis?",
     ["To limit photorespiration", "To absorb extra water", "To release nitrogen", "To store starch"],
     "Adaptations"),
    ("When do CAM plants open their stomata to support photosynthesis?",
     ["At night", "At noon", "During winter", "After rainfall"], "Stomata"),
    ("What number of Calvin cycle turns do plants need per glucose molecule in photosynthesis?",
     ["Six", "Two", "Ten", "Four"], "Glucose synthesis"),
    ("Which energy carriers do plants produce in the light-dependent reactions of photosynthesis?",
     ["ATP and NADPH", "DNA and RNA", "Glucose and starch", "Water and oxygen"], "Light reactions"),
    ("What principle says one scarce factor caps the rate of photosynthesis in plants?",
     ["The law of limiting factors", "The law of conservation", "The cell theory", "Natural selection"],
     "Limiting factors"),
    ("Thylakoid membranes host which stage of photosynthesis in plants?",
     ["The light-dependent reactions", "The Calvin cycle", "Glycolysis", "The Krebs cycle"],
     "Chloroplast structure"),
    ("Which crop is given as an example of C4 plants that adapt photosynthesis to heat?",
     ["Maize", "Cactus", "Wheat", "Rice"], "Examples"),
    ("Why do scientists study photosynthesis in plants?",
     ["To improve crop yields", "To cure infections", "To predict earthquakes", "To measure tides"],
     "Applications"),
    ("What colour of light do plants reflect, giving leaves their hue during photosynthesis?",
     ["Green", "Red", "Blue", "Violet"], "Leaf colour"),
    ("Which enzyme attaches carbon dioxide to a sugar in plants during photosynthesis?",
     ["Rubisco", "Amylase", "Lipase", "Pepsin"], "Enzymes"),
    ("What molecule is split by plants to free oxygen in photosynthesis?",
     ["Water", "Glucose", "Starch", "Carbon dioxide"], "Water splitting"),
    ("Which product do plants assemble from fixed carbon in photosynthesis?",
     ["Glucose", "Lactose", "Galactose", "Maltose"], "Carbon fixation"),
    ("Which environmental factor besides light and temperature limits photosynthesis in plants?",
     ["Carbon dioxide concentration", "Soil colour", "Moon phase", "Air pressure"], "Environment"),
]


def bank_items(start: int = 0, count: int = 5, difficulty: str = "medium") -> list[dict]:
    """Provider-style JSON items for QUESTION_BANK[start:start + count]."""
    items = []
    for text, options, topic in QUESTION_BANK[start:start + count]:
        items.append({
            "type": "multiple-choice",
            "difficulty": difficulty,
            "question": text,
            "options": [{"text": o, "correct": i == 0} for i, o in enumerate(options)],
            "explanation": "Stated in the article.",
            "topic": topic,
            "keywords": [topic.lower()],
        })
    return items


def bank_json(start: int = 0, count: int = 5) -> str:
    return json.dumps(bank_items(start, count))
