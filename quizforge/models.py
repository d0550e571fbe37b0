from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

QUESTION_TYPE = "multiple-choice"
DIFFICULTIES = ("easy", "medium", "hard")


@dataclass(frozen=True)
class ContentChunk:
    id: str
    text: str
    start_offset: int
    end_offset: int
    word_count: int
    sentence_count: int


@dataclass(frozen=True)
class RateLimit:
    per_minute: int
    per_day: int


@dataclass(frozen=True)
class ProviderDescriptor:
    name: str
    kind: str  # groq | xroute-grok | xroute-google | fireworks | openai | anthropic | ollama | local
    max_tokens: int
    rate_limit: RateLimit
    priority: int  # lower = tried first
    timeout_seconds: float = 30.0
    model: str | None = None
    endpoint: str | None = None

    @property
    def model_name(self) -> str:
        return self.model or self.name


@dataclass
class QuestionOption:
    id: str
    text: str
    is_correct: bool


@dataclass
class QuestionMetadata:
    provider_name: str
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    confidence: float = 0.85
    quality_score: float = 0.0
    processing_time_ms: int = 0
    source_chunk_id: str = ""
    content_hash: str = ""


@dataclass
class Question:
    id: str
    text: str
    options: list[QuestionOption]
    explanation: str
    difficulty: str
    topic: str
    keywords: list[str]
    source_excerpt: str
    metadata: QuestionMetadata
    type: str = QUESTION_TYPE

    @property
    def correct_option(self) -> QuestionOption | None:
        return next((o for o in self.options if o.is_correct), None)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["metadata"]["generated_at"] = self.metadata.generated_at.isoformat()
        return d


@dataclass
class GenerationRequest:
    content: str
    difficulty_mix: list[str] = field(default_factory=lambda: ["medium"])
    target_count: int = 10
    topics: list[str] | None = None


@dataclass
class QualityStats:
    average_score: float = 0.0
    passed_validation: int = 0
    total_generated: int = 0


@dataclass
class DeduplicationStats:
    original_count: int = 0
    duplicates_removed: int = 0
    final_count: int = 0


@dataclass
class GenerationMetadata:
    total_questions: int = 0
    processing_time_ms: int = 0
    provider: str = "none"
    providers_used: list[str] = field(default_factory=list)
    content_length: int = 0
    chunks_processed: int = 0
    quality_stats: QualityStats = field(default_factory=QualityStats)
    deduplication_stats: DeduplicationStats = field(default_factory=DeduplicationStats)
    shortfall: int = 0


@dataclass
class GenerationResult:
    success: bool
    questions: list[Question]
    metadata: GenerationMetadata
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "questions": [q.to_dict() for q in self.questions],
            "metadata": asdict(self.metadata),
            "error": self.error,
        }


@dataclass
class DuplicateGroup:
    representative: Question
    duplicates: list[Question]
    similarity_score: float


@dataclass
class DeduplicationResult:
    unique_questions: list[Question]
    duplicates_removed: int
    duplicate_groups: list[DuplicateGroup]


@dataclass
class ValidationIssue:
    type: str  # structure | clarity | difficulty | relevance
    severity: str  # low | medium | high
    message: str
    suggestion: str = ""


@dataclass
class ValidationResult:
    is_valid: bool
    score: float
    issues: list[ValidationIssue]
    suggestions: list[str] = field(default_factory=list)


@dataclass
class TopicExtraction:
    topics: list[str]
    keywords: list[str]
    concepts: list[str]
    difficulty: str
    content_type: str  # academic | technical | general
