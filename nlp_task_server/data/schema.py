"""Pydantic schemas for task requests, options and responses.

Python attributes are snake_case; the wire format (gRPC JSON payloads and
the HTTP gateway) uses the camelCase aliases. Both spellings are accepted
on input.
"""

from __future__ import annotations

from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_HYPOTHESIS_TEMPLATE = "This example is {}."


class WireModel(BaseModel):
    """Base model with camelCase wire aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> str:
        """Serialize to the JSON wire format."""
        return self.model_dump_json(by_alias=True)


class PoolingStrategy(IntEnum):
    """Reduction of per-token vectors to one vector."""

    CLS = 0
    MEAN = 1
    MAX = 2


class AggregationStrategy(str, Enum):
    """Merging policy for token classification output."""

    NONE = "none"
    SIMPLE = "simple"


# Text encoding


class EncodingRequest(WireModel):
    """Text encoding request."""

    input: str
    pooling_strategy: PoolingStrategy = PoolingStrategy.CLS


class EncodingResponse(WireModel):
    """One dense vector per request."""

    vector: list[float]
    pooling_strategy: PoolingStrategy


# Token classification


class TokenClassificationOptions(WireModel):
    """Token classification options."""

    aggregation_strategy: AggregationStrategy = AggregationStrategy.SIMPLE


class TokenClassificationRequest(WireModel):
    """Token classification request."""

    input: str
    options: TokenClassificationOptions = Field(default_factory=TokenClassificationOptions)


class Entity(WireModel):
    """Classified span; offsets index the original request text."""

    text: str
    start: int
    end: int
    label: str
    score: float


class TokenClassificationResponse(WireModel):
    """Token classification response."""

    tokens: list[Entity]


# Question answering


class QuestionAnsweringOptions(WireModel):
    """Extractive question answering options; values <= 0 fall back to defaults."""

    max_answers: int = 3
    max_answer_length: int = 20
    max_candidates: int = 20
    min_score: float = 0.0


class AnswerRequest(WireModel):
    """Question answering request."""

    question: str
    passage: str
    options: QuestionAnsweringOptions = Field(default_factory=QuestionAnsweringOptions)


class Answer(WireModel):
    """Answer span; offsets index the passage."""

    text: str
    start: int
    end: int
    score: float


class AnswerResponse(WireModel):
    """Answers sorted by descending score."""

    answers: list[Answer]


# Classification (zero-shot and plain text classification)


class ZeroShotOptions(WireModel):
    """Zero-shot classification options."""

    candidate_labels: list[str] = Field(..., min_length=1)
    hypothesis_template: str = DEFAULT_HYPOTHESIS_TEMPLATE
    multi_label: bool = False


class ZeroShotRequest(WireModel):
    """Zero-shot classification request."""

    input: str
    options: ZeroShotOptions


class TextClassificationRequest(WireModel):
    """Text classification request."""

    input: str


class ClassificationResult(WireModel):
    """Label with its probability."""

    label: str
    score: float


class ClassificationResponse(WireModel):
    """Labels sorted by descending score."""

    results: list[ClassificationResult]


# Text generation


class GenerationOptions(WireModel):
    """Text generation options passed to the decoding loop."""

    max_length: int = Field(200, ge=1)
    min_length: int = Field(0, ge=0)
    num_beams: int = Field(4, ge=1)
    num_return_sequences: int = Field(1, ge=1)
    temperature: float = Field(1.0, gt=0.0)
    top_k: int = Field(0, ge=0)
    top_p: float = Field(1.0, gt=0.0, le=1.0)
    sample: bool = False


class GenerationRequest(WireModel):
    """Text generation request."""

    input: str
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class GenerationResponse(WireModel):
    """Generated completions with their sequence scores."""

    texts: list[str]
    scores: list[float]


# Language modeling


class LanguageModelingOptions(WireModel):
    """Fill-mask options."""

    top_k: int = Field(5, ge=1)


class LanguageModelingRequest(WireModel):
    """Fill-mask request; ``input`` holds one or more mask tokens."""

    input: str
    options: LanguageModelingOptions = Field(default_factory=LanguageModelingOptions)


class MaskPrediction(WireModel):
    """Candidate words for one mask; offsets index the request text."""

    start: int
    end: int
    words: list[str]
    scores: list[float]


class LanguageModelingResponse(WireModel):
    """One prediction per mask, in text order."""

    tokens: list[MaskPrediction]
