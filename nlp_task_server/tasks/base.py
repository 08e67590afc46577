"""Task kinds, descriptors and one capability interface per task kind.

In-process task implementations and the remote client stubs implement the
same capability classes, so callers can swap one for the other.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, Sequence

import numpy as np

from nlp_task_server.data.schema import (
    AnswerResponse,
    ClassificationResponse,
    EncodingResponse,
    GenerationOptions,
    GenerationResponse,
    LanguageModelingOptions,
    LanguageModelingResponse,
    PoolingStrategy,
    QuestionAnsweringOptions,
    TokenClassificationOptions,
    TokenClassificationResponse,
    ZeroShotOptions,
)
from nlp_task_server.utils.paths import resolve_model_directory


class TaskKind(str, Enum):
    """Task capabilities a server instance can expose."""

    TEXT_ENCODING = "text_encoding"
    TOKEN_CLASSIFICATION = "token_classification"
    QUESTION_ANSWERING = "question_answering"
    ZERO_SHOT_CLASSIFICATION = "zero_shot_classification"
    TEXT_CLASSIFICATION = "text_classification"
    TEXT_GENERATION = "text_generation"
    LANGUAGE_MODELING = "language_modeling"


@dataclass(frozen=True)
class TaskDescriptor:
    """What to load and from where; supplied once at load time."""

    kind: TaskKind
    model_directory: Path
    model_name: str = ""

    @classmethod
    def from_config(cls, cfg: Any) -> "TaskDescriptor":
        """Build from the ``loader`` section of the Hydra config."""
        model_name = str(cfg.model_name or "")
        return cls(
            kind=TaskKind(str(cfg.task)),
            model_directory=resolve_model_directory(str(cfg.models_dir), model_name),
            model_name=model_name,
        )


class ModelRunner(Protocol):
    """Opaque model forward: token ids in, named per-position score arrays out."""

    def run(
        self,
        input_ids: Sequence[int],
        attention_mask: Sequence[int] | None = None,
        token_type_ids: Sequence[int] | None = None,
    ) -> dict[str, np.ndarray]: ...


class SequenceGenerator(Protocol):
    """Opaque decoding loop: input ids in, (output ids, score) pairs out."""

    def generate(
        self, input_ids: Sequence[int], options: GenerationOptions
    ) -> list[tuple[list[int], float]]: ...


class TextEncoder(ABC):
    """Text encoding capability."""

    @abstractmethod
    def encode(
        self, text: str, pooling_strategy: PoolingStrategy = PoolingStrategy.CLS
    ) -> EncodingResponse:
        """Return one dense vector for ``text``."""


class TokenClassifier(ABC):
    """Token classification capability."""

    @abstractmethod
    def classify(
        self, text: str, options: TokenClassificationOptions | None = None
    ) -> TokenClassificationResponse:
        """Return the classified tokens or entities of ``text``."""


class QuestionAnswerer(ABC):
    """Extractive question answering capability."""

    @abstractmethod
    def answer(
        self, question: str, passage: str, options: QuestionAnsweringOptions | None = None
    ) -> AnswerResponse:
        """Return answer spans of ``passage`` for ``question``."""


class ZeroShotClassifier(ABC):
    """Zero-shot classification capability."""

    @abstractmethod
    def classify(self, text: str, options: ZeroShotOptions) -> ClassificationResponse:
        """Score ``text`` against the candidate labels in ``options``."""


class TextClassifier(ABC):
    """Text classification capability."""

    @abstractmethod
    def classify(self, text: str) -> ClassificationResponse:
        """Score ``text`` against the model's labels."""


class TextGenerator(ABC):
    """Text generation capability."""

    @abstractmethod
    def generate(self, text: str, options: GenerationOptions | None = None) -> GenerationResponse:
        """Return generated completions for ``text``."""


class LanguageModeler(ABC):
    """Masked language modeling capability."""

    @abstractmethod
    def predict(
        self, text: str, options: LanguageModelingOptions | None = None
    ) -> LanguageModelingResponse:
        """Return the most likely words for each mask token in ``text``."""


CAPABILITIES: dict[TaskKind, type] = {
    TaskKind.TEXT_ENCODING: TextEncoder,
    TaskKind.TOKEN_CLASSIFICATION: TokenClassifier,
    TaskKind.QUESTION_ANSWERING: QuestionAnswerer,
    TaskKind.ZERO_SHOT_CLASSIFICATION: ZeroShotClassifier,
    TaskKind.TEXT_CLASSIFICATION: TextClassifier,
    TaskKind.TEXT_GENERATION: TextGenerator,
    TaskKind.LANGUAGE_MODELING: LanguageModeler,
}
