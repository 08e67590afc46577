"""Task registry: model type -> model family -> constructor per task kind.

The dispatch table is the ``FAMILIES`` tuple below; nothing registers
itself at import time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping

from nlp_task_server.data.io import read_json
from nlp_task_server.errors import ConfigError
from nlp_task_server.tasks.base import (
    CAPABILITIES,
    ModelRunner,
    SequenceGenerator,
    TaskDescriptor,
    TaskKind,
)
from nlp_task_server.tasks.bert import RunnerFactory, load_bert_resources
from nlp_task_server.tasks.languagemodeling import BertLanguageModeling
from nlp_task_server.tasks.questionanswering import BertQuestionAnswering
from nlp_task_server.tasks.textclassification import BertTextClassification
from nlp_task_server.tasks.textencoding import BertTextEncoding
from nlp_task_server.tasks.textgeneration import GeneratorFactory, Seq2SeqTextGeneration
from nlp_task_server.tasks.tokenclassification import BertTokenClassification
from nlp_task_server.tasks.zeroshot import BertZeroShotClassification
from nlp_task_server.utils.logging import get_logger

Constructor = Callable[[Path, "TaskLoader"], object]


@dataclass(frozen=True)
class ModelFamily:
    """Model types sharing vocabulary/tokenizer loading, with one constructor per task head."""

    name: str
    model_types: frozenset[str]
    constructors: Mapping[TaskKind, Constructor] = field(default_factory=dict)

    def supports(self, kind: TaskKind) -> bool:
        return kind in self.constructors


def _bert_head(head: Callable) -> Constructor:
    def construct(directory: Path, loader: "TaskLoader"):
        return head(load_bert_resources(directory, loader.runner_factory, loader.logger))

    return construct


def _seq2seq_generation(directory: Path, loader: "TaskLoader"):
    return Seq2SeqTextGeneration.from_directory(directory, loader.generator_factory, loader.logger)


FAMILIES: tuple[ModelFamily, ...] = (
    ModelFamily(
        name="bert",
        model_types=frozenset({"bert", "electra", "distilbert"}),
        constructors={
            TaskKind.TEXT_ENCODING: _bert_head(BertTextEncoding),
            TaskKind.TOKEN_CLASSIFICATION: _bert_head(BertTokenClassification),
            TaskKind.QUESTION_ANSWERING: _bert_head(BertQuestionAnswering),
            TaskKind.ZERO_SHOT_CLASSIFICATION: _bert_head(BertZeroShotClassification),
            TaskKind.TEXT_CLASSIFICATION: _bert_head(BertTextClassification),
            TaskKind.LANGUAGE_MODELING: _bert_head(BertLanguageModeling),
        },
    ),
    ModelFamily(
        name="seq2seq",
        model_types=frozenset({"marian", "pegasus"}),
        constructors={TaskKind.TEXT_GENERATION: _seq2seq_generation},
    ),
)


def onnx_runner_factory(directory: Path, logger: logging.Logger) -> ModelRunner:
    """Default encoder collaborator: ``model.onnx`` through onnxruntime."""
    from nlp_task_server.production.infer_onnx import OnnxModelRunner

    return OnnxModelRunner.from_directory(directory, logger=logger)


def seq2seq_generator_factory(directory: Path, logger: logging.Logger) -> SequenceGenerator:
    """Default generation collaborator: transformers seq2seq model (imports torch lazily)."""
    from nlp_task_server.production.generation import Seq2SeqGenerator

    return Seq2SeqGenerator.from_directory(directory, logger=logger)


class TaskLoader:
    """Resolves a model directory's declared type and builds the requested task."""

    def __init__(
        self,
        families: tuple[ModelFamily, ...] = FAMILIES,
        runner_factory: RunnerFactory = onnx_runner_factory,
        generator_factory: GeneratorFactory = seq2seq_generator_factory,
        logger: logging.Logger | None = None,
    ) -> None:
        self.families = families
        self.runner_factory = runner_factory
        self.generator_factory = generator_factory
        self.logger = get_logger(__name__, logger)

    def resolve_family(self, model_type: str) -> ModelFamily:
        """Family declaring ``model_type``."""
        for family in self.families:
            if model_type in family.model_types:
                return family
        raise ConfigError(f"unsupported model type: {model_type!r}")

    def load(self, descriptor: TaskDescriptor):
        """Build the task named by ``descriptor``; fails fast with ConfigError."""
        directory = Path(descriptor.model_directory)
        if not directory.is_dir():
            raise ConfigError(f"model directory not found: {directory}")
        model_type = read_json(directory / "config.json").get("model_type")
        if not isinstance(model_type, str) or not model_type:
            raise ConfigError(f"missing model_type in {directory / 'config.json'}")

        family = self.resolve_family(model_type)
        if not family.supports(descriptor.kind):
            raise ConfigError(
                f"model type {model_type!r} does not support task {descriptor.kind.value!r}"
            )
        self.logger.info(
            "loading %s from %s (model_type=%s)", descriptor.kind.value, directory, model_type
        )
        task = family.constructors[descriptor.kind](directory, self)
        capability = CAPABILITIES[descriptor.kind]
        if not isinstance(task, capability):
            raise ConfigError(f"{type(task).__name__} does not implement {capability.__name__}")
        return task


def load(descriptor: TaskDescriptor, logger: logging.Logger | None = None):
    """Load ``descriptor`` with the default families and collaborators."""
    return TaskLoader(logger=logger).load(descriptor)
