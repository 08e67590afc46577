"""Public Fire CLI entrypoint."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import fire
from hydra import compose, initialize_config_dir
from omegaconf import OmegaConf

from nlp_task_server.data.schema import (
    DEFAULT_HYPOTHESIS_TEMPLATE,
    AggregationStrategy,
    GenerationOptions,
    LanguageModelingOptions,
    PoolingStrategy,
    QuestionAnsweringOptions,
    TokenClassificationOptions,
    WireModel,
    ZeroShotOptions,
)
from nlp_task_server.errors import InvalidRequestError
from nlp_task_server.production.client import connect, transport_from_config
from nlp_task_server.production.handler import resolve_request_handler
from nlp_task_server.production.server import TaskServer
from nlp_task_server.production.serving_instructions import print_serving_commands
from nlp_task_server.tasks.base import TaskDescriptor, TaskKind
from nlp_task_server.tasks.registry import load
from nlp_task_server.utils.logging import configure_logging
from nlp_task_server.utils.paths import config_dir


def compose_config(overrides: list[str] | None = None):
    """Compose hydra config using config directory."""
    config_directory = str(config_dir().resolve())
    with initialize_config_dir(config_dir=config_directory, version_base=None):
        return compose(config_name="config", overrides=overrides or [])


def _task(overrides: tuple[str, ...], kind: TaskKind, remote: bool):
    """In-process task, or a client stub for the configured server when ``remote``."""
    cfg = compose_config(list(overrides))
    logger = configure_logging(cfg.logging)
    if remote:
        return connect(kind, transport_from_config(cfg.client, logger=logger))
    descriptor = replace(TaskDescriptor.from_config(cfg.loader), kind=kind)
    return load(descriptor, logger=logger)


def _emit(response: WireModel) -> dict[str, Any]:
    payload = response.model_dump(mode="json", by_alias=True)
    print(response.to_wire())
    return payload


def _labels(labels: Any) -> list[str]:
    if labels is None:
        raise InvalidRequestError("--labels is required")
    if isinstance(labels, str):
        labels = labels.split(",")
    return [str(label).strip() for label in labels if str(label).strip()]


class NLPTaskServerCommands:
    """Command collection exposed through python-fire."""

    def print_config(self, *overrides: str) -> str:
        cfg = compose_config(list(overrides))
        rendered = OmegaConf.to_yaml(cfg, resolve=True)
        print(rendered)
        return rendered

    def serve(self, *overrides: str) -> None:
        cfg = compose_config(list(overrides))
        logger = configure_logging(cfg.logging)
        task = load(TaskDescriptor.from_config(cfg.loader), logger=logger)
        TaskServer(resolve_request_handler(task, logger), cfg.server, logger=logger).serve_forever()

    def encode(
        self, text: str, *overrides: str, pooling: str = "cls", remote: bool = False
    ) -> dict[str, Any]:
        task = _task(overrides, TaskKind.TEXT_ENCODING, remote)
        return _emit(task.encode(text, PoolingStrategy[pooling.upper()]))

    def classify_tokens(
        self, text: str, *overrides: str, aggregation: str = "simple", remote: bool = False
    ) -> dict[str, Any]:
        task = _task(overrides, TaskKind.TOKEN_CLASSIFICATION, remote)
        options = TokenClassificationOptions(aggregation_strategy=AggregationStrategy(aggregation))
        return _emit(task.classify(text, options))

    def answer(
        self,
        question: str,
        passage: str,
        *overrides: str,
        max_answers: int = 3,
        max_answer_length: int = 20,
        max_candidates: int = 20,
        min_score: float = 0.0,
        remote: bool = False,
    ) -> dict[str, Any]:
        task = _task(overrides, TaskKind.QUESTION_ANSWERING, remote)
        options = QuestionAnsweringOptions(
            max_answers=max_answers,
            max_answer_length=max_answer_length,
            max_candidates=max_candidates,
            min_score=min_score,
        )
        return _emit(task.answer(question, passage, options))

    def classify_zero_shot(
        self,
        text: str,
        *overrides: str,
        labels: Any = None,
        template: str = DEFAULT_HYPOTHESIS_TEMPLATE,
        multi_label: bool = False,
        remote: bool = False,
    ) -> dict[str, Any]:
        options = ZeroShotOptions(
            candidate_labels=_labels(labels),
            hypothesis_template=template,
            multi_label=multi_label,
        )
        task = _task(overrides, TaskKind.ZERO_SHOT_CLASSIFICATION, remote)
        return _emit(task.classify(text, options))

    def classify_text(self, text: str, *overrides: str, remote: bool = False) -> dict[str, Any]:
        task = _task(overrides, TaskKind.TEXT_CLASSIFICATION, remote)
        return _emit(task.classify(text))

    def generate(
        self,
        text: str,
        *overrides: str,
        num_beams: int = 4,
        max_length: int = 200,
        remote: bool = False,
    ) -> dict[str, Any]:
        task = _task(overrides, TaskKind.TEXT_GENERATION, remote)
        options = GenerationOptions(num_beams=num_beams, max_length=max_length)
        return _emit(task.generate(text, options))

    def fill_mask(
        self, text: str, *overrides: str, top_k: int = 5, remote: bool = False
    ) -> dict[str, Any]:
        task = _task(overrides, TaskKind.LANGUAGE_MODELING, remote)
        return _emit(task.predict(text, LanguageModelingOptions(top_k=top_k)))

    def serving_instructions(self, *overrides: str) -> None:
        print_serving_commands(compose_config(list(overrides)))


def main() -> None:
    """Main Fire entrypoint."""
    fire.Fire(NLPTaskServerCommands)


if __name__ == "__main__":
    main()
