"""Loading steps shared by every BERT-family task head."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from nlp_task_server.data.io import read_json
from nlp_task_server.errors import ConfigError, InputTooLong
from nlp_task_server.tasks.base import ModelRunner
from nlp_task_server.tokenization.base import Token, lower_preserving_offsets, special_token
from nlp_task_server.tokenization.wordpiece import (
    DEFAULT_CLASS_TOKEN,
    DEFAULT_SEQUENCE_SEPARATOR,
    WordPieceTokenizer,
)
from nlp_task_server.utils.logging import get_logger

DEFAULT_MAX_POSITION_EMBEDDINGS = 512

RunnerFactory = Callable[[Path, logging.Logger], ModelRunner]


def id2label(config: dict[str, Any]) -> list[str]:
    """Dense label list from the ``id2label`` map of a model config."""
    mapping = config.get("id2label") or {}
    if not mapping:
        return ["LABEL_0", "LABEL_1"]  # assume binary classification by default
    labels: list[str | None] = [None] * len(mapping)
    for key, value in mapping.items():
        try:
            index = int(key)
        except (TypeError, ValueError) as error:
            raise ConfigError(f"id2label key {key!r} is not an integer") from error
        if not 0 <= index < len(labels):
            raise ConfigError(f"id2label index {index} outside [0, {len(labels)})")
        labels[index] = str(value)
    if any(label is None for label in labels):
        raise ConfigError("id2label indices are not dense")
    return [label for label in labels if label is not None]


@dataclass(frozen=True)
class BertResources:
    """Vocabulary, tokenizer, config values and model runner of one model directory."""

    directory: Path
    tokenizer: WordPieceTokenizer
    do_lower_case: bool
    max_position_embeddings: int
    hidden_size: int | None
    labels: list[str]
    runner: ModelRunner
    logger: logging.Logger

    def tokenize(self, text: str) -> list[Token]:
        """Tokenize without special tokens, lower-casing first if the model asks for it."""
        if self.do_lower_case:
            text = lower_preserving_offsets(text)
        return self.tokenizer.tokenize(text)

    def check_length(self, length: int) -> None:
        """Raise InputTooLong if ``length`` tokens do not fit the model."""
        if length > self.max_position_embeddings:
            raise InputTooLong(length, self.max_position_embeddings)

    def pad(self, tokens: list[Token], text_length: int) -> list[Token]:
        """``[CLS] tokens [SEP]``."""
        return [
            special_token(DEFAULT_CLASS_TOKEN, 0),
            *tokens,
            special_token(DEFAULT_SEQUENCE_SEPARATOR, text_length),
        ]

    def pair(
        self, first: list[Token], first_length: int, second: list[Token], second_length: int
    ) -> tuple[list[Token], list[int]]:
        """``[CLS] first [SEP] second [SEP]`` and its segment ids."""
        tokens = [
            *self.pad(first, first_length),
            *second,
            special_token(DEFAULT_SEQUENCE_SEPARATOR, second_length),
        ]
        segments = [0] * (len(first) + 2) + [1] * (len(second) + 1)
        return tokens, segments

    def forward(self, tokens: list[Token], token_type_ids: list[int] | None = None):
        """Call the model-forward collaborator on ``tokens``."""
        input_ids = self.tokenizer.ids_of(tokens)
        return self.runner.run(input_ids, [1] * len(input_ids), token_type_ids)


def load_bert_resources(
    directory: Path, runner_factory: RunnerFactory, logger: logging.Logger | None = None
) -> BertResources:
    """Read vocabulary, tokenizer config and model config, then open the model."""
    logger = get_logger(__name__, logger)
    vocab_path = directory / "vocab.txt"
    tokenizer = WordPieceTokenizer.from_file(vocab_path)
    tokenizer.vocabulary.require(
        (tokenizer.vocabulary.unknown_token, DEFAULT_CLASS_TOKEN, DEFAULT_SEQUENCE_SEPARATOR),
        vocab_path,
    )
    tokenizer_config = read_json(directory / "tokenizer_config.json")
    config = read_json(directory / "config.json")
    try:
        max_positions = int(config.get("max_position_embeddings", DEFAULT_MAX_POSITION_EMBEDDINGS))
        hidden_size = int(config["hidden_size"]) if "hidden_size" in config else None
    except (TypeError, ValueError) as error:
        raise ConfigError(f"malformed model config in {directory}: {error}") from error
    runner = runner_factory(directory, logger)
    logger.info(
        "loaded BERT resources from %s (vocab=%d, max_positions=%d)",
        directory,
        len(tokenizer.vocabulary),
        max_positions,
    )
    return BertResources(
        directory=directory,
        tokenizer=tokenizer,
        do_lower_case=bool(tokenizer_config.get("do_lower_case", False)),
        max_position_embeddings=max_positions,
        hidden_size=hidden_size,
        labels=id2label(config),
        runner=runner,
        logger=logger,
    )


def first_output(outputs: dict, name: str):
    """Named output if present, else the first one."""
    if name in outputs:
        return outputs[name]
    if not outputs:
        raise ConfigError(f"model produced no outputs (expected {name!r})")
    return next(iter(outputs.values()))
