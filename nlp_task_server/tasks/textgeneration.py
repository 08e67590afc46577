"""Seq2seq text generation over SentencePiece vocabularies."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from nlp_task_server.data.io import read_json, read_optional_json
from nlp_task_server.data.schema import GenerationOptions, GenerationResponse
from nlp_task_server.errors import ConfigError, InputTooLong
from nlp_task_server.tasks.base import SequenceGenerator, TextGenerator
from nlp_task_server.tokenization.base import lower_preserving_offsets
from nlp_task_server.tokenization.sentencepiece_tokenizer import (
    DEFAULT_END_TOKEN,
    DEFAULT_PAD_TOKEN,
    SentencePieceTokenizer,
)
from nlp_task_server.utils.logging import get_logger
from nlp_task_server.utils.tracing import span

DEFAULT_MAX_POSITION_EMBEDDINGS = 512

GeneratorFactory = Callable[[Path, logging.Logger], SequenceGenerator]


class Seq2SeqTextGeneration(TextGenerator):
    """Tokenize, delegate decoding to the generator, detokenize the outputs."""

    def __init__(
        self,
        tokenizer: SentencePieceTokenizer,
        generator: SequenceGenerator,
        max_position_embeddings: int = DEFAULT_MAX_POSITION_EMBEDDINGS,
        do_lower_case: bool = False,
        end_token: str = DEFAULT_END_TOKEN,
        special_tokens: frozenset[str] = frozenset({DEFAULT_END_TOKEN, DEFAULT_PAD_TOKEN, "<s>"}),
        logger: logging.Logger | None = None,
    ) -> None:
        self.tokenizer = tokenizer
        self.generator = generator
        self.max_position_embeddings = max_position_embeddings
        self.do_lower_case = do_lower_case
        self.end_token = end_token
        self.special_tokens = special_tokens
        self.logger = get_logger(__name__, logger)

    @classmethod
    def from_directory(
        cls,
        directory: Path,
        generator_factory: GeneratorFactory,
        logger: logging.Logger | None = None,
    ) -> "Seq2SeqTextGeneration":
        """Load tokenizer, configs and the generation collaborator from a model directory."""
        logger = get_logger(__name__, logger)
        config = read_json(directory / "config.json")
        tokenizer_config = read_optional_json(directory / "tokenizer_config.json")
        tokenizer = SentencePieceTokenizer.from_model_directory(directory)
        end_token = str(tokenizer_config.get("eos_token", DEFAULT_END_TOKEN))
        pad_token = str(tokenizer_config.get("pad_token", DEFAULT_PAD_TOKEN))
        tokenizer.id_of_special(end_token)
        try:
            max_positions = int(config.get("max_position_embeddings", DEFAULT_MAX_POSITION_EMBEDDINGS))
        except (TypeError, ValueError) as error:
            raise ConfigError(f"malformed model config in {directory}: {error}") from error
        return cls(
            tokenizer=tokenizer,
            generator=generator_factory(directory, logger),
            max_position_embeddings=max_positions,
            do_lower_case=bool(tokenizer_config.get("do_lower_case", False)),
            end_token=end_token,
            special_tokens=frozenset({end_token, pad_token, "<s>"}),
            logger=logger,
        )

    def generate(self, text: str, options: GenerationOptions | None = None) -> GenerationResponse:
        options = options or GenerationOptions()
        if self.do_lower_case:
            text = lower_preserving_offsets(text)
        input_ids = self.tokenizer.ids_of(self.tokenizer.tokenize(text))
        input_ids.append(self.tokenizer.id_of_special(self.end_token))
        if len(input_ids) > self.max_position_embeddings:
            raise InputTooLong(len(input_ids), self.max_position_embeddings)

        sequences = self.generator.generate(input_ids, options)
        texts, scores = [], []
        with span("textgeneration.detokenize", self.logger):
            for ids, score in sequences:
                pieces = [
                    piece for piece in self.tokenizer.strings_of(ids) if piece not in self.special_tokens
                ]
                texts.append(self.tokenizer.detokenize(pieces))
                scores.append(float(score))
        return GenerationResponse(texts=texts, scores=scores)
