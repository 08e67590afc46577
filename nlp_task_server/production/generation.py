"""Seq2seq decoding collaborator backed by transformers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import torch
from transformers import AutoModelForSeq2SeqLM

from nlp_task_server.data.schema import GenerationOptions
from nlp_task_server.errors import ConfigError
from nlp_task_server.utils.logging import get_logger


class Seq2SeqGenerator:
    """Runs the autoregressive decoding loop of an encoder-decoder model on CPU."""

    def __init__(self, directory: Path, logger: logging.Logger | None = None) -> None:
        self.logger = get_logger(__name__, logger)
        try:
            self.model = AutoModelForSeq2SeqLM.from_pretrained(str(directory))
        except (OSError, ValueError) as error:
            raise ConfigError(f"failed to load generation model from {directory}: {error}") from error
        self.model.eval()
        self.model.to("cpu")
        self.logger.info("loaded generation model from %s", directory)

    @classmethod
    def from_directory(cls, directory: Path, logger: logging.Logger | None = None) -> "Seq2SeqGenerator":
        return cls(directory, logger=logger)

    def generate(
        self, input_ids: Sequence[int], options: GenerationOptions
    ) -> list[tuple[list[int], float]]:
        """Return ``num_return_sequences`` (ids, score) pairs."""
        inputs = torch.tensor([list(input_ids)], dtype=torch.long)
        num_beams = max(options.num_beams, options.num_return_sequences)
        kwargs = {
            "max_length": options.max_length,
            "min_length": options.min_length,
            "num_beams": num_beams,
            "num_return_sequences": options.num_return_sequences,
            "do_sample": options.sample,
            "output_scores": True,
            "return_dict_in_generate": True,
        }
        if options.sample:
            kwargs.update(temperature=options.temperature, top_k=options.top_k, top_p=options.top_p)
        with torch.no_grad():
            output = self.model.generate(
                input_ids=inputs, attention_mask=torch.ones_like(inputs), **kwargs
            )
        sequences = output.sequences.tolist()
        scores = getattr(output, "sequences_scores", None)
        if scores is None:
            values = [0.0] * len(sequences)
        else:
            values = [float(score) for score in scores.tolist()]
        return list(zip(sequences, values))
