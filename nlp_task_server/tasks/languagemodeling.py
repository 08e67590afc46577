"""BERT masked language modeling (fill-mask)."""

from __future__ import annotations

import re

import numpy as np

from nlp_task_server.data.schema import (
    LanguageModelingOptions,
    LanguageModelingResponse,
    MaskPrediction,
)
from nlp_task_server.errors import ConfigError, InvalidRequestError
from nlp_task_server.production.infer_onnx import softmax
from nlp_task_server.tasks.base import LanguageModeler
from nlp_task_server.tasks.bert import BertResources, first_output
from nlp_task_server.tokenization.base import Token
from nlp_task_server.tokenization.wordpiece import DEFAULT_MASK_TOKEN
from nlp_task_server.utils.tracing import span


class BertLanguageModeling(LanguageModeler):
    """Predicts the words hidden behind ``[MASK]`` tokens with a BERT LM head."""

    def __init__(self, resources: BertResources) -> None:
        self.resources = resources
        self.logger = resources.logger
        resources.tokenizer.vocabulary.require(
            [DEFAULT_MASK_TOKEN], resources.directory / "vocab.txt"
        )
        self._mask_pattern = re.compile(re.escape(DEFAULT_MASK_TOKEN))

    def _tokenize(self, text: str) -> list[Token]:
        """Tokenize the text around each literal mask, keeping masks whole."""
        tokens: list[Token] = []
        cursor = 0
        for match in self._mask_pattern.finditer(text):
            tokens.extend(self._shifted(text[cursor : match.start()], cursor))
            tokens.append(Token(DEFAULT_MASK_TOKEN, match.start(), match.end()))
            cursor = match.end()
        tokens.extend(self._shifted(text[cursor:], cursor))
        return tokens

    def _shifted(self, segment: str, offset: int) -> list[Token]:
        return [
            Token(token.text, token.start + offset, token.end + offset)
            for token in self.resources.tokenize(segment)
        ]

    def predict(
        self, text: str, options: LanguageModelingOptions | None = None
    ) -> LanguageModelingResponse:
        options = options or LanguageModelingOptions()
        tokens = self.resources.pad(self._tokenize(text), len(text))
        positions = [
            index for index, token in enumerate(tokens) if token.text == DEFAULT_MASK_TOKEN
        ]
        if not positions:
            raise InvalidRequestError(f"input contains no {DEFAULT_MASK_TOKEN} token")
        self.resources.check_length(len(tokens))

        outputs = self.resources.forward(tokens)
        with span("languagemodeling.decode", self.logger):
            logits = np.asarray(first_output(outputs, "logits"), dtype=np.float64)[0]
            vocabulary = self.resources.tokenizer.vocabulary
            if logits.shape != (len(tokens), len(vocabulary)):
                raise ConfigError(
                    f"model returned logits of shape {logits.shape} for "
                    f"{len(tokens)} tokens and a vocabulary of {len(vocabulary)}"
                )
            predictions = []
            for position in positions:
                scores = softmax(logits[position])
                best = np.argsort(-scores, kind="stable")[: options.top_k]
                predictions.append(
                    MaskPrediction(
                        start=tokens[position].start,
                        end=tokens[position].end,
                        words=self.resources.tokenizer.strings_of(best.tolist()),
                        scores=[float(scores[index]) for index in best],
                    )
                )
        return LanguageModelingResponse(tokens=predictions)
