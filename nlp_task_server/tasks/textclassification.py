"""BERT sequence classification."""

from __future__ import annotations

import numpy as np

from nlp_task_server.data.schema import ClassificationResponse, ClassificationResult
from nlp_task_server.errors import ConfigError
from nlp_task_server.production.infer_onnx import softmax
from nlp_task_server.tasks.base import TextClassifier
from nlp_task_server.tasks.bert import BertResources, first_output
from nlp_task_server.tokenization.base import Token
from nlp_task_server.utils.tracing import span


def sequence_logits(
    resources: BertResources, tokens: list[Token], token_type_ids: list[int] | None = None
) -> np.ndarray:
    """Run a sequence classification head and return its label logits."""
    outputs = resources.forward(tokens, token_type_ids)
    logits = np.asarray(first_output(outputs, "logits"), dtype=np.float64).reshape(-1)
    if logits.shape[0] != len(resources.labels):
        raise ConfigError(
            f"model returned {logits.shape[0]} logits for {len(resources.labels)} labels"
        )
    return logits


def ranked_results(labels: list[str], scores: np.ndarray) -> list[ClassificationResult]:
    """Labels with their scores, best first; ties keep label order."""
    order = sorted(range(len(labels)), key=lambda index: -float(scores[index]))
    return [ClassificationResult(label=labels[index], score=float(scores[index])) for index in order]


class BertTextClassification(TextClassifier):
    """Single-text classifier over the model's own label set."""

    def __init__(self, resources: BertResources) -> None:
        self.resources = resources
        self.logger = resources.logger

    def classify(self, text: str) -> ClassificationResponse:
        tokens = self.resources.pad(self.resources.tokenize(text), len(text))
        self.resources.check_length(len(tokens))
        logits = sequence_logits(self.resources, tokens)
        with span("textclassification.decode", self.logger):
            results = ranked_results(self.resources.labels, softmax(logits))
        return ClassificationResponse(results=results)
