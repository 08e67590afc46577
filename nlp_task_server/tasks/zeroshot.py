"""Zero-shot classification through an NLI entailment head."""

from __future__ import annotations

import numpy as np

from nlp_task_server.data.schema import ClassificationResponse, ZeroShotOptions
from nlp_task_server.errors import ConfigError, InvalidRequestError
from nlp_task_server.production.infer_onnx import softmax
from nlp_task_server.tasks.base import ZeroShotClassifier
from nlp_task_server.tasks.bert import BertResources
from nlp_task_server.tasks.textclassification import ranked_results, sequence_logits
from nlp_task_server.utils.tracing import span


def _find_label(labels: list[str], prefix: str) -> int | None:
    for index, label in enumerate(labels):
        if label.lower().startswith(prefix):
            return index
    return None


def build_hypothesis(template: str, label: str) -> str:
    """Substitute ``label`` into the hypothesis template."""
    try:
        return template.format(label)
    except (IndexError, KeyError, ValueError) as error:
        raise InvalidRequestError(f"invalid hypothesis template {template!r}: {error}") from error


def label_scores(
    logits: np.ndarray, entailment_id: int, contradiction_id: int | None, multi_label: bool
) -> np.ndarray:
    """Per-label scores from the ``[labels, classes]`` NLI logits.

    Single-label: softmax of the entailment logits across labels.
    Multi-label: per label, entailment vs contradiction (or vs every class
    when the model has no contradiction label).
    """
    entailment = logits[:, entailment_id]
    if not multi_label:
        return softmax(entailment)
    if contradiction_id is not None:
        pairs = np.stack([logits[:, contradiction_id], entailment], axis=-1)
        return softmax(pairs)[:, 1]
    return softmax(logits)[:, entailment_id]


class BertZeroShotClassification(ZeroShotClassifier):
    """Scores candidate labels by entailment of ``template.format(label)``."""

    def __init__(self, resources: BertResources) -> None:
        self.resources = resources
        self.logger = resources.logger
        self.entailment_id = _find_label(resources.labels, "entail")
        if self.entailment_id is None:
            raise ConfigError(f"no entailment label in id2label: {resources.labels}")
        self.contradiction_id = _find_label(resources.labels, "contradict")

    def classify(self, text: str, options: ZeroShotOptions) -> ClassificationResponse:
        if not options.candidate_labels:
            raise InvalidRequestError("at least one candidate label is required")
        premise = self.resources.tokenize(text)

        rows = []
        for label in options.candidate_labels:
            hypothesis_text = build_hypothesis(options.hypothesis_template, label)
            hypothesis = self.resources.tokenize(hypothesis_text)
            tokens, segments = self.resources.pair(
                premise, len(text), hypothesis, len(hypothesis_text)
            )
            self.resources.check_length(len(tokens))
            rows.append(sequence_logits(self.resources, tokens, segments))

        with span("zeroshot.scores", self.logger):
            scores = label_scores(
                np.stack(rows), self.entailment_id, self.contradiction_id, options.multi_label
            )
            results = ranked_results(list(options.candidate_labels), scores)
        return ClassificationResponse(results=results)
