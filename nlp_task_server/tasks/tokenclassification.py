"""BERT token classification with optional entity aggregation."""

from __future__ import annotations

import numpy as np

from nlp_task_server.data.schema import (
    AggregationStrategy,
    TokenClassificationOptions,
    TokenClassificationResponse,
)
from nlp_task_server.errors import ConfigError
from nlp_task_server.tasks import aggregation
from nlp_task_server.tasks.base import TokenClassifier
from nlp_task_server.tasks.bert import BertResources, first_output
from nlp_task_server.utils.tracing import span


class BertTokenClassification(TokenClassifier):
    """Token classifier over a BERT encoder with a per-token label head."""

    def __init__(self, resources: BertResources) -> None:
        self.resources = resources
        self.labels = resources.labels
        self.logger = resources.logger

    def classify(
        self, text: str, options: TokenClassificationOptions | None = None
    ) -> TokenClassificationResponse:
        options = options or TokenClassificationOptions()
        tokens = self.resources.tokenize(text)
        self.resources.check_length(len(tokens))
        if not tokens:
            return TokenClassificationResponse(tokens=[])

        outputs = self.resources.forward(self.resources.pad(tokens, len(text)))
        with span("tokenclassification.decode", self.logger):
            logits = np.asarray(first_output(outputs, "logits"))[0]
            if logits.shape[0] != len(tokens) + 2 or logits.shape[-1] != len(self.labels):
                raise ConfigError(
                    f"model returned logits of shape {logits.shape} for "
                    f"{len(tokens)} tokens and {len(self.labels)} labels"
                )
            predictions = aggregation.predict_labels(tokens, logits[1:-1], self.labels)

        if options.aggregation_strategy == AggregationStrategy.NONE:
            return TokenClassificationResponse(tokens=aggregation.to_entities(text, predictions))

        with span("tokenclassification.aggregate", self.logger):
            words = aggregation.group_words(
                tokens, predictions, self.resources.tokenizer.is_continuation
            )
            entities = aggregation.filter_background(aggregation.aggregate_simple(text, words))
        return TokenClassificationResponse(tokens=entities)
