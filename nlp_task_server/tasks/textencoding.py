"""BERT text encoding with CLS, mean or max pooling."""

from __future__ import annotations

import numpy as np

from nlp_task_server.data.schema import EncodingResponse, PoolingStrategy
from nlp_task_server.errors import ConfigError
from nlp_task_server.tasks.base import TextEncoder
from nlp_task_server.tasks.bert import BertResources, first_output
from nlp_task_server.utils.tracing import span


def pool(hidden_states: np.ndarray, special_mask: np.ndarray, strategy: PoolingStrategy) -> np.ndarray:
    """Reduce ``[seq, hidden]`` states to one vector.

    Mean and max pool over non-special rows, or over every row when the text
    produced no tokens of its own.
    """
    if strategy == PoolingStrategy.CLS:
        return hidden_states[0]
    rows = hidden_states[~special_mask]
    if rows.shape[0] == 0:
        rows = hidden_states
    if strategy == PoolingStrategy.MEAN:
        return rows.mean(axis=0)
    if strategy == PoolingStrategy.MAX:
        return rows.max(axis=0)
    raise ValueError(f"unsupported pooling strategy: {strategy!r}")


class BertTextEncoding(TextEncoder):
    """Text encoder over a BERT encoder exported to ONNX."""

    def __init__(self, resources: BertResources) -> None:
        self.resources = resources
        self.logger = resources.logger

    def encode(
        self, text: str, pooling_strategy: PoolingStrategy = PoolingStrategy.CLS
    ) -> EncodingResponse:
        strategy = PoolingStrategy(pooling_strategy)
        tokens = self.resources.pad(self.resources.tokenize(text), len(text))
        self.resources.check_length(len(tokens))

        outputs = self.resources.forward(tokens)
        with span("textencoding.pool", self.logger):
            hidden_states = np.asarray(first_output(outputs, "last_hidden_state"))[0]
            if hidden_states.shape[0] != len(tokens):
                raise ConfigError(
                    f"model returned {hidden_states.shape[0]} vectors for {len(tokens)} tokens"
                )
            special_mask = np.array([token.is_special for token in tokens], dtype=bool)
            vector = pool(hidden_states.astype(np.float64), special_mask, strategy)
        hidden_size = self.resources.hidden_size
        if hidden_size is not None and vector.shape[0] != hidden_size:
            raise ConfigError(
                f"model returned {vector.shape[0]}-dim vectors, config says {hidden_size}"
            )
        return EncodingResponse(vector=vector.tolist(), pooling_strategy=strategy)
