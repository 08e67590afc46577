"""ONNXRuntime model-forward collaborator for encoder models."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import numpy as np
import onnxruntime as ort

from nlp_task_server.data.io import require_file
from nlp_task_server.errors import ConfigError
from nlp_task_server.utils.logging import get_logger

MODEL_FILENAME = "model.onnx"


def softmax(logits: np.ndarray) -> np.ndarray:
    """Compute softmax probabilities."""
    shifted = logits - np.max(logits, axis=-1, keepdims=True)
    exp_values = np.exp(shifted)
    return exp_values / np.sum(exp_values, axis=-1, keepdims=True)


class OnnxModelRunner:
    """ONNXRuntime session fed with token ids, returning named output arrays.

    Only the inputs the graph declares are fed, so BERT (with segment ids) and
    DistilBERT (without) exports share this runner.
    """

    def __init__(
        self,
        model_path: Path,
        providers: Sequence[str] = ("CPUExecutionProvider",),
        logger: logging.Logger | None = None,
    ) -> None:
        self.model_path = require_file(model_path)
        self.logger = get_logger(__name__, logger)
        try:
            self.session = ort.InferenceSession(str(model_path), providers=list(providers))
        except Exception as error:
            raise ConfigError(f"failed to load ONNX model {model_path}: {error}") from error
        self.input_names = {node.name for node in self.session.get_inputs()}
        self.output_names = [node.name for node in self.session.get_outputs()]
        self.logger.info("loaded %s (outputs=%s)", model_path, ",".join(self.output_names))

    @classmethod
    def from_directory(cls, directory: Path, logger: logging.Logger | None = None) -> "OnnxModelRunner":
        """Open the ``model.onnx`` artifact of a model directory."""
        return cls(directory / MODEL_FILENAME, logger=logger)

    def run(
        self,
        input_ids: Sequence[int],
        attention_mask: Sequence[int] | None = None,
        token_type_ids: Sequence[int] | None = None,
    ) -> dict[str, np.ndarray]:
        """Run one sequence; outputs keep their leading batch axis of size 1."""
        if attention_mask is None:
            attention_mask = [1] * len(input_ids)
        if token_type_ids is None:
            token_type_ids = [0] * len(input_ids)
        candidates = {
            "input_ids": input_ids,
            "attention_mask": attention_mask,
            "token_type_ids": token_type_ids,
        }
        inputs = {
            name: np.asarray([values], dtype=np.int64)
            for name, values in candidates.items()
            if name in self.input_names
        }
        outputs = self.session.run(None, inputs)
        return dict(zip(self.output_names, outputs))
