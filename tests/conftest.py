from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import numpy as np
import pytest

from nlp_task_server.tasks.bert import load_bert_resources

BERT_VOCAB = [
    "[PAD]",
    "[UNK]",
    "[CLS]",
    "[SEP]",
    "play",
    "##ing",
    "alice",
    "moved",
    "to",
    "paris",
    "where",
    "did",
    "move",
    "?",
    ".",
    ",",
    "[MASK]",
]


def write_bert_model(
    directory: Path,
    vocab: list[str] = BERT_VOCAB,
    config: dict | None = None,
    tokenizer_config: dict | None = None,
) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "vocab.txt").write_text("\n".join(vocab) + "\n", encoding="utf-8")
    (directory / "config.json").write_text(
        json.dumps(config if config is not None else {"model_type": "bert"}), encoding="utf-8"
    )
    (directory / "tokenizer_config.json").write_text(
        json.dumps(tokenizer_config if tokenizer_config is not None else {"do_lower_case": True}),
        encoding="utf-8",
    )
    return directory


class FakeRunner:
    """Model-forward stand-in returning whatever ``forward`` computes."""

    def __init__(self, forward: Callable[[list[int], list[int] | None], dict]) -> None:
        self.forward = forward
        self.calls: list[dict] = []

    def run(self, input_ids, attention_mask=None, token_type_ids=None):
        ids = list(input_ids)
        segments = list(token_type_ids) if token_type_ids is not None else None
        self.calls.append(
            {"input_ids": ids, "attention_mask": list(attention_mask or []), "token_type_ids": segments}
        )
        return self.forward(ids, segments)


def fixed_logits(rows: list[list[float]], name: str = "logits") -> Callable:
    """Forward returning ``rows`` with a leading batch axis regardless of input."""
    array = np.asarray([rows], dtype=np.float32)
    return lambda ids, segments: {name: array}


@pytest.fixture
def make_resources(tmp_path):
    """Build BertResources over a tmp model directory and a fake runner."""

    def build(forward, vocab=BERT_VOCAB, config=None, tokenizer_config=None):
        directory = write_bert_model(tmp_path / "model", vocab, config, tokenizer_config)
        runner = FakeRunner(forward)
        resources = load_bert_resources(directory, lambda path, logger: runner)
        return resources, runner

    return build
