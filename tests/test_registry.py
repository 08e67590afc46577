from __future__ import annotations

import json

import pytest

from nlp_task_server.errors import ConfigError
from nlp_task_server.tasks.base import CAPABILITIES, TaskDescriptor, TaskKind
from nlp_task_server.tasks.registry import FAMILIES, TaskLoader

from conftest import FakeRunner, fixed_logits, write_bert_model

NLI_LABELS = {"0": "contradiction", "1": "neutral", "2": "entailment"}


@pytest.fixture
def loader() -> TaskLoader:
    runner = FakeRunner(fixed_logits([0.0, 0.0, 1.0]))
    return TaskLoader(runner_factory=lambda directory, logger: runner)


@pytest.mark.parametrize("model_type", ["bert", "electra", "distilbert"])
@pytest.mark.parametrize(
    "kind",
    [
        TaskKind.TEXT_ENCODING,
        TaskKind.TOKEN_CLASSIFICATION,
        TaskKind.QUESTION_ANSWERING,
        TaskKind.ZERO_SHOT_CLASSIFICATION,
        TaskKind.TEXT_CLASSIFICATION,
        TaskKind.LANGUAGE_MODELING,
    ],
)
def test_bert_family_builds_every_encoder_task(tmp_path, loader, model_type, kind):
    directory = write_bert_model(
        tmp_path / "model", config={"model_type": model_type, "id2label": NLI_LABELS}
    )
    task = loader.load(TaskDescriptor(kind=kind, model_directory=directory))
    assert isinstance(task, CAPABILITIES[kind])


def test_families_do_not_share_model_types():
    seen: set[str] = set()
    for family in FAMILIES:
        assert not seen & family.model_types
        seen |= family.model_types


def test_unsupported_model_type(tmp_path, loader):
    directory = write_bert_model(tmp_path / "model", config={"model_type": "gpt2"})
    with pytest.raises(ConfigError, match="unsupported model type"):
        loader.load(TaskDescriptor(TaskKind.TEXT_ENCODING, directory))


def test_family_without_requested_task(tmp_path, loader):
    directory = write_bert_model(tmp_path / "model")
    with pytest.raises(ConfigError, match="does not support"):
        loader.load(TaskDescriptor(TaskKind.TEXT_GENERATION, directory))


def test_missing_directory_and_model_type(tmp_path, loader):
    with pytest.raises(ConfigError, match="not found"):
        loader.load(TaskDescriptor(TaskKind.TEXT_ENCODING, tmp_path / "absent"))
    directory = write_bert_model(tmp_path / "model", config={})
    with pytest.raises(ConfigError, match="model_type"):
        loader.load(TaskDescriptor(TaskKind.TEXT_ENCODING, directory))


def test_missing_tokenizer_files(tmp_path, loader):
    directory = write_bert_model(tmp_path / "model")
    (directory / "vocab.txt").unlink()
    with pytest.raises(ConfigError):
        loader.load(TaskDescriptor(TaskKind.TEXT_ENCODING, directory))


def test_seq2seq_requires_sentencepiece_model(tmp_path):
    directory = tmp_path / "marian"
    directory.mkdir()
    (directory / "config.json").write_text(json.dumps({"model_type": "marian"}), encoding="utf-8")
    (directory / "vocab.json").write_text(json.dumps({"<unk>": 0, "</s>": 1}), encoding="utf-8")
    loader = TaskLoader(generator_factory=lambda path, logger: pytest.fail("must not load"))
    with pytest.raises(ConfigError, match="source.spm"):
        loader.load(TaskDescriptor(TaskKind.TEXT_GENERATION, directory))


@pytest.mark.parametrize("absent", ["[UNK]", "[CLS]", "[SEP]"])
def test_bert_vocabulary_without_required_token(tmp_path, loader, absent):
    vocab = [token for token in ["[UNK]", "[CLS]", "[SEP]", "alice"] if token != absent]
    directory = write_bert_model(tmp_path / "model", vocab=vocab)
    with pytest.raises(ConfigError, match=f"lacks required tokens.*{absent[1:-1]}"):
        loader.load(TaskDescriptor(TaskKind.TEXT_ENCODING, directory))


def test_sentencepiece_vocabulary_without_unknown_token(tmp_path):
    directory = tmp_path / "marian"
    directory.mkdir()
    (directory / "config.json").write_text(json.dumps({"model_type": "marian"}), encoding="utf-8")
    (directory / "vocab.json").write_text(json.dumps({"</s>": 0, "▁a": 1}), encoding="utf-8")
    (directory / "source.spm").write_bytes(b"")
    loader = TaskLoader(generator_factory=lambda path, logger: pytest.fail("must not load"))
    with pytest.raises(ConfigError, match="<unk>"):
        loader.load(TaskDescriptor(TaskKind.TEXT_GENERATION, directory))
