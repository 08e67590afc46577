from __future__ import annotations

from pathlib import Path

import pytest

from nlp_task_server import commands
from nlp_task_server.commands import NLPTaskServerCommands, compose_config
from nlp_task_server.data.schema import AnswerResponse, LanguageModelingResponse
from nlp_task_server.errors import ConfigError
from nlp_task_server.production.client import GrpcTransport, HttpTransport, transport_from_config
from nlp_task_server.production.serving_instructions import serving_commands
from nlp_task_server.tasks.base import TaskDescriptor, TaskKind
from nlp_task_server.utils.paths import project_root


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in (
        "NLP_TASK_SERVER_MODELS_DIR",
        "NLP_TASK_SERVER_MODEL_NAME",
        "NLP_TASK_SERVER_TASK",
        "NLP_TASK_SERVER_GRPC_PORT",
        "NLP_TASK_SERVER_HTTP_PORT",
        "NLP_TASK_SERVER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_default_config():
    cfg = compose_config([])
    assert cfg.loader.task == "text_encoding"
    assert cfg.client.timeout_seconds == 30
    assert int(cfg.server.grpc_port) == 50051
    descriptor = TaskDescriptor.from_config(cfg.loader)
    assert descriptor.kind == TaskKind.TEXT_ENCODING
    assert descriptor.model_directory == project_root() / "models"


def test_overrides_and_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("NLP_TASK_SERVER_MODELS_DIR", str(tmp_path))
    cfg = compose_config(["loader.model_name=bert-ner", "loader.task=token_classification"])
    descriptor = TaskDescriptor.from_config(cfg.loader)
    assert descriptor.kind == TaskKind.TOKEN_CLASSIFICATION
    assert descriptor.model_directory == Path(tmp_path) / "bert-ner"


def test_transport_from_config():
    cfg = compose_config([])
    assert isinstance(transport_from_config(cfg.client), GrpcTransport)
    http = transport_from_config(compose_config(["client.transport=http"]).client)
    assert isinstance(http, HttpTransport)
    assert http.timeout == 30.0
    with pytest.raises(ConfigError):
        transport_from_config(compose_config(["client.transport=carrier-pigeon"]).client)


def test_serving_commands_name_the_configured_endpoint():
    commands = serving_commands(compose_config(["loader.task=question_answering"]))
    joined = "\n".join(commands)
    assert "/v1/answer" in joined
    assert "nlp-task-server answer" in joined


def test_print_config(capsys):
    rendered = NLPTaskServerCommands().print_config("server.http_port=9000")
    assert "http_port: 9000" in rendered
    assert "http_port: 9000" in capsys.readouterr().out


class RecordingTask:
    """Captures the options a CLI command builds for its task."""

    def __init__(self):
        self.calls = []

    def answer(self, question, passage, options):
        self.calls.append(options)
        return AnswerResponse(answers=[])

    def predict(self, text, options):
        self.calls.append(options)
        return LanguageModelingResponse(tokens=[])


@pytest.fixture
def recording_task(monkeypatch) -> RecordingTask:
    task = RecordingTask()
    monkeypatch.setattr(commands, "_task", lambda overrides, kind, remote: task)
    return task


def test_answer_command_forwards_every_option(recording_task):
    NLPTaskServerCommands().answer(
        "Where?", "Paris.", max_answers=2, max_answer_length=7, max_candidates=4, min_score=0.1
    )
    [options] = recording_task.calls
    assert (options.max_answers, options.max_answer_length, options.max_candidates) == (2, 7, 4)
    assert options.min_score == pytest.approx(0.1)


def test_fill_mask_command(recording_task, capsys):
    assert NLPTaskServerCommands().fill_mask("alice moved to [MASK]", top_k=3) == {"tokens": []}
    assert recording_task.calls[0].top_k == 3
    assert '"tokens":[]' in capsys.readouterr().out


def test_serving_commands_cover_fill_mask():
    joined = "\n".join(serving_commands(compose_config(["loader.task=language_modeling"])))
    assert "/v1/fill-mask" in joined
    assert "nlp-task-server fill_mask" in joined
