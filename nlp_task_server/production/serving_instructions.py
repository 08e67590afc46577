"""Print commands for calling a running task server."""

from __future__ import annotations

import json
from typing import Any

from nlp_task_server.production.endpoints import ENDPOINTS
from nlp_task_server.tasks.base import TaskKind

EXAMPLE_PAYLOADS: dict[TaskKind, dict[str, Any]] = {
    TaskKind.TEXT_ENCODING: {"input": "I was charged incorrect fees", "poolingStrategy": 1},
    TaskKind.TOKEN_CLASSIFICATION: {
        "input": "Alice moved to Paris",
        "options": {"aggregationStrategy": "simple"},
    },
    TaskKind.QUESTION_ANSWERING: {
        "question": "Where did Alice move?",
        "passage": "Alice moved to Paris in 2019.",
        "options": {"maxAnswers": 1},
    },
    TaskKind.ZERO_SHOT_CLASSIFICATION: {
        "input": "The new phone has an amazing camera",
        "options": {"candidateLabels": ["technology", "sports", "politics"]},
    },
    TaskKind.TEXT_CLASSIFICATION: {"input": "I was charged incorrect fees"},
    TaskKind.TEXT_GENERATION: {"input": "Hello, how are you?", "options": {"numBeams": 4}},
    TaskKind.LANGUAGE_MODELING: {"input": "Alice moved to [MASK].", "options": {"topK": 5}},
}


CLI_COMMANDS: dict[TaskKind, str] = {
    TaskKind.TEXT_ENCODING: "encode",
    TaskKind.TOKEN_CLASSIFICATION: "classify_tokens",
    TaskKind.QUESTION_ANSWERING: "answer",
    TaskKind.ZERO_SHOT_CLASSIFICATION: "classify_zero_shot",
    TaskKind.TEXT_CLASSIFICATION: "classify_text",
    TaskKind.TEXT_GENERATION: "generate",
    TaskKind.LANGUAGE_MODELING: "fill_mask",
}

CLI_ARGUMENTS: dict[TaskKind, str] = {
    TaskKind.TEXT_ENCODING: "'I was charged incorrect fees'",
    TaskKind.TOKEN_CLASSIFICATION: "'Alice moved to Paris'",
    TaskKind.QUESTION_ANSWERING: "'Where did Alice move?' 'Alice moved to Paris in 2019.'",
    TaskKind.ZERO_SHOT_CLASSIFICATION: "'The new phone has an amazing camera' "
    "--labels technology,sports,politics",
    TaskKind.TEXT_CLASSIFICATION: "'I was charged incorrect fees'",
    TaskKind.TEXT_GENERATION: "'Hello, how are you?'",
    TaskKind.LANGUAGE_MODELING: "'Alice moved to [MASK].'",
}


def serving_commands(cfg: Any) -> list[str]:
    """Serve, curl and remote CLI commands for the task configured in ``cfg``."""
    kind = TaskKind(str(cfg.loader.task))
    endpoint = ENDPOINTS[kind]
    payload = json.dumps(EXAMPLE_PAYLOADS[kind])
    host = "127.0.0.1" if cfg.server.host in ("0.0.0.0", "[::]") else cfg.server.host
    return [
        f"poetry run nlp-task-server serve loader.task={kind.value}",
        f"curl -X GET http://{host}:{cfg.server.http_port}/health",
        f"curl -X POST http://{host}:{cfg.server.http_port}{endpoint.http_path} "
        f"-H 'Content-Type: application/json' -d '{payload}'",
        f"poetry run nlp-task-server {CLI_COMMANDS[kind]} {CLI_ARGUMENTS[kind]} "
        f"loader.task={kind.value} client.target={host}:{cfg.server.grpc_port} --remote",
    ]


def print_serving_commands(cfg: Any) -> None:
    """Print serving commands for the configured task."""
    print("\n".join(serving_commands(cfg)))
