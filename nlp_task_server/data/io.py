"""Model directory file readers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from nlp_task_server.errors import ConfigError


def require_file(path: Path) -> Path:
    """Return ``path`` or raise ConfigError if it is not a regular file."""
    if not path.is_file():
        raise ConfigError(f"required model file not found: {path}")
    return path


def read_json(path: Path) -> dict[str, Any]:
    """Read a JSON object file."""
    require_file(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as error:
        raise ConfigError(f"malformed JSON file {path}: {error}") from error
    if not isinstance(payload, dict):
        raise ConfigError(f"expected a JSON object in {path}")
    return payload


def read_optional_json(path: Path) -> dict[str, Any]:
    """Read a JSON object file, or return an empty dict if it does not exist."""
    if not path.exists():
        return {}
    return read_json(path)


def read_lines(path: Path) -> list[str]:
    """Read a text file as a list of lines without trailing newlines."""
    require_file(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        raise ConfigError(f"unreadable file {path}: {error}") from error
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line.rstrip("\r") for line in lines]
