"""Bidirectional token-string <-> id table."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Mapping, Sequence

from nlp_task_server.data.io import read_json, read_lines
from nlp_task_server.errors import ConfigError, VocabularyInvariantViolation


class Vocabulary:
    """Dense id space ``[0, N)`` with one designated unknown token."""

    def __init__(self, tokens: Sequence[str], unknown_token: str) -> None:
        self._strings = list(tokens)
        self._ids: dict[str, int] = {}
        for index, token in enumerate(self._strings):
            self._ids.setdefault(token, index)
        self.unknown_token = unknown_token

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, int], unknown_token: str) -> "Vocabulary":
        """Build from a ``{token: id}`` mapping whose ids must be dense."""
        size = len(mapping)
        tokens: list[str | None] = [None] * size
        for token, token_id in mapping.items():
            if not isinstance(token_id, int) or not 0 <= token_id < size:
                raise ConfigError(f"vocabulary id {token_id!r} for {token!r} outside [0, {size})")
            if tokens[token_id] is not None:
                raise ConfigError(f"vocabulary id {token_id} assigned twice")
            tokens[token_id] = token
        return cls([token for token in tokens if token is not None], unknown_token)

    @classmethod
    def from_lines(cls, path: Path, unknown_token: str) -> "Vocabulary":
        """Read a one-token-per-line file (id = line index)."""
        tokens = read_lines(path)
        if not tokens:
            raise ConfigError(f"empty vocabulary file: {path}")
        return cls(tokens, unknown_token)

    @classmethod
    def from_json(cls, path: Path, unknown_token: str) -> "Vocabulary":
        """Read a ``{token: id}`` JSON file."""
        return cls.from_mapping(read_json(path), unknown_token)

    def __len__(self) -> int:
        return len(self._strings)

    def __contains__(self, token: object) -> bool:
        return token in self._ids

    def id_of(self, token: str) -> int | None:
        """Return the id of ``token`` or None when absent."""
        return self._ids.get(token)

    def string_of(self, token_id: int) -> str:
        """Return the token for ``token_id``."""
        if not 0 <= token_id < len(self._strings):
            raise VocabularyInvariantViolation(
                f"token id {token_id} outside vocabulary range [0, {len(self._strings)})"
            )
        return self._strings[token_id]

    @property
    def unknown_id(self) -> int:
        """Id of the unknown token used as lookup fallback."""
        token_id = self._ids.get(self.unknown_token)
        if token_id is None:
            raise VocabularyInvariantViolation(
                f"unknown token {self.unknown_token!r} missing from vocabulary"
            )
        return token_id

    def require(self, tokens: Iterable[str], source: Path | str) -> None:
        """Raise ConfigError naming ``source`` if any of ``tokens`` is absent."""
        missing = [token for token in tokens if token not in self._ids]
        if missing:
            raise ConfigError(f"{source}: vocabulary lacks required tokens {missing}")
