"""Tokens and the tokenizer contract shared by WordPiece and SentencePiece."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Sequence, Union

from nlp_task_server.errors import VocabularyInvariantViolation
from nlp_task_server.tokenization.vocabulary import Vocabulary


@dataclass(frozen=True)
class Token:
    """Token text with its [start, end) character span in the tokenized text."""

    text: str
    start: int
    end: int
    is_special: bool = False


def special_token(text: str, position: int) -> Token:
    """Zero-width special token injected by the caller at ``position``."""
    return Token(text=text, start=position, end=position, is_special=True)


def lower_preserving_offsets(text: str) -> str:
    """Lower-case ``text`` without changing its length.

    Characters whose lower-case form has a different length are kept as is,
    so offsets computed on the result still index the original text.
    """
    return "".join(char if len(char.lower()) != 1 else char.lower() for char in text)


TokenLike = Union[Token, str]


class Tokenizer(ABC):
    """Subword tokenizer bound to one vocabulary."""

    def __init__(self, vocabulary: Vocabulary) -> None:
        self.vocabulary = vocabulary

    @abstractmethod
    def tokenize(self, text: str) -> list[Token]:
        """Split ``text`` into tokens with character offsets."""

    def ids_of(self, tokens: Iterable[TokenLike]) -> list[int]:
        """Map tokens to ids, substituting the unknown id for absent tokens."""
        ids = []
        for token in tokens:
            text = token.text if isinstance(token, Token) else token
            token_id = self.vocabulary.id_of(text)
            if token_id is None:
                token_id = self.vocabulary.unknown_id
            ids.append(token_id)
        return ids

    def strings_of(self, ids: Sequence[int]) -> list[str]:
        """Map ids back to token strings; every id must be in the vocabulary."""
        return [self.vocabulary.string_of(int(token_id)) for token_id in ids]

    def id_of_special(self, token: str) -> int:
        """Return the id of a special token that the model cannot work without."""
        token_id = self.vocabulary.id_of(token)
        if token_id is None:
            raise VocabularyInvariantViolation(f"special token {token!r} missing from vocabulary")
        return token_id


def clamp_span(start: int, length: int, limit: int) -> tuple[int, int]:
    """Clamp a span starting at ``start`` to ``[0, limit]``."""
    start = min(max(start, 0), limit)
    return start, min(start + max(length, 0), limit)
