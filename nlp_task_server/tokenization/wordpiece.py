"""WordPiece tokenizer with character offsets."""

from __future__ import annotations

import unicodedata
from pathlib import Path
from typing import NamedTuple

from nlp_task_server.tokenization.base import Token, Tokenizer, clamp_span
from nlp_task_server.tokenization.vocabulary import Vocabulary

DEFAULT_CLASS_TOKEN = "[CLS]"
DEFAULT_SEQUENCE_SEPARATOR = "[SEP]"
DEFAULT_UNKNOWN_TOKEN = "[UNK]"
DEFAULT_MASK_TOKEN = "[MASK]"
DEFAULT_PAD_TOKEN = "[PAD]"
DEFAULT_SPLIT_PREFIX = "##"
DEFAULT_MAX_INPUT_CHARS_PER_WORD = 100


class _Piece(NamedTuple):
    text: str
    length: int
    starts_word: bool


def _is_skipped(char: str) -> bool:
    """Whitespace and control characters produce no token."""
    if char.isspace():
        return True
    if char in ("\x00", "\ufffd"):
        return True
    return unicodedata.category(char) in ("Cc", "Cf")


def _is_punctuation(char: str) -> bool:
    code = ord(char)
    if 33 <= code <= 47 or 58 <= code <= 64 or 91 <= code <= 96 or 123 <= code <= 126:
        return True
    return unicodedata.category(char).startswith("P")


def _is_cjk(char: str) -> bool:
    code = ord(char)
    return (
        0x4E00 <= code <= 0x9FFF
        or 0x3400 <= code <= 0x4DBF
        or 0x20000 <= code <= 0x2A6DF
        or 0x2A700 <= code <= 0x2B73F
        or 0x2B740 <= code <= 0x2B81F
        or 0x2B820 <= code <= 0x2CEAF
        or 0xF900 <= code <= 0xFAFF
        or 0x2F800 <= code <= 0x2FA1F
    )


def split_words(text: str) -> list[str]:
    """Split on whitespace; punctuation and CJK characters become words of their own."""
    words: list[str] = []
    current: list[str] = []
    for char in text:
        if _is_skipped(char):
            if current:
                words.append("".join(current))
                current = []
        elif _is_punctuation(char) or _is_cjk(char):
            if current:
                words.append("".join(current))
                current = []
            words.append(char)
        else:
            current.append(char)
    if current:
        words.append("".join(current))
    return words


class WordPieceTokenizer(Tokenizer):
    """Greedy longest-match-first WordPiece tokenizer.

    Continuation pieces carry ``split_prefix``. Special tokens are never
    produced here; callers inject them around the tokenized text.
    """

    def __init__(
        self,
        vocabulary: Vocabulary,
        split_prefix: str = DEFAULT_SPLIT_PREFIX,
        max_input_chars_per_word: int = DEFAULT_MAX_INPUT_CHARS_PER_WORD,
    ) -> None:
        super().__init__(vocabulary)
        self.split_prefix = split_prefix
        self.max_input_chars_per_word = max_input_chars_per_word

    @classmethod
    def from_file(cls, path: Path) -> "WordPieceTokenizer":
        """Load a tokenizer from a ``vocab.txt`` file."""
        return cls(Vocabulary.from_lines(path, DEFAULT_UNKNOWN_TOKEN))

    def tokenize(self, text: str) -> list[Token]:
        pieces: list[_Piece] = []
        for word in split_words(text):
            pieces.extend(self._split_word(word))
        return self._align(text, pieces)

    def is_continuation(self, token: Token | str) -> bool:
        """True when the token continues the previous word."""
        value = token.text if isinstance(token, Token) else token
        return value.startswith(self.split_prefix)

    def _split_word(self, word: str) -> list[_Piece]:
        unknown = [_Piece(self.vocabulary.unknown_token, len(word), True)]
        if len(word) > self.max_input_chars_per_word:
            return unknown
        pieces: list[_Piece] = []
        start = 0
        while start < len(word):
            end = len(word)
            match = None
            while start < end:
                candidate = word[start:end]
                if start > 0:
                    candidate = self.split_prefix + candidate
                if candidate in self.vocabulary:
                    match = candidate
                    break
                end -= 1
            if match is None:
                return unknown
            pieces.append(_Piece(match, end - start, start == 0))
            start = end
        return pieces

    @staticmethod
    def _align(text: str, pieces: list[_Piece]) -> list[Token]:
        # Forward scan over the source text: skip what produced no token, then
        # consume each piece's surface length.
        tokens: list[Token] = []
        cursor = 0
        limit = len(text)
        for piece in pieces:
            if piece.starts_word:
                while cursor < limit and _is_skipped(text[cursor]):
                    cursor += 1
            start, end = clamp_span(cursor, piece.length, limit)
            tokens.append(Token(text=piece.text, start=start, end=end))
            cursor = end
        return tokens
