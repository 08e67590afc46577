"""SentencePiece tokenizer backed by the ``sentencepiece`` library."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import sentencepiece as spm

from nlp_task_server.data.io import require_file
from nlp_task_server.errors import ConfigError
from nlp_task_server.tokenization.base import Token, TokenLike, Tokenizer, clamp_span
from nlp_task_server.tokenization.vocabulary import Vocabulary

DEFAULT_UNKNOWN_TOKEN = "<unk>"
DEFAULT_END_TOKEN = "</s>"
DEFAULT_PAD_TOKEN = "<pad>"
WORD_BOUNDARY = "▁"


def _load_processor(path: Path) -> spm.SentencePieceProcessor:
    require_file(path)
    try:
        return spm.SentencePieceProcessor(model_file=str(path))
    except (OSError, RuntimeError) as error:
        raise ConfigError(f"loading sentence-piece model from {path}: {error}") from error


class SentencePieceTokenizer(Tokenizer):
    """Subword tokenizer whose pieces mark word starts with ``▁``."""

    def __init__(self, processor: spm.SentencePieceProcessor, vocabulary: Vocabulary) -> None:
        super().__init__(vocabulary)
        self.processor = processor

    @classmethod
    def from_model_directory(cls, directory: Path) -> "SentencePieceTokenizer":
        """Load either ``vocab.json`` + ``source.spm`` or a packed ``spiece.model``."""
        vocab_path = directory / "vocab.json"
        if not vocab_path.exists():
            processor = _load_processor(directory / "spiece.model")
            pieces = [processor.id_to_piece(index) for index in range(processor.get_piece_size())]
            unknown = processor.id_to_piece(processor.unk_id())
            return cls(processor, Vocabulary(pieces, unknown))

        vocabulary = Vocabulary.from_json(vocab_path, DEFAULT_UNKNOWN_TOKEN)
        vocabulary.require([DEFAULT_UNKNOWN_TOKEN], vocab_path)
        processor = _load_processor(directory / "source.spm")
        return cls(processor, vocabulary)

    def tokenize(self, text: str) -> list[Token]:
        pieces = self.processor.encode(text, out_type=str)
        tokens: list[Token] = []
        cursor = 0
        limit = len(text)
        for piece in pieces:
            surface = piece
            if piece.startswith(WORD_BOUNDARY):
                surface = piece[len(WORD_BOUNDARY):]
                while cursor < limit and text[cursor].isspace():
                    cursor += 1
            start, end = clamp_span(cursor, len(surface), limit)
            tokens.append(Token(text=piece, start=start, end=end))
            cursor = end
        return tokens

    @staticmethod
    def detokenize(tokens: Sequence[TokenLike]) -> str:
        """Merge pieces back into text, turning boundary markers into spaces."""
        parts: list[str] = []
        for index, token in enumerate(tokens):
            piece = token.text if isinstance(token, Token) else token
            if piece.startswith(WORD_BOUNDARY):
                if index > 0:
                    parts.append(" ")
                piece = piece[len(WORD_BOUNDARY):]
            parts.append(piece)
        return "".join(parts)
