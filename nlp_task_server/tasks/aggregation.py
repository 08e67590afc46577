"""Post-processing from per-token model scores to entities and answer spans."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np

from nlp_task_server.data.schema import Answer, Entity, QuestionAnsweringOptions
from nlp_task_server.production.infer_onnx import softmax
from nlp_task_server.tokenization.base import Token

BACKGROUND_LABEL = "O"
LABEL_PREFIXES = ("B-", "I-")

DEFAULT_MAX_ANSWERS = 3
DEFAULT_MAX_ANSWER_LENGTH = 20
DEFAULT_MAX_CANDIDATES = 20


@dataclass(frozen=True)
class TokenPrediction:
    """Best label of one token (or word) and its probability."""

    start: int
    end: int
    label: str
    score: float


def predict_labels(
    tokens: Sequence[Token], logits: np.ndarray, labels: Sequence[str]
) -> list[TokenPrediction]:
    """Softmax + argmax over the label axis, one prediction per token."""
    if not tokens:
        return []
    probabilities = softmax(np.asarray(logits, dtype=np.float64))
    best = np.argmax(probabilities, axis=-1)
    return [
        TokenPrediction(
            start=token.start,
            end=token.end,
            label=labels[int(best[row])],
            score=float(probabilities[row, int(best[row])]),
        )
        for row, token in enumerate(tokens)
    ]


def strip_label_prefix(label: str) -> str:
    """Drop a B-/I- prefix from a label."""
    if label.startswith(LABEL_PREFIXES):
        return label[2:]
    return label


def to_entities(text: str, predictions: Sequence[TokenPrediction]) -> list[Entity]:
    """One entity per prediction, label kept as predicted."""
    return [
        Entity(
            text=text[item.start : item.end],
            start=item.start,
            end=item.end,
            label=item.label,
            score=item.score,
        )
        for item in predictions
    ]


def group_words(
    tokens: Sequence[Token],
    predictions: Sequence[TokenPrediction],
    is_continuation: Callable[[Token], bool],
) -> list[TokenPrediction]:
    """Merge continuation pieces into their word.

    The first piece's label and score represent the word; the span is the
    union of the pieces' offsets.
    """
    words: list[TokenPrediction] = []
    for token, prediction in zip(tokens, predictions):
        if words and is_continuation(token):
            head = words[-1]
            words[-1] = TokenPrediction(
                start=min(head.start, prediction.start),
                end=max(head.end, prediction.end),
                label=head.label,
                score=head.score,
            )
        else:
            words.append(prediction)
    return words


def aggregate_simple(text: str, words: Sequence[TokenPrediction]) -> list[Entity]:
    """Merge consecutive words whose labels agree once B-/I- prefixes are ignored."""
    groups: list[list[TokenPrediction]] = []
    for word in words:
        label = strip_label_prefix(word.label)
        if groups and strip_label_prefix(groups[-1][-1].label) == label:
            groups[-1].append(word)
        else:
            groups.append([word])

    entities = []
    for group in groups:
        start = group[0].start
        end = max(word.end for word in group)
        entities.append(
            Entity(
                text=text[start:end],
                start=start,
                end=end,
                label=strip_label_prefix(group[0].label),
                score=float(np.mean([word.score for word in group])),
            )
        )
    return entities


def filter_background(entities: Sequence[Entity]) -> list[Entity]:
    """Drop entities of the background class."""
    return [entity for entity in entities if entity.label != BACKGROUND_LABEL]


@dataclass(frozen=True)
class SpanCandidate:
    """Answer candidate over passage token indices; ``end`` is inclusive."""

    start: int
    end: int
    score: float


def resolve_answer_options(options: QuestionAnsweringOptions | None) -> QuestionAnsweringOptions:
    """Replace non-positive limits with defaults."""
    options = options or QuestionAnsweringOptions()
    return QuestionAnsweringOptions(
        max_answers=options.max_answers if options.max_answers > 0 else DEFAULT_MAX_ANSWERS,
        max_answer_length=(
            options.max_answer_length if options.max_answer_length > 0 else DEFAULT_MAX_ANSWER_LENGTH
        ),
        max_candidates=(
            options.max_candidates if options.max_candidates > 0 else DEFAULT_MAX_CANDIDATES
        ),
        min_score=options.min_score,
    )


def generate_candidates(
    start_logits: Sequence[float], end_logits: Sequence[float], max_answer_length: int
) -> list[SpanCandidate]:
    """Every span of at most ``max_answer_length`` tokens, scored start + end logit."""
    candidates = []
    size = min(len(start_logits), len(end_logits))
    for start in range(size):
        for end in range(start, min(start + max_answer_length, size)):
            candidates.append(
                SpanCandidate(start=start, end=end, score=float(start_logits[start] + end_logits[end]))
            )
    return candidates


def rank_candidates(candidates: Sequence[SpanCandidate], max_candidates: int) -> list[SpanCandidate]:
    """Best ``max_candidates`` by score; ties prefer the earlier, then the shorter span."""
    ordered = sorted(candidates, key=lambda item: (-item.score, item.start, item.end - item.start))
    return ordered[:max_candidates]


def _overlaps(left: Answer, right: Answer) -> bool:
    return left.start < right.end and right.start < left.end


def select_answers(
    passage: str,
    passage_tokens: Sequence[Token],
    start_logits: Sequence[float],
    end_logits: Sequence[float],
    options: QuestionAnsweringOptions,
) -> list[Answer]:
    """Top-k non-overlapping answer spans mapped back to passage characters.

    Normalized scores are a softmax over the raw scores of the kept
    candidates; candidates below ``min_score`` are discarded before the
    greedy overlap resolution.
    """
    ranked = rank_candidates(
        generate_candidates(start_logits, end_logits, options.max_answer_length),
        options.max_candidates,
    )
    if not ranked:
        return []
    normalized = softmax(np.asarray([item.score for item in ranked], dtype=np.float64))

    answers: list[Answer] = []
    for candidate, score in zip(ranked, normalized):
        if len(answers) >= options.max_answers:
            break
        if score < options.min_score:
            continue
        start = passage_tokens[candidate.start].start
        end = passage_tokens[candidate.end].end
        answer = Answer(text=passage[start:end], start=start, end=end, score=float(score))
        if any(_overlaps(answer, chosen) for chosen in answers):
            continue
        answers.append(answer)
    return answers
