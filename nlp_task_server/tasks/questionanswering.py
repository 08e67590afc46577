"""BERT extractive question answering."""

from __future__ import annotations

import numpy as np

from nlp_task_server.data.schema import AnswerResponse, QuestionAnsweringOptions
from nlp_task_server.errors import ConfigError
from nlp_task_server.tasks import aggregation
from nlp_task_server.tasks.base import QuestionAnswerer
from nlp_task_server.tasks.bert import BertResources
from nlp_task_server.utils.tracing import span


class BertQuestionAnswering(QuestionAnswerer):
    """Span extraction from start/end logits over the passage tokens."""

    def __init__(self, resources: BertResources) -> None:
        self.resources = resources
        self.logger = resources.logger

    def answer(
        self, question: str, passage: str, options: QuestionAnsweringOptions | None = None
    ) -> AnswerResponse:
        options = aggregation.resolve_answer_options(options)
        question_tokens = self.resources.tokenize(question)
        passage_tokens = self.resources.tokenize(passage)
        tokens, segments = self.resources.pair(
            question_tokens, len(question), passage_tokens, len(passage)
        )
        self.resources.check_length(len(tokens))
        if not passage_tokens:
            return AnswerResponse(answers=[])

        outputs = self.resources.forward(tokens, segments)
        with span("questionanswering.decode", self.logger):
            start_logits, end_logits = self._logits(outputs, len(tokens))
            # passage rows sit between the second and the last separator
            offset = len(question_tokens) + 2
            passage_slice = slice(offset, offset + len(passage_tokens))
            answers = aggregation.select_answers(
                passage,
                passage_tokens,
                start_logits[passage_slice],
                end_logits[passage_slice],
                options,
            )
        return AnswerResponse(answers=answers)

    @staticmethod
    def _logits(outputs: dict, length: int) -> tuple[np.ndarray, np.ndarray]:
        if "start_logits" in outputs and "end_logits" in outputs:
            start, end = outputs["start_logits"], outputs["end_logits"]
        elif len(outputs) >= 2:
            start, end = list(outputs.values())[:2]
        else:
            raise ConfigError("question answering model must return start and end logits")
        start = np.asarray(start, dtype=np.float64).reshape(-1)
        end = np.asarray(end, dtype=np.float64).reshape(-1)
        if start.shape[0] != length or end.shape[0] != length:
            raise ConfigError(f"model returned {start.shape[0]} logits for {length} tokens")
        return start, end
